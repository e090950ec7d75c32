"""测试用的图片构造函数与假编解码器。"""

from __future__ import annotations

import asyncio
import random
from pathlib import Path
from typing import Any, Optional

from PIL import Image

from image_optimizer.core.config import WebpOptions
from image_optimizer.core.exceptions import ImageCodecError

SVG_TEMPLATE = (
    '<?xml version="1.0" encoding="UTF-8" standalone="no"?>\n'
    '<svg xmlns="http://www.w3.org/2000/svg" width="100" height="100" viewBox="0 0 100 100">\n'
    "  <!-- {padding} -->\n"
    "  <metadata>exported by a very chatty editor</metadata>\n"
    '  <rect x="0" y="0" width="100" height="100" fill="#ff0000"/>\n'
    "</svg>\n"
)


def make_noise_jpeg(path: Path, size: tuple[int, int] = (400, 400), *, quality: int = 100, seed: int = 1) -> Path:
    rng = random.Random(seed)
    data = bytes(rng.getrandbits(8) for _ in range(size[0] * size[1] * 3))
    Image.frombytes("RGB", size, data).save(path, format="JPEG", quality=quality)
    return path


def make_png(path: Path, size: tuple[int, int] = (64, 64), color: str = "blue") -> Path:
    Image.new("RGB", size, color).save(path, format="PNG")
    return path


def make_gradient_png(path: Path, size: tuple[int, int] = (120, 80)) -> Path:
    image = Image.new("RGB", size)
    image.putdata([(x * 2 % 256, y * 3 % 256, (x + y) % 256) for y in range(size[1]) for x in range(size[0])])
    image.save(path, format="PNG")
    return path


def make_svg(path: Path, padding: int = 1750) -> Path:
    path.write_text(SVG_TEMPLATE.format(padding="x" * padding), encoding="utf-8")
    return path


def make_gif(path: Path, size: tuple[int, int] = (32, 32)) -> Path:
    Image.new("P", size, 3).save(path, format="GIF")
    return path


class FakeCodec:
    """记录调用并返回可控结果的编解码器。"""

    def __init__(
        self,
        *,
        grow: bool = False,
        delay: float = 0.0,
        fail_on: Optional[set[int]] = None,
        fail_buffers: Optional[set[bytes]] = None,
    ) -> None:
        self.grow = grow
        self.delay = delay
        self.fail_on = fail_on or set()
        self.fail_buffers = fail_buffers or set()
        self.active = 0
        self.max_active = 0
        self.calls: list[tuple[str, Any]] = []
        self.webp_sources: list[bytes] = []

    async def _enter(self) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        if self.delay:
            await asyncio.sleep(self.delay)
        self.active -= 1

    async def compress(self, buffer: bytes, fmt: str, options: Any) -> bytes:
        self.calls.append(("compress", fmt))
        await self._enter()
        if buffer in self.fail_buffers:
            raise RuntimeError("codec crashed")
        if self.grow:
            return buffer + b"\0" * 16
        return buffer[: max(1, len(buffer) // 2)]

    async def resize_width(self, buffer: bytes, width: int, fmt: str, options: Any = None) -> bytes:
        self.calls.append(("resize", width))
        await self._enter()
        if width in self.fail_on:
            raise ImageCodecError(f"cannot resize to {width}")
        return f"{fmt}:{width}".encode()

    async def to_webp(self, buffer: bytes, options: WebpOptions) -> bytes:
        self.calls.append(("webp", options.quality))
        self.webp_sources.append(buffer)
        await self._enter()
        return b"RIFFwebp"


