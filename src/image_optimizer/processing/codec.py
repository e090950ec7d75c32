"""编解码适配层：基于 Pillow 与 scour 的缓冲区压缩与缩放。

所有函数都是纯函数，只处理内存中的字节，不访问文件系统。异步接口通过
``asyncio.to_thread`` 把阻塞的编码工作移出事件循环。
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
from typing import Any, Optional, Protocol
from xml.parsers.expat import ExpatError

from PIL import Image, UnidentifiedImageError
from scour import scour

from image_optimizer.core.config import (
    GifsicleOptions,
    JpegOptions,
    MozJpegOptions,
    PngOptions,
    PngQuantOptions,
    SvgoOptions,
    WebpOptions,
)
from image_optimizer.core.exceptions import ImageCodecError

LOGGER = logging.getLogger(__name__)

_RESAMPLING = getattr(Image, "Resampling", Image)

FORMAT_BY_EXTENSION = {
    "JPG": "JPEG",
    "JPEG": "JPEG",
    "PNG": "PNG",
    "GIF": "GIF",
    "SVG": "SVG",
    "WEBP": "WEBP",
}

_SVG_ROOT_RE = re.compile(r"<svg\b[^>]*>", re.DOTALL)
_NUMBER = r"([0-9]*\.?[0-9]+)"


class Codec(Protocol):
    """处理器依赖的编解码接口。"""

    async def compress(self, buffer: bytes, fmt: str, options: Any) -> bytes: ...

    async def resize_width(self, buffer: bytes, width: int, fmt: str, options: Any = None) -> bytes: ...

    async def to_webp(self, buffer: bytes, options: WebpOptions) -> bytes: ...


class PillowCodec:
    """默认的编解码实现。"""

    async def compress(self, buffer: bytes, fmt: str, options: Any) -> bytes:
        return await asyncio.to_thread(compress_buffer, buffer, fmt, options)

    async def resize_width(self, buffer: bytes, width: int, fmt: str, options: Any = None) -> bytes:
        return await asyncio.to_thread(resize_buffer, buffer, width, fmt, options)

    async def to_webp(self, buffer: bytes, options: WebpOptions) -> bytes:
        return await asyncio.to_thread(encode_webp, buffer, options)


def image_format(fmt: str) -> str:
    """扩展名标记（如 ``JPG``）转换为 Pillow 格式名。"""

    try:
        return FORMAT_BY_EXTENSION[fmt.upper()]
    except KeyError:
        raise ImageCodecError(f"不支持的图片格式: {fmt}") from None


def compress_buffer(buffer: bytes, fmt: str, options: Any) -> bytes:
    """按格式压缩图片缓冲区。"""

    target = image_format(fmt)
    if target == "SVG":
        return _compress_svg(buffer, options or SvgoOptions())
    if target == "JPEG":
        return _compress_jpeg(buffer, options or MozJpegOptions())
    if target == "PNG":
        return _compress_png(buffer, options or PngQuantOptions())
    if target == "GIF":
        return _compress_gif(buffer, options or GifsicleOptions())
    return encode_webp(buffer, options or WebpOptions())


def resize_buffer(buffer: bytes, width: int, fmt: str, options: Any = None) -> bytes:
    """等比缩放到指定宽度；``options`` 不为空时按格式参数重新编码。"""

    target = image_format(fmt)
    if target not in {"JPEG", "PNG", "WEBP"}:
        raise ImageCodecError(f"无法缩放 {fmt} 图片")
    if width <= 0:
        raise ImageCodecError(f"无效的宽度: {width}")

    with _open_image(buffer) as img:
        if img.mode in {"P", "1"}:
            img = img.convert("RGBA" if _has_alpha(img) else "RGB")
        height = max(1, round(img.height * width / img.width))
        resized = img.resize((width, height), _RESAMPLING.LANCZOS)

    save_params: dict[str, Any] = {}
    if target == "JPEG":
        resized = _to_jpeg_mode(resized)
        if isinstance(options, JpegOptions):
            save_params.update(quality=options.quality, progressive=options.progressive, optimize=True)
            if options.chroma_subsampling:
                save_params["subsampling"] = options.chroma_subsampling
    elif target == "PNG":
        if isinstance(options, PngOptions):
            save_params["compress_level"] = options.compress_level
            if options.palette:
                resized = _quantize(resized, options.colors, dither=True)
    elif isinstance(options, WebpOptions):
        save_params.update(quality=options.quality, lossless=options.lossless)

    return _save(resized, target, **save_params)


def encode_webp(buffer: bytes, options: WebpOptions) -> bytes:
    """从原始缓冲区生成 WebP 编码。"""

    with _open_image(buffer) as img:
        mode = "RGBA" if _has_alpha(img) else "RGB"
        converted = img.convert(mode) if img.mode != mode else img.copy()
    return _save(converted, "WEBP", quality=options.quality, lossless=options.lossless)


def _compress_jpeg(buffer: bytes, options: MozJpegOptions) -> bytes:
    with _open_image(buffer) as img:
        extra = {key: img.info[key] for key in ("icc_profile", "exif") if img.info.get(key)}
        image = _to_jpeg_mode(img) if img.mode not in {"RGB", "L", "CMYK"} else img.copy()
    return _save(
        image,
        "JPEG",
        quality=options.quality,
        optimize=True,
        progressive=options.progressive,
        **extra,
    )


def _compress_png(buffer: bytes, options: PngQuantOptions) -> bytes:
    with _open_image(buffer) as img:
        if img.mode == "P":
            # 已经是调色板图像，只做无损重压缩
            image = img.copy()
        else:
            image = _quantize(img, options.colors, dither=options.dither)
    return _save(image, "PNG", optimize=True)


def _compress_gif(buffer: bytes, options: GifsicleOptions) -> bytes:
    with _open_image(buffer) as img:
        params: dict[str, Any] = {"optimize": options.optimization_level > 1}
        if "loop" in img.info:
            params["loop"] = img.info["loop"]
        if getattr(img, "is_animated", False):
            params["save_all"] = True
        output = io.BytesIO()
        try:
            img.save(output, format="GIF", **params)
        except (OSError, ValueError) as exc:
            raise ImageCodecError(f"GIF 编码失败: {exc}") from exc
    return output.getvalue()


def _compress_svg(buffer: bytes, options: SvgoOptions) -> bytes:
    try:
        text = buffer.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ImageCodecError("SVG 不是有效的 UTF-8 文本") from exc

    scour_options = scour.sanitizeOptions()
    scour_options.quiet = True
    scour_options.strip_comments = True
    scour_options.remove_metadata = options.remove_metadata
    scour_options.remove_descriptive_elements = options.remove_metadata
    scour_options.strip_xml_prolog = True
    scour_options.indent_type = "none"
    scour_options.newlines = False

    try:
        cleaned = scour.scourString(text, scour_options)
    except (ExpatError, ValueError) as exc:
        raise ImageCodecError(f"SVG 解析失败: {exc}") from exc

    if options.remove_view_box:
        cleaned = strip_view_box(cleaned)
    return cleaned.encode("utf-8")


def strip_view_box(svg: str) -> str:
    """当 viewBox 与 width/height 完全一致时移除根元素上的 viewBox。"""

    match = _SVG_ROOT_RE.search(svg)
    if not match:
        return svg

    tag = match.group(0)
    width = re.search(r'\swidth="' + _NUMBER + r'(?:px)?"', tag)
    height = re.search(r'\sheight="' + _NUMBER + r'(?:px)?"', tag)
    view_box = re.search(r'\sviewBox="([^"]*)"', tag)
    if not (width and height and view_box):
        return svg

    try:
        values = [float(part) for part in view_box.group(1).replace(",", " ").split()]
    except ValueError:
        return svg
    if values != [0.0, 0.0, float(width.group(1)), float(height.group(1))]:
        return svg

    new_tag = tag.replace(view_box.group(0), "", 1)
    return svg[: match.start()] + new_tag + svg[match.end() :]


def _open_image(buffer: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(buffer))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        LOGGER.debug("无法识别图像缓冲区: %s", exc)
        raise ImageCodecError(f"无法加载图像: {exc}") from exc
    return img


def _save(image: Image.Image, fmt: str, **params: Any) -> bytes:
    output = io.BytesIO()
    try:
        image.save(output, format=fmt, **params)
    except (OSError, ValueError, KeyError) as exc:
        raise ImageCodecError(f"{fmt} 编码失败: {exc}") from exc
    return output.getvalue()


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in {"RGBA", "LA", "PA"} or "transparency" in img.info


def _to_jpeg_mode(img: Image.Image) -> Image.Image:
    if img.mode in {"RGB", "L", "CMYK"}:
        return img
    return img.convert("RGB")


def _quantize(img: Image.Image, colors: int, *, dither: bool) -> Image.Image:
    """调色板量化，带透明通道的图像只能使用 FASTOCTREE。"""

    mode = "RGBA" if _has_alpha(img) else "RGB"
    source = img.convert(mode) if img.mode != mode else img
    method = Image.Quantize.FASTOCTREE if mode == "RGBA" else Image.Quantize.MEDIANCUT
    dither_mode = Image.Dither.FLOYDSTEINBERG if dither else Image.Dither.NONE
    return source.quantize(colors=colors, method=method, dither=dither_mode)


def resolve_options(fmt: Optional[str], config: Any) -> Any:
    """为缩放任务按格式挑选重新编码参数。"""

    target = image_format(fmt) if fmt else None
    if target == "JPEG":
        return config.jpg
    if target == "PNG":
        return config.png
    if target == "WEBP":
        return config.webp
    return None
