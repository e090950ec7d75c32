"""单个文件的处理单元：优化、复制与缩放。"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Any, Optional

from rich.filesize import decimal

from image_optimizer.core.config import OptimizeConfig, ResizeConfig, WebpOptions
from image_optimizer.core.exceptions import ImageCodecError
from image_optimizer.core.models import DiscoveredFile, OptimizeResult, ResizeResult, ResolvedOutput
from image_optimizer.core.output_manager import (
    OutputBase,
    ensure_dir,
    get_resized_filename,
    output_relative_path,
    resolve_output,
    webp_sibling,
)
from image_optimizer.processing.codec import Codec, PillowCodec, resolve_options

LOGGER = logging.getLogger(__name__)

RESIZABLE_EXTENSIONS = {"JPEG", "JPG", "PNG", "WEBP"}
WEBP_SOURCE_EXTENSIONS = {"JPG", "JPEG", "PNG"}
WEBP_TYPE = "WEBP"

# 优化任务生成 WebP 副本时使用的编码参数
WEBP_DERIVATIVE_OPTIONS = WebpOptions(quality=75)


def format_size(num_bytes: int) -> str:
    """字节数转换为易读字符串，例如 ``1.5 kB``。"""

    return decimal(num_bytes)


class ImageProcessor:
    """对单个文件执行读取、压缩/复制、缩放与 WebP 派生。

    处理器本身不保存状态，可被多个并发任务共享。
    """

    def __init__(self, codec: Optional[Codec] = None, *, logger: Optional[logging.Logger] = None) -> None:
        self.codec = codec if codec is not None else PillowCodec()
        self.logger = logger if logger is not None else LOGGER

    async def optimize_one(
        self,
        file: DiscoveredFile,
        output_base: OutputBase,
        config: OptimizeConfig,
    ) -> list[OptimizeResult]:
        """压缩单个文件；压缩结果不小于原文件时原样复制。"""

        options = _compress_options(file.extension, config)
        if options is None:
            # 没有对应的压缩器（如 WEBP），直接复制
            return await self.copy_one(file, output_base)

        output = resolve_output(file, output_base)
        await ensure_dir(output.dir)
        original = await asyncio.to_thread(file.full_path.read_bytes)
        compressed = await self.codec.compress(original, file.extension, options)

        if len(compressed) >= len(original):
            self.logger.debug(
                "压缩后体积未减小 (%d >= %d)，改为原样复制：%s",
                len(compressed),
                len(original),
                file.relative_path,
            )
            await asyncio.to_thread(shutil.copyfile, file.full_path, output.full_path)
            new_size = len(original)
        else:
            await asyncio.to_thread(output.full_path.write_bytes, compressed)
            new_size = len(compressed)

        results = [_optimize_record(output.full_path, output, file.extension, len(original), new_size)]

        if config.webp and file.extension in WEBP_SOURCE_EXTENSIONS:
            # 从原始数据生成，而不是可能被丢弃的压缩结果
            webp = await self.codec.to_webp(original, WEBP_DERIVATIVE_OPTIONS)
            destination = webp_sibling(output.full_path)
            await asyncio.to_thread(destination.write_bytes, webp)
            results.append(_optimize_record(destination, output, WEBP_TYPE, len(original), len(webp)))

        return results

    async def copy_one(self, file: DiscoveredFile, output_base: OutputBase) -> list[OptimizeResult]:
        """原样复制文件到镜像输出位置。"""

        output = resolve_output(file, output_base)
        await ensure_dir(output.dir)
        stat = await asyncio.to_thread(file.full_path.stat)
        await asyncio.to_thread(shutil.copyfile, file.full_path, output.full_path)
        return [_optimize_record(output.full_path, output, file.extension, stat.st_size, stat.st_size)]

    async def resize_one(
        self,
        file: DiscoveredFile,
        output_base: OutputBase,
        config: ResizeConfig,
    ) -> tuple[list[ResizeResult], list[str]]:
        """按配置中的每个宽度生成缩放文件，返回结果记录与警告。"""

        extension = file.extension
        label = (Path(file.base_dir.name) / file.relative_path).as_posix()
        if extension not in RESIZABLE_EXTENSIONS:
            return [], [f"{label} 无法缩放（仅支持 JPEG、PNG 与 WEBP）"]

        output = resolve_output(file, output_base)
        await ensure_dir(output.dir)
        original = await asyncio.to_thread(file.full_path.read_bytes)
        options = resolve_options(extension, config) if config.optimize else None
        name = Path(output.filename).stem

        results: list[ResizeResult] = []
        warnings: list[str] = []

        for width in config.sizes:
            try:
                resized = await self.codec.resize_width(original, width, extension, options)
            except ImageCodecError as exc:
                self.logger.warning("缩放失败 %s @ %dpx: %s", label, width, exc)
                warnings.append(f"{label} 无法缩放到 {width}px: {exc}")
                continue

            filename = get_resized_filename(name, extension.lower(), width, config.pattern)
            destination = output.dir / filename
            await asyncio.to_thread(destination.write_bytes, resized)
            results.append(ResizeResult(path=output_relative_path(destination, output), type=extension, size=width))

            if config.create_webp_copies and extension != WEBP_TYPE:
                webp = await self.codec.to_webp(resized, config.webp)
                webp_path = webp_sibling(destination)
                await asyncio.to_thread(webp_path.write_bytes, webp)
                results.append(ResizeResult(path=output_relative_path(webp_path, output), type=WEBP_TYPE, size=width))

        return results, warnings


def _compress_options(extension: str, config: OptimizeConfig) -> Any:
    if extension in {"JPG", "JPEG"}:
        return config.mozjpeg
    if extension == "PNG":
        return config.pngquant
    if extension == "SVG":
        return config.svgo
    if extension == "GIF":
        return config.gifsicle
    return None


def _optimize_record(
    path: Path,
    output: ResolvedOutput,
    image_type: str,
    original_bytes: int,
    new_bytes: int,
) -> OptimizeResult:
    return OptimizeResult(
        path=output_relative_path(path, output),
        type=image_type,
        original_size=format_size(original_bytes),
        new_size=format_size(new_bytes),
        original_bytes=original_bytes,
        new_bytes=new_bytes,
    )
