"""输出路径推导与目录管理模块。"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Union

from image_optimizer.core.models import DiscoveredFile, ResolvedOutput

WEBP_SUFFIX = ".webp"

OutputBase = Union[str, os.PathLike]


def resolve_output(file: DiscoveredFile, output_base: OutputBase) -> ResolvedOutput:
    """根据源文件的相对路径计算镜像输出位置。

    输出基准目录可以是相对路径或绝对路径；相对路径按当前工作目录解析。
    """

    base = Path(output_base)
    directory = base / file.relative_path.parent
    if not directory.is_absolute():
        directory = Path.cwd() / directory

    filename = file.full_path.name
    return ResolvedOutput(
        base_dir=base,
        dir=directory,
        filename=filename,
        full_path=directory / filename,
    )


def get_resized_filename(name: str, extension: str, size: int, pattern: str) -> str:
    """按模板生成缩放后的文件名，每个占位符只替换第一次出现。"""

    return (
        pattern.replace("[name]", name, 1)
        .replace("[extension]", extension, 1)
        .replace("[size]", str(size), 1)
    )


def webp_sibling(path: Path) -> Path:
    """``cat.jpg`` -> ``cat.jpg.webp``。"""

    return path.with_name(path.name + WEBP_SUFFIX)


def output_relative_path(path: Path, output: ResolvedOutput) -> str:
    """结果记录中的路径：相对于输出基准目录，使用 POSIX 分隔符。"""

    base = output.base_dir if output.base_dir.is_absolute() else Path.cwd() / output.base_dir
    try:
        return path.relative_to(base).as_posix()
    except ValueError:
        return path.as_posix()


async def ensure_dir(directory: Path) -> None:
    """确保目录存在；并发调用是幂等的。"""

    await asyncio.to_thread(directory.mkdir, parents=True, exist_ok=True)
