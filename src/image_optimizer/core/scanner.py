"""文件扫描与筛选逻辑。"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator, Optional, Sequence, Union

from image_optimizer.core.exceptions import RootNotFoundError
from image_optimizer.core.models import DiscoveredFile

LOGGER = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp"}

PathLike = Union[str, os.PathLike]
RootsInput = Union[PathLike, Sequence[PathLike]]


def as_path_list(value: RootsInput) -> list[Path]:
    """单个路径或路径序列统一为列表。"""

    if isinstance(value, (str, os.PathLike)):
        return [Path(value)]
    return [Path(item) for item in value]


def _iter_files_recursive(directory: Path) -> Iterator[Path]:
    """深度优先遍历：先进入子目录，再返回当前目录的文件。

    不跟随符号链接，避免链接成环或同一文件被重复处理。
    """

    subdirs: list[Path] = []
    files: list[Path] = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                subdirs.append(Path(entry.path))
            elif entry.is_file(follow_symlinks=False):
                files.append(Path(entry.path))

    for subdir in subdirs:
        yield from _iter_files_recursive(subdir)
    yield from files


def is_image_file(path: Path) -> bool:
    return path.suffix.lower() in IMAGE_EXTENSIONS


def walk(roots: RootsInput, *, logger: Optional[logging.Logger] = None) -> list[DiscoveredFile]:
    """扫描所有根目录，返回支持的图片文件列表。

    不存在的根目录会被记录为错误，其余根目录照常扫描；全部扫描结束后抛出
    :class:`RootNotFoundError`，其中携带已经找到的文件。
    """

    if logger is None:
        logger = LOGGER

    collected: list[DiscoveredFile] = []
    missing: list[Path] = []

    for root in as_path_list(roots):
        if not root.is_dir():
            logger.error("文件或目录不存在: %s", root)
            missing.append(root)
            continue

        for candidate in _iter_files_recursive(root):
            if not is_image_file(candidate):
                continue
            collected.append(
                DiscoveredFile(
                    base_dir=root,
                    full_path=candidate,
                    relative_path=candidate.relative_to(root),
                )
            )

    if missing:
        raise RootNotFoundError(missing, collected)

    logger.debug("发现 %d 个候选图片文件", len(collected))
    return collected
