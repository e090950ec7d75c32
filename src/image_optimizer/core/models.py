"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union


@dataclass(slots=True, frozen=True)
class DiscoveredFile:
    """扫描阶段得到的源图片信息。"""

    base_dir: Path
    full_path: Path
    relative_path: Path

    @property
    def extension(self) -> str:
        """大写扩展名（不含点），例如 ``JPG``。"""

        return self.full_path.suffix[1:].upper()


@dataclass(slots=True, frozen=True)
class ResolvedOutput:
    """单个文件的输出位置，``dir`` 与 ``full_path`` 均为绝对路径。"""

    base_dir: Path
    dir: Path
    filename: str
    full_path: Path


@dataclass(slots=True)
class OptimizeResult:
    """优化任务的单条结果记录。"""

    path: str
    type: str
    original_size: str
    new_size: str
    original_bytes: int = 0
    new_bytes: int = 0


@dataclass(slots=True)
class ResizeResult:
    """缩放任务的单条结果记录，``size`` 为目标宽度。"""

    path: str
    type: str
    size: int


ResultRecord = Union[OptimizeResult, ResizeResult]


@dataclass(slots=True)
class TaskReport:
    """一次批处理的汇总结果，顺序为各文件的完成顺序。"""

    files: list[ResultRecord] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def processed(self) -> int:
        return len(self.files)

    def by_path(self) -> dict[str, ResultRecord]:
        """按输出路径索引结果，方便与顺序无关的比较。"""

        return {record.path: record for record in self.files}
