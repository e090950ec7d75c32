"""项目内使用的自定义异常定义。"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from image_optimizer.core.models import DiscoveredFile, TaskReport


class ImageOptimizerError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(ImageOptimizerError):
    """配置不合法时抛出。"""


class ImageCodecError(ImageOptimizerError):
    """编解码器无法处理输入缓冲区。"""


class TaskExecutionError(ImageOptimizerError):
    """任务中至少一个文件处理失败，携带已完成部分的报告。"""

    def __init__(self, message: str, report: "TaskReport") -> None:
        super().__init__(message)
        self.report = report


class FatalTaskError(ImageOptimizerError):
    """任务无法继续执行，由最外层调用者决定是否退出进程。"""


class RootNotFoundError(FatalTaskError):
    """输入根目录不存在。"""

    def __init__(self, roots: Sequence[Path], files: Sequence["DiscoveredFile"] = ()) -> None:
        self.roots = list(roots)
        self.files = list(files)
        joined = ", ".join(str(root) for root in self.roots)
        super().__init__(f"文件或目录不存在: {joined}")
