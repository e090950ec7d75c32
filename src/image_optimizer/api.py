"""库入口：执行任务、输出结果表并记录耗时。

这两个函数会自行运行事件循环；已经处于协程中的调用者应直接使用
:class:`~image_optimizer.processing.pipeline.TaskRunner`。
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import nullcontext
from typing import Any, Mapping, Optional

from rich.console import Console

from image_optimizer.core.exceptions import FatalTaskError, TaskExecutionError
from image_optimizer.core.models import TaskReport
from image_optimizer.core.output_manager import OutputBase
from image_optimizer.core.report import print_optimize_result, print_resize_result, print_warnings
from image_optimizer.core.scanner import RootsInput
from image_optimizer.processing.pipeline import TaskRunner

LOGGER = logging.getLogger(__name__)


def images(
    input: RootsInput,
    output: OutputBase,
    options: Optional[Mapping[str, Any]] = None,
    *,
    runner: Optional[TaskRunner] = None,
    console: Optional[Console] = None,
    logger: Optional[logging.Logger] = None,
    show_status: bool = True,
) -> TaskReport:
    """优化输入目录中的所有图片并复制到输出目录。

    任务错误只记录日志，返回已完成部分的报告；:class:`FatalTaskError`
    （输入目录不存在）会继续抛出，由调用者决定是否退出进程。已有进度条等
    实时显示时应传入 ``show_status=False``。
    """

    logger = logger if logger is not None else LOGGER
    console = console if console is not None else Console()
    runner = runner if runner is not None else TaskRunner(logger=logger)

    logger.info("开始执行图片优化任务")
    start = time.perf_counter()
    with console.status("正在优化图片...") if show_status else nullcontext():
        report = _run_safely(runner.run_optimize_task(input, output, options), logger)

    print_optimize_result(report.files, console)
    elapsed = (time.perf_counter() - start) * 1000
    logger.info("图片优化任务完成，耗时 %dms，共处理 %d 个文件。", elapsed, report.processed)
    return report


def resize(
    input: RootsInput,
    output: OutputBase,
    options: Mapping[str, Any],
    *,
    runner: Optional[TaskRunner] = None,
    console: Optional[Console] = None,
    logger: Optional[logging.Logger] = None,
    show_status: bool = True,
) -> TaskReport:
    """为输入目录中的图片生成指定宽度的版本。"""

    logger = logger if logger is not None else LOGGER
    console = console if console is not None else Console()
    runner = runner if runner is not None else TaskRunner(logger=logger)

    logger.info("开始执行图片缩放任务")
    start = time.perf_counter()
    with console.status("正在缩放图片...") if show_status else nullcontext():
        report = _run_safely(runner.run_resize_task(input, output, options), logger)

    print_warnings(report.warnings, logger)
    print_resize_result(report.files, console)
    elapsed = (time.perf_counter() - start) * 1000
    logger.info("图片缩放任务完成，耗时 %dms，共处理 %d 个文件。", elapsed, report.processed)
    return report


def _run_safely(task: Any, logger: logging.Logger) -> TaskReport:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        pass
    else:
        task.close()
        raise RuntimeError("images()/resize() 不能在运行中的事件循环内调用，请直接使用 TaskRunner")

    try:
        return asyncio.run(task)
    except FatalTaskError:
        raise
    except TaskExecutionError as exc:
        logger.error("%s", exc, exc_info=exc)
        return exc.report
    except Exception as exc:  # noqa: BLE001
        logger.error("任务执行失败：%s", exc, exc_info=exc)
        return TaskReport()
