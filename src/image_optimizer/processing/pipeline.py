"""处理流水线：扫描、受限并发执行与结果汇总。"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

from image_optimizer.core.config import build_optimize_config, build_resize_config
from image_optimizer.core.exceptions import TaskExecutionError
from image_optimizer.core.models import DiscoveredFile, ResultRecord, TaskReport
from image_optimizer.core.output_manager import OutputBase
from image_optimizer.core.progress import ProgressCallback, emit_progress
from image_optimizer.core.scanner import RootsInput, walk
from image_optimizer.processing.codec import Codec
from image_optimizer.processing.gate import ConcurrencyGate
from image_optimizer.processing.worker import ImageProcessor

LOGGER = logging.getLogger(__name__)

FileHandler = Callable[[DiscoveredFile], Awaitable[tuple[Sequence[ResultRecord], Sequence[str]]]]


class TaskRunner:
    """优化任务与缩放任务的入口。

    每个文件对应一个异步任务，由 :class:`ConcurrencyGate` 限制同时处理的
    数量；结果与警告按完成顺序汇总到 :class:`TaskReport`。
    """

    def __init__(
        self,
        codec: Optional[Codec] = None,
        *,
        parallelism: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
        progress_callback: ProgressCallback = None,
    ) -> None:
        self.logger = logger if logger is not None else LOGGER
        self.processor = ImageProcessor(codec, logger=self.logger)
        self.parallelism = parallelism
        self.progress_callback = progress_callback
        self.last_gate: Optional[ConcurrencyGate] = None

    async def run_optimize_task(
        self,
        input: RootsInput,
        output: OutputBase,
        options: Optional[Mapping[str, Any]] = None,
    ) -> TaskReport:
        """压缩（或复制）所有输入图片到输出目录。"""

        config = build_optimize_config(options)

        async def handle(file: DiscoveredFile) -> tuple[Sequence[ResultRecord], Sequence[str]]:
            if config.optimize:
                return await self.processor.optimize_one(file, output, config), ()
            return await self.processor.copy_one(file, output), ()

        return await self._run(input, handle)

    async def run_resize_task(
        self,
        input: RootsInput,
        output: OutputBase,
        options: Mapping[str, Any],
    ) -> TaskReport:
        """为所有输入图片生成指定宽度的缩放版本。"""

        config = build_resize_config(options)

        async def handle(file: DiscoveredFile) -> tuple[Sequence[ResultRecord], Sequence[str]]:
            return await self.processor.resize_one(file, output, config)

        return await self._run(input, handle)

    async def _run(self, input: RootsInput, handle: FileHandler) -> TaskReport:
        start = time.perf_counter()
        self.logger.info("开始扫描输入路径")
        files = await asyncio.to_thread(walk, input, logger=self.logger)
        total = len(files)
        self.logger.info("发现 %d 个候选图片文件", total)

        report = TaskReport()
        if total == 0:
            emit_progress(self.progress_callback, 0, 0, "没有需要处理的图片", status="done")
            report.elapsed_ms = _elapsed_ms(start)
            return report

        gate = ConcurrencyGate(self.parallelism, capacity=total)
        self.last_gate = gate
        completed = 0
        emit_progress(self.progress_callback, completed, total, "开始执行处理任务")

        async def run_file(file: DiscoveredFile) -> None:
            nonlocal completed
            try:
                async with gate:
                    records, warnings = await handle(file)
                report.files.extend(records)
                report.warnings.extend(warnings)
            finally:
                completed += 1
                emit_progress(self.progress_callback, completed, total, f"完成 {file.relative_path.as_posix()}")

        outcomes = await asyncio.gather(*(run_file(file) for file in files), return_exceptions=True)
        report.elapsed_ms = _elapsed_ms(start)

        failures: list[tuple[DiscoveredFile, Exception]] = []
        for file, outcome in zip(files, outcomes):
            if isinstance(outcome, Exception):
                failures.append((file, outcome))
            elif isinstance(outcome, BaseException):
                raise outcome

        if failures:
            for file, exc in failures:
                self.logger.error("任务执行异常：%s: %s", file.full_path, exc, exc_info=exc)
            emit_progress(self.progress_callback, total, total, "处理失败", status="failed")
            raise TaskExecutionError(f"{len(failures)} 个文件处理失败", report) from failures[0][1]

        emit_progress(self.progress_callback, total, total, "处理完成", status="done")
        return report


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
