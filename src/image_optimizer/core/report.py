"""任务报告的终端输出。"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from rich.console import Console
from rich.table import Table

from image_optimizer.core.models import OptimizeResult, ResizeResult

LOGGER = logging.getLogger(__name__)

OPTIMIZE_HEADER = ["Image path", "Type", "Original Size", "New Size"]
RESIZE_HEADER = ["Image path", "Type", "Width"]


def _new_table(header: list[str]) -> Table:
    table = Table(header_style="bold cyan")
    for column in header:
        table.add_column(column)
    return table


def _format_type(value: str) -> str:
    return f"[cyan]{value}[/cyan]" if value == "WEBP" else value


def build_optimize_table(results: Iterable[OptimizeResult]) -> Table:
    """优化任务的结果表：路径、类型、原始大小、新大小。"""

    table = _new_table(OPTIMIZE_HEADER)
    for record in results:
        table.add_row(
            record.path,
            _format_type(record.type),
            f"[bright_magenta]{record.original_size}[/bright_magenta]",
            f"[bright_magenta]{record.new_size}[/bright_magenta]",
        )
    return table


def build_resize_table(results: Iterable[ResizeResult]) -> Table:
    """缩放任务的结果表：路径、类型、宽度。"""

    table = _new_table(RESIZE_HEADER)
    for record in results:
        table.add_row(record.path, _format_type(record.type), f"[bright_green]{record.size}[/bright_green]")
    return table


def print_optimize_result(results: Iterable[OptimizeResult], console: Optional[Console] = None) -> None:
    (console or Console()).print(build_optimize_table(results))


def print_resize_result(results: Iterable[ResizeResult], console: Optional[Console] = None) -> None:
    (console or Console()).print(build_resize_table(results))


def print_warnings(warnings: Iterable[str], logger: Optional[logging.Logger] = None) -> None:
    for warning in warnings:
        (logger or LOGGER).warning(warning)
