"""命令行入口。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from image_optimizer.api import images, resize
from image_optimizer.core.config import DEFAULT_PATTERN, build_optimize_config, build_resize_config
from image_optimizer.core.exceptions import FatalTaskError, InvalidConfigurationError
from image_optimizer.core.progress import ProgressUpdate
from image_optimizer.processing.pipeline import TaskRunner
from image_optimizer.utils.logging import setup_logging

app = typer.Typer(help="批量图片压缩与缩放工具。")

LOGGER = logging.getLogger(__name__)


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(update: ProgressUpdate) -> None:
        nonlocal task_id
        if update.total == 0:
            return
        if task_id is None:
            task_id = progress.add_task("处理图片", total=update.total)
        progress.update(task_id, completed=update.completed)

    return callback


def _new_progress(console: Console) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def _validate_options(builder, options: dict) -> None:
    try:
        builder(options)
    except InvalidConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command("images")
def images_cli(
    source: List[Path] = typer.Argument(..., help="输入目录，可指定多个"),
    output: Path = typer.Option(..., "--output", "-o", help="输出目录"),
    webp: bool = typer.Option(False, "--webp", help="为 JPG/PNG 额外生成 WebP 副本"),
    optimize: bool = typer.Option(True, "--optimize/--no-optimize", help="是否压缩，关闭时原样复制"),
    quality: int = typer.Option(80, "--quality", help="JPEG 压缩质量 1~100"),
    colors: int = typer.Option(256, "--png-colors", help="PNG 量化颜色数 2~256"),
    keep_view_box: bool = typer.Option(False, "--keep-viewbox", help="保留 SVG 的 viewBox"),
    gif_level: int = typer.Option(3, "--gif-level", help="GIF 优化级别 1~3"),
    max_workers: Optional[int] = typer.Option(None, "--workers", "-w", help="并发数量，默认为 CPU 核心数"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """压缩图片并保持目录结构。"""

    setup_logging(logging.DEBUG if verbose else logging.INFO)
    options = {
        "webp": webp,
        "optimize": optimize,
        "mozjpeg": {"quality": quality},
        "pngquant": {"colors": colors},
        "svgo": {"remove_view_box": not keep_view_box},
        "gifsicle": {"optimization_level": gif_level},
    }
    _validate_options(build_optimize_config, options)

    console = Console()
    progress = _new_progress(console)
    runner = TaskRunner(parallelism=max_workers, progress_callback=_build_progress_callback(progress))
    try:
        with progress:
            report = images(source, output, options, runner=runner, console=console, show_status=False)
    except FatalTaskError as exc:
        LOGGER.error("%s", exc)
        raise typer.Exit(code=1) from exc

    typer.echo(f"处理完成：共 {report.processed} 个文件，耗时 {report.elapsed_ms:.0f}ms。")


@app.command("resize")
def resize_cli(
    source: List[Path] = typer.Argument(..., help="输入目录，可指定多个"),
    output: Path = typer.Option(..., "--output", "-o", help="输出目录"),
    sizes: List[int] = typer.Option(..., "--size", "-s", help="目标宽度，可重复指定"),
    pattern: str = typer.Option(DEFAULT_PATTERN, "--pattern", help="文件名模板，支持 [name] [size] [extension]"),
    optimize: bool = typer.Option(False, "--optimize", help="缩放后按格式参数重新编码"),
    create_webp_copies: bool = typer.Option(False, "--create-webp-copies", help="为每个缩放结果生成 WebP 副本"),
    max_workers: Optional[int] = typer.Option(None, "--workers", "-w", help="并发数量，默认为 CPU 核心数"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """为图片生成一个或多个宽度的版本。"""

    setup_logging(logging.DEBUG if verbose else logging.INFO)
    options = {
        "sizes": list(sizes),
        "pattern": pattern,
        "optimize": optimize,
        "create_webp_copies": create_webp_copies,
    }

    # 配置错误在启动任务前报告给用户
    _validate_options(build_resize_config, options)

    console = Console()
    progress = _new_progress(console)
    runner = TaskRunner(parallelism=max_workers, progress_callback=_build_progress_callback(progress))
    try:
        with progress:
            report = resize(source, output, options, runner=runner, console=console, show_status=False)
    except FatalTaskError as exc:
        LOGGER.error("%s", exc)
        raise typer.Exit(code=1) from exc

    typer.echo(
        f"处理完成：共 {report.processed} 个文件，{len(report.warnings)} 条警告，耗时 {report.elapsed_ms:.0f}ms。"
    )


if __name__ == "__main__":
    app()
