"""单文件处理：优化、复制、缩放与 WebP 派生。"""

from __future__ import annotations

import asyncio
from pathlib import Path

from PIL import Image

from image_optimizer.core.config import build_optimize_config, build_resize_config
from image_optimizer.core.models import DiscoveredFile
from image_optimizer.processing.worker import ImageProcessor

from helpers import FakeCodec, make_gif, make_gradient_png, make_noise_jpeg


def _discover(root: Path, path: Path) -> DiscoveredFile:
    return DiscoveredFile(base_dir=root, full_path=path, relative_path=path.relative_to(root))


def test_size_regression_falls_back_to_verbatim_copy(source_dir: Path, output_dir: Path) -> None:
    source = source_dir / "tiny.png"
    source.write_bytes(b"\x89PNG-minimal")
    processor = ImageProcessor(FakeCodec(grow=True))

    records = asyncio.run(
        processor.optimize_one(_discover(source_dir, source), output_dir, build_optimize_config())
    )

    assert len(records) == 1
    record = records[0]
    assert record.path == "tiny.png"
    assert record.type == "PNG"
    assert record.new_size == record.original_size
    assert record.new_bytes == record.original_bytes
    assert (output_dir / "tiny.png").read_bytes() == source.read_bytes()


def test_already_minimal_png_never_grows(source_dir: Path, output_dir: Path) -> None:
    source = source_dir / "pixel.png"
    Image.new("P", (1, 1), 0).save(source, format="PNG", optimize=True)
    processor = ImageProcessor()

    records = asyncio.run(
        processor.optimize_one(_discover(source_dir, source), output_dir, build_optimize_config())
    )

    record = records[0]
    assert record.new_bytes <= record.original_bytes
    assert (output_dir / "pixel.png").stat().st_size <= source.stat().st_size


def test_compressed_output_written_when_smaller(source_dir: Path, output_dir: Path) -> None:
    source = make_noise_jpeg(source_dir / "photo.jpg", (128, 128))
    processor = ImageProcessor()

    records = asyncio.run(
        processor.optimize_one(_discover(source_dir, source), output_dir, build_optimize_config())
    )

    record = records[0]
    assert record.type == "JPG"
    assert record.new_bytes < record.original_bytes
    assert (output_dir / "photo.jpg").stat().st_size == record.new_bytes


def test_webp_derivative_uses_original_buffer(source_dir: Path, output_dir: Path) -> None:
    nested = source_dir / "gallery"
    nested.mkdir()
    source = nested / "photo.jpg"
    source.write_bytes(b"original-jpeg-bytes")
    codec = FakeCodec()
    processor = ImageProcessor(codec)

    records = asyncio.run(
        processor.optimize_one(_discover(source_dir, source), output_dir, build_optimize_config({"webp": True}))
    )

    by_type = {record.type: record for record in records}
    assert set(by_type) == {"JPG", "WEBP"}
    assert by_type["WEBP"].path == "gallery/photo.jpg.webp"
    compressed = (output_dir / "gallery" / "photo.jpg").read_bytes()
    assert compressed != source.read_bytes()
    assert codec.webp_sources == [source.read_bytes()]
    assert (output_dir / "gallery" / "photo.jpg.webp").read_bytes() == b"RIFFwebp"
    assert ("webp", 75) in codec.calls


def test_webp_derivative_skipped_for_gif(source_dir: Path, output_dir: Path) -> None:
    source = make_gif(source_dir / "anim.gif")
    processor = ImageProcessor()

    records = asyncio.run(
        processor.optimize_one(_discover(source_dir, source), output_dir, build_optimize_config({"webp": True}))
    )

    assert [record.type for record in records] == ["GIF"]
    assert not (output_dir / "anim.gif.webp").exists()


def test_webp_source_is_copied_verbatim(source_dir: Path, output_dir: Path) -> None:
    source = source_dir / "already.webp"
    source.write_bytes(b"RIFF....WEBPVP8 ")
    codec = FakeCodec()
    processor = ImageProcessor(codec)

    records = asyncio.run(
        processor.optimize_one(_discover(source_dir, source), output_dir, build_optimize_config())
    )

    assert codec.calls == []
    assert records[0].type == "WEBP"
    assert (output_dir / "already.webp").read_bytes() == source.read_bytes()


def test_copy_one_reports_equal_sizes(source_dir: Path, output_dir: Path) -> None:
    source = make_gradient_png(source_dir / "copy.png")
    processor = ImageProcessor()

    records = asyncio.run(processor.copy_one(_discover(source_dir, source), output_dir))

    record = records[0]
    assert record.original_size == record.new_size
    assert record.original_bytes == source.stat().st_size
    assert (output_dir / "copy.png").read_bytes() == source.read_bytes()


def test_resize_unsupported_extension_warns_without_io(source_dir: Path, output_dir: Path) -> None:
    nested = source_dir / "icons"
    nested.mkdir()
    source = make_gif(nested / "spinner.gif")
    codec = FakeCodec()
    processor = ImageProcessor(codec)

    records, warnings = asyncio.run(
        processor.resize_one(_discover(source_dir, source), output_dir, build_resize_config({"sizes": 100}))
    )

    assert records == []
    assert len(warnings) == 1
    assert "input/icons/spinner.gif" in warnings[0]
    assert codec.calls == []
    assert not output_dir.exists()


def test_resize_each_width_writes_pattern_name(source_dir: Path, output_dir: Path) -> None:
    source = make_gradient_png(source_dir / "cat.png", (400, 200))
    processor = ImageProcessor()
    config = build_resize_config({"sizes": [100, 200], "pattern": "[name]_[size].[extension]"})

    records, warnings = asyncio.run(processor.resize_one(_discover(source_dir, source), output_dir, config))

    assert warnings == []
    assert {(record.path, record.size) for record in records} == {("cat_100.png", 100), ("cat_200.png", 200)}
    with Image.open(output_dir / "cat_100.png") as small:
        assert small.size == (100, 50)
    with Image.open(output_dir / "cat_200.png") as large:
        assert large.size == (200, 100)


def test_resize_failure_on_one_width_keeps_others(source_dir: Path, output_dir: Path) -> None:
    source = source_dir / "cat.jpg"
    source.write_bytes(b"jpeg")
    processor = ImageProcessor(FakeCodec(fail_on={200}))
    config = build_resize_config({"sizes": [100, 200, 300], "pattern": "[name]-[size].[extension]"})

    records, warnings = asyncio.run(processor.resize_one(_discover(source_dir, source), output_dir, config))

    assert sorted(record.size for record in records) == [100, 300]
    assert len(warnings) == 1 and "200" in warnings[0]
    assert (output_dir / "cat-100.jpg").read_bytes() == b"JPG:100"
    assert not (output_dir / "cat-200.jpg").exists()


def test_resize_creates_webp_copies_when_requested(source_dir: Path, output_dir: Path) -> None:
    source = source_dir / "cat.png"
    source.write_bytes(b"png")
    processor = ImageProcessor(FakeCodec())
    config = build_resize_config({"sizes": 64, "create_webp_copies": True})

    records, _ = asyncio.run(processor.resize_one(_discover(source_dir, source), output_dir, config))

    assert {(record.path, record.type, record.size) for record in records} == {
        ("cat.png", "PNG", 64),
        ("cat.png.webp", "WEBP", 64),
    }
    assert (output_dir / "cat.png.webp").exists()


def test_resize_passes_format_options_only_when_optimizing(source_dir: Path, output_dir: Path) -> None:
    source = make_noise_jpeg(source_dir / "photo.jpg", (120, 60))
    processor = ImageProcessor()

    plain, _ = asyncio.run(
        processor.resize_one(_discover(source_dir, source), output_dir / "plain", build_resize_config({"sizes": 60}))
    )
    tuned, _ = asyncio.run(
        processor.resize_one(
            _discover(source_dir, source),
            output_dir / "tuned",
            build_resize_config({"sizes": 60, "optimize": True}),
        )
    )

    assert plain[0].path == tuned[0].path == "photo.jpg"
    with Image.open(output_dir / "tuned" / "photo.jpg") as image:
        assert image.size == (60, 30)
