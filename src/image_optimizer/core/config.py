"""处理任务的配置模型与默认值合并。"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass, replace
from typing import Any, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from image_optimizer.core.exceptions import InvalidConfigurationError

DEFAULT_PATTERN = "[name].[extension]"
SIZE_PLACEHOLDER = "[size]"
VALID_CHROMA_SUBSAMPLING = {"4:4:4", "4:2:2", "4:2:0"}

ConfigT = TypeVar("ConfigT")
SizesInput = Union[int, Sequence[int]]


@dataclass(slots=True)
class MozJpegOptions:
    """JPEG 有损压缩参数。"""

    quality: int = 80
    progressive: bool = True


@dataclass(slots=True)
class PngQuantOptions:
    """PNG 调色板量化参数。"""

    colors: int = 256
    dither: bool = True


@dataclass(slots=True)
class SvgoOptions:
    """SVG 精简参数。"""

    remove_view_box: bool = True
    remove_metadata: bool = True


@dataclass(slots=True)
class GifsicleOptions:
    """GIF 优化参数，级别 1~3。"""

    optimization_level: int = 3


@dataclass(slots=True)
class JpegOptions:
    """缩放后重新编码 JPEG 时使用的参数。"""

    quality: int = 80
    chroma_subsampling: Optional[str] = None
    progressive: bool = False


@dataclass(slots=True)
class PngOptions:
    """缩放后重新编码 PNG 时使用的参数。"""

    compress_level: int = 6
    palette: bool = False
    colors: int = 256


@dataclass(slots=True)
class WebpOptions:
    """WebP 编码参数。"""

    quality: int = 80
    lossless: bool = False


@dataclass(slots=True)
class OptimizeConfig:
    """优化任务的配置集合。"""

    optimize: bool = True
    webp: bool = False
    mozjpeg: MozJpegOptions = field(default_factory=MozJpegOptions)
    pngquant: PngQuantOptions = field(default_factory=PngQuantOptions)
    svgo: SvgoOptions = field(default_factory=SvgoOptions)
    gifsicle: GifsicleOptions = field(default_factory=GifsicleOptions)


@dataclass(slots=True)
class ResizeConfig:
    """缩放任务的配置集合。"""

    sizes: Tuple[int, ...] = ()
    pattern: str = DEFAULT_PATTERN
    create_webp_copies: bool = False
    optimize: bool = False
    jpg: JpegOptions = field(default_factory=JpegOptions)
    png: PngOptions = field(default_factory=PngOptions)
    webp: WebpOptions = field(default_factory=WebpOptions)


# optimize=True 时垫在调用者参数之下的默认值
OPTIMIZED_RESIZE_DEFAULTS: Mapping[str, Any] = {
    "jpg": {"quality": 75, "chroma_subsampling": "4:4:4"},
}


def merge_options(record: ConfigT, overrides: Optional[Mapping[str, Any]], *, path: str = "") -> ConfigT:
    """将 ``overrides`` 递归合并到配置记录上，返回新的记录。

    嵌套的配置记录逐键合并；基本类型与序列整体替换。未知键会被拒绝。
    """

    if overrides is None:
        return record
    if not isinstance(overrides, Mapping):
        raise InvalidConfigurationError(f"{path or '配置'} 必须是映射类型")

    known = {item.name: item for item in fields(record)}
    changes: dict[str, Any] = {}

    for key, value in overrides.items():
        name = f"{path}.{key}" if path else str(key)
        if key not in known:
            raise InvalidConfigurationError(f"未知的配置项: {name}")

        current = getattr(record, key)
        if is_dataclass(current):
            if isinstance(value, type(current)):
                changes[key] = value
            else:
                changes[key] = merge_options(current, value, path=name)
            continue

        _check_value_type(name, current, value)
        changes[key] = value

    return replace(record, **changes)


def _check_value_type(name: str, current: Any, value: Any) -> None:
    if isinstance(value, Mapping):
        raise InvalidConfigurationError(f"{name} 不接受嵌套配置")
    if current is None or isinstance(current, tuple):
        return
    if isinstance(current, bool):
        if not isinstance(value, bool):
            raise InvalidConfigurationError(f"{name} 必须是布尔值")
    elif isinstance(current, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidConfigurationError(f"{name} 必须是整数")
    elif isinstance(current, str) and not isinstance(value, str):
        raise InvalidConfigurationError(f"{name} 必须是字符串")


def normalize_sizes(sizes: SizesInput) -> Tuple[int, ...]:
    """将单个数字或数字序列统一为宽度元组。"""

    if isinstance(sizes, bool):
        raise InvalidConfigurationError("sizes 必须是正整数或正整数列表")
    if isinstance(sizes, int):
        values: Sequence[Any] = (sizes,)
    elif isinstance(sizes, (str, bytes)) or not isinstance(sizes, Sequence):
        raise InvalidConfigurationError("sizes 必须是正整数或正整数列表")
    else:
        values = sizes

    normalized: list[int] = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise InvalidConfigurationError(f"无效的宽度: {value!r}")
        normalized.append(value)
    return tuple(normalized)


def build_optimize_config(options: Optional[Mapping[str, Any]] = None) -> OptimizeConfig:
    """合并调用者参数与优化任务的默认值。"""

    config = merge_options(OptimizeConfig(), options)

    if not 1 <= config.mozjpeg.quality <= 100:
        raise InvalidConfigurationError("mozjpeg.quality 必须在 1~100 之间")
    if not 2 <= config.pngquant.colors <= 256:
        raise InvalidConfigurationError("pngquant.colors 必须在 2~256 之间")
    if config.gifsicle.optimization_level not in {1, 2, 3}:
        raise InvalidConfigurationError("gifsicle.optimization_level 必须是 1、2 或 3")
    return config


def build_resize_config(options: Optional[Mapping[str, Any]]) -> ResizeConfig:
    """合并调用者参数与缩放任务的默认值，并校验尺寸与命名模板。"""

    if not options or "sizes" not in options:
        raise InvalidConfigurationError("缩放任务必须指定 sizes")

    overrides = dict(options)
    overrides["sizes"] = normalize_sizes(overrides["sizes"])
    if not overrides["sizes"]:
        raise InvalidConfigurationError("sizes 不能为空")

    base = ResizeConfig()
    if overrides.get("optimize") is True:
        base = merge_options(base, OPTIMIZED_RESIZE_DEFAULTS)
    config = merge_options(base, overrides)

    if len(config.sizes) > 1 and SIZE_PLACEHOLDER not in config.pattern:
        # 多个宽度共用同一文件名会互相覆盖
        raise InvalidConfigurationError(
            f"指定多个宽度时命名模板必须包含 {SIZE_PLACEHOLDER}: {config.pattern}"
        )
    if not 1 <= config.jpg.quality <= 100 or not 1 <= config.webp.quality <= 100:
        raise InvalidConfigurationError("quality 必须在 1~100 之间")
    if config.jpg.chroma_subsampling is not None and config.jpg.chroma_subsampling not in VALID_CHROMA_SUBSAMPLING:
        raise InvalidConfigurationError(f"未知的色度抽样: {config.jpg.chroma_subsampling}")
    if not 0 <= config.png.compress_level <= 9:
        raise InvalidConfigurationError("png.compress_level 必须在 0~9 之间")
    return config
