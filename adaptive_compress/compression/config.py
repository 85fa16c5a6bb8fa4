# -*- coding: utf-8 -*-
"""
Compression configuration, presets and config resolution
"""

import dataclasses
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from adaptive_compress.compression.format import OutputFormat
from adaptive_compress.compression.utils import to_hundredths
from adaptive_compress.log import logger

KB = 1024


@dataclass(frozen=True)
class CompressionConfig:
    """Resolved compression configuration"""

    max_dimension: Optional[int]  # bound on the longer side (px), None keeps the size
    quality: float  # initial encode quality (0-1)
    max_size_bytes: Optional[int]  # size budget, None means a single encode
    min_quality: float  # floor for the progressive search (0-1)
    format: Optional[OutputFormat] = OutputFormat.JPEG  # None keeps the source format

    def __post_init__(self):
        min_quality = _clamp_quality("min_quality", self.min_quality, fallback=0.0)
        quality = _clamp_quality("quality", self.quality, fallback=1.0)

        fmt = OutputFormat.coerce(self.format)
        if self.format is not None and fmt is None:
            logger.warning(f"Unknown output format {self.format!r}, keeping the source format")

        object.__setattr__(self, "min_quality", min_quality)
        object.__setattr__(self, "quality", quality)
        object.__setattr__(self, "format", fmt)
        object.__setattr__(
            self, "max_dimension", _positive_or_none("max_dimension", self.max_dimension)
        )
        object.__setattr__(
            self, "max_size_bytes", _positive_or_none("max_size_bytes", self.max_size_bytes)
        )

    @property
    def max_size_kb(self) -> Optional[float]:
        """Size budget in KB"""
        if self.max_size_bytes is None:
            return None
        return self.max_size_bytes / KB

    def replace(self, **changes: Any) -> "CompressionConfig":
        """Copy with some fields changed, normalized again"""
        return dataclasses.replace(self, **changes)

    def with_quality_floor(self) -> "CompressionConfig":
        """Copy with ``quality`` raised to ``min_quality`` when it sits below it"""
        if self.quality >= self.min_quality:
            return self
        logger.warning(
            f"quality {self.quality} is below min_quality {self.min_quality}, "
            f"raising it to {self.min_quality}"
        )
        return self.replace(quality=self.min_quality)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_dimension": self.max_dimension,
            "quality": self.quality,
            "max_size_bytes": self.max_size_bytes,
            "min_quality": self.min_quality,
            "format": self.format.value if self.format else None,
        }


def _clamp_quality(name: str, value: float, fallback: float) -> float:
    if isinstance(value, int) and not 0 <= value <= 1:
        # float() overflows on very large ints
        logger.warning(f"{name} {value} is outside [0, 1], clamping")
        value = min(max(value, 0), 1)
    value = float(value)
    if math.isnan(value):
        logger.warning(f"{name} is NaN, using {fallback}")
        value = fallback
    if value < 0.0 or value > 1.0:
        clamped = min(max(value, 0.0), 1.0)
        logger.warning(f"{name} {value} is outside [0, 1], clamping to {clamped}")
        value = clamped
    return to_hundredths(value) / 100


def _positive_or_none(name: str, value: Optional[float]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, float) and not math.isfinite(value):
        logger.warning(f"{name} {value} is not finite, treating it as unset")
        return None
    value = int(value)
    if value <= 0:
        logger.warning(f"{name} {value} is not positive, treating it as unset")
        return None
    return value


# Named presets; "none" skips compression entirely
IMAGE_PRESETS: Dict[str, Optional[CompressionConfig]] = {
    # Profile pictures, small squares
    "avatar": CompressionConfig(
        max_dimension=512,
        quality=0.8,
        max_size_bytes=200 * KB,
        min_quality=0.6,
        format=OutputFormat.JPEG,
    ),
    # Small previews
    "thumbnail": CompressionConfig(
        max_dimension=256,
        quality=0.7,
        max_size_bytes=100 * KB,
        min_quality=0.5,
        format=OutputFormat.JPEG,
    ),
    # Product/item images
    "product": CompressionConfig(
        max_dimension=1024,
        quality=0.85,
        max_size_bytes=500 * KB,
        min_quality=0.6,
        format=OutputFormat.JPEG,
    ),
    # High-quality gallery images, also the baseline for partial overrides
    "gallery": CompressionConfig(
        max_dimension=2048,
        quality=0.85,
        max_size_bytes=1000 * KB,
        min_quality=0.65,
        format=OutputFormat.JPEG,
    ),
    # Large images for detail views
    "highQuality": CompressionConfig(
        max_dimension=3000,
        quality=0.9,
        max_size_bytes=2000 * KB,
        min_quality=0.7,
        format=OutputFormat.JPEG,
    ),
    "none": None,
}

DEFAULT_PRESET = "gallery"

PresetOrConfig = Union[str, CompressionConfig, Mapping[str, Any], None]

_NUMERIC_FIELDS = ("max_dimension", "quality", "max_size_bytes", "min_quality")
_KNOWN_KEYS = frozenset(_NUMERIC_FIELDS + ("format", "max_size_kb"))

PRESET_LABELS = {
    "avatar": ("Avatar", "Profile pictures"),
    "thumbnail": ("Thumbnail", "Small previews"),
    "product": ("Product", "Product images"),
    "gallery": ("Gallery", "High-quality photos"),
    "highQuality": ("High Quality", "Maximum detail"),
    "none": ("Original", "No compression"),
}


def resolve_compression_config(options: PresetOrConfig) -> Optional[CompressionConfig]:
    """
    Resolve a preset name or partial override into a full configuration

    Resolution never raises: unknown presets and unsupported inputs resolve
    to None, which callers treat as "upload without compression".

    Args:
        options: preset name, CompressionConfig, mapping of overrides, or None

    Returns:
        the configuration, or None to skip compression
    """
    if options is None:
        return None

    if isinstance(options, CompressionConfig):
        return options.replace().with_quality_floor()

    if isinstance(options, str):
        if options not in IMAGE_PRESETS:
            logger.warning(f"Unknown compression preset {options!r}, skipping compression")
            return None
        preset = IMAGE_PRESETS[options]
        return preset.replace() if preset is not None else None

    if isinstance(options, Mapping):
        return merge_overrides(IMAGE_PRESETS[DEFAULT_PRESET], options)

    logger.warning(
        f"Unsupported compression options of type {type(options).__name__}, skipping compression"
    )
    return None


def merge_overrides(
    baseline: CompressionConfig,
    overrides: Mapping[str, Any],
    enforce_floor: bool = True,
) -> CompressionConfig:
    """
    Fill every field missing from ``overrides`` from ``baseline``

    Args:
        baseline: configuration supplying absent fields
        overrides: partial configuration; None values count as absent
        enforce_floor: raise quality to min_quality when the overrides set min_quality
    """
    unknown = sorted(str(key) for key in overrides if key not in _KNOWN_KEYS)
    if unknown:
        logger.warning(f"Ignoring unknown compression options: {', '.join(unknown)}")

    overrides = dict(overrides)
    size_kb = overrides.pop("max_size_kb", None)
    if overrides.get("max_size_bytes") is None and size_kb is not None:
        size_bytes = size_kb * KB if _is_number(size_kb) else None
        if _is_number(size_bytes):
            overrides["max_size_bytes"] = int(size_bytes)
        else:
            logger.warning(
                f"Invalid value {size_kb!r} for max_size_kb, using {baseline.max_size_bytes} bytes"
            )

    merged: Dict[str, Any] = {}
    for field in _NUMERIC_FIELDS:
        value = overrides.get(field)
        if value is not None and not _is_number(value):
            logger.warning(f"Invalid value {value!r} for {field}, using {getattr(baseline, field)}")
            value = None
        merged[field] = getattr(baseline, field) if value is None else value

    fmt = overrides.get("format")
    if fmt is not None and OutputFormat.coerce(fmt) is None:
        logger.warning(f"Invalid output format {fmt!r}, using {baseline.format}")
        fmt = None
    merged["format"] = baseline.format if fmt is None else OutputFormat.coerce(fmt)

    config = CompressionConfig(**merged)
    # A lone quality override below the baseline floor is kept as given;
    # a floor set by the caller always holds
    if enforce_floor and _is_number(overrides.get("min_quality")):
        config = config.with_quality_floor()
    return config


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and (isinstance(value, int) or math.isfinite(value))
    )


def preset_options() -> List[Dict[str, str]]:
    """
    Presets with display labels, for settings screens

    Returns:
        dicts with "key", "label" and "description"; the description leads
        with the preset's size limits, e.g. "2048px, ~1MB - High-quality photos"
    """
    options = []
    for key, preset in IMAGE_PRESETS.items():
        label, description = PRESET_LABELS[key]
        if preset is None:
            options.append({"key": key, "label": label, "description": description})
            continue

        limits = []
        if preset.max_dimension:
            limits.append(f"{preset.max_dimension}px")
        size_kb = preset.max_size_kb
        if size_kb:
            limits.append(f"~{size_kb / 1000:g}MB" if size_kb >= 1000 else f"~{size_kb:g}KB")

        if limits:
            description = f"{', '.join(limits)} - {description}"
        options.append({"key": key, "label": label, "description": description})
    return options
