# -*- coding: utf-8 -*-
"""
Adaptive image compression

Resizes an image to a preset's bounds and re-encodes it at decreasing
quality until it fits the preset's size budget or reaches its quality floor.
"""

from adaptive_compress.compression.backend import (
    EncodeBackend,
    MemoryBackend,
    TempFileBackend,
    available_backends,
    get_backend,
    load_source,
    register_backend,
)
from adaptive_compress.compression.cancellation import CancellationToken
from adaptive_compress.compression.config import (
    DEFAULT_PRESET,
    IMAGE_PRESETS,
    CompressionConfig,
    preset_options,
    resolve_compression_config,
)
from adaptive_compress.compression.format import OutputFormat, mime_type_for, save_format_for
from adaptive_compress.compression.manager import MAX_QUALITY_STEPS, CompressionEngine
from adaptive_compress.compression.resources import (
    FileHandle,
    MemoryHandle,
    ResourceHandle,
    ResourceTracker,
)
from adaptive_compress.compression.result import CompressedImage, EncodedImage
from adaptive_compress.compression.utils import (
    calculate_dimensions,
    format_file_size,
    reduce_quality,
    should_continue,
)

__all__ = [
    "CompressionEngine",
    "MAX_QUALITY_STEPS",
    "CompressionConfig",
    "IMAGE_PRESETS",
    "DEFAULT_PRESET",
    "resolve_compression_config",
    "preset_options",
    "OutputFormat",
    "mime_type_for",
    "save_format_for",
    "EncodeBackend",
    "MemoryBackend",
    "TempFileBackend",
    "register_backend",
    "get_backend",
    "available_backends",
    "load_source",
    "CancellationToken",
    "ResourceHandle",
    "MemoryHandle",
    "FileHandle",
    "ResourceTracker",
    "CompressedImage",
    "EncodedImage",
    "calculate_dimensions",
    "reduce_quality",
    "should_continue",
    "format_file_size",
]
