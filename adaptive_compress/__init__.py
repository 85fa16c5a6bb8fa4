"""
Adaptive image compression for upload pipelines
"""

from adaptive_compress.config import CompressionSettings
from adaptive_compress.exceptions import (
    CompressionEngineError,
    EncodeError,
    CompressionCancelledError,
    ResourceReleasedError,
    ReleaseError,
)

__all__ = [
    "CompressionSettings",
    "CompressionEngineError",
    "EncodeError",
    "CompressionCancelledError",
    "ResourceReleasedError",
    "ReleaseError",
]
