# -*- coding: utf-8 -*-
"""
Compression result
"""

from dataclasses import dataclass

from adaptive_compress.compression.format import OutputFormat
from adaptive_compress.compression.resources import ResourceHandle


@dataclass(frozen=True)
class EncodedImage:
    """One encode produced by a backend"""

    handle: ResourceHandle
    width: int
    height: int
    size_bytes: int


@dataclass(frozen=True)
class CompressedImage:
    """Final output of a compression"""

    width: int
    height: int
    format: OutputFormat
    mime_type: str
    size_bytes: int
    handle: ResourceHandle  # storage is owned by the ResourceTracker
    quality: float  # quality of the returned encode
    attempts: int  # number of encodes performed

    def read_bytes(self) -> bytes:
        """Encoded bytes; raises ResourceReleasedError once released"""
        return self.handle.read_bytes()

    @property
    def is_released(self) -> bool:
        return not self.handle.is_active
