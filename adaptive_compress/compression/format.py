# -*- coding: utf-8 -*-
"""
Output formats and format resolution
"""

from enum import Enum
from typing import Optional, Union

from PIL import Image

from adaptive_compress.log import logger


class OutputFormat(Enum):
    """Formats the engine can encode to"""

    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"

    @staticmethod
    def from_pil_format(pil_format: Optional[str]) -> Optional["OutputFormat"]:
        """
        Map a Pillow format name to an OutputFormat

        Args:
            pil_format: value of a Pillow image's ``format`` attribute

        Returns:
            the matching format, or None when it is not an output format
        """
        if not pil_format:
            return None

        format_map = {
            "JPEG": OutputFormat.JPEG,
            "MPO": OutputFormat.JPEG,
            "PNG": OutputFormat.PNG,
            "WEBP": OutputFormat.WEBP,
        }
        return format_map.get(pil_format.upper())

    @staticmethod
    def coerce(value: Union["OutputFormat", str, None]) -> Optional["OutputFormat"]:
        """
        Accept an OutputFormat or its name ("jpeg", "JPG", "webp", ...)

        Returns:
            the format, or None for None and unrecognized values
        """
        if value is None or isinstance(value, OutputFormat):
            return value
        if not isinstance(value, str):
            return None

        name = value.strip().lower()
        if name == "jpg":
            name = "jpeg"
        try:
            return OutputFormat(name)
        except ValueError:
            return None

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]

    @property
    def save_format(self) -> str:
        """Pillow save token"""
        return _SAVE_FORMATS[self]

    @property
    def extension(self) -> str:
        return "jpg" if self is OutputFormat.JPEG else self.value


_MIME_TYPES = {
    OutputFormat.JPEG: "image/jpeg",
    OutputFormat.PNG: "image/png",
    OutputFormat.WEBP: "image/webp",
}

_SAVE_FORMATS = {
    OutputFormat.JPEG: "JPEG",
    OutputFormat.PNG: "PNG",
    OutputFormat.WEBP: "WEBP",
}


def mime_type_for(format: Union[OutputFormat, str, None]) -> str:
    """
    MIME type for an output format

    Args:
        format: an OutputFormat, its name, or None

    Returns:
        the MIME type; "image/jpeg" for None and unrecognized values
    """
    resolved = OutputFormat.coerce(format)
    if resolved is None:
        return _MIME_TYPES[OutputFormat.JPEG]
    return resolved.mime_type


def save_format_for(format: Union[OutputFormat, str, None]) -> str:
    """Pillow save token for an output format, "JPEG" by default"""
    resolved = OutputFormat.coerce(format)
    if resolved is None:
        return _SAVE_FORMATS[OutputFormat.JPEG]
    return resolved.save_format


def detect_format(image: Image.Image) -> Optional[OutputFormat]:
    """
    Detect the output format matching a decoded source image

    Args:
        image: decoded Pillow image

    Returns:
        the format, or None when the source is not JPEG, PNG or WebP
    """
    format_type = OutputFormat.from_pil_format(getattr(image, "format", None))
    if format_type is None:
        logger.debug(f"Source format {getattr(image, 'format', None)!r} is not an output format")
    return format_type


def resolve_output_format(
    requested: Optional[OutputFormat], image: Image.Image
) -> OutputFormat:
    """
    Pick the format to encode with

    An explicit format wins; otherwise the source format is kept when it is
    an output format, and JPEG is used for everything else.
    """
    if requested is not None:
        return requested
    return detect_format(image) or OutputFormat.JPEG
