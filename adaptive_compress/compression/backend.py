# -*- coding: utf-8 -*-
"""
Encoding backends

A backend resizes a decoded image to the requested size and encodes it at a
given quality. Two interchangeable backends exist: one keeps the result in
memory, the other writes it to a temporary file. The engine only sees the
``EncodeBackend`` interface; which one is used is decided by whoever builds
the engine.

Usage:
    backend = get_backend("tempfile", directory="/tmp/uploads")
    engine = CompressionEngine(backend)
"""

import asyncio
import io
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from PIL import Image

from adaptive_compress.compression.format import OutputFormat
from adaptive_compress.compression.resources import FileHandle, MemoryHandle, ResourceHandle
from adaptive_compress.compression.result import EncodedImage
from adaptive_compress.compression.utils import to_hundredths
from adaptive_compress.exceptions import EncodeError
from adaptive_compress.log import logger

Source = Union[Image.Image, bytes, bytearray, str, os.PathLike]

# Registered backend classes by name
BACKEND_REGISTRY: Dict[str, Callable[..., "EncodeBackend"]] = {}


def register_backend(name: str):
    """
    Class decorator registering a backend under ``name``

    Example:
        @register_backend("memory")
        class MemoryBackend(EncodeBackend):
            ...
    """
    def decorator(backend_class):
        BACKEND_REGISTRY[name] = backend_class
        return backend_class
    return decorator


def get_backend(name: str, **options: Any) -> "EncodeBackend":
    """
    Create a registered backend

    Args:
        name: backend identifier ("memory" or "tempfile")
        **options: keyword arguments for the backend constructor

    Raises:
        ValueError: no backend is registered under ``name``
    """
    if name not in BACKEND_REGISTRY:
        available = ", ".join(BACKEND_REGISTRY) if BACKEND_REGISTRY else "none"
        raise ValueError(f"Unknown backend: '{name}'. Available backends: {available}")
    return BACKEND_REGISTRY[name](**options)


def available_backends() -> List[str]:
    return list(BACKEND_REGISTRY)


def load_source(source: Source) -> Image.Image:
    """
    Decode a source image

    Args:
        source: a Pillow image, encoded bytes, or a file path

    Returns:
        the decoded image

    Raises:
        EncodeError: the source cannot be read or decoded
    """
    if isinstance(source, Image.Image):
        return source
    try:
        if isinstance(source, (bytes, bytearray)):
            img = Image.open(io.BytesIO(source))
        else:
            img = Image.open(source)
        img.load()
        return img
    except Exception as e:
        logger.error(f"Failed to decode source image: {e}")
        raise EncodeError(f"Failed to decode source image: {e}") from e


def pil_quality(quality: float) -> int:
    """Map a 0-1 quality onto Pillow's 1-100 scale"""
    return min(max(to_hundredths(quality), 1), 100)


class EncodeBackend(ABC):
    """Base class for encoding backends"""

    name = "base"

    async def encode(
        self,
        image: Image.Image,
        width: int,
        height: int,
        format: OutputFormat,
        quality: float,
    ) -> EncodedImage:
        """
        Resize and encode an image (runs the Pillow work in a worker thread)

        Args:
            image: decoded source image
            width: target width
            height: target height
            format: output format
            quality: encode quality (0-1), ignored for PNG

        Returns:
            the encoded image with its handle, size and final dimensions

        Raises:
            EncodeError: rendering or encoding failed
        """
        return await asyncio.to_thread(
            self._encode_sync, image, width, height, format, quality
        )

    def _encode_sync(
        self,
        image: Image.Image,
        width: int,
        height: int,
        format: OutputFormat,
        quality: float,
    ) -> EncodedImage:
        try:
            rendered = self._render(image, width, height, format)
            handle, size = self._store(rendered, format, self._save_params(format, quality))
        except EncodeError:
            raise
        except Exception as e:
            logger.error(f"{self.name} backend failed to encode {format.value}: {e}")
            raise EncodeError(f"{self.name} backend failed to encode {format.value}: {e}") from e

        return EncodedImage(
            handle=handle,
            width=rendered.size[0],
            height=rendered.size[1],
            size_bytes=size,
        )

    @abstractmethod
    def _store(
        self, image: Image.Image, format: OutputFormat, params: Dict[str, Any]
    ) -> Tuple[ResourceHandle, int]:
        """Encode ``image`` into backend storage, returning (handle, size)"""

    def _render(
        self, image: Image.Image, width: int, height: int, format: OutputFormat
    ) -> Image.Image:
        """
        Resize to the target size and convert to a mode the format accepts

        Args:
            image: decoded source image
            width: target width
            height: target height
            format: output format

        Returns:
            the image to encode; the source image is never modified
        """
        if image.size != (width, height):
            image = image.resize((width, height), Image.Resampling.LANCZOS)

        # JPEG has no alpha channel: composite onto white
        if format is OutputFormat.JPEG:
            if image.mode in ("RGBA", "LA", "P"):
                if image.mode != "RGBA":
                    image = image.convert("RGBA")
                background = Image.new("RGB", image.size, (255, 255, 255))
                background.paste(image, mask=image.split()[-1])
                image = background
            elif image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
        elif format is OutputFormat.WEBP:
            if image.mode in ("LA", "P", "PA"):
                image = image.convert("RGBA")
            elif image.mode not in ("RGB", "RGBA"):
                image = image.convert("RGB")
        elif image.mode not in ("1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"):
            image = image.convert("RGB")

        return image

    @staticmethod
    def _save_params(format: OutputFormat, quality: float) -> Dict[str, Any]:
        if format is OutputFormat.PNG:
            return {"format": "PNG", "optimize": True, "compress_level": 9}
        if format is OutputFormat.WEBP:
            return {"format": "WEBP", "quality": pil_quality(quality), "method": 6}
        return {"format": "JPEG", "quality": pil_quality(quality), "optimize": True}


@register_backend("memory")
class MemoryBackend(EncodeBackend):
    """Keeps encoded images in process memory"""

    name = "memory"

    def _store(self, image, format, params):
        output = io.BytesIO()
        image.save(output, **params)
        data = output.getvalue()
        return MemoryHandle(data), len(data)


@register_backend("tempfile")
class TempFileBackend(EncodeBackend):
    """Writes encoded images to temporary files"""

    name = "tempfile"

    def __init__(
        self,
        directory: Optional[Union[str, Path]] = None,
        prefix: str = "compressed-",
    ):
        """
        Args:
            directory: where to create files, the system temp dir by default
            prefix: file name prefix
        """
        self.directory = Path(directory) if directory is not None else None
        self.prefix = prefix

    def _store(self, image, format, params):
        if self.directory is not None:
            self.directory.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            prefix=self.prefix,
            suffix=f".{format.extension}",
            dir=self.directory,
            delete=False,
        ) as output:
            path = Path(output.name)
            try:
                image.save(output, **params)
            except Exception:
                output.close()
                path.unlink(missing_ok=True)
                raise

        return FileHandle(path), os.path.getsize(path)
