# -*- coding: utf-8 -*-
"""
Compression engine: progressive quality search
"""

import asyncio
from typing import Optional

from adaptive_compress.compression.backend import EncodeBackend, Source, load_source
from adaptive_compress.compression.cancellation import CancellationToken
from adaptive_compress.compression.config import (
    DEFAULT_PRESET,
    CompressionConfig,
    PresetOrConfig,
    resolve_compression_config,
)
from adaptive_compress.compression.format import mime_type_for, resolve_output_format
from adaptive_compress.compression.resources import ResourceTracker
from adaptive_compress.compression.result import CompressedImage, EncodedImage
from adaptive_compress.compression.utils import (
    calculate_dimensions,
    format_file_size,
    reduce_quality,
    should_continue,
)
from adaptive_compress.exceptions import EncodeError
from adaptive_compress.log import logger

# Upper bound on quality reductions per compression (1.0 down to 0 in 0.05 steps)
MAX_QUALITY_STEPS = 20


class CompressionEngine:
    """Drives an encoding backend until an image fits its size budget"""

    def __init__(
        self,
        backend: EncodeBackend,
        tracker: Optional[ResourceTracker] = None,
    ):
        """
        Args:
            backend: encoding backend chosen by the caller
            tracker: resource tracker for this session, a new one by default
        """
        self.backend = backend
        self.tracker = tracker if tracker is not None else ResourceTracker()

        logger.debug(f"Compression engine ready with {backend.name} backend")

    async def compress_image(
        self,
        source: Source,
        width: int,
        height: int,
        options: PresetOrConfig = DEFAULT_PRESET,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[CompressedImage]:
        """
        Resolve ``options`` and compress

        Returns:
            the compressed image, or None when the options disable compression
        """
        config = resolve_compression_config(options)
        if config is None:
            logger.debug("Compression disabled for this image, keeping the original")
            return None
        return await self.compress(source, width, height, config, cancel_token)

    async def compress(
        self,
        source: Source,
        width: int,
        height: int,
        config: CompressionConfig,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CompressedImage:
        """
        Resize and re-encode an image, lowering quality until it fits the budget

        The first encode uses ``config.quality``. Without a size budget that
        encode is returned as is. Otherwise quality drops by 0.05 per encode
        while the result is over budget and quality is above
        ``config.min_quality``. Ending at the floor while still over budget
        is a normal result.

        Args:
            source: decoded image, encoded bytes, or path
            width: source width in pixels
            height: source height in pixels
            config: resolved configuration
            cancel_token: checked before every encode

        Returns:
            the final encode, registered with the tracker

        Raises:
            EncodeError: the source could not be decoded or encoded
            CompressionCancelledError: ``cancel_token`` was cancelled
        """
        target_width, target_height = calculate_dimensions(width, height, config.max_dimension)

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        image = await asyncio.to_thread(load_source, source)
        output_format = resolve_output_format(config.format, image)

        logger.debug(
            f"Compressing image: {width}x{height} -> {target_width}x{target_height}, "
            f"quality: {config.quality}, format: {output_format.value}"
        )

        quality = config.quality
        result = await self._encode(
            image, target_width, target_height, output_format, quality, None, cancel_token
        )
        attempts = 1

        try:
            while should_continue(
                result.size_bytes, config.max_size_kb, quality, config.min_quality
            ):
                if attempts - 1 >= MAX_QUALITY_STEPS:
                    logger.warning(
                        f"Stopping after {attempts} encodes at quality {quality}, "
                        f"still {format_file_size(result.size_bytes)}"
                    )
                    break

                quality = max(reduce_quality(quality), config.min_quality)
                logger.debug(
                    f"Image still {format_file_size(result.size_bytes)} > "
                    f"{config.max_size_kb:g}KB, reducing quality to {quality}"
                )
                result = await self._encode(
                    image, target_width, target_height, output_format, quality, result, cancel_token
                )
                attempts += 1
        except BaseException:
            self.tracker.release(result.handle)
            raise

        compressed = CompressedImage(
            width=result.width,
            height=result.height,
            format=output_format,
            mime_type=mime_type_for(output_format),
            size_bytes=result.size_bytes,
            handle=result.handle,
            quality=quality,
            attempts=attempts,
        )
        self.tracker.track(compressed.handle)

        logger.info(
            f"Compression complete: {format_file_size(compressed.size_bytes)}, "
            f"quality: {quality}, {compressed.width}x{compressed.height}, "
            f"{attempts} encode(s)"
        )
        return compressed

    async def _encode(
        self,
        image,
        width: int,
        height: int,
        output_format,
        quality: float,
        previous: Optional[EncodedImage],
        cancel_token: Optional[CancellationToken],
    ) -> EncodedImage:
        """Run one encode; the superseded ``previous`` encode is released once a new one exists"""
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        result = await self.backend.encode(image, width, height, output_format, quality)
        if (result.width, result.height) != (width, height):
            self.tracker.release(result.handle)
            raise EncodeError(
                f"{self.backend.name} backend returned {result.width}x{result.height}, "
                f"expected {width}x{height}"
            )

        if previous is not None:
            self.tracker.release(previous.handle)
        logger.debug(
            f"Encoded {output_format.value} at quality {quality}: "
            f"{format_file_size(result.size_bytes)}"
        )
        return result

    def release(self, image) -> bool:
        """Release one compressed image; safe to repeat"""
        return self.tracker.release(image)

    def release_all(self) -> int:
        """Release every image this engine's tracker holds"""
        return self.tracker.release_all()
