# -*- coding: utf-8 -*-
"""
Sizing and quality-step helpers shared by every backend
"""

import math
from typing import Optional, Tuple

# Quality is stepped in hundredths to keep 0.85 -> 0.80 -> 0.75 exact
QUALITY_STEP = 0.05
_QUALITY_STEP_HUNDREDTHS = 5


def to_hundredths(quality: float) -> int:
    """Round a quality to whole hundredths, halves away from zero"""
    scaled = quality * 100
    if scaled < 0:
        return -math.floor(-scaled + 0.5)
    return math.floor(scaled + 0.5)


def calculate_dimensions(
    width: int, height: int, max_dimension: Optional[int]
) -> Tuple[int, int]:
    """
    Compute the target size, preserving aspect ratio

    Images already within ``max_dimension`` on both axes are returned
    unchanged; images are never upscaled.

    Args:
        width: source width in pixels
        height: source height in pixels
        max_dimension: upper bound on the longer side, None to keep the size

    Returns:
        (target_width, target_height), each at least 1
    """
    if not max_dimension or max_dimension <= 0:
        return width, height
    if width <= max_dimension and height <= max_dimension:
        return width, height

    # Integer round-half-up of max_dimension * short / long
    if width > height:
        target_width = max_dimension
        target_height = (2 * max_dimension * height + width) // (2 * width)
    else:
        target_width = (2 * max_dimension * width + height) // (2 * height)
        target_height = max_dimension

    return max(target_width, 1), max(target_height, 1)


def reduce_quality(quality: float) -> float:
    """
    Next quality step for the progressive search

    Subtracts 0.05 and rounds to two decimals. There is no floor check: the
    caller compares the result against its minimum quality.
    """
    return (to_hundredths(quality) - _QUALITY_STEP_HUNDREDTHS) / 100


def should_continue(
    size_bytes: int,
    max_size_kb: Optional[float],
    quality: float,
    min_quality: float,
) -> bool:
    """
    Whether the search should encode again at a lower quality

    Args:
        size_bytes: size of the latest encode
        max_size_kb: size budget in KB, None for no budget
        quality: quality of the latest encode
        min_quality: quality floor

    Returns:
        True only while the encode is over budget and quality is above the floor
    """
    if not max_size_kb:
        return False

    max_size_bytes = max_size_kb * 1024
    if size_bytes <= max_size_bytes:
        return False
    return quality > min_quality


def format_file_size(size_bytes: float) -> str:
    """Human readable size for log lines, e.g. "150KB" or "1.50MB" """
    if size_bytes >= 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.2f}MB"
    return f"{size_bytes / 1024:.0f}KB"
