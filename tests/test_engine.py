"""Tests for the progressive quality search."""

import asyncio

import pytest
from PIL import Image

from adaptive_compress.compression import manager
from adaptive_compress.compression.backend import EncodeBackend
from adaptive_compress.compression.cancellation import CancellationToken
from adaptive_compress.compression.config import CompressionConfig, resolve_compression_config
from adaptive_compress.compression.format import OutputFormat
from adaptive_compress.compression.manager import CompressionEngine
from adaptive_compress.compression.resources import MemoryHandle, ResourceTracker
from adaptive_compress.compression.result import EncodedImage
from adaptive_compress.exceptions import CompressionCancelledError, EncodeError

KB = 1024


class ScriptedBackend(EncodeBackend):
    """Reports sizes from a function of quality instead of encoding."""

    name = "scripted"

    def __init__(self, size_for, fail_on_call=None, on_call=None, shrink=False):
        self.size_for = size_for
        self.fail_on_call = fail_on_call
        self.on_call = on_call
        self.shrink = shrink
        self.calls = []
        self.handles = []

    async def encode(self, image, width, height, format, quality):
        self.calls.append(quality)
        if self.on_call is not None:
            self.on_call(len(self.calls))
        if self.fail_on_call == len(self.calls):
            raise EncodeError("backend exploded")
        handle = MemoryHandle(b"encoded")
        self.handles.append(handle)
        if self.shrink:
            width = width // 2
        return EncodedImage(handle, width, height, self.size_for(quality))

    def _store(self, image, format, params):
        raise NotImplementedError


def source():
    return Image.new("RGB", (40, 30))


def run(coro):
    return asyncio.run(coro)


def test_single_pass_without_budget():
    backend = ScriptedBackend(lambda q: 5000 * KB)
    engine = CompressionEngine(backend)
    config = resolve_compression_config("gallery").replace(max_size_bytes=None)

    result = run(engine.compress(source(), 4000, 3000, config))

    assert backend.calls == [0.85]
    assert result.attempts == 1
    assert result.size_bytes == 5000 * KB
    assert (result.width, result.height) == (2048, 1536)


def test_under_budget_encodes_once():
    backend = ScriptedBackend(lambda q: 500 * KB)
    engine = CompressionEngine(backend)

    result = run(engine.compress(source(), 100, 100, resolve_compression_config("gallery")))

    assert backend.calls == [0.85]
    assert result.quality == 0.85
    assert (result.width, result.height) == (100, 100)
    assert result.format is OutputFormat.JPEG
    assert result.mime_type == "image/jpeg"


def test_reduces_quality_until_floor():
    """Over budget at every quality: stops at the floor and returns that encode."""
    backend = ScriptedBackend(lambda q: int(2000 * KB * q))
    engine = CompressionEngine(backend)

    result = run(engine.compress(source(), 4000, 3000, resolve_compression_config("gallery")))

    assert backend.calls == [0.85, 0.8, 0.75, 0.7, 0.65]
    assert result.quality == 0.65
    assert result.attempts == 5
    assert result.size_bytes > 1000 * KB
    assert result.handle is backend.handles[-1]


def test_stops_when_size_equals_budget():
    sizes = {0.85: 1200 * KB, 0.8: 1100 * KB, 0.75: 1000 * KB}
    backend = ScriptedBackend(lambda q: sizes.get(q, 1))
    engine = CompressionEngine(backend)

    result = run(engine.compress(source(), 4000, 3000, resolve_compression_config("gallery")))

    assert backend.calls == [0.85, 0.8, 0.75]
    assert result.size_bytes == 1000 * KB


def test_never_encodes_below_floor():
    """A floor off the 0.05 grid is used as the last quality."""
    backend = ScriptedBackend(lambda q: 10_000 * KB)
    engine = CompressionEngine(backend)
    config = CompressionConfig(2048, 0.85, 1000 * KB, 0.62)

    result = run(engine.compress(source(), 4000, 3000, config))

    assert backend.calls == [0.85, 0.8, 0.75, 0.7, 0.65, 0.62]
    assert result.quality == 0.62


def test_search_is_bounded():
    """From 1.0 to a floor of 0 the search makes at most 20 reductions."""
    backend = ScriptedBackend(lambda q: 10_000 * KB)
    engine = CompressionEngine(backend)
    config = CompressionConfig(None, 1.0, 1 * KB, 0.0)

    result = run(engine.compress(source(), 40, 30, config))

    assert len(backend.calls) == manager.MAX_QUALITY_STEPS + 1
    assert backend.calls[-1] == 0.0
    assert result.quality == 0.0


def test_step_cap_stops_search(monkeypatch):
    monkeypatch.setattr(manager, "MAX_QUALITY_STEPS", 2)
    backend = ScriptedBackend(lambda q: 10_000 * KB)
    engine = CompressionEngine(backend)

    result = run(engine.compress(source(), 4000, 3000, resolve_compression_config("gallery")))

    assert backend.calls == [0.85, 0.8, 0.75]
    assert result.attempts == 3


def test_intermediate_encodes_are_released():
    backend = ScriptedBackend(lambda q: 10_000 * KB)
    tracker = ResourceTracker()
    engine = CompressionEngine(backend, tracker)

    result = run(engine.compress(source(), 4000, 3000, resolve_compression_config("avatar")))

    assert all(not handle.is_active for handle in backend.handles[:-1])
    assert result.handle.is_active
    assert len(tracker) == 1
    assert result.handle in tracker


def test_backend_failure_propagates_and_cleans_up():
    backend = ScriptedBackend(lambda q: 10_000 * KB, fail_on_call=3)
    engine = CompressionEngine(backend)

    with pytest.raises(EncodeError):
        run(engine.compress(source(), 4000, 3000, resolve_compression_config("gallery")))

    assert len(backend.handles) == 2
    assert all(not handle.is_active for handle in backend.handles)
    assert len(engine.tracker) == 0


def test_backend_changing_size_is_rejected():
    backend = ScriptedBackend(lambda q: 1, shrink=True)
    engine = CompressionEngine(backend)

    with pytest.raises(EncodeError):
        run(engine.compress(source(), 4000, 3000, resolve_compression_config("gallery")))
    assert not backend.handles[0].is_active


def test_cancelled_before_start():
    backend = ScriptedBackend(lambda q: 1)
    engine = CompressionEngine(backend)
    token = CancellationToken()
    token.cancel()

    with pytest.raises(CompressionCancelledError):
        run(engine.compress(source(), 40, 30, resolve_compression_config("gallery"), token))
    assert backend.calls == []


def test_cancelled_mid_search():
    token = CancellationToken()

    def cancel_on_second(call):
        if call == 2:
            token.cancel()

    backend = ScriptedBackend(lambda q: 10_000 * KB, on_call=cancel_on_second)
    engine = CompressionEngine(backend)

    with pytest.raises(CompressionCancelledError):
        run(engine.compress(source(), 4000, 3000, resolve_compression_config("gallery"), token))

    assert backend.calls == [0.85, 0.8]
    assert all(not handle.is_active for handle in backend.handles)
    assert len(engine.tracker) == 0


def test_uncancelled_token_changes_nothing():
    backend = ScriptedBackend(lambda q: int(2000 * KB * q))
    engine = CompressionEngine(backend)

    run(engine.compress(
        source(), 4000, 3000, resolve_compression_config("gallery"), CancellationToken()
    ))

    assert backend.calls == [0.85, 0.8, 0.75, 0.7, 0.65]


def test_compress_image_skips_when_disabled():
    backend = ScriptedBackend(lambda q: 1)
    engine = CompressionEngine(backend)

    assert run(engine.compress_image(source(), 40, 30, None)) is None
    assert run(engine.compress_image(source(), 40, 30, "none")) is None
    assert run(engine.compress_image(source(), 40, 30, "poster")) is None
    assert backend.calls == []


def test_compress_image_with_override():
    """A quality override below the gallery floor encodes once."""
    backend = ScriptedBackend(lambda q: 10_000 * KB)
    engine = CompressionEngine(backend)

    result = run(engine.compress_image(source(), 4000, 3000, {"quality": 0.5}))

    assert backend.calls == [0.5]
    assert result.quality == 0.5


def test_unreadable_source():
    engine = CompressionEngine(ScriptedBackend(lambda q: 1))
    with pytest.raises(EncodeError):
        run(engine.compress(b"not an image", 40, 30, resolve_compression_config("gallery")))


def test_release_through_engine():
    engine = CompressionEngine(ScriptedBackend(lambda q: 1))
    result = run(engine.compress(source(), 40, 30, resolve_compression_config("gallery")))

    assert engine.release(result) is True
    assert engine.release(result) is False
    assert result.is_released
    assert engine.release_all() == 0


def test_concurrent_compressions_share_tracker():
    backend = ScriptedBackend(lambda q: int(2000 * KB * q))
    engine = CompressionEngine(backend)
    config = resolve_compression_config("gallery")

    async def compress_three():
        return await asyncio.gather(
            *(engine.compress(source(), 4000, 3000, config) for _ in range(3))
        )

    results = run(compress_three())

    assert len(engine.tracker) == 3
    assert all(result.quality == 0.65 for result in results)
    assert engine.release_all() == 3
    assert all(result.is_released for result in results)
