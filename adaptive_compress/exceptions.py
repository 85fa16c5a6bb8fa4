# -*- coding: utf-8 -*-
"""
Exception types for the compression engine
"""


class CompressionEngineError(Exception):
    """Base class for all engine errors"""
    pass


class EncodeError(CompressionEngineError):
    """The encoding backend could not decode or encode the image.

    Callers are expected to fall back to uploading the original file.
    """
    pass


class CompressionCancelledError(CompressionEngineError):
    """A compression was cancelled through its token"""
    pass


class ResourceReleasedError(CompressionEngineError):
    """A released resource handle was read"""
    pass


class ReleaseError(CompressionEngineError):
    """Freeing the storage behind a handle failed"""
    pass
