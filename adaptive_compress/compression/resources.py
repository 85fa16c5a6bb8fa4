# -*- coding: utf-8 -*-
"""
Resource handles for encoded images and the tracker that releases them

An encoded image lives either in process memory or in a temporary file.
Both kinds are released the same way; releasing is idempotent.
"""

import itertools
import os
import threading
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from adaptive_compress.exceptions import ReleaseError, ResourceReleasedError
from adaptive_compress.log import logger


class HandleState(Enum):
    ACTIVE = "active"
    RELEASED = "released"


class ResourceHandle(ABC):
    """Opaque reference to encoded image storage"""

    def __init__(self):
        self._state = HandleState.ACTIVE
        self._lock = threading.Lock()

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is HandleState.ACTIVE

    @property
    @abstractmethod
    def key(self) -> str:
        """Identity used by the tracker"""

    @abstractmethod
    def _read(self) -> bytes:
        ...

    @abstractmethod
    def _free(self) -> None:
        """Free the underlying storage, raising on failure"""

    def read_bytes(self) -> bytes:
        """
        Read the encoded bytes

        Raises:
            ResourceReleasedError: the handle was already released
        """
        if not self.is_active:
            raise ResourceReleasedError(f"Resource {self.key} was already released")
        return self._read()

    def release(self) -> bool:
        """
        Free the storage behind this handle

        Returns:
            True if this call released the handle, False if it was already released

        Raises:
            ReleaseError: freeing the storage failed; the handle still counts as released
        """
        with self._lock:
            if self._state is HandleState.RELEASED:
                return False
            self._state = HandleState.RELEASED
        try:
            self._free()
        except Exception as e:
            raise ReleaseError(f"Failed to release {self.key}: {e}") from e
        return True

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.key} {self._state.value}>"


class MemoryHandle(ResourceHandle):
    """Encoded bytes held in process memory"""

    _ids = itertools.count(1)

    def __init__(self, data: bytes):
        super().__init__()
        self._data: Optional[bytes] = data
        self._key = f"memory:{next(MemoryHandle._ids)}"

    @property
    def key(self) -> str:
        return self._key

    @property
    def size(self) -> int:
        return len(self._data) if self._data is not None else 0

    def _read(self) -> bytes:
        return self._data

    def _free(self) -> None:
        self._data = None


class FileHandle(ResourceHandle):
    """Encoded bytes stored in a temporary file"""

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)

    @property
    def key(self) -> str:
        return f"file:{self.path}"

    @property
    def size(self) -> int:
        return os.path.getsize(self.path)

    def _read(self) -> bytes:
        return self.path.read_bytes()

    def _free(self) -> None:
        # A file that is already gone counts as freed
        self.path.unlink(missing_ok=True)


def _handle_of(item) -> ResourceHandle:
    """Accept a handle or anything carrying one (a CompressedImage)"""
    if isinstance(item, ResourceHandle):
        return item
    handle = getattr(item, "handle", None)
    if isinstance(handle, ResourceHandle):
        return handle
    raise TypeError(f"Expected a ResourceHandle or CompressedImage, got {type(item).__name__}")


class ResourceTracker:
    """
    Tracks encoded-image resources until they are released

    One tracker is owned per session. It is safe to share between concurrent
    compressions; the lock only guards the tracked set and is never held
    while storage is being freed.
    """

    def __init__(self):
        self._handles: Dict[str, ResourceHandle] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def __contains__(self, item) -> bool:
        handle = _handle_of(item)
        with self._lock:
            return handle.key in self._handles

    def track(self, item) -> ResourceHandle:
        """
        Register a handle (or a CompressedImage) for later cleanup

        Returns:
            the tracked handle
        """
        handle = _handle_of(item)
        if not handle.is_active:
            logger.debug(f"Not tracking released resource {handle.key}")
            return handle
        with self._lock:
            self._handles[handle.key] = handle
        return handle

    def release(self, item) -> bool:
        """
        Release one handle; safe to call any number of times

        An active handle is freed even if this tracker never saw it; an
        already released handle is left alone and no error is raised.

        Returns:
            True if the storage was freed by this call
        """
        handle = _handle_of(item)
        with self._lock:
            self._handles.pop(handle.key, None)
        return self._release_quietly(handle)

    def release_many(self, items: Iterable) -> int:
        """Release several handles, returning how many were freed"""
        return sum(1 for item in items if self.release(item))

    def release_all(self) -> int:
        """
        Release every tracked handle and clear the tracked set

        Each handle is released independently; a failure on one does not
        stop the others.

        Returns:
            the number of handles attempted
        """
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()

        for handle in handles:
            self._release_quietly(handle)

        if handles:
            logger.debug(f"Released {len(handles)} tracked resources")
        return len(handles)

    @staticmethod
    def _release_quietly(handle: ResourceHandle) -> bool:
        try:
            released = handle.release()
        except Exception as e:
            logger.warning(f"Failed to release resource {handle.key}: {e}")
            return False
        if released:
            logger.debug(f"Released resource {handle.key}")
        return released
