# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Host-side ownership bookkeeping.

Two registries live here:

- `HostAllocator` hands out raw buffers that back owned strings and vectors.
  Native code grows and frees them through the runtime vtable, so every
  address it ever sees must stay alive in this process until `dealloc`.
- `HostHeap` keeps host objects that were moved into native code as
  `Box<R>`. Native code only ever holds the integer handle; the object is
  reachable again through `from_raw` (move back) or released by `drop`
  (native destructor ran).

Both are guarded by a lock: native code may free from any thread.
"""

from __future__ import annotations

import ctypes
import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import OwnershipError

logger = logging.getLogger(__name__)


class HostAllocator:
	"""Backing store for buffers owned across the boundary."""

	def __init__(self) -> None:
		self._lock = threading.Lock()
		self._buffers: Dict[int, ctypes.Array] = {}

	def alloc(self, size: int, align: int = 1) -> int:
		if align <= 0 or align & (align - 1):
			raise ValueError(f"alignment must be a power of two, got {align}")
		buf = ctypes.create_string_buffer(max(size, 1) + align - 1)
		base = ctypes.addressof(buf)
		addr = (base + align - 1) & ~(align - 1)
		with self._lock:
			self._buffers[addr] = buf
		return addr

	def dealloc(self, addr: int) -> None:
		with self._lock:
			buf = self._buffers.pop(addr, None)
		if buf is None:
			raise OwnershipError(f"dealloc of unknown or already freed buffer 0x{addr:x}")

	def outstanding(self) -> int:
		with self._lock:
			return len(self._buffers)


@dataclass(frozen=True)
class HeapStats:
	constructed: int
	reclaimed: int
	dropped: int
	live: int

	@property
	def balanced(self) -> bool:
		return self.constructed == self.reclaimed + self.dropped + self.live


class HostHeap:
	"""
	Registry of host values currently owned by native code.

	Handles are small non-null integers aligned like pointers, never reused
	within one heap, so a stale handle is detected instead of aliasing a newer
	value.
	"""

	def __init__(self) -> None:
		self._lock = threading.Lock()
		self._values: Dict[int, Any] = {}
		self._next = itertools.count(0x1000, 16)
		self._constructed = 0
		self._reclaimed = 0
		self._dropped = 0

	def into_raw(self, value: Any) -> int:
		with self._lock:
			raw = next(self._next)
			self._values[raw] = value
			self._constructed += 1
		return raw

	def from_raw(self, raw: int) -> Any:
		with self._lock:
			if raw not in self._values:
				raise OwnershipError(f"box handle 0x{raw:x} is not live")
			self._reclaimed += 1
			return self._values.pop(raw)

	def peek(self, raw: int) -> Any:
		with self._lock:
			if raw not in self._values:
				raise OwnershipError(f"box handle 0x{raw:x} is not live")
			return self._values[raw]

	def drop(self, raw: int) -> None:
		with self._lock:
			if raw not in self._values:
				raise OwnershipError(f"box handle 0x{raw:x} dropped twice")
			del self._values[raw]
			self._dropped += 1
		logger.debug("native side dropped box 0x%x", raw)

	def live(self) -> int:
		with self._lock:
			return len(self._values)

	def stats(self) -> HeapStats:
		with self._lock:
			return HeapStats(
				constructed=self._constructed,
				reclaimed=self._reclaimed,
				dropped=self._dropped,
				live=len(self._values),
			)


HEAP = HostHeap()
ALLOCATOR = HostAllocator()

_MOVED = object()


class OwnedHostValue:
	"""
	Python view of `Box<R>`: a host value that can be moved to native code once.

	After `into_raw()` the wrapper is tombstoned; touching it again raises
	`OwnershipError`. `from_raw()` is the only way back.
	"""

	__slots__ = ("_value",)

	def __init__(self, value: Any) -> None:
		self._value = value

	@property
	def moved(self) -> bool:
		return self._value is _MOVED

	def get(self) -> Any:
		if self._value is _MOVED:
			raise OwnershipError("use of a moved Box")
		return self._value

	def into_inner(self) -> Any:
		value = self.get()
		self._value = _MOVED
		return value

	def into_raw(self, heap: Optional[HostHeap] = None) -> int:
		return (heap or HEAP).into_raw(self.into_inner())

	def _restore(self, raw: int, heap: Optional[HostHeap] = None) -> None:
		self._value = (heap or HEAP).from_raw(raw)

	@classmethod
	def from_raw(cls, raw: int, heap: Optional[HostHeap] = None) -> "OwnedHostValue":
		return cls((heap or HEAP).from_raw(raw))

	def __repr__(self) -> str:
		if self._value is _MOVED:
			return "OwnedHostValue(<moved>)"
		return f"OwnedHostValue({self._value!r})"


__all__ = [
	"HostAllocator",
	"HostHeap",
	"HeapStats",
	"OwnedHostValue",
	"HEAP",
	"ALLOCATOR",
]
