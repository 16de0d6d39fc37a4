# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Runtime type library for generated bridges.

The host half lives in this package (ctypes layouts, ownership registries,
glue helpers); the native half is the header under `include/`, which
generated C++ includes as `xbridge/bridge.h`.
"""

from __future__ import annotations

from pathlib import Path

from .abi import (
	BorrowedSlice,
	BorrowedString,
	CallbackHandle,
	OwnedString,
	OwnedVector,
	RuntimeVTable,
	error_result,
)
from .errors import BindingError, BridgeError, LayoutError, OwnershipError
from .glue import NativeHandle
from .heap import HEAP, HostHeap, OwnedHostValue


def include_dir() -> Path:
	"""Directory to add to the C++ include path so `#include "xbridge/bridge.h"` resolves."""
	return Path(__file__).with_name("include")


__all__ = [
	"BorrowedSlice",
	"BorrowedString",
	"CallbackHandle",
	"OwnedString",
	"OwnedVector",
	"RuntimeVTable",
	"error_result",
	"BindingError",
	"BridgeError",
	"LayoutError",
	"OwnershipError",
	"NativeHandle",
	"HEAP",
	"HostHeap",
	"OwnedHostValue",
	"include_dir",
]
