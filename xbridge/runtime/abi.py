# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Fixed-layout runtime types shared by generated host glue and `bridge.h`.

Every structure below mirrors a C++ repr struct in
`include/xbridge/bridge.h` field for field. These layouts are the whole ABI
contract between the two generated artifacts, so they never depend on a
manifest: an owned string is three machine words in every bridge ever
generated.
"""

from __future__ import annotations

import ctypes
import threading
from typing import Dict, Type

class OwnedString(ctypes.Structure):
	"""`xbridge::StringRepr`: UTF-8 bytes, no terminator, host-allocated buffer."""

	_fields_ = [
		("ptr", ctypes.c_void_p),
		("len", ctypes.c_size_t),
		("cap", ctypes.c_size_t),
	]


class BorrowedString(ctypes.Structure):
	"""`xbridge::StrRepr`: a view; the owner outlives the call."""

	_fields_ = [
		("ptr", ctypes.c_void_p),
		("len", ctypes.c_size_t),
	]


class OwnedVector(ctypes.Structure):
	"""`xbridge::VecRepr<T>`; `len` and `cap` count elements, not bytes."""

	_fields_ = [
		("ptr", ctypes.c_void_p),
		("len", ctypes.c_size_t),
		("cap", ctypes.c_size_t),
	]


class BorrowedSlice(ctypes.Structure):
	"""`xbridge::SliceRepr<T>`."""

	_fields_ = [
		("ptr", ctypes.c_void_p),
		("len", ctypes.c_size_t),
	]


class CallbackHandle(ctypes.Structure):
	"""`xbridge::Fn<Sig>`: trampoline plus the context it is invoked with."""

	_fields_ = [
		("trampoline", ctypes.c_void_p),
		("ctx", ctypes.c_void_p),
	]


# `Box<R>` and opaque native handles cross the boundary as one raw pointer.
OwnedHostValueRepr = ctypes.c_void_p
NativeHandleRepr = ctypes.c_void_p

# Payload used by ErrorResult when the function returns nothing.
Unit = ctypes.c_uint8


ALLOC_FN = ctypes.CFUNCTYPE(ctypes.c_void_p, ctypes.c_size_t, ctypes.c_size_t)
DEALLOC_FN = ctypes.CFUNCTYPE(None, ctypes.c_void_p)
BOX_DROP_FN = ctypes.CFUNCTYPE(None, ctypes.c_void_p)


class RuntimeVTable(ctypes.Structure):
	"""Host services the native runtime calls back into (`xbridge::RuntimeVTable`)."""

	_fields_ = [
		("alloc", ALLOC_FN),
		("dealloc", DEALLOC_FN),
		("box_drop", BOX_DROP_FN),
	]


_RESULT_TYPES: Dict[type, Type[ctypes.Structure]] = {}
_RESULT_LOCK = threading.Lock()


def error_result(payload: type) -> Type[ctypes.Structure]:
	"""
	Return the ctypes type of `xbridge::Result<payload>`.

	The shape is a discriminant followed by a union of the success payload and
	an owned message string. Types are cached per payload so two wrappers for
	the same payload agree on identity (ctypes compares pointer types by
	identity).
	"""
	with _RESULT_LOCK:
		cached = _RESULT_TYPES.get(payload)
		if cached is not None:
			return cached
		name = getattr(payload, "__name__", "payload")
		union = type(
			f"ResultPayload_{name}",
			(ctypes.Union,),
			{"_fields_": [("ok", payload), ("err", OwnedString)]},
		)
		result = type(
			f"ErrorResult_{name}",
			(ctypes.Structure,),
			{"_fields_": [("is_err", ctypes.c_bool), ("payload", union)]},
		)
		_RESULT_TYPES[payload] = result
		return result


def runtime_sizes() -> Dict[str, int]:
	"""Host-measured sizes of the runtime types, keyed like the IR's runtime layout table."""
	return {
		"OwnedString": ctypes.sizeof(OwnedString),
		"BorrowedString": ctypes.sizeof(BorrowedString),
		"OwnedVector": ctypes.sizeof(OwnedVector),
		"BorrowedSlice": ctypes.sizeof(BorrowedSlice),
		"OwnedHostValue": ctypes.sizeof(OwnedHostValueRepr),
		"NativeHandle": ctypes.sizeof(NativeHandleRepr),
		"CallbackHandle": ctypes.sizeof(CallbackHandle),
	}


__all__ = [
	"OwnedString",
	"BorrowedString",
	"OwnedVector",
	"BorrowedSlice",
	"CallbackHandle",
	"OwnedHostValueRepr",
	"NativeHandleRepr",
	"Unit",
	"ALLOC_FN",
	"DEALLOC_FN",
	"BOX_DROP_FN",
	"RuntimeVTable",
	"error_result",
	"runtime_sizes",
]
