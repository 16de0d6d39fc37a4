# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Helpers called by generated host glue modules.

Generated code stays thin: every wrapper is one call into the mangled native
symbol, with arguments converted by the functions here. Conversions follow
the passing mode:

- owned values (`String`, `Vec<T>`, `Box<R>`, `UniquePtr<C>`) are moved, the
  receiving side becomes responsible for releasing them;
- borrows are lent for the duration of one call through a `CallFrame`, which
  releases temporaries (and copies `&mut` results back) when the call returns.

Exceptions never unwind through native frames. Callback and host-function
trampolines catch everything: callbacks park the exception on their frame
and it is re-raised once the native call has returned; host functions either
encode it in the ErrorResult (fallible) or abort the process.
"""

from __future__ import annotations

import ctypes
import logging
import os
import weakref
from typing import Any, Callable, ClassVar, List, NoReturn, Optional, Sequence

from .abi import (
	ALLOC_FN,
	BOX_DROP_FN,
	DEALLOC_FN,
	BorrowedSlice,
	BorrowedString,
	CallbackHandle,
	OwnedString,
	OwnedVector,
	RuntimeVTable,
)
from .errors import BindingError, BridgeError, LayoutError, OwnershipError
from .heap import ALLOCATOR, HEAP, OwnedHostValue

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Library binding
# ---------------------------------------------------------------------------


def open_library(library: Any) -> ctypes.CDLL:
	if isinstance(library, ctypes.CDLL):
		return library
	return ctypes.CDLL(os.fspath(library))


def declare(lib: ctypes.CDLL, symbol: str, restype: Any, argtypes: Sequence[Any]) -> Any:
	try:
		fn = lib[symbol]
	except AttributeError as err:
		raise BindingError(f"symbol '{symbol}' not found in {lib!r}") from err
	fn.restype = restype
	fn.argtypes = list(argtypes)
	return fn


def _alloc(size: int, align: int) -> Optional[int]:
	try:
		return ALLOCATOR.alloc(size, align)
	except Exception:
		logger.exception("runtime alloc(%d, %d) failed", size, align)
		return None


def _dealloc(ptr: Optional[int]) -> None:
	if not ptr:
		return
	try:
		ALLOCATOR.dealloc(ptr)
	except Exception:
		logger.exception("runtime dealloc(0x%x) failed", ptr)


def _box_drop(raw: Optional[int]) -> None:
	if not raw:
		return
	try:
		HEAP.drop(raw)
	except Exception:
		logger.exception("runtime box_drop(0x%x) failed", raw)


_VTABLE: Optional[RuntimeVTable] = None


def runtime_vtable() -> RuntimeVTable:
	"""The process-wide vtable; it must outlive every library it was installed into."""
	global _VTABLE
	if _VTABLE is None:
		_VTABLE = RuntimeVTable(ALLOC_FN(_alloc), DEALLOC_FN(_dealloc), BOX_DROP_FN(_box_drop))
	return _VTABLE


def install_runtime(lib: ctypes.CDLL, symbol: str) -> None:
	install = declare(lib, symbol, None, [ctypes.POINTER(RuntimeVTable)])
	install(ctypes.byref(runtime_vtable()))
	logger.debug("installed runtime vtable via %s", symbol)


def check_layout(cls: type, size: int, align: int, offsets: Sequence[int]) -> None:
	"""Fail binding when ctypes disagrees with the layout baked into the native header."""
	actual_offsets = [getattr(cls, field[0]).offset for field in cls._fields_]
	actual = (ctypes.sizeof(cls), ctypes.alignment(cls), actual_offsets)
	expected = (size, align, list(offsets))
	if actual != expected:
		raise LayoutError(
			f"{cls.__name__}: host layout (size, align, offsets)={actual} "
			f"does not match generated layout {expected}"
		)


# ---------------------------------------------------------------------------
# Strings
# ---------------------------------------------------------------------------


def string_from_str(text: str) -> OwnedString:
	"""Allocate an owned string; whoever receives the repr must release it."""
	data = text.encode("utf-8")
	if not data:
		return OwnedString(None, 0, 0)
	addr = ALLOCATOR.alloc(len(data), 1)
	ctypes.memmove(addr, data, len(data))
	return OwnedString(addr, len(data), len(data))


def string_view(repr_: OwnedString) -> str:
	if not repr_.len:
		return ""
	return ctypes.string_at(repr_.ptr, repr_.len).decode("utf-8")


def string_release(repr_: OwnedString) -> None:
	if repr_.ptr:
		ALLOCATOR.dealloc(repr_.ptr)
	repr_.ptr = None
	repr_.len = 0
	repr_.cap = 0


def string_take(repr_: OwnedString) -> str:
	text = string_view(repr_)
	string_release(repr_)
	return text


def str_view(repr_: BorrowedString) -> str:
	if not repr_.len:
		return ""
	return ctypes.string_at(repr_.ptr, repr_.len).decode("utf-8")


# ---------------------------------------------------------------------------
# Vectors and slices
# ---------------------------------------------------------------------------


def _wrap_all(items: List[Any], wrap: Optional[Callable[[Any], Any]]) -> List[Any]:
	if wrap is None:
		return items
	return [wrap(item) for item in items]


def _copy_out(ptr: Optional[int], length: int, elem: Any) -> List[Any]:
	if not length:
		return []
	copy = (elem * length)()
	ctypes.memmove(copy, ptr, length * ctypes.sizeof(elem))
	return list(copy)


def vector_from_seq(items: Sequence[Any], elem: Any) -> OwnedVector:
	count = len(items)
	if not count:
		return OwnedVector(None, 0, 0)
	addr = ALLOCATOR.alloc(count * ctypes.sizeof(elem), ctypes.alignment(elem))
	array = (elem * count).from_address(addr)
	try:
		for index, item in enumerate(items):
			array[index] = item
	except Exception:
		ALLOCATOR.dealloc(addr)
		raise
	return OwnedVector(addr, count, count)


def vector_view(repr_: OwnedVector, elem: Any, wrap: Optional[Callable[[Any], Any]] = None) -> List[Any]:
	return _wrap_all(_copy_out(repr_.ptr, repr_.len, elem), wrap)


def vector_release(repr_: OwnedVector) -> None:
	if repr_.ptr:
		ALLOCATOR.dealloc(repr_.ptr)
	repr_.ptr = None
	repr_.len = 0
	repr_.cap = 0


def vector_take(repr_: OwnedVector, elem: Any, wrap: Optional[Callable[[Any], Any]] = None) -> List[Any]:
	items = vector_view(repr_, elem, wrap)
	vector_release(repr_)
	return items


def vector_store(repr_: OwnedVector, items: Sequence[Any], elem: Any) -> None:
	"""Replace the contents of a vector owned by the other side."""
	fresh = vector_from_seq(items, elem)
	vector_release(repr_)
	repr_.ptr = fresh.ptr
	repr_.len = fresh.len
	repr_.cap = fresh.cap


def slice_view(repr_: BorrowedSlice, elem: Any, wrap: Optional[Callable[[Any], Any]] = None) -> List[Any]:
	return _wrap_all(_copy_out(repr_.ptr, repr_.len, elem), wrap)


def slice_array(repr_: BorrowedSlice, elem: Any) -> Any:
	"""ctypes array aliasing a mutable slice; writes go straight to native memory."""
	if not repr_.len:
		return (elem * 0)()
	return (elem * repr_.len).from_address(repr_.ptr)


# ---------------------------------------------------------------------------
# Boxes
# ---------------------------------------------------------------------------


def box_into_raw(value: Any) -> int:
	if isinstance(value, OwnedHostValue):
		return value.into_raw()
	return HEAP.into_raw(value)


def box_from_raw(raw: Optional[int]) -> Optional[OwnedHostValue]:
	if not raw:
		return None
	return OwnedHostValue.from_raw(raw)


def box_peek(raw: int) -> Any:
	return HEAP.peek(raw)


# ---------------------------------------------------------------------------
# Native handles
# ---------------------------------------------------------------------------


class NativeHandle:
	"""
	Host view of a native object owned through `std::unique_ptr`.

	Handles are only created by generated glue (`_from_raw` for owned,
	`_borrowed` for views lent by native code). An owned handle drops the
	native object when closed or garbage collected, unless it was moved out
	with `into_raw()`.
	"""

	__slots__ = ("_ptr", "_finalizer", "__weakref__")

	# Set by the generated `bind()` to the `unique_ptr$C$drop` symbol.
	_drop: ClassVar[Optional[Callable[[int], None]]] = None

	def __init__(self, *args: Any, **kwargs: Any) -> None:
		raise TypeError(f"{type(self).__name__} handles are created by the bridge, not constructed directly")

	@classmethod
	def _from_raw(cls, ptr: Optional[int]) -> Optional["NativeHandle"]:
		if not ptr:
			return None
		if cls._drop is None:
			raise BindingError(f"{cls.__name__} is not bound to a library")
		self = object.__new__(cls)
		self._ptr = ptr
		self._finalizer = weakref.finalize(self, cls._drop, ptr)
		return self

	@classmethod
	def _borrowed(cls, ptr: Any) -> "NativeHandle":
		if isinstance(ptr, ctypes.c_void_p):
			ptr = ptr.value
		self = object.__new__(cls)
		self._ptr = ptr
		self._finalizer = None
		return self

	@property
	def owned(self) -> bool:
		return self._finalizer is not None

	@property
	def closed(self) -> bool:
		return self._ptr is None

	def as_ptr(self) -> int:
		if self._ptr is None:
			raise OwnershipError(f"use of a moved or closed {type(self).__name__}")
		return self._ptr

	def into_raw(self) -> int:
		ptr = self.as_ptr()
		if self._finalizer is None:
			raise OwnershipError(f"cannot move out of a borrowed {type(self).__name__}")
		self._finalizer.detach()
		self._finalizer = None
		self._ptr = None
		return ptr

	def _restore(self, ptr: int) -> None:
		"""Take back ownership of `ptr` after a move that native code never received."""
		self._ptr = ptr
		self._finalizer = weakref.finalize(self, type(self)._drop, ptr)

	def close(self) -> None:
		if self._finalizer is not None:
			self._finalizer()
			self._finalizer = None
		self._ptr = None

	def __enter__(self) -> "NativeHandle":
		return self

	def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
		self.close()

	def __repr__(self) -> str:
		if self._ptr is None:
			return f"<{type(self).__name__} closed>"
		kind = "owned" if self._finalizer is not None else "borrowed"
		return f"<{type(self).__name__} {kind} 0x{self._ptr:x}>"


def handle_into_raw(handle: Optional[NativeHandle]) -> Optional[int]:
	if handle is None:
		return None
	return handle.into_raw()


# ---------------------------------------------------------------------------
# Error results
# ---------------------------------------------------------------------------


def result_unwrap(result: Any, convert: Optional[Callable[[Any], Any]] = None) -> Any:
	if result.is_err:
		raise BridgeError(string_take(result.payload.err))
	value = result.payload.ok
	if convert is None:
		return value
	return convert(value)


def result_check(result: Any) -> None:
	if result.is_err:
		raise BridgeError(string_take(result.payload.err))


def result_set_ok(out: Any, value: Any) -> None:
	result = out.contents
	result.is_err = False
	result.payload.ok = value


def result_set_unit(out: Any) -> None:
	result = out.contents
	result.is_err = False
	result.payload.ok = 0


def error_message(exc: BaseException) -> str:
	if isinstance(exc, BridgeError):
		return exc.message
	return str(exc) or type(exc).__name__


def result_set_err(out: Any, exc: BaseException) -> None:
	message = error_message(exc).encode("utf-8", "replace").decode("utf-8")
	result = out.contents
	result.payload.err = string_from_str(message)
	result.is_err = True
	logger.debug("host function failed: %r", exc)


def abort_on_unwind(name: str, exc: BaseException) -> NoReturn:
	"""An infallible host function raised; there is no way to report it to native code."""
	logger.critical("exception escaped infallible host function %s; aborting", name, exc_info=exc)
	os.abort()


# ---------------------------------------------------------------------------
# Call frames
# ---------------------------------------------------------------------------


class CallFrame:
	"""
	Temporaries lent to native code for one call.

	Used as a context manager around the native call. On exit, `&mut`
	arguments are copied back into the caller's objects, lent buffers are
	released, and the first exception raised inside a callback is re-raised.

	Owned arguments go through the `move_*` methods. Generated code calls
	`commit()` right after the native call; if the frame exits before that
	(a later argument failed to convert), every move is undone: allocated
	buffers are freed and handles and boxes get their ownership back.
	"""

	def __init__(self) -> None:
		self._keep: List[Any] = []
		self._cleanups: List[Callable[[bool], None]] = []
		self._captured: List[BaseException] = []
		self._rollbacks: List[Callable[[], None]] = []

	def __enter__(self) -> "CallFrame":
		return self

	def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
		ok = exc is None
		for rollback in reversed(self._rollbacks):
			rollback()
		self._rollbacks.clear()
		for cleanup in reversed(self._cleanups):
			cleanup(ok)
		self._cleanups.clear()
		self._keep.clear()
		if ok and self._captured:
			raise self._captured[0]
		return False

	def commit(self) -> None:
		"""Native code now owns everything moved through this frame."""
		self._rollbacks.clear()

	def move_string(self, text: str) -> Any:
		repr_ = string_from_str(text)
		self._rollbacks.append(lambda: string_release(repr_))
		return ctypes.byref(repr_)

	def move_vector(self, items: Sequence[Any], elem: Any) -> Any:
		repr_ = vector_from_seq(items, elem)
		self._rollbacks.append(lambda: vector_release(repr_))
		return ctypes.byref(repr_)

	def move_handle(self, handle: Optional[NativeHandle]) -> Optional[int]:
		if handle is None:
			return None
		ptr = handle.into_raw()
		self._rollbacks.append(lambda: handle._restore(ptr))
		return ptr

	def move_box(self, value: Any) -> int:
		if isinstance(value, OwnedHostValue):
			raw = value.into_raw()
			self._rollbacks.append(lambda: value._restore(raw))
		else:
			raw = HEAP.into_raw(value)
			self._rollbacks.append(lambda: HEAP.from_raw(raw))
		return raw

	def lend_string(self, text: str) -> Any:
		repr_ = string_from_str(text)
		self._cleanups.append(lambda ok: string_release(repr_))
		return ctypes.byref(repr_)

	def borrow_str(self, text: str) -> BorrowedString:
		data = text.encode("utf-8")
		buf = ctypes.create_string_buffer(data, len(data))
		self._keep.append(buf)
		return BorrowedString(ctypes.addressof(buf), len(data))

	def lend_vector(
		self,
		items: Any,
		elem: Any,
		mutable: bool = False,
		wrap: Optional[Callable[[Any], Any]] = None,
	) -> Any:
		repr_ = vector_from_seq(list(items), elem)

		def cleanup(ok: bool) -> None:
			if mutable and ok:
				items[:] = vector_view(repr_, elem, wrap)
			vector_release(repr_)

		self._cleanups.append(cleanup)
		return ctypes.byref(repr_)

	def borrow_slice(
		self,
		items: Any,
		elem: Any,
		mutable: bool = False,
		wrap: Optional[Callable[[Any], Any]] = None,
	) -> BorrowedSlice:
		count = len(items)
		if isinstance(items, ctypes.Array) and items._type_ is elem:
			array = items
		elif isinstance(items, bytearray) and ctypes.sizeof(elem) == 1:
			array = (elem * count).from_buffer(items)
		else:
			array = (elem * count)(*items)
			if mutable:

				def writeback(ok: bool) -> None:
					if ok:
						items[:] = _wrap_all(list(array), wrap)

				self._cleanups.append(writeback)
		self._keep.append(array)
		if not count:
			return BorrowedSlice(None, 0)
		return BorrowedSlice(ctypes.addressof(array), count)

	def lend_box(self, value: Any) -> int:
		if isinstance(value, OwnedHostValue):
			value = value.get()
		raw = HEAP.into_raw(value)
		self._cleanups.append(lambda ok: HEAP.from_raw(raw))
		return raw

	def callback(self, functype: Any, fn: Callable[..., Any]) -> CallbackHandle:
		"""Wrap a Python callable as a `CallbackHandle` valid for this call only."""
		default = None if functype._restype_ is None else 0

		def trampoline(*args: Any) -> Any:
			if self._captured:
				return default
			try:
				return fn(*args[:-1])
			except BaseException as exc:
				self._captured.append(exc)
				return default

		thunk = functype(trampoline)
		self._keep.append(thunk)
		return CallbackHandle(ctypes.cast(thunk, ctypes.c_void_p).value, None)


__all__ = [
	"open_library",
	"declare",
	"runtime_vtable",
	"install_runtime",
	"check_layout",
	"string_from_str",
	"string_view",
	"string_release",
	"string_take",
	"str_view",
	"vector_from_seq",
	"vector_view",
	"vector_release",
	"vector_take",
	"vector_store",
	"slice_view",
	"slice_array",
	"box_into_raw",
	"box_from_raw",
	"box_peek",
	"NativeHandle",
	"handle_into_raw",
	"result_unwrap",
	"result_check",
	"result_set_ok",
	"result_set_unit",
	"error_message",
	"result_set_err",
	"abort_on_unwind",
	"CallFrame",
]
