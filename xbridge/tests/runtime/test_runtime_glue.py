# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Conversion helpers used by generated host modules."""

import ctypes

import pytest

from xbridge.runtime import abi, glue
from xbridge.runtime.errors import BindingError, BridgeError, LayoutError, OwnershipError
from xbridge.runtime.heap import ALLOCATOR, HEAP, OwnedHostValue


def test_string_round_trip_releases_buffer() -> None:
	before = ALLOCATOR.outstanding()
	repr_ = glue.string_from_str("héllo")
	assert repr_.len == len("héllo".encode("utf-8"))
	assert ALLOCATOR.outstanding() == before + 1
	assert glue.string_take(repr_) == "héllo"
	assert ALLOCATOR.outstanding() == before
	assert repr_.ptr is None


def test_empty_string_allocates_nothing() -> None:
	before = ALLOCATOR.outstanding()
	repr_ = glue.string_from_str("")
	assert ALLOCATOR.outstanding() == before
	assert glue.string_take(repr_) == ""


def test_vector_round_trip() -> None:
	before = ALLOCATOR.outstanding()
	repr_ = glue.vector_from_seq([86, 75, 30, 9], ctypes.c_uint8)
	assert (repr_.len, repr_.cap) == (4, 4)
	assert glue.vector_take(repr_, ctypes.c_uint8) == [86, 75, 30, 9]
	assert ALLOCATOR.outstanding() == before


def test_vector_store_replaces_contents() -> None:
	repr_ = glue.vector_from_seq([1, 2, 3], ctypes.c_int32)
	glue.vector_store(repr_, [9], ctypes.c_int32)
	assert glue.vector_take(repr_, ctypes.c_int32) == [9]


def test_result_unwrap_preserves_native_message() -> None:
	result = abi.error_result(ctypes.c_size_t)()
	result.is_err = True
	result.payload.err = glue.string_from_str("logic error")
	with pytest.raises(BridgeError) as excinfo:
		glue.result_unwrap(result)
	assert excinfo.value.message == "logic error"
	assert str(excinfo.value) == "logic error"


def test_result_unwrap_ok_applies_converter() -> None:
	result = abi.error_result(ctypes.c_int32)()
	result.payload.ok = 20
	assert glue.result_unwrap(result) == 20
	assert glue.result_unwrap(result, lambda v: v * 101) == 2020


def test_result_set_err_uses_exception_text() -> None:
	out = ctypes.pointer(abi.error_result(abi.Unit)())
	glue.result_set_err(out, ValueError("bad input"))
	assert out.contents.is_err
	assert glue.string_take(out.contents.payload.err) == "bad input"
	glue.result_set_err(out, BridgeError("kept verbatim"))
	assert glue.string_take(out.contents.payload.err) == "kept verbatim"
	glue.result_set_err(out, KeyboardInterrupt())
	assert glue.string_take(out.contents.payload.err) == "KeyboardInterrupt"


def test_result_set_err_replaces_unencodable_text() -> None:
	out = ctypes.pointer(abi.error_result(abi.Unit)())
	glue.result_set_err(out, ValueError("bad \ud800 text"))
	assert out.contents.is_err
	assert glue.string_take(out.contents.payload.err) == "bad ? text"


def test_vector_from_bad_items_frees_its_buffer() -> None:
	before = ALLOCATOR.outstanding()
	with pytest.raises(TypeError):
		glue.vector_from_seq([1, "two"], ctypes.c_uint8)
	assert ALLOCATOR.outstanding() == before


def test_call_frame_borrow_str_and_slice() -> None:
	with glue.CallFrame() as frame:
		view = frame.borrow_str("2020")
		assert glue.str_view(view) == "2020"
		items = frame.borrow_slice([1, 2, 3], ctypes.c_uint32)
		assert glue.slice_view(items, ctypes.c_uint32) == [1, 2, 3]


def test_call_frame_writes_back_mutable_vector() -> None:
	before = ALLOCATOR.outstanding()
	items = [1, 2, 3]
	with glue.CallFrame() as frame:
		ref = frame.lend_vector(items, ctypes.c_uint8, mutable=True)
		glue.vector_store(ref._obj, [4, 5], ctypes.c_uint8)
	assert items == [4, 5]
	assert ALLOCATOR.outstanding() == before


def test_call_frame_lend_box_reclaims() -> None:
	live = HEAP.live()
	with glue.CallFrame() as frame:
		raw = frame.lend_box(OwnedHostValue("boxed"))
		assert glue.box_peek(raw) == "boxed"
	assert HEAP.live() == live


def test_callback_exception_is_reraised_after_call() -> None:
	functype = ctypes.CFUNCTYPE(ctypes.c_int32, ctypes.c_int32, ctypes.c_void_p)

	def failing(value: int) -> int:
		raise ValueError(f"rejected {value}")

	with pytest.raises(ValueError, match="rejected 3"):
		with glue.CallFrame() as frame:
			handle = frame.callback(functype, failing)
			native = ctypes.cast(handle.trampoline, functype)
			assert native(3, None) == 0


def test_callback_passes_arguments_without_context() -> None:
	functype = ctypes.CFUNCTYPE(ctypes.c_int32, ctypes.c_int32, ctypes.c_void_p)
	with glue.CallFrame() as frame:
		handle = frame.callback(functype, lambda value: value * 2)
		assert handle.ctx is None
		assert ctypes.cast(handle.trampoline, functype)(1010, None) == 2020


def test_native_handle_cannot_be_constructed() -> None:
	with pytest.raises(TypeError):
		glue.NativeHandle()


def test_native_handle_ownership() -> None:
	dropped = []

	class Widget(glue.NativeHandle):
		__slots__ = ()

	with pytest.raises(BindingError):
		Widget._from_raw(0x10)
	Widget._drop = dropped.append
	owned = Widget._from_raw(0x10)
	assert owned.owned
	assert owned.into_raw() == 0x10
	assert owned.closed
	with pytest.raises(OwnershipError):
		owned.as_ptr()
	with Widget._from_raw(0x20) as scoped:
		assert scoped.as_ptr() == 0x20
	assert dropped == [0x20]
	borrowed = Widget._borrowed(ctypes.c_void_p(0x30))
	with pytest.raises(OwnershipError):
		borrowed.into_raw()
	borrowed.close()
	assert dropped == [0x20]


def test_check_layout_detects_mismatch() -> None:
	class Pair(ctypes.Structure):
		_fields_ = [("a", ctypes.c_uint8), ("b", ctypes.c_uint32)]

	glue.check_layout(Pair, 8, 4, (0, 4))
	with pytest.raises(LayoutError, match="Pair"):
		glue.check_layout(Pair, 5, 1, (0, 1))
