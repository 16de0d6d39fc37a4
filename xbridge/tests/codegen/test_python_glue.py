# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Generated host module, executed without a native library.

Each test loads the module fresh and swaps fakes into `_bridge_fns` in place
of the declared foreign functions, so the wrappers' conversions run exactly
as they would against a compiled library.
"""

import ctypes

import pytest

from xbridge.bridgec.pipeline import HOST_WORD_BITS, generate
from xbridge.runtime import abi, glue
from xbridge.runtime.errors import BindingError, BridgeError, LayoutError
from xbridge.runtime.heap import ALLOCATOR, HEAP, OwnedHostValue


@pytest.fixture
def bridge(generate_scenario, load_generated):
	text = generate_scenario().artifact("host-module").text
	return load_generated(text)


def test_module_surface(bridge) -> None:
	assert bridge.__doc__ == "Host bindings for the tests::ffi bridge."
	assert bridge.WORD_BITS == HOST_WORD_BITS
	assert [c.name for c in bridge.Color] == ["Red", "Green", "Blue"]
	assert bridge.Color.Green == 5
	assert bridge.Color.__doc__ == "Color of a thing."
	assert issubclass(bridge.C, glue.NativeHandle)
	assert bridge.C.get.__doc__ == "Current value."
	assert "c_return_primitive" in bridge.__all__
	assert "bind" in bridge.__all__
	assert "get" not in bridge.__all__
	assert "r_return_primitive" not in bridge.__all__


def test_struct_layouts_match_ctypes(bridge) -> None:
	assert [entry[0] for entry in bridge._LAYOUTS] == [bridge.Shared, bridge.Mixed]
	for cls, size, align, offsets in bridge._LAYOUTS:
		glue.check_layout(cls, size, align, offsets)


def test_bind_rejects_a_foreign_word_size(generate_scenario, load_generated) -> None:
	other = 32 if HOST_WORD_BITS == 64 else 64
	module = load_generated(generate_scenario(target_word_bits=other).artifact("host-module").text)
	with pytest.raises(LayoutError, match=f"{other}-bit"):
		module.bind("libdoes-not-exist.so")


def test_return_primitive(bridge) -> None:
	bridge._bridge_fns["c_return_primitive"] = lambda: 2020
	assert bridge.c_return_primitive() == 2020


def test_take_and_return_shared(bridge) -> None:
	seen = []
	bridge._bridge_fns["c_take_shared"] = lambda shared: seen.append(shared.z)
	bridge.c_take_shared(bridge.Shared(z=2020))
	assert seen == [2020]

	def fill(out):
		out._obj.z = 2020

	bridge._bridge_fns["c_return_shared"] = fill
	assert bridge.c_return_shared().z == 2020


def test_owned_vector_moves_to_native(bridge) -> None:
	before = ALLOCATOR.outstanding()
	seen = []
	bridge._bridge_fns["c_take_vec_u8"] = lambda ref: seen.append(glue.vector_take(ref._obj, ctypes.c_uint8))
	bridge.c_take_vec_u8([86, 75, 30, 9])
	assert seen == [[86, 75, 30, 9]]
	assert ALLOCATOR.outstanding() == before


def test_returned_string_is_taken(bridge) -> None:
	before = ALLOCATOR.outstanding()

	def produce(out):
		repr_ = glue.string_from_str("2020")
		out._obj.ptr, out._obj.len, out._obj.cap = repr_.ptr, repr_.len, repr_.cap

	bridge._bridge_fns["c_return_string"] = produce
	assert bridge.c_return_string() == "2020"
	assert ALLOCATOR.outstanding() == before


def test_borrowed_arguments_and_returns(bridge) -> None:
	bridge._bridge_fns["c_take_str"] = lambda s: len(glue.str_view(s))
	assert bridge.c_take_str("2020") == 4
	bridge._bridge_fns["c_take_slice"] = lambda s: sum(glue.slice_view(s, ctypes.c_uint32))
	assert bridge.c_take_slice([1, 2, 3]) == 6

	value = ctypes.c_size_t(2020)
	bridge._bridge_fns["c_return_ref"] = lambda shared: ctypes.pointer(value)
	assert bridge.c_return_ref(bridge.Shared(z=1)) == 2020

	text = ctypes.create_string_buffer(b"2020", 4)

	def view(shared, out):
		out._obj.ptr = ctypes.addressof(text)
		out._obj.len = 4

	bridge._bridge_fns["c_return_str"] = view
	assert bridge.c_return_str(bridge.Shared(z=1)) == "2020"


def test_mutable_vector_is_written_back(bridge) -> None:
	before = ALLOCATOR.outstanding()
	bridge._bridge_fns["c_take_mut_vec"] = lambda ref: glue.vector_store(ref._obj, [1, 2], ctypes.c_uint8)
	items = [9, 9, 9]
	bridge.c_take_mut_vec(items)
	assert items == [1, 2]
	assert ALLOCATOR.outstanding() == before


def test_enums_cross_as_integers(bridge) -> None:
	seen = []

	def fake(color):
		seen.append(color)
		return 5

	bridge._bridge_fns["c_take_enum"] = fake
	assert bridge.c_take_enum(bridge.Color.Blue) is bridge.Color.Green
	assert seen == [6]


def test_fallible_call_raises_native_message(bridge) -> None:
	before = ALLOCATOR.outstanding()

	def fail(out):
		out._obj.is_err = True
		out._obj.payload.err = glue.string_from_str("logic error")

	bridge._bridge_fns["c_fail_return_primitive"] = fail
	with pytest.raises(BridgeError) as excinfo:
		bridge.c_fail_return_primitive()
	assert excinfo.value.message == "logic error"
	assert ALLOCATOR.outstanding() == before

	bridge._bridge_fns["c_try_void"] = fail
	with pytest.raises(BridgeError, match="^logic error$"):
		bridge.c_try_void()


def test_fallible_call_returns_payload(bridge) -> None:
	def succeed(out):
		out._obj.is_err = False
		out._obj.payload.ok = glue.string_from_str("2020")

	bridge._bridge_fns["c_try_return_string"] = succeed
	assert bridge.c_try_return_string() == "2020"
	bridge._bridge_fns["c_try_void"] = lambda out: None
	assert bridge.c_try_void() is None


def test_native_handles(bridge) -> None:
	dropped = []
	bridge.C._drop = dropped.append
	bridge._bridge_fns["c_return_unique_ptr"] = lambda: 0x1230
	bridge._bridge_fns["C::get"] = lambda ptr: 7 if ptr == 0x1230 else 0
	bridge._bridge_fns["C::set"] = lambda ptr, n: n + 1
	bridge._bridge_fns["c_take_unique_ptr"] = lambda raw: raw

	with bridge.c_return_unique_ptr() as handle:
		assert handle.owned
		assert handle.get() == 7
		assert handle.set(2019) == 2020
	assert dropped == [0x1230]

	moved = bridge.c_return_unique_ptr()
	assert bridge.c_take_unique_ptr(moved) == 0x1230
	assert moved.closed
	moved.close()
	assert dropped == [0x1230]


def test_boxed_host_values_move_to_native(bridge) -> None:
	received = []
	bridge._bridge_fns["c_take_box"] = received.append
	bridge.c_take_box({"state": 1})
	(raw,) = received
	assert glue.box_peek(raw) == {"state": 1}
	HEAP.drop(raw)


def test_callbacks_receive_converted_arguments(bridge) -> None:
	functype = ctypes.CFUNCTYPE(ctypes.c_size_t, abi.BorrowedString, ctypes.c_void_p)
	text = ctypes.create_string_buffer(b"hello", 5)

	def invoke(handle):
		native = ctypes.cast(handle.trampoline, functype)
		return native(abi.BorrowedString(ctypes.addressof(text), 5), handle.ctx)

	bridge._bridge_fns["c_take_callback"] = invoke
	seen = []

	def callback(word):
		seen.append(word)
		return len(word)

	assert bridge.c_take_callback(callback) == 5
	assert seen == ["hello"]


def test_callback_exception_surfaces_after_the_call(bridge) -> None:
	functype = ctypes.CFUNCTYPE(ctypes.c_size_t, abi.BorrowedString, ctypes.c_void_p)
	calls = []

	def invoke(handle):
		native = ctypes.cast(handle.trampoline, functype)
		calls.append(native(abi.BorrowedString(None, 0), handle.ctx))
		calls.append(native(abi.BorrowedString(None, 0), handle.ctx))
		return 1

	def callback(word):
		raise ValueError("callback failed")

	bridge._bridge_fns["c_take_callback"] = invoke
	with pytest.raises(ValueError, match="callback failed"):
		bridge.c_take_callback(callback)
	assert calls == [0, 0]


class _Host:
	def r_return_primitive(self):
		return 2020

	def r_return_box(self):
		return "boxed"

	def r_take_string(self, s):
		return len(s)

	def r_return_shared(self):
		return self.shared(z=2020)

	def r_try_return_primitive(self):
		raise RuntimeError("host failure")

	def r_fail_void(self):
		raise BridgeError("kept verbatim")


@pytest.fixture
def host(bridge):
	impl = _Host()
	impl.shared = bridge.Shared
	bridge._host_impl = impl
	return impl


def test_host_trampolines_return_values(bridge, host) -> None:
	assert bridge._host_r_return_primitive() == 2020
	raw = bridge._host_r_return_box()
	assert HEAP.from_raw(raw) == "boxed"
	before = ALLOCATOR.outstanding()
	assert bridge._host_r_take_string(ctypes.pointer(glue.string_from_str("héllo"))) == 5
	assert ALLOCATOR.outstanding() == before
	out = ctypes.pointer(bridge.Shared())
	bridge._host_r_return_shared(out)
	assert out.contents.z == 2020


def test_host_errors_are_encoded_in_the_result(bridge, host) -> None:
	out = ctypes.pointer(abi.error_result(ctypes.c_size_t)())
	bridge._host_r_try_return_primitive(out)
	assert out.contents.is_err
	assert glue.string_take(out.contents.payload.err) == "host failure"

	unit = ctypes.pointer(abi.error_result(abi.Unit)())
	bridge._host_r_fail_void(unit)
	assert unit.contents.is_err
	assert glue.string_take(unit.contents.payload.err) == "kept verbatim"


def test_host_table_lists_every_host_function(bridge) -> None:
	assert bridge._HOST_FUNCTIONS == (
		"r_return_primitive",
		"r_return_box",
		"r_take_string",
		"r_return_shared",
		"r_try_return_primitive",
		"r_fail_void",
	)
	assert [name for name, _ in bridge._HostFns._fields_] == list(bridge._HOST_FUNCTIONS)


class _FakeFunction:
	restype = None
	argtypes = ()

	def __call__(self, *args):
		return None


class _FakeLibrary(ctypes.CDLL):
	"""Resolves every symbol to a no-op so `bind` can run without a compiled library."""

	def __init__(self):
		self._name = "fake"
		self._handle = 0
		self.symbols = []

	def __getitem__(self, symbol):
		self.symbols.append(symbol)
		return _FakeFunction()


def test_bind_requires_a_host_implementation(bridge) -> None:
	with pytest.raises(BindingError, match="host="):
		bridge.bind(_FakeLibrary())
	partial = type("Partial", (), {"r_return_primitive": lambda self: 1})()
	with pytest.raises(BindingError, match="r_return_box"):
		bridge.bind(_FakeLibrary(), host=partial)


def test_bind_installs_the_host_table(bridge) -> None:
	lib = _FakeLibrary()
	assert bridge.bind(lib, host=_Host()) is lib
	assert lib.symbols[0] == "tests$ffi$xbridge$install_runtime"
	assert lib.symbols[-1] == "tests$ffi$xbridge$install_host_fns"
	assert "tests$ffi$xbridge$C$get" in lib.symbols
	assert set(bridge._bridge_fns) >= {"c_return_primitive", "C::get", "C::set"}
	assert bridge._host_table.r_return_primitive() == 2020


MOVES = """\
namespace moves;

extern "Python" {
	type R;
}

extern "C++" {
	type C;

	fn c_take_all(c: UniquePtr<C>, s: String, v: Vec<u8>, label: &str) -> usize;
	fn c_take_box_and(r: Box<R>, items: &[u8]);
}
"""


@pytest.fixture
def moves(load_generated):
	result = generate(MOVES, file="moves.bridge")
	assert result.ok, [d.render() for d in result.diagnostics]
	module = load_generated(result.artifact("host-module").text, "moves_bridge")
	module.C._drop = lambda ptr: None
	return module


def test_failed_conversion_undoes_owned_moves(moves) -> None:
	before = ALLOCATOR.outstanding()
	calls = []
	moves._bridge_fns["c_take_all"] = lambda *args: calls.append(args)
	handle = moves.C._from_raw(0x40)
	with pytest.raises(UnicodeEncodeError):
		moves.c_take_all(handle, "text", [1, 2], "bad \ud800")
	assert calls == []
	assert handle.owned
	assert handle.as_ptr() == 0x40
	assert ALLOCATOR.outstanding() == before


def test_failed_conversion_returns_the_box(moves) -> None:
	live = HEAP.live()
	moves._bridge_fns["c_take_box_and"] = lambda raw, items: None
	value = OwnedHostValue("kept")
	with pytest.raises(TypeError):
		moves.c_take_box_and(value, [1, "two"])
	assert not value.moved
	assert value.get() == "kept"
	assert HEAP.live() == live


def test_committed_moves_belong_to_native(moves) -> None:
	before = ALLOCATOR.outstanding()

	def take_all(raw, s, v, label):
		assert glue.string_take(s._obj) == "text"
		assert glue.vector_take(v._obj, ctypes.c_uint8) == [1, 2]
		return raw + len(glue.str_view(label))

	moves._bridge_fns["c_take_all"] = take_all
	handle = moves.C._from_raw(0x40)
	assert moves.c_take_all(handle, "text", [1, 2], "ok") == 0x42
	assert handle.closed
	assert ALLOCATOR.outstanding() == before
