# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Lowering: mangled symbols, layouts and indirect-passing flags."""

import pytest

from xbridge.bridgec.core.catalog import Direction, TypeKind
from xbridge.bridgec.ir import StructLayout, mangle, runtime_layouts


def test_mangle_joins_namespace_tag_and_parts() -> None:
	assert mangle(("tests", "ffi"), "c_return_primitive") == "tests$ffi$xbridge$c_return_primitive"
	assert mangle(("tests", "ffi"), "C", "get") == "tests$ffi$xbridge$C$get"
	assert mangle((), "f") == "xbridge$f"


def test_symbols(generate_scenario) -> None:
	ir = generate_scenario(target_word_bits=64).ir
	assert ir.function("c_return_primitive").symbol == "tests$ffi$xbridge$c_return_primitive"
	assert ir.function("C::get").symbol == "tests$ffi$xbridge$C$get"
	assert ir.function("r_return_primitive").symbol == "tests$ffi$xbridge$r_return_primitive"
	(native,) = ir.native_opaque_types
	assert native.drop_symbol == "tests$ffi$xbridge$unique_ptr$C$drop"
	(host,) = ir.host_opaque_types
	assert host.drop_symbol is None
	assert ir.install_runtime_symbol == "tests$ffi$xbridge$install_runtime"
	assert ir.install_host_fns_symbol == "tests$ffi$xbridge$install_host_fns"


def test_namespace_override_changes_every_symbol(generate_scenario) -> None:
	ir = generate_scenario(namespace=("other",)).ir
	assert ir.namespace == ("other",)
	assert ir.function("C::set").symbol == "other$xbridge$C$set"
	assert ir.native_opaque_types[0].drop_symbol == "other$xbridge$unique_ptr$C$drop"


def test_directions_and_methods(generate_scenario) -> None:
	ir = generate_scenario().ir
	assert {f.name for f in ir.host_functions} == {
		"r_return_primitive",
		"r_return_box",
		"r_take_string",
		"r_return_shared",
		"r_try_return_primitive",
		"r_fail_void",
	}
	get = ir.function("C::get")
	assert get.direction is Direction.IMPLEMENTED_NATIVELY
	assert get.qualified_name == "C::get"
	assert [p.name for p in get.all_params] == ["self"]
	assert get.doc == "Current value."


def test_indirect_flags(generate_scenario) -> None:
	ir = generate_scenario().ir
	assert not ir.function("c_return_primitive").indirect_return
	assert ir.function("c_return_shared").indirect_return
	assert ir.function("c_return_string").indirect_return
	assert ir.function("c_return_str").indirect_return
	assert not ir.function("c_return_ref").indirect_return
	assert not ir.function("c_return_unique_ptr").indirect_return
	assert ir.function("c_fail_return_primitive").indirect_return
	assert ir.function("c_try_void").indirect_return
	assert ir.function("c_take_vec_u8").indirect_args == ("v",)
	assert ir.function("c_take_str").indirect_args == ()
	assert ir.function("c_take_mut_vec").indirect_args == ()
	assert ir.function("r_take_string").indirect_args == ("s",)


def test_enum_values_are_resolved(generate_scenario) -> None:
	color = generate_scenario().ir.enum("Color")
	assert [(v.name, v.value) for v in color.variants] == [("Red", 0), ("Green", 5), ("Blue", 6)]
	assert color.doc == "Color of a thing."


@pytest.mark.parametrize(
	"word_bits, shared, mixed",
	[
		(64, StructLayout(8, 8, (0,)), StructLayout(32, 8, (0, 8, 16, 24))),
		(32, StructLayout(4, 4, (0,)), StructLayout(24, 8, (0, 8, 16, 20))),
	],
)
def test_struct_layouts_follow_target_word_size(generate_scenario, word_bits, shared, mixed) -> None:
	ir = generate_scenario(target_word_bits=word_bits).ir
	assert ir.word_bits == word_bits
	assert ir.struct("Shared").layout == shared
	assert ir.struct("Mixed").layout == mixed
	inner = ir.struct("Mixed").fields[3]
	assert (inner.name, inner.type.kind) == ("inner", TypeKind.USER_STRUCT)


def test_runtime_layouts_are_whole_words() -> None:
	for word_bits in (32, 64):
		word = word_bits // 8
		layouts = runtime_layouts(word_bits)
		assert layouts["OwnedString"] == StructLayout(3 * word, word, (0, word, 2 * word))
		assert layouts["BorrowedString"].size == 2 * word
		assert layouts["OwnedHostValue"].size == word
	with pytest.raises(ValueError):
		runtime_layouts(16)
