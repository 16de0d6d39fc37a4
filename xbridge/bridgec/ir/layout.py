# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
C layout rules for bridge structs at a given target word size.

Fields are laid out in declaration order, each at the next offset aligned to
its natural alignment; the struct size is rounded up to its largest field
alignment. Scalars are assumed naturally aligned (a u64 aligns to 8 even on
32-bit targets).
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Sequence, Tuple

from xbridge.bridgec.core.catalog import ENUM_SIZE, PRIMITIVES, RUNTIME_WORDS, TypeKind
from xbridge.bridgec.core.diagnostics import InternalGeneratorError

from .nodes import IrType, StructLayout

SUPPORTED_WORD_BITS = (32, 64)


def _round_up(value: int, align: int) -> int:
	return (value + align - 1) // align * align


def size_align(ty: IrType, structs: Mapping[str, StructLayout], word_bits: int) -> Tuple[int, int]:
	"""Size and alignment of a by-value field type."""
	if ty.is_borrow:
		raise InternalGeneratorError(f"borrowed type {ty.render()} has no field layout")
	if ty.kind is TypeKind.PRIMITIVE:
		size = PRIMITIVES[ty.name].size_for(word_bits)
		return size, size
	if ty.kind is TypeKind.USER_ENUM:
		return ENUM_SIZE, ENUM_SIZE
	if ty.kind is TypeKind.USER_STRUCT:
		if ty.name not in structs:
			raise InternalGeneratorError(f"layout of struct {ty.name} requested before it was computed")
		layout = structs[ty.name]
		return layout.size, layout.align
	raise InternalGeneratorError(f"{ty.render()} cannot be a struct field")


def struct_layout(field_types: Sequence[IrType], structs: Mapping[str, StructLayout], word_bits: int) -> StructLayout:
	offset = 0
	align = 1
	offsets = []
	for ty in field_types:
		field_size, field_align = size_align(ty, structs, word_bits)
		offset = _round_up(offset, field_align)
		offsets.append(offset)
		offset += field_size
		align = max(align, field_align)
	return StructLayout(size=_round_up(offset, align), align=align, offsets=tuple(offsets))


def runtime_layouts(word_bits: int) -> Mapping[str, StructLayout]:
	"""Fixed layouts of the runtime types: every field is one machine word."""
	if word_bits not in SUPPORTED_WORD_BITS:
		raise ValueError(f"unsupported target word size {word_bits}; expected one of {SUPPORTED_WORD_BITS}")
	word = word_bits // 8
	return MappingProxyType(
		{
			name: StructLayout(size=words * word, align=word, offsets=tuple(i * word for i in range(words)))
			for name, words in RUNTIME_WORDS.items()
		}
	)


__all__ = ["SUPPORTED_WORD_BITS", "size_align", "struct_layout", "runtime_layouts"]
