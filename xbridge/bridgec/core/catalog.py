# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Fixed catalog of types that may cross the bridge, and the legality matrix.

Everything here is module-level, read-only data. The checker consults it,
both generators rely on the guarantees it encodes, and nothing changes it at
runtime (mappings are wrapped in `MappingProxyType`).
"""

from __future__ import annotations

import keyword
from dataclasses import dataclass
from enum import Enum, auto
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional


class TypeKind(Enum):
	"""Kinds of bridge types; each has a fixed representation on both sides."""

	PRIMITIVE = auto()
	OWNED_STRING = auto()
	BORROWED_STRING = auto()
	OWNED_VECTOR = auto()
	BORROWED_SLICE = auto()
	OPAQUE_NATIVE_HANDLE = auto()
	OWNED_HOST_VALUE = auto()
	USER_STRUCT = auto()
	USER_ENUM = auto()
	CALLBACK_HANDLE = auto()
	ERROR_RESULT = auto()


class PassingMode(Enum):
	BY_VALUE = auto()
	BORROWED_REF = auto()
	MUTABLE_BORROWED_REF = auto()


class Direction(Enum):
	"""Which side provides the function body."""

	IMPLEMENTED_NATIVELY = auto()
	IMPLEMENTED_BY_HOST = auto()


@dataclass(frozen=True)
class Primitive:
	"""A scalar type; `size` is None for the word-sized `usize`/`isize`."""

	name: str
	cxx: str
	ctype: str
	size: Optional[int]
	is_float: bool = False

	def size_for(self, word_bits: int) -> int:
		if self.size is None:
			return word_bits // 8
		return self.size


PRIMITIVES: Mapping[str, Primitive] = MappingProxyType(
	{
		p.name: p
		for p in (
			Primitive("bool", "bool", "c_bool", 1),
			Primitive("u8", "::std::uint8_t", "c_uint8", 1),
			Primitive("u16", "::std::uint16_t", "c_uint16", 2),
			Primitive("u32", "::std::uint32_t", "c_uint32", 4),
			Primitive("u64", "::std::uint64_t", "c_uint64", 8),
			Primitive("usize", "::std::size_t", "c_size_t", None),
			Primitive("i8", "::std::int8_t", "c_int8", 1),
			Primitive("i16", "::std::int16_t", "c_int16", 2),
			Primitive("i32", "::std::int32_t", "c_int32", 4),
			Primitive("i64", "::std::int64_t", "c_int64", 8),
			Primitive("isize", "::std::ptrdiff_t", "c_ssize_t", None),
			Primitive("f32", "float", "c_float", 4, is_float=True),
			Primitive("f64", "double", "c_double", 8, is_float=True),
		)
	}
)

# Enums are always `enum class E : int32_t` / `ctypes.c_int32`.
ENUM_SIZE = 4
ENUM_MIN = -(2**31)
ENUM_MAX = 2**31 - 1

ABI_DIRECTIONS: Mapping[str, Direction] = MappingProxyType(
	{
		"C++": Direction.IMPLEMENTED_NATIVELY,
		"C": Direction.IMPLEMENTED_NATIVELY,
		"native": Direction.IMPLEMENTED_NATIVELY,
		"Python": Direction.IMPLEMENTED_BY_HOST,
		"host": Direction.IMPLEMENTED_BY_HOST,
	}
)

BUILTIN_GENERICS: Mapping[str, int] = MappingProxyType(
	{"Vec": 1, "Box": 1, "UniquePtr": 1, "Result": 1}
)

# C++ standard containers that only exist on the native side.
NATIVE_CONTAINER_NAMES: FrozenSet[str] = frozenset({"CxxString", "CxxVector", "Vector"})

RESERVED_NAMES: FrozenSet[str] = frozenset({"String", "str", *BUILTIN_GENERICS, *PRIMITIVES, *NATIVE_CONTAINER_NAMES})

# Names taken by generated entry points (`bind` in the host module, the
# runtime install symbols on the native side).
RESERVED_FUNCTION_NAMES: FrozenSet[str] = frozenset({"bind", "install_runtime", "install_host_fns"})

# Attributes of the generated host handle classes; methods cannot shadow them.
RESERVED_METHOD_NAMES: FrozenSet[str] = frozenset({"as_ptr", "into_raw", "close", "closed", "owned"})

CXX_KEYWORDS: FrozenSet[str] = frozenset(
	"""
	alignas alignof and and_eq asm auto bitand bitor bool break case catch char
	char8_t char16_t char32_t class compl concept const consteval constexpr
	constinit const_cast continue co_await co_return co_yield decltype default
	delete do double dynamic_cast else enum explicit export extern false float
	for friend goto if inline int long mutable namespace new noexcept not not_eq
	nullptr operator or or_eq private protected public register
	reinterpret_cast requires return short signed sizeof static static_assert
	static_cast struct switch template this thread_local throw true try typedef
	typeid typename union unsigned using virtual void volatile wchar_t while xor
	xor_eq
	""".split()
)

PYTHON_KEYWORDS: FrozenSet[str] = frozenset(keyword.kwlist)

_BOTH = frozenset(Direction)
_NATIVE = frozenset({Direction.IMPLEMENTED_NATIVELY})
_V = PassingMode.BY_VALUE
_R = PassingMode.BORROWED_REF
_M = PassingMode.MUTABLE_BORROWED_REF


@dataclass(frozen=True)
class KindRules:
	"""Directions in which each passing mode is legal, per position."""

	params: Mapping[PassingMode, FrozenSet[Direction]]
	returns: Mapping[PassingMode, FrozenSet[Direction]]


def _rules(params: dict, returns: dict) -> KindRules:
	return KindRules(MappingProxyType(params), MappingProxyType(returns))


# Borrowed returns are produced only by natively implemented functions.
# `&mut C` on an opaque native type is legal only as a receiver and is
# checked separately.
MATRIX: Mapping[TypeKind, KindRules] = MappingProxyType(
	{
		TypeKind.PRIMITIVE: _rules({_V: _BOTH, _R: _BOTH, _M: _BOTH}, {_V: _BOTH, _R: _NATIVE}),
		TypeKind.OWNED_STRING: _rules({_V: _BOTH, _R: _BOTH}, {_V: _BOTH, _R: _NATIVE}),
		TypeKind.BORROWED_STRING: _rules({_R: _BOTH}, {_R: _NATIVE}),
		TypeKind.OWNED_VECTOR: _rules({_V: _BOTH, _R: _BOTH, _M: _BOTH}, {_V: _BOTH, _R: _NATIVE}),
		TypeKind.BORROWED_SLICE: _rules({_R: _BOTH, _M: _BOTH}, {_R: _NATIVE}),
		TypeKind.OPAQUE_NATIVE_HANDLE: _rules({_V: _BOTH, _R: _BOTH}, {_V: _BOTH, _R: _NATIVE}),
		TypeKind.OWNED_HOST_VALUE: _rules({_V: _BOTH, _R: _BOTH}, {_V: _BOTH}),
		TypeKind.USER_STRUCT: _rules({_V: _BOTH, _R: _BOTH, _M: _BOTH}, {_V: _BOTH, _R: _NATIVE}),
		TypeKind.USER_ENUM: _rules({_V: _BOTH, _R: _BOTH, _M: _BOTH}, {_V: _BOTH, _R: _NATIVE}),
		TypeKind.CALLBACK_HANDLE: _rules({_V: _NATIVE}, {}),
		TypeKind.ERROR_RESULT: _rules({}, {_V: _BOTH}),
	}
)

# Kinds that may appear as struct fields and as vector/slice elements.
VALUE_KINDS: FrozenSet[TypeKind] = frozenset({TypeKind.PRIMITIVE, TypeKind.USER_STRUCT, TypeKind.USER_ENUM})

# Kinds a `Result<T>` payload may have (always by value).
FALLIBLE_PAYLOAD_KINDS: FrozenSet[TypeKind] = frozenset(
	{
		TypeKind.PRIMITIVE,
		TypeKind.OWNED_STRING,
		TypeKind.OWNED_VECTOR,
		TypeKind.OPAQUE_NATIVE_HANDLE,
		TypeKind.OWNED_HOST_VALUE,
		TypeKind.USER_STRUCT,
		TypeKind.USER_ENUM,
	}
)

CALLBACK_PARAM_TYPES: FrozenSet[tuple] = frozenset(
	{
		(TypeKind.PRIMITIVE, _V),
		(TypeKind.USER_ENUM, _V),
		(TypeKind.BORROWED_STRING, _R),
	}
)
CALLBACK_RETURN_KINDS: FrozenSet[TypeKind] = frozenset({TypeKind.PRIMITIVE, TypeKind.USER_ENUM})

# Size in machine words of the runtime types; identical for every manifest.
RUNTIME_WORDS: Mapping[str, int] = MappingProxyType(
	{
		"OwnedString": 3,
		"BorrowedString": 2,
		"OwnedVector": 3,
		"BorrowedSlice": 2,
		"OwnedHostValue": 1,
		"NativeHandle": 1,
		"CallbackHandle": 2,
	}
)


def param_allowed(kind: TypeKind, mode: PassingMode, direction: Direction) -> bool:
	return direction in MATRIX[kind].params.get(mode, frozenset())


def return_allowed(kind: TypeKind, mode: PassingMode, direction: Direction) -> bool:
	return direction in MATRIX[kind].returns.get(mode, frozenset())


_KIND_LABELS: Mapping[TypeKind, str] = MappingProxyType(
	{
		TypeKind.PRIMITIVE: "primitive",
		TypeKind.OWNED_STRING: "owned string",
		TypeKind.BORROWED_STRING: "borrowed string",
		TypeKind.OWNED_VECTOR: "owned vector",
		TypeKind.BORROWED_SLICE: "slice",
		TypeKind.OPAQUE_NATIVE_HANDLE: "opaque native type",
		TypeKind.OWNED_HOST_VALUE: "host type",
		TypeKind.USER_STRUCT: "struct",
		TypeKind.USER_ENUM: "enum",
		TypeKind.CALLBACK_HANDLE: "callback",
		TypeKind.ERROR_RESULT: "Result",
	}
)

_MODE_LABELS: Mapping[PassingMode, str] = MappingProxyType(
	{
		PassingMode.BY_VALUE: "by value",
		PassingMode.BORROWED_REF: "by shared reference",
		PassingMode.MUTABLE_BORROWED_REF: "by mutable reference",
	}
)


def describe_kind(kind: TypeKind) -> str:
	return _KIND_LABELS[kind]


def describe_mode(mode: PassingMode) -> str:
	return _MODE_LABELS[mode]


def describe_direction(direction: Direction) -> str:
	if direction is Direction.IMPLEMENTED_NATIVELY:
		return "natively implemented"
	return "host-implemented"


__all__ = [
	"TypeKind",
	"PassingMode",
	"Direction",
	"Primitive",
	"PRIMITIVES",
	"ENUM_SIZE",
	"ENUM_MIN",
	"ENUM_MAX",
	"ABI_DIRECTIONS",
	"BUILTIN_GENERICS",
	"NATIVE_CONTAINER_NAMES",
	"RESERVED_NAMES",
	"RESERVED_FUNCTION_NAMES",
	"RESERVED_METHOD_NAMES",
	"CXX_KEYWORDS",
	"PYTHON_KEYWORDS",
	"KindRules",
	"MATRIX",
	"VALUE_KINDS",
	"FALLIBLE_PAYLOAD_KINDS",
	"CALLBACK_PARAM_TYPES",
	"CALLBACK_RETURN_KINDS",
	"RUNTIME_WORDS",
	"param_allowed",
	"return_allowed",
	"describe_kind",
	"describe_mode",
	"describe_direction",
]
