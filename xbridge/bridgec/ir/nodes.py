# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Bridge IR: the single description both generators render.

All nodes are frozen. Types are fully resolved (`IrType`), struct layouts are
computed for the target word size, and every cross-boundary symbol name is
decided here so the host and native artifacts cannot disagree on it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

from xbridge.bridgec.core.catalog import Direction, PassingMode, TypeKind

MANGLE_TAG = "xbridge"


def mangle(namespace: Sequence[str], *parts: str) -> str:
	"""`tests::ffi` + (`C`, `get`) -> `tests$ffi$xbridge$C$get`."""
	return "$".join([*namespace, MANGLE_TAG, *parts])


@dataclass(frozen=True)
class CallbackSig:
	params: Tuple["IrType", ...]
	ret: Optional["IrType"] = None


@dataclass(frozen=True)
class IrType:
	"""
	A resolved bridge type.

	`name` is the primitive name for PRIMITIVE and the declared item name for
	user structs/enums and opaque types. `element` is the element type of
	OWNED_VECTOR and BORROWED_SLICE.
	"""

	kind: TypeKind
	mode: PassingMode = PassingMode.BY_VALUE
	name: str = ""
	element: Optional["IrType"] = None
	callback: Optional[CallbackSig] = None

	@property
	def is_borrow(self) -> bool:
		return self.mode is not PassingMode.BY_VALUE

	@property
	def is_mutable(self) -> bool:
		return self.mode is PassingMode.MUTABLE_BORROWED_REF

	def with_mode(self, mode: PassingMode) -> "IrType":
		return replace(self, mode=mode)

	def render(self) -> str:
		"""Manifest spelling, for messages and generated doc comments."""
		kind = self.kind
		if kind is TypeKind.BORROWED_STRING:
			return "&str"
		if kind is TypeKind.BORROWED_SLICE:
			prefix = "&mut " if self.is_mutable else "&"
			return f"{prefix}[{self.element.render()}]"
		if kind is TypeKind.CALLBACK_HANDLE:
			params = ", ".join(p.render() for p in self.callback.params)
			ret = f" -> {self.callback.ret.render()}" if self.callback.ret is not None else ""
			return f"fn({params}){ret}"
		if kind is TypeKind.OWNED_STRING:
			base = "String"
		elif kind is TypeKind.OWNED_VECTOR:
			base = f"Vec<{self.element.render()}>"
		elif kind is TypeKind.OPAQUE_NATIVE_HANDLE and not self.is_borrow:
			base = f"UniquePtr<{self.name}>"
		elif kind is TypeKind.OWNED_HOST_VALUE and not self.is_borrow:
			base = f"Box<{self.name}>"
		else:
			base = self.name
		if self.mode is PassingMode.BORROWED_REF:
			return f"&{base}"
		if self.mode is PassingMode.MUTABLE_BORROWED_REF:
			return f"&mut {base}"
		return base


_INDIRECT_ARG_KINDS = frozenset({TypeKind.OWNED_STRING, TypeKind.OWNED_VECTOR})
_INDIRECT_RETURN_KINDS = frozenset({TypeKind.USER_STRUCT, TypeKind.OWNED_STRING, TypeKind.OWNED_VECTOR})
_VIEW_KINDS = frozenset({TypeKind.BORROWED_STRING, TypeKind.BORROWED_SLICE})


def passes_indirectly(ty: IrType) -> bool:
	"""Owned strings and vectors travel as a pointer to their repr; the callee takes ownership."""
	return ty.kind in _INDIRECT_ARG_KINDS and not ty.is_borrow


def returns_indirectly(ty: Optional[IrType], fallible: bool) -> bool:
	"""Whether the return value is written through a trailing `return$` out-pointer."""
	if fallible:
		return True
	if ty is None:
		return False
	if ty.kind in _VIEW_KINDS:
		return True
	return ty.kind in _INDIRECT_RETURN_KINDS and not ty.is_borrow


@dataclass(frozen=True)
class StructLayout:
	size: int
	align: int
	offsets: Tuple[int, ...]


@dataclass(frozen=True)
class IrField:
	name: str
	type: IrType
	doc: Optional[str] = None


@dataclass(frozen=True)
class IrStruct:
	name: str
	fields: Tuple[IrField, ...]
	layout: StructLayout
	doc: Optional[str] = None


@dataclass(frozen=True)
class IrVariant:
	name: str
	value: int
	doc: Optional[str] = None


@dataclass(frozen=True)
class IrEnum:
	"""Always represented as a signed 32-bit integer."""

	name: str
	variants: Tuple[IrVariant, ...]
	doc: Optional[str] = None


@dataclass(frozen=True)
class IrOpaque:
	"""
	An opaque type. Native ones get a `unique_ptr` drop symbol; host ones only
	ever cross inside `Box<R>` or as `&R`.
	"""

	name: str
	direction: Direction
	drop_symbol: Optional[str] = None
	doc: Optional[str] = None


@dataclass(frozen=True)
class IrParam:
	name: str
	type: IrType

	@property
	def indirect(self) -> bool:
		return passes_indirectly(self.type)


@dataclass(frozen=True)
class IrFunction:
	name: str
	direction: Direction
	symbol: str
	params: Tuple[IrParam, ...]
	ret: Optional[IrType] = None
	fallible: bool = False
	receiver: Optional[IrParam] = None
	doc: Optional[str] = None

	@property
	def qualified_name(self) -> str:
		if self.receiver is not None:
			return f"{self.receiver.type.name}::{self.name}"
		return self.name

	@property
	def all_params(self) -> Tuple[IrParam, ...]:
		if self.receiver is not None:
			return (self.receiver, *self.params)
		return self.params

	@property
	def indirect_return(self) -> bool:
		return returns_indirectly(self.ret, self.fallible)

	@property
	def indirect_args(self) -> Tuple[str, ...]:
		return tuple(p.name for p in self.all_params if p.indirect)


@dataclass(frozen=True)
class BridgeIR:
	namespace: Tuple[str, ...]
	includes: Tuple[str, ...]
	structs: Tuple[IrStruct, ...]
	enums: Tuple[IrEnum, ...]
	opaque_types: Tuple[IrOpaque, ...]
	functions: Tuple[IrFunction, ...]
	word_bits: int

	@property
	def install_runtime_symbol(self) -> str:
		return mangle(self.namespace, "install_runtime")

	@property
	def install_host_fns_symbol(self) -> str:
		return mangle(self.namespace, "install_host_fns")

	@property
	def native_functions(self) -> Tuple[IrFunction, ...]:
		return tuple(f for f in self.functions if f.direction is Direction.IMPLEMENTED_NATIVELY)

	@property
	def host_functions(self) -> Tuple[IrFunction, ...]:
		return tuple(f for f in self.functions if f.direction is Direction.IMPLEMENTED_BY_HOST)

	@property
	def native_opaque_types(self) -> Tuple[IrOpaque, ...]:
		return tuple(o for o in self.opaque_types if o.direction is Direction.IMPLEMENTED_NATIVELY)

	@property
	def host_opaque_types(self) -> Tuple[IrOpaque, ...]:
		return tuple(o for o in self.opaque_types if o.direction is Direction.IMPLEMENTED_BY_HOST)

	def struct(self, name: str) -> IrStruct:
		return next(s for s in self.structs if s.name == name)

	def enum(self, name: str) -> IrEnum:
		return next(e for e in self.enums if e.name == name)

	def function(self, qualified_name: str) -> IrFunction:
		return next(f for f in self.functions if f.qualified_name == qualified_name)


__all__ = [
	"MANGLE_TAG",
	"mangle",
	"CallbackSig",
	"IrType",
	"passes_indirectly",
	"returns_indirectly",
	"StructLayout",
	"IrField",
	"IrStruct",
	"IrVariant",
	"IrEnum",
	"IrOpaque",
	"IrParam",
	"IrFunction",
	"BridgeIR",
]
