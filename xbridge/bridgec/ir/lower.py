# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lowering of a checked manifest into the Bridge IR.

Lowering assumes the manifest validated cleanly. Anything that contradicts
that (a struct field naming a struct that was never laid out, a method on a
type that is not a native opaque type) is a generator bug and raises
`InternalGeneratorError`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Optional, Sequence

from xbridge.bridgec.core.catalog import Direction, TypeKind
from xbridge.bridgec.core.diagnostics import InternalGeneratorError

from .layout import SUPPORTED_WORD_BITS, struct_layout
from .nodes import (
	BridgeIR,
	IrEnum,
	IrField,
	IrFunction,
	IrOpaque,
	IrParam,
	IrStruct,
	IrVariant,
	StructLayout,
	mangle,
)

if TYPE_CHECKING:
	from xbridge.bridgec.checker import CheckedManifest, CheckedParam

logger = logging.getLogger(__name__)


def _param(checked: CheckedParam) -> IrParam:
	return IrParam(name=checked.name, type=checked.type)


def lower(checked: CheckedManifest, word_bits: int, namespace: Optional[Sequence[str]] = None) -> BridgeIR:
	"""
	Build the IR for `checked` at the target word size.

	`namespace`, when given, replaces the namespace declared in the manifest.
	"""
	if word_bits not in SUPPORTED_WORD_BITS:
		raise ValueError(f"unsupported target word size {word_bits}; expected one of {SUPPORTED_WORD_BITS}")
	ns = tuple(namespace) if namespace is not None else tuple(checked.namespace)

	layouts: Dict[str, StructLayout] = {}
	structs = []
	for struct in checked.structs:
		layout = struct_layout([f.type for f in struct.fields], layouts, word_bits)
		layouts[struct.name] = layout
		docs = struct.field_docs or [None] * len(struct.fields)
		fields = tuple(IrField(f.name, f.type, doc) for f, doc in zip(struct.fields, docs))
		structs.append(IrStruct(name=struct.name, fields=fields, layout=layout, doc=struct.doc))
		logger.debug("struct %s: size=%d align=%d offsets=%s", struct.name, layout.size, layout.align, layout.offsets)

	enums = tuple(
		IrEnum(name=e.name, variants=tuple(IrVariant(v.name, v.value, v.doc) for v in e.variants), doc=e.doc)
		for e in checked.enums
	)

	opaque_types = []
	native_opaque = set()
	for opaque in checked.opaque_types:
		drop_symbol = None
		if opaque.direction is Direction.IMPLEMENTED_NATIVELY:
			drop_symbol = mangle(ns, "unique_ptr", opaque.name, "drop")
			native_opaque.add(opaque.name)
		opaque_types.append(IrOpaque(opaque.name, opaque.direction, drop_symbol, opaque.doc))

	functions = []
	for fn in checked.functions:
		receiver = _param(fn.receiver) if fn.receiver is not None else None
		if receiver is not None:
			if receiver.type.kind is not TypeKind.OPAQUE_NATIVE_HANDLE or receiver.type.name not in native_opaque:
				raise InternalGeneratorError(f"method {fn.name} has receiver {receiver.type.render()}")
			symbol = mangle(ns, receiver.type.name, fn.name)
		else:
			symbol = mangle(ns, fn.name)
		functions.append(
			IrFunction(
				name=fn.name,
				direction=fn.direction,
				symbol=symbol,
				params=tuple(_param(p) for p in fn.params),
				ret=fn.ret,
				fallible=fn.fallible,
				receiver=receiver,
				doc=fn.doc,
			)
		)

	return BridgeIR(
		namespace=ns,
		includes=tuple(checked.includes),
		structs=tuple(structs),
		enums=enums,
		opaque_types=tuple(opaque_types),
		functions=tuple(functions),
		word_bits=word_bits,
	)


__all__ = ["lower"]
