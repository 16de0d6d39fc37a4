# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Bridge IR: resolved, laid-out, mangled description of one bridge.

Both generators consume only this package; neither looks at the AST.
"""

from __future__ import annotations

from .layout import SUPPORTED_WORD_BITS, runtime_layouts, size_align, struct_layout
from .lower import lower
from .nodes import (
	BridgeIR,
	CallbackSig,
	IrEnum,
	IrField,
	IrFunction,
	IrOpaque,
	IrParam,
	IrStruct,
	IrType,
	IrVariant,
	StructLayout,
	mangle,
	passes_indirectly,
	returns_indirectly,
)

__all__ = [
	"SUPPORTED_WORD_BITS",
	"runtime_layouts",
	"size_align",
	"struct_layout",
	"lower",
	"BridgeIR",
	"CallbackSig",
	"IrEnum",
	"IrField",
	"IrFunction",
	"IrOpaque",
	"IrParam",
	"IrStruct",
	"IrType",
	"IrVariant",
	"StructLayout",
	"mangle",
	"passes_indirectly",
	"returns_indirectly",
]
