# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Semantic checking of bridge manifests.

The checker turns a parsed manifest into a `CheckedManifest` (every type
reference resolved to an `IrType`) and reports problems as diagnostics with
phase "checker". Generation only continues when no error was reported.
"""

from __future__ import annotations

from .validator import (
	CheckedEnum,
	CheckedFunction,
	CheckedManifest,
	CheckedOpaque,
	CheckedParam,
	CheckedStruct,
	CheckedVariant,
	ValidationResult,
	Validator,
	validate,
)

__all__ = [
	"CheckedEnum",
	"CheckedFunction",
	"CheckedManifest",
	"CheckedOpaque",
	"CheckedParam",
	"CheckedStruct",
	"CheckedVariant",
	"ValidationResult",
	"Validator",
	"validate",
]
