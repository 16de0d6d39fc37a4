# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Manifest parsing entry points.

`parse_manifest` never raises on bad input: every syntax error becomes a
`Diagnostic` (phase "parser", code BRIDGE_SYNTAX) and the items that did
parse are still returned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from xbridge.bridgec.core.diagnostics import Diagnostic
from xbridge.bridgec.core.span import Span

from . import ast as manifest_ast
from .parser import ManifestSyntaxError, parse_item, split_items


@dataclass
class ParseResult:
	manifest: manifest_ast.Manifest
	diagnostics: List[Diagnostic] = field(default_factory=list)


def _syntax_diag(err: ManifestSyntaxError, file: Optional[str]) -> Diagnostic:
	span = Span(
		file=file,
		line=err.loc.line,
		column=err.loc.column,
		end_line=err.loc.end_line,
		end_column=err.loc.end_column,
		raw=err.raw,
	)
	return Diagnostic(message=err.message, code="BRIDGE_SYNTAX", phase="parser", severity="error", span=span)


def parse_manifest(source: str, *, file: Optional[str] = None) -> ParseResult:
	manifest = manifest_ast.Manifest(file=file)
	diagnostics: List[Diagnostic] = []
	for start, end in split_items(source):
		try:
			manifest.items.append(parse_item(source, start, end))
		except ManifestSyntaxError as err:
			diagnostics.append(_syntax_diag(err, file))
	return ParseResult(manifest=manifest, diagnostics=diagnostics)


def parse_item_source(source: str) -> manifest_ast.Item:
	"""Parse a source string that holds exactly one item; syntax errors raise."""
	items = split_items(source)
	if len(items) != 1:
		raise ValueError(f"expected exactly one item, found {len(items)}")
	start, end = items[0]
	return parse_item(source, start, end)


__all__ = [
	"ParseResult",
	"ManifestSyntaxError",
	"parse_manifest",
	"parse_item_source",
	"manifest_ast",
]
