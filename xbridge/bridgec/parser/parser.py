# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lark-based parser for bridge manifests.

The manifest is not parsed in one go. `split_items` first cuts the source
into top-level items (brace and semicolon aware, skipping comments and string
literals), then each item is parsed on its own against the `item` start rule.
A syntax error therefore costs one item, not the rest of the file. The text
before an item is replaced by the same number of newlines and columns, so
lark reports absolute line/column positions.
"""

from __future__ import annotations

import codecs
from pathlib import Path
from typing import List, Optional, Tuple

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from .ast import (
	EnumDef,
	EnumVariant,
	ExternBlock,
	ExternItem,
	FnDecl,
	IncludeDecl,
	Item,
	Located,
	NamespaceDecl,
	OpaqueTypeDecl,
	Param,
	StructDef,
	StructField,
	TypeExpr,
)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="contextual",
	start="item",
	propagate_positions=True,
	maybe_placeholders=False,
)

_TERMINAL_LABELS = {
	"NAME": "identifier",
	"INT": "integer",
	"STRING": "string literal",
	"DOC_COMMENT": "doc comment",
	"$END": "end of item",
}


class ManifestSyntaxError(ValueError):
	"""
	Syntax error in one manifest item, with a position and readable message.

	Wraps the underlying exception (`raw`, a lark error or a string decoding
	error) so the caller can still inspect it.
	"""

	def __init__(self, message: str, loc: Located, raw: Optional[Exception] = None) -> None:
		super().__init__(message)
		self.message = message
		self.loc = loc
		self.raw = raw


# ---------------------------------------------------------------------------
# Item splitting
# ---------------------------------------------------------------------------


def _skip_string(source: str, i: int) -> int:
	"""Index just past the string literal starting at `source[i] == '"'`."""
	n = len(source)
	i += 1
	while i < n:
		ch = source[i]
		if ch == "\\":
			i += 2
			continue
		if ch == '"' or ch == "\n":
			return i + 1
		i += 1
	return n


def split_items(source: str) -> List[Tuple[int, int]]:
	"""
	Return `(start, end)` offsets of every top-level item.

	An item ends at a `;` outside braces or at the `}` closing its outermost
	brace. Leading `///` doc comments belong to the item that follows them.
	Anything left unterminated runs to the end of the source.
	"""
	items: List[Tuple[int, int]] = []
	n = len(source)
	i = 0
	start: Optional[int] = None
	depth = 0
	while i < n:
		if source.startswith("//", i):
			if start is None and source.startswith("///", i):
				start = i
			newline = source.find("\n", i)
			i = n if newline < 0 else newline
			continue
		if source.startswith("/*", i):
			close = source.find("*/", i + 2)
			if close < 0:
				# Unterminated comment: keep it so the lexer reports it.
				if start is None:
					start = i
				break
			i = close + 2
			continue
		ch = source[i]
		if ch.isspace():
			i += 1
			continue
		if start is None:
			start = i
		if ch == '"':
			i = _skip_string(source, i)
			continue
		if ch == "{":
			depth += 1
		elif ch == "}":
			depth -= 1
			if depth <= 0:
				items.append((start, i + 1))
				start = None
				depth = 0
		elif ch == ";" and depth == 0:
			items.append((start, i + 1))
			start = None
		i += 1
	if start is not None:
		items.append((start, n))
	return items


def _line_col(source: str, offset: int) -> Tuple[int, int]:
	line = source.count("\n", 0, offset) + 1
	column = offset - (source.rfind("\n", 0, offset) + 1) + 1
	return line, column


def _positioned(source: str, start: int, end: int) -> str:
	"""The item text, preceded by padding that puts it at its original line/column."""
	line, column = _line_col(source, start)
	return "\n" * (line - 1) + " " * (column - 1) + source[start:end]


# ---------------------------------------------------------------------------
# Error reporting
# ---------------------------------------------------------------------------


def _describe_terminal(name: str) -> str:
	if name in _TERMINAL_LABELS:
		return _TERMINAL_LABELS[name]
	try:
		term = _PARSER.get_terminal(name)
	except KeyError:
		return name.lower()
	value = getattr(term.pattern, "value", None)
	if term.pattern.type == "str" and value is not None:
		return f"'{value}'"
	return name.lower()


def _describe_expected(expected: object) -> str:
	labels = sorted({_describe_terminal(name) for name in (expected or ())})
	if not labels:
		return "nothing"
	if len(labels) > 8:
		labels = labels[:8] + ["..."]
	if len(labels) == 1:
		return labels[0]
	return ", ".join(labels[:-1]) + " or " + labels[-1]


def _syntax_error(err: UnexpectedInput, source: str, end: int) -> ManifestSyntaxError:
	if isinstance(err, UnexpectedCharacters):
		loc = Located(err.line, err.column, err.line, err.column + 1)
		return ManifestSyntaxError(f"unexpected character {err.char!r}", loc, err)
	tok = getattr(err, "token", None)
	if isinstance(err, UnexpectedEOF) or (isinstance(tok, Token) and tok.type == "$END"):
		line, column = _line_col(source, end)
		expected = _describe_expected(getattr(err, "expected", None))
		return ManifestSyntaxError(
			f"unexpected end of item; expected {expected}",
			Located(line, column, line, column),
			err,
		)
	if isinstance(err, UnexpectedToken):
		loc = _loc_from_token(err.token)
		expected = _describe_expected(err.expected)
		return ManifestSyntaxError(f"unexpected '{err.token.value}'; expected {expected}", loc, err)
	line = getattr(err, "line", None) or 1
	column = getattr(err, "column", None) or 1
	return ManifestSyntaxError(str(err), Located(line, column), err)


def parse_item(source: str, start: int = 0, end: Optional[int] = None) -> Item:
	"""
	Parse `source[start:end]` as one manifest item.

	Raises `ManifestSyntaxError` carrying an absolute position on failure.
	"""
	if end is None:
		end = len(source)
	try:
		tree = _PARSER.parse(_positioned(source, start, end))
	except UnexpectedInput as err:
		raise _syntax_error(err, source, end) from err
	return _build_item(tree)


# ---------------------------------------------------------------------------
# Tree -> AST
# ---------------------------------------------------------------------------


def _loc(tree: Tree) -> Located:
	meta = tree.meta
	return Located(
		line=meta.line,
		column=meta.column,
		end_line=getattr(meta, "end_line", None),
		end_column=getattr(meta, "end_column", None),
	)


def _loc_from_token(token: Token) -> Located:
	return Located(
		line=token.line,
		column=token.column,
		end_line=token.end_line,
		end_column=token.end_column,
	)


def _name(node: Tree | Token) -> str:
	if isinstance(node, Tree):
		data = node.data
		if isinstance(data, Token):
			return data.value
		return data
	if isinstance(node, Token):
		return node.type
	return str(node)


def _trees(tree: Tree, name: str) -> List[Tree]:
	return [c for c in tree.children if isinstance(c, Tree) and _name(c) == name]


def _token(tree: Tree, type_: str) -> Token:
	return next(c for c in tree.children if isinstance(c, Token) and c.type == type_)


def _doc(tree: Tree) -> Optional[str]:
	"""Text of the leading `///` lines, one optional space after the slashes dropped."""
	docs = _trees(tree, "doc")
	if not docs:
		return None
	lines = []
	for tok in docs[0].children:
		text = tok.value[3:]
		if text.startswith(" "):
			text = text[1:]
		lines.append(text.rstrip())
	return "\n".join(lines)


def _decode_string_token(tok: Token) -> str:
	"""
	Decode a STRING token. Python-style escapes are interpreted, then the code
	points are reinterpreted as bytes and decoded as UTF-8 so `\\xHH` escapes
	spell raw bytes.
	"""
	content = tok.value[1:-1]
	try:
		unescaped = codecs.decode(content, "unicode_escape")
		return unescaped.encode("latin-1").decode("utf-8")
	except UnicodeError as err:
		message = f"invalid string literal {tok.value}: {_unicode_reason(err)}"
		raise ManifestSyntaxError(message, _loc_from_token(tok), err) from err


def _unicode_reason(err: UnicodeError) -> str:
	if isinstance(err, UnicodeEncodeError):
		return "escapes above \\xff are not allowed; write the UTF-8 bytes"
	if isinstance(err, UnicodeDecodeError) and err.encoding == "utf-8":
		return "escaped bytes are not valid UTF-8"
	return getattr(err, "reason", None) or str(err)


def _parse_int(text: str) -> int:
	sign = -1 if text.startswith("-") else 1
	digits = text.lstrip("+-")
	if digits[:2] in ("0x", "0X"):
		return sign * int(digits[2:], 16)
	return sign * int(digits, 10)


def _build_item(tree: Tree) -> Item:
	node = tree.children[0] if _name(tree) == "item" else tree
	kind = _name(node)
	if kind == "namespace_decl":
		return _build_namespace(node)
	if kind == "struct_def":
		return _build_struct_def(node)
	if kind == "enum_def":
		return _build_enum_def(node)
	if kind == "extern_block":
		return _build_extern_block(node)
	raise ValueError(f"unexpected manifest item node {kind!r}")


def _build_namespace(tree: Tree) -> NamespaceDecl:
	path = _trees(tree, "path")[0]
	segments = [tok.value for tok in path.children if isinstance(tok, Token)]
	return NamespaceDecl(segments=segments, loc=_loc(path), doc=_doc(tree))


def _build_struct_def(tree: Tree) -> StructDef:
	name_token = _token(tree, "NAME")
	fields = []
	for node in _trees(tree, "field"):
		field_name = _token(node, "NAME")
		type_node = node.children[-1]
		fields.append(
			StructField(
				name=field_name.value,
				type_expr=_build_type(type_node),
				loc=_loc_from_token(field_name),
				doc=_doc(node),
			)
		)
	return StructDef(name=name_token.value, fields=fields, loc=_loc_from_token(name_token), doc=_doc(tree))


def _build_enum_def(tree: Tree) -> EnumDef:
	name_token = _token(tree, "NAME")
	variants = []
	for node in _trees(tree, "variant"):
		variant_name = _token(node, "NAME")
		value_tok = next((c for c in node.children if isinstance(c, Token) and c.type == "INT"), None)
		variants.append(
			EnumVariant(
				name=variant_name.value,
				value=_parse_int(value_tok.value) if value_tok is not None else None,
				loc=_loc_from_token(variant_name),
				doc=_doc(node),
			)
		)
	return EnumDef(name=name_token.value, variants=variants, loc=_loc_from_token(name_token), doc=_doc(tree))


def _build_extern_block(tree: Tree) -> ExternBlock:
	abi_token = _token(tree, "STRING")
	items: List[ExternItem] = []
	for node in tree.children:
		if not isinstance(node, Tree):
			continue
		kind = _name(node)
		if kind == "include_decl":
			path_tok = _token(node, "STRING")
			items.append(IncludeDecl(path=_decode_string_token(path_tok), loc=_loc_from_token(path_tok)))
		elif kind == "opaque_decl":
			name_tok = _token(node, "NAME")
			items.append(OpaqueTypeDecl(name=name_tok.value, loc=_loc_from_token(name_tok), doc=_doc(node)))
		elif kind == "fn_decl":
			items.append(_build_fn_decl(node))
	return ExternBlock(
		abi=_decode_string_token(abi_token),
		items=items,
		loc=_loc_from_token(abi_token),
		doc=_doc(tree),
	)


def _build_fn_decl(tree: Tree) -> FnDecl:
	name_token = _token(tree, "NAME")
	params = []
	for node in _trees(tree, "param"):
		param_name = _token(node, "NAME")
		params.append(
			Param(
				name=param_name.value,
				type_expr=_build_type(node.children[-1]),
				loc=_loc_from_token(param_name),
			)
		)
	ret, throws = None, False
	ret_nodes = _trees(tree, "ret")
	if ret_nodes:
		ret = _build_type(ret_nodes[0].children[0])
		if ret.name == "Result" and len(ret.args) == 1:
			ret, throws = ret.args[0], True
		if ret.name == "()":
			ret = None
	return FnDecl(
		name=name_token.value,
		params=params,
		ret=ret,
		throws=throws,
		loc=_loc_from_token(name_token),
		doc=_doc(tree),
	)


def _build_type(node: Tree | Token) -> TypeExpr:
	if isinstance(node, Token):
		return TypeExpr(name=node.value, loc=_loc_from_token(node))
	kind = _name(node)
	loc = _loc(node)
	if kind == "ref_type":
		mutable = any(isinstance(c, Token) and c.type == "MUT" for c in node.children)
		return TypeExpr(name="&", args=[_build_type(node.children[-1])], loc=loc, mutable=mutable)
	if kind == "slice_type":
		return TypeExpr(name="[]", args=[_build_type(node.children[0])], loc=loc)
	if kind == "unit_type":
		return TypeExpr(name="()", loc=loc)
	if kind == "fn_type":
		params = [_build_type(c) for c in node.children if not (isinstance(c, Tree) and _name(c) == "ret")]
		ret_nodes = _trees(node, "ret")
		ret = _build_type(ret_nodes[0].children[0]) if ret_nodes else None
		if ret is not None and ret.name == "()":
			ret = None
		return TypeExpr(name="fn", args=params, loc=loc, ret=ret)
	if kind == "named_type":
		name_tok = node.children[0]
		args = [_build_type(c) for c in node.children[1:]]
		return TypeExpr(name=name_tok.value, args=args, loc=loc)
	raise ValueError(f"unexpected type node {kind!r}")


__all__ = ["ManifestSyntaxError", "split_items", "parse_item"]
