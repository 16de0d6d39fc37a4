# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Surface AST for bridge manifests.

Nothing here is resolved: type names are kept as written and checked later.
Every node carries a `Located` so the checker can point at the exact text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union


@dataclass(frozen=True)
class Located:
	line: int
	column: int
	end_line: Optional[int] = None
	end_column: Optional[int] = None


@dataclass
class TypeExpr:
	"""
	A type as written.

	`name` is either an identifier (`usize`, `Vec`, `Shared`) or one of the
	structural markers `&` (reference; `mutable` tells `&mut`), `[]` (slice
	element in `args[0]`), `fn` (callback; params in `args`, `ret`) and `()`.
	"""

	name: str
	args: List["TypeExpr"] = field(default_factory=list)
	loc: Optional[Located] = None
	mutable: bool = False
	ret: Optional["TypeExpr"] = None

	def render(self) -> str:
		if self.name == "&":
			prefix = "&mut " if self.mutable else "&"
			return prefix + self.args[0].render()
		if self.name == "[]":
			return f"[{self.args[0].render()}]"
		if self.name == "()":
			return "()"
		if self.name == "fn":
			params = ", ".join(arg.render() for arg in self.args)
			ret = f" -> {self.ret.render()}" if self.ret is not None else ""
			return f"fn({params}){ret}"
		if self.args:
			return f"{self.name}<{', '.join(arg.render() for arg in self.args)}>"
		return self.name


@dataclass
class NamespaceDecl:
	segments: List[str]
	loc: Located
	doc: Optional[str] = None


@dataclass
class StructField:
	name: str
	type_expr: TypeExpr
	loc: Located
	doc: Optional[str] = None


@dataclass
class StructDef:
	name: str
	fields: List[StructField]
	loc: Located
	doc: Optional[str] = None


@dataclass
class EnumVariant:
	name: str
	value: Optional[int]
	loc: Located
	doc: Optional[str] = None


@dataclass
class EnumDef:
	name: str
	variants: List[EnumVariant]
	loc: Located
	doc: Optional[str] = None


@dataclass
class IncludeDecl:
	path: str
	loc: Located


@dataclass
class OpaqueTypeDecl:
	name: str
	loc: Located
	doc: Optional[str] = None


@dataclass
class Param:
	name: str
	type_expr: TypeExpr
	loc: Located


@dataclass
class FnDecl:
	"""
	A function signature inside an extern block.

	`ret` is the logical return type: for `-> Result<T>` the parser stores `T`
	and sets `throws`; `-> ()` and `-> Result<()>` leave `ret` empty.
	"""

	name: str
	params: List[Param]
	ret: Optional[TypeExpr]
	throws: bool
	loc: Located
	doc: Optional[str] = None


ExternItem = Union[IncludeDecl, OpaqueTypeDecl, FnDecl]


@dataclass
class ExternBlock:
	abi: str
	items: List[ExternItem]
	loc: Located
	doc: Optional[str] = None


Item = Union[NamespaceDecl, StructDef, EnumDef, ExternBlock]


@dataclass
class Manifest:
	items: List[Item] = field(default_factory=list)
	file: Optional[str] = None


__all__ = [
	"Located",
	"TypeExpr",
	"NamespaceDecl",
	"StructField",
	"StructDef",
	"EnumVariant",
	"EnumDef",
	"IncludeDecl",
	"OpaqueTypeDecl",
	"Param",
	"FnDecl",
	"ExternItem",
	"ExternBlock",
	"Item",
	"Manifest",
]
