# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Semantic validation of a parsed bridge manifest.

One pass over the items in declaration order. Types must be declared before
use (struct fields, parameters and returns may only name structs, enums and
opaque types that appear earlier; opaque types are visible to every
function of the block that declares them). Every type reference is resolved
against the catalog and the legality matrix; each problem is reported once,
at the type reference it concerns, and checking carries on so one run
reports everything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from xbridge.bridgec.core.catalog import (
	ABI_DIRECTIONS,
	BUILTIN_GENERICS,
	CALLBACK_PARAM_TYPES,
	CALLBACK_RETURN_KINDS,
	CXX_KEYWORDS,
	ENUM_MAX,
	ENUM_MIN,
	FALLIBLE_PAYLOAD_KINDS,
	NATIVE_CONTAINER_NAMES,
	PRIMITIVES,
	PYTHON_KEYWORDS,
	RESERVED_FUNCTION_NAMES,
	RESERVED_METHOD_NAMES,
	RESERVED_NAMES,
	VALUE_KINDS,
	Direction,
	PassingMode,
	TypeKind,
	describe_direction,
	describe_kind,
	describe_mode,
	param_allowed,
	return_allowed,
)
from xbridge.bridgec.core.diagnostics import Diagnostic
from xbridge.bridgec.core.span import Span
from xbridge.bridgec.ir.nodes import CallbackSig, IrType
from xbridge.bridgec.parser import ast

logger = logging.getLogger(__name__)

_BORROWED_VIEW_KINDS = frozenset({TypeKind.BORROWED_STRING, TypeKind.BORROWED_SLICE})


@dataclass
class CheckedParam:
	name: str
	type: IrType


@dataclass
class CheckedStruct:
	name: str
	fields: List[CheckedParam]
	doc: Optional[str] = None
	field_docs: List[Optional[str]] = field(default_factory=list)


@dataclass
class CheckedVariant:
	name: str
	value: int
	doc: Optional[str] = None


@dataclass
class CheckedEnum:
	name: str
	variants: List[CheckedVariant]
	doc: Optional[str] = None


@dataclass
class CheckedOpaque:
	name: str
	direction: Direction
	doc: Optional[str] = None


@dataclass
class CheckedFunction:
	name: str
	direction: Direction
	params: List[CheckedParam]
	ret: Optional[IrType]
	fallible: bool
	receiver: Optional[CheckedParam] = None
	doc: Optional[str] = None


@dataclass
class CheckedManifest:
	"""Manifest items with every type reference resolved, in declaration order."""

	namespace: List[str] = field(default_factory=list)
	includes: List[str] = field(default_factory=list)
	structs: List[CheckedStruct] = field(default_factory=list)
	enums: List[CheckedEnum] = field(default_factory=list)
	opaque_types: List[CheckedOpaque] = field(default_factory=list)
	functions: List[CheckedFunction] = field(default_factory=list)


@dataclass
class ValidationResult:
	checked: CheckedManifest
	diagnostics: List[Diagnostic] = field(default_factory=list)


@dataclass
class _Declared:
	kind: TypeKind
	loc: ast.Located


class Validator:
	"""
	Resolves and checks one manifest.

	Instances are single-use: create one per manifest and call `run()`.
	"""

	def __init__(self, manifest: ast.Manifest) -> None:
		self._manifest = manifest
		self._file = manifest.file
		self._diagnostics: List[Diagnostic] = []
		self._checked = CheckedManifest()
		# Types declared so far, and every type name declared anywhere (to
		# tell a forward reference from an unknown name).
		self._types: Dict[str, _Declared] = {}
		self._all_types: Dict[str, ast.Located] = {}
		# Top-level names (types and free functions) and methods (`C::get`).
		self._names: Dict[str, ast.Located] = {}
		self._methods: Dict[str, ast.Located] = {}

	# -- diagnostics -------------------------------------------------------

	def _error(self, message: str, code: str, loc: Optional[ast.Located], notes: Optional[List[str]] = None) -> None:
		self._diagnostics.append(
			Diagnostic(
				message=message,
				code=code,
				phase="checker",
				severity="error",
				span=Span.from_loc(loc, file=self._file),
				notes=list(notes or []),
			)
		)

	# -- entry -------------------------------------------------------------

	def run(self) -> ValidationResult:
		self._collect_type_names()
		for index, item in enumerate(self._manifest.items):
			if isinstance(item, ast.NamespaceDecl):
				self._check_namespace(item, index)
			elif isinstance(item, ast.StructDef):
				self._check_struct(item)
			elif isinstance(item, ast.EnumDef):
				self._check_enum(item)
			elif isinstance(item, ast.ExternBlock):
				self._check_extern_block(item)
		logger.debug(
			"validated %s: %d functions, %d diagnostics",
			self._file or "<manifest>",
			len(self._checked.functions),
			len(self._diagnostics),
		)
		return ValidationResult(checked=self._checked, diagnostics=self._diagnostics)

	def _collect_type_names(self) -> None:
		for item in self._manifest.items:
			if isinstance(item, (ast.StructDef, ast.EnumDef)):
				self._all_types.setdefault(item.name, item.loc)
			elif isinstance(item, ast.ExternBlock):
				for sub in item.items:
					if isinstance(sub, ast.OpaqueTypeDecl):
						self._all_types.setdefault(sub.name, sub.loc)

	# -- names -------------------------------------------------------------

	def _check_identifier(self, name: str, loc: ast.Located, what: str) -> bool:
		if name.startswith("__"):
			self._error(f"{what} `{name}`: identifiers starting with `__` are reserved", "BRIDGE_RESERVED_NAME", loc)
			return False
		if name in CXX_KEYWORDS or name in PYTHON_KEYWORDS:
			self._error(
				f"{what} `{name}` is a keyword in the generated C++ or Python code",
				"BRIDGE_RESERVED_NAME",
				loc,
			)
			return False
		return True

	def _declare_item_name(self, name: str, loc: ast.Located, what: str) -> bool:
		if not self._check_identifier(name, loc, what):
			return False
		if name.startswith("_"):
			self._error(f"{what} `{name}`: item names must not start with `_`", "BRIDGE_RESERVED_NAME", loc)
			return False
		if name in RESERVED_NAMES:
			self._error(f"`{name}` is a built-in bridge type and cannot be redefined", "BRIDGE_RESERVED_NAME", loc)
			return False
		previous = self._names.get(name)
		if previous is not None:
			self._error(
				f"duplicate definition of `{name}`",
				"BRIDGE_DUPLICATE_NAME",
				loc,
				notes=[f"previous definition at line {previous.line}"],
			)
			return False
		self._names[name] = loc
		return True

	def _declare_type(self, name: str, kind: TypeKind, loc: ast.Located, what: str) -> bool:
		if not self._declare_item_name(name, loc, what):
			return False
		self._types[name] = _Declared(kind, loc)
		return True

	# -- items -------------------------------------------------------------

	def _check_namespace(self, item: ast.NamespaceDecl, index: int) -> None:
		if self._checked.namespace:
			self._error("only one namespace declaration is allowed", "BRIDGE_NAMESPACE", item.loc)
			return
		if index != 0:
			self._error("the namespace declaration must come before all other items", "BRIDGE_NAMESPACE", item.loc)
			return
		for segment in item.segments:
			if segment in CXX_KEYWORDS or segment.startswith("__"):
				self._error(f"`{segment}` cannot be used as a namespace segment", "BRIDGE_NAMESPACE", item.loc)
				return
		self._checked.namespace = list(item.segments)

	def _check_struct(self, item: ast.StructDef) -> None:
		ok = True
		if not item.fields:
			self._error(f"struct `{item.name}` must have at least one field", "BRIDGE_EMPTY_STRUCT", item.loc)
			ok = False
		fields: List[CheckedParam] = []
		seen: Dict[str, ast.Located] = {}
		for fld in item.fields:
			if fld.name in seen:
				self._error(
					f"duplicate field `{fld.name}` in struct `{item.name}`",
					"BRIDGE_DUPLICATE_NAME",
					fld.loc,
					notes=[f"previous field at line {seen[fld.name].line}"],
				)
				ok = False
				continue
			seen[fld.name] = fld.loc
			if not self._check_identifier(fld.name, fld.loc, "field"):
				ok = False
				continue
			if fld.type_expr.name == item.name and not fld.type_expr.args:
				self._error(
					f"struct `{item.name}` cannot contain itself",
					"BRIDGE_RECURSIVE_STRUCT",
					fld.type_expr.loc,
				)
				ok = False
				continue
			ty = self._resolve_type(fld.type_expr)
			if ty is None:
				ok = False
				continue
			if ty.kind not in VALUE_KINDS or ty.is_borrow:
				self._error(
					f"field `{fld.name}` has type `{ty.render()}`; struct fields must be primitives, "
					"enums or previously declared structs",
					"BRIDGE_INVALID_FIELD_TYPE",
					fld.type_expr.loc,
				)
				ok = False
				continue
			fields.append(CheckedParam(fld.name, ty))
		if not self._declare_type(item.name, TypeKind.USER_STRUCT, item.loc, "struct"):
			return
		if ok:
			self._checked.structs.append(
				CheckedStruct(
					name=item.name,
					fields=fields,
					doc=item.doc,
					field_docs=[fld.doc for fld in item.fields],
				)
			)

	def _check_enum(self, item: ast.EnumDef) -> None:
		if not self._declare_type(item.name, TypeKind.USER_ENUM, item.loc, "enum"):
			return
		if not item.variants:
			self._error(f"enum `{item.name}` must have at least one variant", "BRIDGE_EMPTY_ENUM", item.loc)
			return
		variants: List[CheckedVariant] = []
		names: Dict[str, ast.Located] = {}
		values: Dict[int, str] = {}
		next_value = 0
		for variant in item.variants:
			value = variant.value if variant.value is not None else next_value
			next_value = value + 1
			if variant.name in names:
				self._error(
					f"duplicate variant `{variant.name}` in enum `{item.name}`",
					"BRIDGE_DUPLICATE_NAME",
					variant.loc,
					notes=[f"previous variant at line {names[variant.name].line}"],
				)
				continue
			names[variant.name] = variant.loc
			if not self._check_identifier(variant.name, variant.loc, "variant"):
				continue
			if not ENUM_MIN <= value <= ENUM_MAX:
				self._error(
					f"discriminant {value} of `{item.name}::{variant.name}` does not fit in a 32-bit signed integer",
					"BRIDGE_ENUM_RANGE",
					variant.loc,
				)
				continue
			if value in values:
				self._error(
					f"discriminant {value} of `{item.name}::{variant.name}` is already used by `{values[value]}`",
					"BRIDGE_DUPLICATE_DISCRIMINANT",
					variant.loc,
				)
				continue
			values[value] = variant.name
			variants.append(CheckedVariant(variant.name, value, variant.doc))
		self._checked.enums.append(CheckedEnum(name=item.name, variants=variants, doc=item.doc))

	def _check_extern_block(self, block: ast.ExternBlock) -> None:
		direction = ABI_DIRECTIONS.get(block.abi)
		if direction is None:
			choices = ", ".join(f'"{abi}"' for abi in ABI_DIRECTIONS)
			self._error(f'unknown extern ABI "{block.abi}"; expected one of {choices}', "BRIDGE_UNKNOWN_ABI", block.loc)
			return
		opaque_kind = (
			TypeKind.OPAQUE_NATIVE_HANDLE if direction is Direction.IMPLEMENTED_NATIVELY else TypeKind.OWNED_HOST_VALUE
		)
		block_opaques: Set[str] = set()
		for sub in block.items:
			if isinstance(sub, ast.OpaqueTypeDecl):
				if self._declare_type(sub.name, opaque_kind, sub.loc, "type"):
					block_opaques.add(sub.name)
					self._checked.opaque_types.append(CheckedOpaque(sub.name, direction, sub.doc))
		for sub in block.items:
			if isinstance(sub, ast.IncludeDecl):
				if direction is Direction.IMPLEMENTED_BY_HOST:
					self._error(
						"include! is only allowed in natively implemented extern blocks",
						"BRIDGE_INCLUDE_IN_HOST_BLOCK",
						sub.loc,
					)
				else:
					self._checked.includes.append(sub.path)
			elif isinstance(sub, ast.FnDecl):
				self._check_function(sub, direction, block_opaques)

	# -- functions ---------------------------------------------------------

	def _check_function(self, fn: ast.FnDecl, direction: Direction, block_opaques: Set[str]) -> None:
		ok = True
		receiver: Optional[CheckedParam] = None
		params: List[CheckedParam] = []
		seen: Dict[str, ast.Located] = {}
		for index, param in enumerate(fn.params):
			if param.name in seen:
				self._error(
					f"duplicate parameter `{param.name}` in function `{fn.name}`",
					"BRIDGE_DUPLICATE_NAME",
					param.loc,
					notes=[f"previous parameter at line {seen[param.name].line}"],
				)
				ok = False
				continue
			seen[param.name] = param.loc
			if param.name == "self":
				if index != 0:
					self._error("`self` must be the first parameter", "BRIDGE_RECEIVER", param.loc)
					ok = False
					continue
				receiver = self._check_receiver(param, direction, block_opaques)
				ok = ok and receiver is not None
				continue
			if not self._check_identifier(param.name, param.loc, "parameter"):
				ok = False
				continue
			if param.name.startswith("_"):
				self._error(
					f"parameter `{param.name}`: names starting with `_` are reserved for generated glue",
					"BRIDGE_RESERVED_NAME",
					param.loc,
				)
				ok = False
				continue
			if param.name in self._all_types:
				self._error(
					f"parameter `{param.name}` in function `{fn.name}` shadows the type `{param.name}`",
					"BRIDGE_DUPLICATE_NAME",
					param.loc,
					notes=[f"`{param.name}` is declared at line {self._all_types[param.name].line}"],
				)
				ok = False
				continue
			ty = self._resolve_type(param.type_expr)
			if ty is None:
				ok = False
				continue
			if not self._check_param_mode(ty, direction, param.type_expr):
				ok = False
				continue
			params.append(CheckedParam(param.name, ty))

		ret: Optional[IrType] = None
		if fn.ret is not None:
			ret = self._resolve_type(fn.ret)
			if ret is None:
				ok = False
			elif not self._check_return(fn, ret, direction, receiver, params):
				ok = False

		qualified = f"{receiver.type.name}::{fn.name}" if receiver is not None else fn.name
		if not self._declare_function_name(fn, qualified, receiver is not None):
			return
		if ok:
			self._checked.functions.append(
				CheckedFunction(
					name=fn.name,
					direction=direction,
					params=params,
					ret=ret,
					fallible=fn.throws,
					receiver=receiver,
					doc=fn.doc,
				)
			)

	def _declare_function_name(self, fn: ast.FnDecl, qualified: str, is_method: bool) -> bool:
		if fn.name in RESERVED_FUNCTION_NAMES:
			self._error(f"`{fn.name}` is reserved for generated bridge entry points", "BRIDGE_RESERVED_NAME", fn.loc)
			return False
		if not is_method:
			return self._declare_item_name(fn.name, fn.loc, "function")
		if not self._check_identifier(fn.name, fn.loc, "method"):
			return False
		if fn.name in RESERVED_METHOD_NAMES or fn.name.startswith("_"):
			self._error(f"method name `{fn.name}` is reserved on handle types", "BRIDGE_RESERVED_NAME", fn.loc)
			return False
		previous = self._methods.get(qualified)
		if previous is not None:
			self._error(
				f"duplicate definition of `{qualified}`",
				"BRIDGE_DUPLICATE_NAME",
				fn.loc,
				notes=[f"previous definition at line {previous.line}"],
			)
			return False
		self._methods[qualified] = fn.loc
		return True

	def _check_receiver(self, param: ast.Param, direction: Direction, block_opaques: Set[str]) -> Optional[CheckedParam]:
		expr = param.type_expr
		if direction is Direction.IMPLEMENTED_BY_HOST:
			self._error("methods are only supported on opaque native types", "BRIDGE_RECEIVER", expr.loc)
			return None
		target = expr.args[0] if expr.name == "&" else None
		if target is None or target.args or target.name not in block_opaques:
			self._error(
				f"receiver must be `&C` or `&mut C` for an opaque type `C` declared in this extern block, "
				f"found `{expr.render()}`",
				"BRIDGE_RECEIVER",
				expr.loc,
			)
			return None
		mode = PassingMode.MUTABLE_BORROWED_REF if expr.mutable else PassingMode.BORROWED_REF
		return CheckedParam("self", IrType(TypeKind.OPAQUE_NATIVE_HANDLE, mode, name=target.name))

	def _check_param_mode(self, ty: IrType, direction: Direction, expr: ast.TypeExpr) -> bool:
		if ty.kind is TypeKind.OPAQUE_NATIVE_HANDLE and ty.is_mutable:
			self._error(
				f"`{ty.render()}` is only allowed as a method receiver (`self: {ty.render()}`)",
				"BRIDGE_ILLEGAL_PASSING_MODE",
				expr.loc,
			)
			return False
		if not param_allowed(ty.kind, ty.mode, direction):
			self._error(
				f"{describe_kind(ty.kind)} `{ty.render()}` cannot be passed {describe_mode(ty.mode)} "
				f"to a {describe_direction(direction)} function",
				"BRIDGE_ILLEGAL_PASSING_MODE",
				expr.loc,
			)
			return False
		return True

	def _check_return(
		self,
		fn: ast.FnDecl,
		ret: IrType,
		direction: Direction,
		receiver: Optional[CheckedParam],
		params: List[CheckedParam],
	) -> bool:
		borrowed = ret.is_borrow or ret.kind in _BORROWED_VIEW_KINDS
		if fn.throws:
			if borrowed:
				self._error(
					f"fallible function `{fn.name}` cannot return borrowed `{ret.render()}`; "
					"return an owned or value type",
					"BRIDGE_FALLIBLE_BORROW",
					fn.ret.loc,
				)
				return False
			if ret.kind not in FALLIBLE_PAYLOAD_KINDS:
				self._error(
					f"{describe_kind(ret.kind)} `{ret.render()}` cannot be returned inside `Result`",
					"BRIDGE_ILLEGAL_PASSING_MODE",
					fn.ret.loc,
				)
				return False
		elif borrowed and direction is Direction.IMPLEMENTED_BY_HOST:
			self._error(
				f"host-implemented function `{fn.name}` cannot return borrowed `{ret.render()}`; "
				"return an owned or value type",
				"BRIDGE_UNSUPPORTED",
				fn.ret.loc,
			)
			return False
		elif not return_allowed(ret.kind, ret.mode, direction):
			self._error(
				f"{describe_kind(ret.kind)} `{ret.render()}` cannot be returned {describe_mode(ret.mode)} "
				f"from a {describe_direction(direction)} function",
				"BRIDGE_ILLEGAL_PASSING_MODE",
				fn.ret.loc,
			)
			return False
		if borrowed:
			candidates = ([receiver] if receiver is not None else []) + params
			if not any(p.type.is_borrow or p.type.kind in _BORROWED_VIEW_KINDS for p in candidates):
				self._error(
					f"function `{fn.name}` returns borrowed `{ret.render()}` but has no borrowed "
					"parameter it could borrow from",
					"BRIDGE_MISSING_LIFETIME_SOURCE",
					fn.ret.loc,
				)
				return False
		return True

	# -- types -------------------------------------------------------------

	def _resolve_type(self, expr: ast.TypeExpr) -> Optional[IrType]:
		"""Resolve a type in field, parameter or return position; None after reporting."""
		name = expr.name
		if name == "&":
			return self._resolve_ref(expr)
		if name == "[]":
			self._error(
				f"slice type `{expr.render()}` must be borrowed, as `&{expr.render()}`",
				"BRIDGE_UNSIZED_TYPE",
				expr.loc,
			)
			return None
		if name == "fn":
			return self._resolve_callback(expr)
		if name == "()":
			self._error("`()` is only valid as a return type", "BRIDGE_INVALID_TYPE", expr.loc)
			return None
		if name == "str":
			self._error("`str` must be borrowed, as `&str`", "BRIDGE_UNSIZED_TYPE", expr.loc)
			return None
		return self._resolve_named(expr, behind_ref=False)

	def _resolve_ref(self, expr: ast.TypeExpr) -> Optional[IrType]:
		inner = expr.args[0]
		mode = PassingMode.MUTABLE_BORROWED_REF if expr.mutable else PassingMode.BORROWED_REF
		if inner.name == "str" and not inner.args:
			if expr.mutable:
				self._error("`&mut str` is not supported", "BRIDGE_INVALID_TYPE", expr.loc)
				return None
			return IrType(TypeKind.BORROWED_STRING, PassingMode.BORROWED_REF)
		if inner.name == "[]":
			element = self._resolve_element(inner.args[0], expr)
			if element is None:
				return None
			return IrType(TypeKind.BORROWED_SLICE, mode, element=element)
		if inner.name in ("&", "fn", "()", "Result"):
			self._error(f"`{expr.render()}` is not a supported reference type", "BRIDGE_INVALID_TYPE", expr.loc)
			return None
		if inner.name in ("UniquePtr", "Box"):
			pointee = inner.args[0].render() if inner.args else "T"
			self._error(
				f"cannot borrow an owning `{inner.name}`; borrow the pointee instead, as `&{pointee}`",
				"BRIDGE_INVALID_TYPE",
				expr.loc,
			)
			return None
		resolved = self._resolve_named(inner, behind_ref=True)
		if resolved is None:
			return None
		return resolved.with_mode(mode)

	def _resolve_named(self, expr: ast.TypeExpr, behind_ref: bool) -> Optional[IrType]:
		name = expr.name
		if name in BUILTIN_GENERICS:
			return self._resolve_generic(expr)
		if expr.args:
			self._error(f"`{name}` does not take type arguments", "BRIDGE_INVALID_TYPE", expr.loc)
			return None
		if name in PRIMITIVES:
			return IrType(TypeKind.PRIMITIVE, name=name)
		if name == "String":
			return IrType(TypeKind.OWNED_STRING)
		declared = self._lookup(name, expr.loc)
		if declared is None:
			return None
		if declared.kind in (TypeKind.USER_STRUCT, TypeKind.USER_ENUM):
			return IrType(declared.kind, name=name)
		if not behind_ref:
			owner = "UniquePtr" if declared.kind is TypeKind.OPAQUE_NATIVE_HANDLE else "Box"
			self._error(
				f"opaque type `{name}` cannot be passed by value; use `{owner}<{name}>` or `&{name}`",
				"BRIDGE_ILLEGAL_PASSING_MODE",
				expr.loc,
			)
			return None
		return IrType(declared.kind, name=name)

	def _resolve_generic(self, expr: ast.TypeExpr) -> Optional[IrType]:
		name = expr.name
		if name == "Result":
			self._error("`Result` is only allowed as a function's return type", "BRIDGE_INVALID_TYPE", expr.loc)
			return None
		if len(expr.args) != BUILTIN_GENERICS[name]:
			self._error(f"`{name}` takes exactly one type argument", "BRIDGE_INVALID_TYPE", expr.loc)
			return None
		arg = expr.args[0]
		if name == "Vec":
			element = self._resolve_element(arg, expr)
			if element is None:
				return None
			return IrType(TypeKind.OWNED_VECTOR, element=element)
		if name == "UniquePtr" and arg.name in NATIVE_CONTAINER_NAMES:
			self._error(
				f"`{expr.render()}` is not supported; pass `String` or `Vec<T>`, which move between both sides",
				"BRIDGE_UNSUPPORTED",
				expr.loc,
			)
			return None
		kind = TypeKind.OPAQUE_NATIVE_HANDLE if name == "UniquePtr" else TypeKind.OWNED_HOST_VALUE
		if arg.name in ("&", "[]", "fn", "()") or arg.args:
			self._error(f"`{name}` expects the name of an opaque type", "BRIDGE_INVALID_TYPE", arg.loc)
			return None
		declared = self._lookup(arg.name, arg.loc)
		if declared is None:
			return None
		if declared.kind is not kind:
			where = "a natively implemented" if kind is TypeKind.OPAQUE_NATIVE_HANDLE else "a host-implemented"
			self._error(
				f"`{name}<{arg.name}>` requires `{arg.name}` to be an opaque type declared in {where} extern block",
				"BRIDGE_INVALID_TYPE",
				arg.loc,
			)
			return None
		return IrType(kind, name=arg.name)

	def _lookup(self, name: str, loc: Optional[ast.Located]) -> Optional[_Declared]:
		declared = self._types.get(name)
		if declared is not None:
			return declared
		later = self._all_types.get(name)
		if later is not None:
			self._error(
				f"`{name}` is used before its declaration at line {later.line}; declare it earlier in the manifest",
				"BRIDGE_FORWARD_REFERENCE",
				loc,
			)
		else:
			self._error(f"unknown type `{name}`", "BRIDGE_UNKNOWN_TYPE", loc)
		return None

	def _resolve_element(self, expr: ast.TypeExpr, container: ast.TypeExpr) -> Optional[IrType]:
		element = self._resolve_type(expr)
		if element is None:
			return None
		if element.kind not in VALUE_KINDS or element.is_borrow:
			self._error(
				f"`{element.render()}` cannot be an element of `{container.render()}`; elements must be "
				"primitives, enums or structs",
				"BRIDGE_INVALID_TYPE",
				expr.loc,
			)
			return None
		return element

	def _resolve_callback(self, expr: ast.TypeExpr) -> Optional[IrType]:
		ok = True
		params: List[IrType] = []
		for arg in expr.args:
			ty = self._resolve_type(arg)
			if ty is None:
				ok = False
				continue
			if (ty.kind, ty.mode) not in CALLBACK_PARAM_TYPES:
				self._error(
					f"callback parameter `{ty.render()}` is not callback-safe; use primitives, enums or `&str`",
					"BRIDGE_CALLBACK_TYPE",
					arg.loc,
				)
				ok = False
				continue
			params.append(ty)
		ret: Optional[IrType] = None
		if expr.ret is not None:
			if expr.ret.name == "Result":
				self._error("callbacks cannot be fallible", "BRIDGE_CALLBACK_TYPE", expr.ret.loc)
				return None
			ret = self._resolve_type(expr.ret)
			if ret is None:
				return None
			if ret.kind not in CALLBACK_RETURN_KINDS or ret.is_borrow:
				self._error(
					f"callback return type `{ret.render()}` is not callback-safe; use a primitive or an enum",
					"BRIDGE_CALLBACK_TYPE",
					expr.ret.loc,
				)
				return None
		if not ok:
			return None
		return IrType(TypeKind.CALLBACK_HANDLE, callback=CallbackSig(tuple(params), ret))


def validate(manifest: ast.Manifest) -> ValidationResult:
	return Validator(manifest).run()


__all__ = [
	"CheckedParam",
	"CheckedStruct",
	"CheckedVariant",
	"CheckedEnum",
	"CheckedOpaque",
	"CheckedFunction",
	"CheckedManifest",
	"ValidationResult",
	"Validator",
	"validate",
]
