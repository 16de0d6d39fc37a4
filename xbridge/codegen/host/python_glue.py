# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Host-side generator: renders a Bridge IR as a Python module built on ctypes.

The generated module defines:

- an `enum.IntEnum` per enum and a `ctypes.Structure` per struct,
- a `NativeHandle` subclass per opaque native type, carrying its methods,
- one wrapper per natively implemented free function,
- a trampoline per host-implemented function, plus the `_HostFns` table,
- `bind(library, host=None)`, which declares every symbol, checks struct
  layouts against ctypes, installs the runtime vtable and the host table.

Wrappers are one call into the mangled symbol. Argument and result
conversions are calls into `xbridge.runtime.glue`; borrows that need
temporaries run inside a `CallFrame`.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from xbridge.bridgec.core.catalog import PRIMITIVES, PassingMode, TypeKind
from xbridge.bridgec.core.diagnostics import InternalGeneratorError
from xbridge.bridgec.ir.nodes import BridgeIR, IrFunction, IrParam, IrStruct, IrType
from xbridge.codegen.out import CodeWriter

logger = logging.getLogger(__name__)

BANNER = "# Generated by xbridge. Do not edit."
FNS = "_bridge_fns"
FRAME = "__frame"
RETURN = "__return"
RESULT = "__result"
HOST_IMPL = "_host_impl"
HOST_TABLE = "_host_table"

_FRAME_KINDS = frozenset({TypeKind.BORROWED_STRING, TypeKind.BORROWED_SLICE, TypeKind.CALLBACK_HANDLE})
_MOVE_KINDS = frozenset(
	{TypeKind.OWNED_STRING, TypeKind.OWNED_VECTOR, TypeKind.OPAQUE_NATIVE_HANDLE, TypeKind.OWNED_HOST_VALUE}
)


def generate(ir: BridgeIR, *, module_doc: Optional[str] = None) -> str:
	return PythonGlueBuilder(ir, module_doc=module_doc).render()


def _needs_frame(ty: IrType) -> bool:
	if ty.kind in _FRAME_KINDS:
		return True
	if not ty.is_borrow:
		return False
	return ty.kind in (TypeKind.OWNED_STRING, TypeKind.OWNED_VECTOR, TypeKind.OWNED_HOST_VALUE)


def _is_move(ty: IrType) -> bool:
	return not ty.is_borrow and ty.kind in _MOVE_KINDS


class PythonGlueBuilder:
	def __init__(self, ir: BridgeIR, *, module_doc: Optional[str] = None) -> None:
		self.ir = ir
		self.module_doc = module_doc
		self._aliases: Dict[str, str] = {}
		self._alias_defs: List[str] = []

	# -- module-level type aliases ----------------------------------------

	def _alias(self, prefix: str, expr: str) -> str:
		name = self._aliases.get(expr)
		if name is None:
			name = f"_{prefix}_{len(self._alias_defs)}"
			self._aliases[expr] = name
			self._alias_defs.append(f"{name} = {expr}")
		return name

	# -- types -------------------------------------------------------------

	def ctype(self, ty: IrType) -> str:
		"""ctypes type of the value (or repr) itself, ignoring the passing mode."""
		kind = ty.kind
		if kind is TypeKind.PRIMITIVE:
			return f"_ctypes.{PRIMITIVES[ty.name].ctype}"
		if kind is TypeKind.USER_ENUM:
			return "_ctypes.c_int32"
		if kind is TypeKind.USER_STRUCT:
			return ty.name
		if kind is TypeKind.OWNED_STRING:
			return "_abi.OwnedString"
		if kind is TypeKind.BORROWED_STRING:
			return "_abi.BorrowedString"
		if kind is TypeKind.OWNED_VECTOR:
			return "_abi.OwnedVector"
		if kind is TypeKind.BORROWED_SLICE:
			return "_abi.BorrowedSlice"
		if kind in (TypeKind.OPAQUE_NATIVE_HANDLE, TypeKind.OWNED_HOST_VALUE):
			return "_ctypes.c_void_p"
		if kind is TypeKind.CALLBACK_HANDLE:
			return "_abi.CallbackHandle"
		raise InternalGeneratorError(f"no ctypes type for {ty.render()}")

	def arg_ctype(self, ty: IrType) -> str:
		kind = ty.kind
		if kind in _FRAME_KINDS:
			return self.ctype(ty)
		if ty.mode is PassingMode.BY_VALUE:
			if kind in (TypeKind.OWNED_STRING, TypeKind.OWNED_VECTOR):
				return f"_ctypes.POINTER({self.ctype(ty)})"
			return self.ctype(ty)
		if kind in (TypeKind.OPAQUE_NATIVE_HANDLE, TypeKind.OWNED_HOST_VALUE):
			return "_ctypes.c_void_p"
		return f"_ctypes.POINTER({self.ctype(ty)})"

	def out_ctype(self, fn: IrFunction) -> str:
		if fn.fallible:
			payload = self.ctype(fn.ret) if fn.ret is not None else "_abi.Unit"
			return self._alias("RESULT", f"_abi.error_result({payload})")
		return self.ctype(fn.ret)

	def restype(self, fn: IrFunction) -> str:
		if fn.ret is None or fn.indirect_return:
			return "None"
		return self.arg_ctype(fn.ret)

	def argtypes(self, fn: IrFunction) -> List[str]:
		types = [self.arg_ctype(p.type) for p in fn.all_params]
		if fn.indirect_return:
			types.append(f"_ctypes.POINTER({self.out_ctype(fn)})")
		return types

	def callback_type(self, ty: IrType) -> str:
		sig = ty.callback
		ret = self.ctype(sig.ret) if sig.ret is not None else "None"
		params = [self.ctype(p) for p in sig.params]
		return self._alias("CALLBACK", f"_ctypes.CFUNCTYPE({', '.join([ret, *params, '_ctypes.c_void_p'])})")

	@staticmethod
	def _wrap(element: IrType) -> Optional[str]:
		if element.kind is TypeKind.USER_ENUM:
			return element.name
		return None

	def _elem_args(self, ty: IrType) -> str:
		args = self.ctype(ty.element)
		wrap = self._wrap(ty.element)
		if wrap is not None:
			args += f", {wrap}"
		return args

	# -- rendering ---------------------------------------------------------

	def render(self) -> str:
		body = CodeWriter(indent_str="\t")
		for opaque in self.ir.native_opaque_types:
			self._emit_handle_class(body, opaque)
		for fn in self.ir.native_functions:
			if fn.receiver is None:
				self._emit_native_wrapper(body, fn)
				body.blank(2)
		host = CodeWriter(indent_str="\t")
		if self.ir.host_functions:
			self._emit_host_section(host)
		bind = CodeWriter(indent_str="\t")
		self._emit_bind(bind)

		out = CodeWriter(indent_str="\t")
		self._emit_preamble(out)
		for enum in self.ir.enums:
			self._emit_enum(out, enum)
		for struct in self.ir.structs:
			self._emit_struct(out, struct)
		self._emit_layouts(out)
		if self._alias_defs:
			out.lines.extend(self._alias_defs)
			out.blank(2)
		out.lines.extend(body.lines)
		out.lines.extend(host.lines)
		out.lines.extend(bind.lines)
		out.blank(2)
		self._emit_all(out)
		logger.debug("rendered host module: %d lines", len(out.lines))
		return out.render()

	def _emit_preamble(self, out: CodeWriter) -> None:
		out.emit(BANNER)
		doc = self.module_doc
		if doc is None:
			if self.ir.namespace:
				doc = f"Host bindings for the {'::'.join(self.ir.namespace)} bridge."
			else:
				doc = "Host bindings for a bridge in the global namespace."
		out.emit(f'"""{doc}"""')
		out.blank()
		out.emit("import ctypes as _ctypes")
		out.emit("import enum as _enum")
		out.blank()
		out.emit("from xbridge.runtime import abi as _abi")
		out.emit("from xbridge.runtime import errors as _errors")
		out.emit("from xbridge.runtime import glue as _glue")
		out.blank()
		out.emit(f"WORD_BITS = {self.ir.word_bits}")
		out.blank()
		out.emit(f"{FNS} = {{}}")
		out.emit(f"{HOST_IMPL} = None")
		out.emit(f"{HOST_TABLE} = None")
		out.blank(2)

	def _emit_docstring(self, out: CodeWriter, doc: Optional[str]) -> None:
		if not doc:
			return
		lines = doc.replace('"""', '\\"\\"\\"').splitlines()
		if len(lines) == 1:
			out.emit(f'"""{lines[0]}"""')
			return
		out.emit('"""')
		for line in lines:
			out.emit(line)
		out.emit('"""')

	def _emit_enum(self, out: CodeWriter, enum) -> None:
		with out.block(f"class {enum.name}(_enum.IntEnum):"):
			self._emit_docstring(out, enum.doc)
			for variant in enum.variants:
				out.doc_comment(variant.doc, "#")
				out.emit(f"{variant.name} = {variant.value}")
		out.blank(2)

	def _emit_struct(self, out: CodeWriter, struct: IrStruct) -> None:
		with out.block(f"class {struct.name}(_ctypes.Structure):"):
			self._emit_docstring(out, struct.doc)
			with out.block("_fields_ = [", "]"):
				for field in struct.fields:
					out.doc_comment(field.doc, "#")
					out.emit(f'("{field.name}", {self.ctype(field.type)}),')
		out.blank(2)

	def _emit_layouts(self, out: CodeWriter) -> None:
		if not self.ir.structs:
			out.emit("_LAYOUTS = ()")
		else:
			out.emit("# (struct, size, align, field offsets) as laid out by the generated C++ header.")
			with out.block("_LAYOUTS = (", ")"):
				for struct in self.ir.structs:
					layout = struct.layout
					offsets = ", ".join(str(o) for o in layout.offsets)
					if len(layout.offsets) == 1:
						offsets += ","
					out.emit(f"({struct.name}, {layout.size}, {layout.align}, ({offsets})),")
		out.blank(2)

	def _emit_handle_class(self, out: CodeWriter, opaque) -> None:
		methods = [fn for fn in self.ir.native_functions if fn.receiver is not None and fn.receiver.type.name == opaque.name]
		with out.block(f"class {opaque.name}(_glue.NativeHandle):"):
			self._emit_docstring(out, opaque.doc)
			out.emit("__slots__ = ()")
			for fn in methods:
				out.blank()
				self._emit_native_wrapper(out, fn)
		out.blank(2)

	# -- host -> native wrappers -------------------------------------------

	def _native_arg(self, param: IrParam, guarded: bool = False) -> str:
		ty, name = param.type, param.name
		kind = ty.kind
		if guarded and _is_move(ty):
			return self._guarded_move(ty, name)
		if kind is TypeKind.CALLBACK_HANDLE:
			return f"{FRAME}.callback({self.callback_type(ty)}, {self._callback_adapter(ty, name)})"
		if kind is TypeKind.BORROWED_STRING:
			return f"{FRAME}.borrow_str({name})"
		if kind is TypeKind.BORROWED_SLICE:
			if ty.is_mutable:
				return f"{FRAME}.borrow_slice({name}, {self._mutable_elem_args(ty)})"
			return f"{FRAME}.borrow_slice({name}, {self.ctype(ty.element)})"
		if kind is TypeKind.OWNED_STRING:
			if ty.is_borrow:
				return f"{FRAME}.lend_string({name})"
			return f"_ctypes.byref(_glue.string_from_str({name}))"
		if kind is TypeKind.OWNED_VECTOR:
			if ty.is_mutable:
				return f"{FRAME}.lend_vector({name}, {self._mutable_elem_args(ty)})"
			if ty.is_borrow:
				return f"{FRAME}.lend_vector({name}, {self.ctype(ty.element)})"
			return f"_ctypes.byref(_glue.vector_from_seq({name}, {self.ctype(ty.element)}))"
		if kind is TypeKind.OPAQUE_NATIVE_HANDLE:
			if ty.is_borrow:
				return f"{name}.as_ptr()"
			return f"_glue.handle_into_raw({name})"
		if kind is TypeKind.OWNED_HOST_VALUE:
			if ty.is_borrow:
				return f"{FRAME}.lend_box({name})"
			return f"_glue.box_into_raw({name})"
		if ty.mode is PassingMode.BORROWED_REF and kind is not TypeKind.USER_STRUCT:
			return f"_ctypes.byref({self.ctype(ty)}({name}))"
		if ty.is_borrow:
			return f"_ctypes.byref({name})"
		return name

	def _guarded_move(self, ty: IrType, name: str) -> str:
		kind = ty.kind
		if kind is TypeKind.OWNED_STRING:
			return f"{FRAME}.move_string({name})"
		if kind is TypeKind.OWNED_VECTOR:
			return f"{FRAME}.move_vector({name}, {self.ctype(ty.element)})"
		if kind is TypeKind.OPAQUE_NATIVE_HANDLE:
			return f"{FRAME}.move_handle({name})"
		return f"{FRAME}.move_box({name})"

	def _mutable_elem_args(self, ty: IrType) -> str:
		wrap = self._wrap(ty.element)
		args = f"{self.ctype(ty.element)}, mutable=True"
		if wrap is not None:
			args += f", wrap={wrap}"
		return args

	def _callback_adapter(self, ty: IrType, name: str) -> str:
		"""Callable handed to `CallFrame.callback`; converts native arguments first."""
		converted = []
		needs_adapter = False
		for index, param in enumerate(ty.callback.params):
			arg = f"__a{index}"
			if param.kind is TypeKind.BORROWED_STRING:
				converted.append(f"_glue.str_view({arg})")
				needs_adapter = True
			elif param.kind is TypeKind.USER_ENUM:
				converted.append(f"{param.name}({arg})")
				needs_adapter = True
			else:
				converted.append(arg)
		if not needs_adapter:
			return name
		params = ", ".join(f"__a{index}" for index in range(len(converted)))
		return f"lambda {params}: {name}({', '.join(converted)})"

	def _direct_result(self, ty: IrType, call: str) -> str:
		kind = ty.kind
		if kind is TypeKind.OPAQUE_NATIVE_HANDLE:
			if ty.is_borrow:
				return f"{ty.name}._borrowed({call})"
			return f"{ty.name}._from_raw({call})"
		if kind is TypeKind.OWNED_HOST_VALUE:
			return f"_glue.box_from_raw({call})"
		if not ty.is_borrow:
			if kind is TypeKind.USER_ENUM:
				return f"{ty.name}({call})"
			return call
		if kind is TypeKind.OWNED_STRING:
			return f"_glue.string_view({call}.contents)"
		if kind is TypeKind.OWNED_VECTOR:
			return f"_glue.vector_view({call}.contents, {self._elem_args(ty)})"
		if kind is TypeKind.USER_STRUCT or ty.is_mutable:
			return f"{call}.contents"
		if kind is TypeKind.USER_ENUM:
			return f"{ty.name}({call}[0])"
		return f"{call}[0]"

	def _indirect_result(self, ty: IrType) -> str:
		kind = ty.kind
		if kind is TypeKind.OWNED_STRING:
			return f"_glue.string_take({RETURN})"
		if kind is TypeKind.OWNED_VECTOR:
			return f"_glue.vector_take({RETURN}, {self._elem_args(ty)})"
		if kind is TypeKind.BORROWED_STRING:
			return f"_glue.str_view({RETURN})"
		if kind is TypeKind.BORROWED_SLICE:
			if ty.is_mutable:
				return f"_glue.slice_array({RETURN}, {self.ctype(ty.element)})"
			return f"_glue.slice_view({RETURN}, {self._elem_args(ty)})"
		return RETURN

	def _payload_converter(self, ty: IrType) -> Optional[str]:
		kind = ty.kind
		if kind is TypeKind.OWNED_STRING:
			return "_glue.string_take"
		if kind is TypeKind.OWNED_VECTOR:
			return f"lambda __v: _glue.vector_take(__v, {self._elem_args(ty)})"
		if kind is TypeKind.OPAQUE_NATIVE_HANDLE:
			return f"{ty.name}._from_raw"
		if kind is TypeKind.OWNED_HOST_VALUE:
			return "_glue.box_from_raw"
		if kind is TypeKind.USER_ENUM:
			return ty.name
		return None

	def _emit_native_wrapper(self, out: CodeWriter, fn: IrFunction) -> None:
		names = [p.name for p in fn.params]
		if fn.receiver is not None:
			names.insert(0, "self")
		with out.block(f"def {fn.name}({', '.join(names)}):"):
			self._emit_docstring(out, fn.doc)
			# Owned moves next to other arguments are undone if any conversion fails.
			guarded = len(fn.params) > 1 and any(_is_move(p.type) for p in fn.params)
			if guarded or any(_needs_frame(p.type) for p in fn.params):
				with out.block(f"with _glue.CallFrame() as {FRAME}:"):
					self._emit_native_call(out, fn, guarded)
			else:
				self._emit_native_call(out, fn)

	def _emit_native_call(self, out: CodeWriter, fn: IrFunction, guarded: bool = False) -> None:
		args = [self._native_arg(p, guarded) for p in fn.params]
		if fn.receiver is not None:
			args.insert(0, "self.as_ptr()")
		if fn.indirect_return:
			out.emit(f"{RETURN} = {self.out_ctype(fn)}()")
			args.append(f"_ctypes.byref({RETURN})")
		call = f'{FNS}["{fn.qualified_name}"]({", ".join(args)})'
		if fn.ret is not None and not fn.indirect_return:
			if guarded:
				out.emit(f"{RESULT} = {call}")
				out.emit(f"{FRAME}.commit()")
				call = RESULT
			out.emit(f"return {self._direct_result(fn.ret, call)}")
			return
		out.emit(call)
		if guarded:
			out.emit(f"{FRAME}.commit()")
		if fn.fallible:
			if fn.ret is None:
				out.emit(f"_glue.result_check({RETURN})")
				return
			convert = self._payload_converter(fn.ret)
			if convert is None:
				out.emit(f"return _glue.result_unwrap({RETURN})")
			else:
				out.emit(f"return _glue.result_unwrap({RETURN}, {convert})")
			return
		if fn.ret is not None:
			out.emit(f"return {self._indirect_result(fn.ret)}")

	# -- native -> host trampolines ----------------------------------------

	def _host_arg(self, param: IrParam, out: CodeWriter) -> str:
		ty, name = param.type, param.name
		kind = ty.kind
		if kind is TypeKind.BORROWED_STRING:
			return f"_glue.str_view({name})"
		if kind is TypeKind.BORROWED_SLICE:
			if ty.is_mutable:
				return f"_glue.slice_array({name}, {self.ctype(ty.element)})"
			return f"_glue.slice_view({name}, {self._elem_args(ty)})"
		if kind is TypeKind.OWNED_STRING:
			if ty.is_borrow:
				return f"_glue.string_view({name}.contents)"
			return f"_glue.string_take({name}.contents)"
		if kind is TypeKind.OWNED_VECTOR:
			if ty.is_mutable:
				items = f"__{name}_items"
				out.emit(f"{items} = _glue.vector_view({name}.contents, {self._elem_args(ty)})")
				return items
			if ty.is_borrow:
				return f"_glue.vector_view({name}.contents, {self._elem_args(ty)})"
			return f"_glue.vector_take({name}.contents, {self._elem_args(ty)})"
		if kind is TypeKind.OPAQUE_NATIVE_HANDLE:
			if ty.is_borrow:
				return f"{ty.name}._borrowed({name})"
			return f"{ty.name}._from_raw({name})"
		if kind is TypeKind.OWNED_HOST_VALUE:
			if ty.is_borrow:
				return f"_glue.box_peek({name})"
			return f"_glue.box_from_raw({name})"
		if not ty.is_borrow:
			if kind is TypeKind.USER_ENUM:
				return f"{ty.name}({name})"
			return name
		if kind is TypeKind.USER_STRUCT or ty.is_mutable:
			return f"{name}.contents"
		if kind is TypeKind.USER_ENUM:
			return f"{ty.name}({name}[0])"
		return f"{name}[0]"

	def _host_writebacks(self, fn: IrFunction, out: CodeWriter) -> None:
		for param in fn.params:
			ty = param.type
			if ty.kind is TypeKind.OWNED_VECTOR and ty.is_mutable:
				out.emit(f"_glue.vector_store({param.name}.contents, __{param.name}_items, {self.ctype(ty.element)})")

	def _into_native(self, ty: IrType, expr: str) -> str:
		"""Hand an owned host value to native code."""
		kind = ty.kind
		if kind is TypeKind.OWNED_STRING:
			return f"_glue.string_from_str({expr})"
		if kind is TypeKind.OWNED_VECTOR:
			return f"_glue.vector_from_seq({expr}, {self.ctype(ty.element)})"
		if kind is TypeKind.OPAQUE_NATIVE_HANDLE:
			return f"_glue.handle_into_raw({expr})"
		if kind is TypeKind.OWNED_HOST_VALUE:
			return f"_glue.box_into_raw({expr})"
		return expr

	def _emit_host_section(self, out: CodeWriter) -> None:
		host = self.ir.host_functions
		for fn in host:
			restype = self.restype(fn)
			out.emit(f"_HOSTFN_{fn.name} = _ctypes.CFUNCTYPE({', '.join([restype, *self.argtypes(fn)])})")
		out.blank(2)
		with out.block("class _HostFns(_ctypes.Structure):"):
			with out.block("_fields_ = [", "]"):
				for fn in host:
					out.emit(f'("{fn.name}", _HOSTFN_{fn.name}),')
		out.blank(2)
		out.emit(f"_HOST_FUNCTIONS = ({', '.join(repr(fn.name) for fn in host)},)")
		out.blank(2)
		for fn in host:
			self._emit_host_trampoline(out, fn)
			out.blank(2)

	def _emit_host_trampoline(self, out: CodeWriter, fn: IrFunction) -> None:
		names = [p.name for p in fn.params]
		if fn.indirect_return:
			names.append(RETURN)
		with out.block(f"def _host_{fn.name}({', '.join(names)}):"):
			with out.block("try:"):
				args = [self._host_arg(p, out) for p in fn.params]
				call = f"{HOST_IMPL}.{fn.name}({', '.join(args)})"
				self._emit_host_call(out, fn, call)
			with out.block("except BaseException as __exc:"):
				if fn.fallible:
					out.emit(f"_glue.result_set_err({RETURN}, __exc)")
				else:
					out.emit(f'_glue.abort_on_unwind("{fn.name}", __exc)')

	def _emit_host_call(self, out: CodeWriter, fn: IrFunction, call: str) -> None:
		ret = fn.ret
		writeback = any(p.type.kind is TypeKind.OWNED_VECTOR and p.type.is_mutable for p in fn.params)
		if fn.fallible:
			if ret is None:
				out.emit(call)
				self._host_writebacks(fn, out)
				out.emit(f"_glue.result_set_unit({RETURN})")
			else:
				out.emit(f"__result = {call}")
				self._host_writebacks(fn, out)
				out.emit(f"_glue.result_set_ok({RETURN}, {self._into_native(ret, '__result')})")
			return
		if ret is None:
			out.emit(call)
			self._host_writebacks(fn, out)
			return
		if fn.indirect_return:
			out.emit(f"__result = {call}")
			self._host_writebacks(fn, out)
			out.emit(f"{RETURN}[0] = {self._into_native(ret, '__result')}")
			return
		if writeback:
			out.emit(f"__result = {call}")
			self._host_writebacks(fn, out)
			out.emit(f"return {self._into_native(ret, '__result')}")
			return
		out.emit(f"return {self._into_native(ret, call)}")

	# -- bind --------------------------------------------------------------

	def _emit_bind(self, out: CodeWriter) -> None:
		ir = self.ir
		globals_ = [HOST_IMPL, HOST_TABLE] if ir.host_functions else []
		with out.block("def bind(library, host=None):"):
			out.emit('"""')
			out.emit("Load the compiled native half of this bridge and make the wrappers callable.")
			out.blank()
			out.emit("`library` is a path or an already loaded `ctypes.CDLL`. `host` provides")
			out.emit("the host-implemented functions as attributes; it is required when the")
			out.emit("bridge declares any.")
			out.emit('"""')
			if globals_:
				out.emit(f"global {', '.join(globals_)}")
			with out.block("if _ctypes.sizeof(_ctypes.c_void_p) * 8 != WORD_BITS:"):
				out.emit('raise _errors.LayoutError(f"bridge generated for {WORD_BITS}-bit targets")')
			out.emit("lib = _glue.open_library(library)")
			with out.block("for cls, size, align, offsets in _LAYOUTS:"):
				out.emit("_glue.check_layout(cls, size, align, offsets)")
			out.emit(f'_glue.install_runtime(lib, "{ir.install_runtime_symbol}")')
			for opaque in ir.native_opaque_types:
				out.emit(f'{opaque.name}._drop = _glue.declare(lib, "{opaque.drop_symbol}", None, [_ctypes.c_void_p])')
			for fn in ir.native_functions:
				argtypes = ", ".join(self.argtypes(fn))
				out.emit(
					f'{FNS}["{fn.qualified_name}"] = _glue.declare(lib, "{fn.symbol}", {self.restype(fn)}, [{argtypes}])'
				)
			if ir.host_functions:
				with out.block("if host is None:"):
					out.emit('raise _errors.BindingError("this bridge needs a host implementation; pass host=")')
				with out.block("for name in _HOST_FUNCTIONS:"):
					with out.block("if not callable(getattr(host, name, None)):"):
						out.emit('raise _errors.BindingError(f"host implementation has no callable `{name}`")')
				out.emit(f"{HOST_IMPL} = host")
				with out.block(f"{HOST_TABLE} = _HostFns(", ")"):
					for fn in ir.host_functions:
						out.emit(f"_HOSTFN_{fn.name}(_host_{fn.name}),")
				out.emit(
					f'install = _glue.declare(lib, "{ir.install_host_fns_symbol}", None, [_ctypes.POINTER(_HostFns)])'
				)
				out.emit(f"install(_ctypes.byref({HOST_TABLE}))")
			out.emit("return lib")

	def _emit_all(self, out: CodeWriter) -> None:
		names = [e.name for e in self.ir.enums]
		names += [s.name for s in self.ir.structs]
		names += [o.name for o in self.ir.native_opaque_types]
		names += [f.name for f in self.ir.native_functions if f.receiver is None]
		names.append("bind")
		with out.block("__all__ = [", "]"):
			for name in names:
				out.emit(f'"{name}",')


__all__ = ["PythonGlueBuilder", "generate"]
