# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Native-side generator: renders a Bridge IR as a C++17 header and
implementation unit.

Header contents, in order:

- forward declarations of opaque types (`class C;` native, `struct R;` host),
- enums (`enum class E : ::std::int32_t`) and structs with `static_assert`s
  pinning size, alignment and field offsets to the IR layout,
- prototypes the user implements (native free functions) and the C++
  wrappers the unit defines (host-implemented functions),
- the `XBridgeHostFns` table and every `extern "C"` symbol.

The implementation unit defines the `extern "C"` shims around the user's
native functions, the wrappers that call host functions through the table,
the `unique_ptr` drop helpers and the install entry points. Every shim is
`noexcept`: fallible shims encode exceptions into the `Result` out-pointer,
infallible ones terminate if the user code throws.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from xbridge.bridgec.core.catalog import PRIMITIVES, Direction, PassingMode, TypeKind
from xbridge.bridgec.core.diagnostics import InternalGeneratorError
from xbridge.bridgec.ir.nodes import BridgeIR, IrFunction, IrParam, IrType
from xbridge.codegen.out import CodeWriter

logger = logging.getLogger(__name__)

RT = "::xbridge"
DETAIL = f"{RT}::detail"
RETURN_SLOT = "return$"
HOST_FNS_STRUCT = "XBridgeHostFns"
HOST_SLOT_NS = "xbridge_host"
BANNER = "// Generated by xbridge. Do not edit."


@dataclass(frozen=True)
class NativeArtifacts:
	header: str
	implementation: Optional[str] = None


def generate(
	ir: BridgeIR,
	*,
	header_name: str,
	runtime_include: str = "xbridge/bridge.h",
	header_only: bool = False,
) -> NativeArtifacts:
	"""
	Render `ir` as C++ source.

	`header_name` is how the implementation unit includes the generated
	header; `runtime_include` is how the header includes the runtime library.
	"""
	builder = CxxGlueBuilder(ir, header_name=header_name, runtime_include=runtime_include)
	header = builder.render_header()
	if header_only:
		return NativeArtifacts(header=header)
	return NativeArtifacts(header=header, implementation=builder.render_implementation())


class CxxGlueBuilder:
	def __init__(self, ir: BridgeIR, *, header_name: str, runtime_include: str) -> None:
		self.ir = ir
		self.header_name = header_name
		self.runtime_include = runtime_include
		self.ns_prefix = "".join(f"::{segment}" for segment in ir.namespace)

	# -- naming ------------------------------------------------------------

	def qualify(self, name: str) -> str:
		return f"{self.ns_prefix}::{name}"

	def _open_namespace(self, out: CodeWriter) -> None:
		if self.ir.namespace:
			out.emit(f"namespace {'::'.join(self.ir.namespace)} {{")

	def _close_namespace(self, out: CodeWriter) -> None:
		if self.ir.namespace:
			out.emit(f"}} // namespace {'::'.join(self.ir.namespace)}")

	# -- types -------------------------------------------------------------

	def value_type(self, ty: IrType) -> str:
		"""The by-value C++ spelling of `ty`'s base type, ignoring the passing mode."""
		kind = ty.kind
		if kind is TypeKind.PRIMITIVE:
			return PRIMITIVES[ty.name].cxx
		if kind in (TypeKind.USER_STRUCT, TypeKind.USER_ENUM):
			return self.qualify(ty.name)
		if kind is TypeKind.OWNED_STRING:
			return f"{RT}::String"
		if kind is TypeKind.BORROWED_STRING:
			return f"{RT}::Str"
		if kind is TypeKind.OWNED_VECTOR:
			return f"{RT}::Vec<{self.value_type(ty.element)}>"
		if kind is TypeKind.BORROWED_SLICE:
			return f"{RT}::Slice<{self._slice_element(ty)}>"
		if kind is TypeKind.OPAQUE_NATIVE_HANDLE:
			return f"::std::unique_ptr<{self.qualify(ty.name)}>"
		if kind is TypeKind.OWNED_HOST_VALUE:
			return f"{RT}::Box<{self.qualify(ty.name)}>"
		if kind is TypeKind.CALLBACK_HANDLE:
			sig = ty.callback
			ret = self.cxx_type(sig.ret) if sig.ret is not None else "void"
			params = ", ".join(self.cxx_type(p) for p in sig.params)
			return f"{RT}::Fn<{ret}({params})>"
		raise InternalGeneratorError(f"no C++ type for {ty.render()}")

	def _slice_element(self, ty: IrType) -> str:
		element = self.value_type(ty.element)
		return element if ty.is_mutable else f"const {element}"

	def cxx_type(self, ty: IrType) -> str:
		"""Type used in user-facing C++ signatures."""
		if ty.kind in (TypeKind.BORROWED_STRING, TypeKind.BORROWED_SLICE, TypeKind.CALLBACK_HANDLE):
			return self.value_type(ty)
		if ty.mode is PassingMode.BY_VALUE:
			return self.value_type(ty)
		if ty.kind in (TypeKind.OPAQUE_NATIVE_HANDLE, TypeKind.OWNED_HOST_VALUE):
			base = self.qualify(ty.name)
		else:
			base = self.value_type(ty)
		if ty.is_mutable:
			return f"{base} &"
		return f"const {base} &"

	def repr_type(self, ty: IrType) -> str:
		"""The plain-data type a value of `ty` has while crossing the boundary."""
		kind = ty.kind
		if kind is TypeKind.OWNED_STRING:
			return f"{RT}::StringRepr"
		if kind is TypeKind.BORROWED_STRING:
			return f"{RT}::StrRepr"
		if kind is TypeKind.OWNED_VECTOR:
			return f"{RT}::VecRepr<{self.value_type(ty.element)}>"
		if kind is TypeKind.BORROWED_SLICE:
			return f"{RT}::SliceRepr<{self._slice_element(ty)}>"
		if kind in (TypeKind.OPAQUE_NATIVE_HANDLE, TypeKind.OWNED_HOST_VALUE):
			return f"{self.qualify(ty.name)} *"
		return self.value_type(ty)

	def abi_param_type(self, ty: IrType) -> str:
		if ty.kind in (TypeKind.BORROWED_STRING, TypeKind.BORROWED_SLICE, TypeKind.CALLBACK_HANDLE):
			return self.repr_type(ty)
		if ty.mode is PassingMode.BY_VALUE:
			if ty.kind in (TypeKind.OWNED_STRING, TypeKind.OWNED_VECTOR):
				return f"{self.repr_type(ty)} *"
			return self.repr_type(ty)
		if ty.kind in (TypeKind.OPAQUE_NATIVE_HANDLE, TypeKind.OWNED_HOST_VALUE):
			base = self.qualify(ty.name)
		else:
			base = self.repr_type(ty)
		if ty.is_mutable:
			return f"{base} *"
		return f"const {base} *"

	def payload_type(self, fn: IrFunction) -> str:
		if fn.ret is None:
			return f"{RT}::Unit"
		return self.repr_type(fn.ret)

	def out_param_type(self, fn: IrFunction) -> str:
		if fn.fallible:
			return f"{RT}::Result<{self.payload_type(fn)}> *"
		return f"{self.repr_type(fn.ret)} *"

	def abi_return_type(self, fn: IrFunction) -> str:
		if fn.ret is None or fn.indirect_return:
			return "void"
		return self.abi_param_type(fn.ret)

	def abi_params(self, fn: IrFunction) -> List[Tuple[str, str]]:
		params = [(self.abi_param_type(p.type), p.name) for p in fn.all_params]
		if fn.indirect_return:
			params.append((self.out_param_type(fn), RETURN_SLOT))
		return params

	@staticmethod
	def _join_params(params: Sequence[Tuple[str, str]]) -> str:
		return ", ".join(_declare(ty, name) for ty, name in params)

	def extern_prototype(self, fn: IrFunction) -> str:
		ret = self.abi_return_type(fn)
		return f"{_declare(ret, fn.symbol)}({self._join_params(self.abi_params(fn))}) noexcept"

	def user_prototype(self, fn: IrFunction) -> str:
		ret = self.cxx_type(fn.ret) if fn.ret is not None else "void"
		params = ", ".join(_declare(self.cxx_type(p.type), p.name) for p in fn.params)
		return f"{_declare(ret, fn.name)}({params})"

	# -- header ------------------------------------------------------------

	def render_header(self) -> str:
		out = CodeWriter(indent_str="  ")
		out.emit(BANNER)
		out.emit("#pragma once")
		out.blank()
		out.emit(f'#include "{self.runtime_include}"')
		out.emit("#include <cstddef>")
		out.emit("#include <cstdint>")
		out.emit("#include <memory>")
		out.blank()
		self._open_namespace(out)
		out.blank()
		self._emit_forward_decls(out)
		for enum in self.ir.enums:
			self._emit_enum(out, enum)
		for struct in self.ir.structs:
			self._emit_struct(out, struct)
		self._emit_user_prototypes(out)
		self._emit_host_fns_struct(out)
		self._close_namespace(out)
		out.blank()
		self._emit_extern_prototypes(out)
		logger.debug("rendered header %s: %d lines", self.header_name, len(out.lines))
		return out.render()

	def _emit_forward_decls(self, out: CodeWriter) -> None:
		if not self.ir.opaque_types:
			return
		for opaque in self.ir.opaque_types:
			out.doc_comment(opaque.doc, "///")
			if opaque.direction is Direction.IMPLEMENTED_NATIVELY:
				out.emit(f"class {opaque.name};")
			else:
				out.emit(f"struct {opaque.name};")
		out.blank()

	def _emit_enum(self, out: CodeWriter, enum) -> None:
		out.doc_comment(enum.doc, "///")
		with out.block(f"enum class {enum.name} : ::std::int32_t {{", "};"):
			for variant in enum.variants:
				out.doc_comment(variant.doc, "///")
				out.emit(f"{variant.name} = {variant.value},")
		out.blank()

	def _emit_struct(self, out: CodeWriter, struct) -> None:
		out.doc_comment(struct.doc, "///")
		with out.block(f"struct {struct.name} {{", "};"):
			for field in struct.fields:
				out.doc_comment(field.doc, "///")
				out.emit(f"{_declare(self.value_type(field.type), field.name)};")
		layout = struct.layout
		out.emit(f'static_assert(sizeof({struct.name}) == {layout.size}, "{struct.name}: size mismatch");')
		out.emit(f'static_assert(alignof({struct.name}) == {layout.align}, "{struct.name}: alignment mismatch");')
		for field, offset in zip(struct.fields, layout.offsets):
			out.emit(
				f'static_assert(offsetof({struct.name}, {field.name}) == {offset}, '
				f'"{struct.name}::{field.name}: offset mismatch");'
			)
		out.blank()

	def _emit_user_prototypes(self, out: CodeWriter) -> None:
		native = [fn for fn in self.ir.native_functions if fn.receiver is None]
		if native:
			out.emit("// Implemented in C++.")
			for fn in native:
				out.doc_comment(fn.doc, "///")
				out.emit(f"{self.user_prototype(fn)};")
			out.blank()
		host = self.ir.host_functions
		if host:
			out.emit("// Implemented by the host; calls go through the installed host function table.")
			for fn in host:
				out.doc_comment(fn.doc, "///")
				out.emit(f"{self.user_prototype(fn)};")
			out.blank()

	def _emit_host_fns_struct(self, out: CodeWriter) -> None:
		host = self.ir.host_functions
		if not host:
			return
		with out.block(f"struct {HOST_FNS_STRUCT} {{", "};"):
			for fn in host:
				ret = self.abi_return_type(fn)
				params = ", ".join(ty for ty, _ in self.abi_params(fn))
				out.emit(f"{ret} (*{fn.name})({params});")
		out.blank()

	def _emit_extern_prototypes(self, out: CodeWriter) -> None:
		with out.block('extern "C" {', '} // extern "C"'):
			for fn in self.ir.native_functions:
				out.emit(f"{self.extern_prototype(fn)};")
			for opaque in self.ir.native_opaque_types:
				out.emit(f"void {opaque.drop_symbol}({self.qualify(opaque.name)} *ptr) noexcept;")
			out.emit(f"void {self.ir.install_runtime_symbol}(const {RT}::RuntimeVTable *vtable) noexcept;")
			if self.ir.host_functions:
				out.emit(
					f"void {self.ir.install_host_fns_symbol}"
					f"(const {self.qualify(HOST_FNS_STRUCT)} *fns) noexcept;"
				)

	# -- implementation ----------------------------------------------------

	def render_implementation(self) -> str:
		out = CodeWriter(indent_str="  ")
		out.emit(BANNER)
		out.emit(f'#include "{self.header_name}"')
		for path in self.ir.includes:
			out.emit(f'#include "{path}"')
		out.blank()
		out.emit("#include <exception>")
		out.emit("#include <new>")
		out.blank()
		if self.ir.host_functions:
			self._emit_host_wrappers(out)
		with out.block('extern "C" {', '} // extern "C"'):
			out.blank()
			for fn in self.ir.native_functions:
				self._emit_shim(out, fn)
				out.blank()
			for opaque in self.ir.native_opaque_types:
				with out.block(f"void {opaque.drop_symbol}({self.qualify(opaque.name)} *ptr) noexcept {{", "}"):
					out.emit(f"::std::default_delete<{self.qualify(opaque.name)}>()(ptr);")
				out.blank()
			with out.block(
				f"void {self.ir.install_runtime_symbol}(const {RT}::RuntimeVTable *vtable) noexcept {{", "}"
			):
				out.emit(f"{DETAIL}::install_runtime(vtable);")
			if self.ir.host_functions:
				out.blank()
				with out.block(
					f"void {self.ir.install_host_fns_symbol}"
					f"(const {self.qualify(HOST_FNS_STRUCT)} *fns) noexcept {{",
					"}",
				):
					out.emit(f"{self.qualify(HOST_SLOT_NS)}::slot() = fns;")
		logger.debug("rendered implementation for %s: %d lines", self.header_name, len(out.lines))
		return out.render()

	# -- native shims ------------------------------------------------------

	def _native_arg(self, param: IrParam) -> str:
		"""Convert an extern argument into what the user's C++ function takes."""
		ty, name = param.type, param.name
		kind = ty.kind
		if kind is TypeKind.CALLBACK_HANDLE:
			return name
		if kind is TypeKind.BORROWED_STRING:
			return f"{RT}::Str({name})"
		if kind is TypeKind.BORROWED_SLICE:
			return f"{self.value_type(ty)}({name})"
		if kind is TypeKind.OWNED_STRING:
			if ty.is_borrow:
				return f"{DETAIL}::as_string({name})"
			return f"{RT}::String::from_repr(*{name})"
		if kind is TypeKind.OWNED_VECTOR:
			if ty.is_mutable:
				return f"{DETAIL}::as_vec_mut({name})"
			if ty.is_borrow:
				return f"{DETAIL}::as_vec({name})"
			return f"{self.value_type(ty)}::from_repr(*{name})"
		if kind is TypeKind.OPAQUE_NATIVE_HANDLE and not ty.is_borrow:
			return f"{self.value_type(ty)}({name})"
		if kind is TypeKind.OWNED_HOST_VALUE and not ty.is_borrow:
			return f"{self.value_type(ty)}::from_raw({name})"
		if ty.is_borrow:
			return f"*{name}"
		return name

	def _native_call(self, fn: IrFunction) -> str:
		args = ", ".join(self._native_arg(p) for p in fn.params)
		if fn.receiver is not None:
			return f"{fn.receiver.name}->{fn.name}({args})"
		return f"{self.qualify(fn.name)}({args})"

	def _into_repr(self, ty: IrType, expr: str) -> str:
		"""Move an owned C++ value out into its boundary repr."""
		kind = ty.kind
		if kind in (TypeKind.OWNED_STRING, TypeKind.OWNED_VECTOR):
			return f"{expr}.into_repr()"
		if kind is TypeKind.OPAQUE_NATIVE_HANDLE:
			return f"{expr}.release()"
		if kind is TypeKind.OWNED_HOST_VALUE:
			return f"{expr}.into_raw()"
		return expr

	def _borrow_repr(self, ty: IrType, expr: str) -> str:
		"""Pointer to the repr behind a reference returned by user code."""
		if ty.kind in (TypeKind.OWNED_STRING, TypeKind.OWNED_VECTOR):
			helper = "repr_ptr_mut" if ty.is_mutable else "repr_ptr"
			return f"{DETAIL}::{helper}({expr})"
		return f"&{expr}"

	def _emit_shim(self, out: CodeWriter, fn: IrFunction) -> None:
		prototype = self.extern_prototype(fn)
		call = self._native_call(fn)
		ret = fn.ret
		with out.block(f"{prototype} {{", "}"):
			if fn.fallible:
				self._emit_fallible_shim_body(out, fn, call)
			elif ret is None:
				out.emit(f"{call};")
			elif ret.kind in (TypeKind.BORROWED_STRING, TypeKind.BORROWED_SLICE):
				out.emit(f"::new ({RETURN_SLOT}) {self.repr_type(ret)}({call}.repr());")
			elif fn.indirect_return:
				out.emit(f"::new ({RETURN_SLOT}) {self.repr_type(ret)}({self._into_repr(ret, call)});")
			elif ret.is_borrow:
				out.emit(f"return {self._borrow_repr(ret, call)};")
			else:
				out.emit(f"return {self._into_repr(ret, call)};")

	def _emit_fallible_shim_body(self, out: CodeWriter, fn: IrFunction, call: str) -> None:
		payload = self.payload_type(fn)
		with out.block("try {"):
			if fn.ret is None:
				out.emit(f"{call};")
				out.emit(f"{DETAIL}::set_unit({RETURN_SLOT});")
			else:
				out.emit(f"{DETAIL}::set_ok<{payload}>({RETURN_SLOT}, {self._into_repr(fn.ret, call)});")
		with out.block("} catch (const ::std::exception &e) {"):
			out.emit(f"{DETAIL}::set_err({RETURN_SLOT}, e.what());")
		with out.block("} catch (...) {", "}"):
			out.emit(f'{DETAIL}::set_err({RETURN_SLOT}, "unknown C++ exception");')

	# -- host wrappers -----------------------------------------------------

	def _host_arg(self, param: IrParam, out: CodeWriter) -> str:
		"""Convert a C++ argument into its extern form; may emit a local first."""
		ty, name = param.type, param.name
		kind = ty.kind
		if kind in (TypeKind.BORROWED_STRING, TypeKind.BORROWED_SLICE):
			return f"{name}.repr()"
		if kind in (TypeKind.OWNED_STRING, TypeKind.OWNED_VECTOR):
			if ty.is_borrow:
				return self._borrow_repr(ty, name)
			local = f"{name}$"
			out.emit(f"{self.repr_type(ty)} {local} = {name}.into_repr();")
			return f"&{local}"
		if ty.is_borrow:
			return f"&{name}"
		return self._into_repr(ty, name)

	def _from_repr(self, ty: IrType, expr: str) -> str:
		"""Take ownership of a repr produced by the host."""
		kind = ty.kind
		if kind in (TypeKind.OWNED_STRING, TypeKind.OWNED_VECTOR):
			return f"{self.value_type(ty)}::from_repr({expr})"
		if kind is TypeKind.OPAQUE_NATIVE_HANDLE:
			return f"{self.value_type(ty)}({expr})"
		if kind is TypeKind.OWNED_HOST_VALUE:
			return f"{self.value_type(ty)}::from_raw({expr})"
		return expr

	def _emit_host_wrappers(self, out: CodeWriter) -> None:
		self._open_namespace(out)
		out.blank()
		with out.block(f"namespace {HOST_SLOT_NS} {{", f"}} // namespace {HOST_SLOT_NS}"):
			with out.block(f"static const {HOST_FNS_STRUCT} *&slot() noexcept {{", "}"):
				out.emit(f"static const {HOST_FNS_STRUCT} *fns = nullptr;")
				out.emit("return fns;")
			out.blank()
			with out.block(f"static const {HOST_FNS_STRUCT} &fns() noexcept {{", "}"):
				out.emit(f"const {HOST_FNS_STRUCT} *table = slot();")
				with out.block("if (table == nullptr) {", "}"):
					out.emit("::std::terminate();")
				out.emit("return *table;")
		out.blank()
		for fn in self.ir.host_functions:
			self._emit_host_wrapper(out, fn)
			out.blank()
		self._close_namespace(out)
		out.blank()

	def _emit_host_wrapper(self, out: CodeWriter, fn: IrFunction) -> None:
		ret = fn.ret
		with out.block(f"{self.user_prototype(fn)} {{", "}"):
			args = [self._host_arg(p, out) for p in fn.params]
			if fn.indirect_return:
				if fn.fallible:
					out.emit(f"{RT}::Result<{self.payload_type(fn)}> {RETURN_SLOT};")
				else:
					out.emit(f"{self.repr_type(ret)} {RETURN_SLOT};")
				args.append(f"&{RETURN_SLOT}")
			call = f"{HOST_SLOT_NS}::fns().{fn.name}({', '.join(args)})"
			if not fn.indirect_return:
				if ret is None:
					out.emit(f"{call};")
				else:
					out.emit(f"return {self._from_repr(ret, call)};")
				return
			out.emit(f"{call};")
			if fn.fallible:
				out.emit(f"{DETAIL}::throw_if_err({RETURN_SLOT});")
				if ret is not None:
					out.emit(f"return {self._from_repr(ret, RETURN_SLOT + '.ok')};")
			else:
				out.emit(f"return {self._from_repr(ret, RETURN_SLOT)};")


def _declare(ty: str, name: str) -> str:
	"""`const char *` + `p` -> `const char *p`; `int` + `p` -> `int p`."""
	if ty.endswith(("*", "&")):
		return f"{ty}{name}"
	return f"{ty} {name}"


__all__ = ["NativeArtifacts", "CxxGlueBuilder", "generate"]
