# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Generated C++ header and implementation unit."""

from xbridge.bridgec.pipeline import generate


def _native(generate_scenario, **config):
	result = generate_scenario(**config)
	header = result.artifact("native-header").text
	impl = next((a.text for a in result.artifacts if a.kind == "native-implementation"), None)
	return header, impl


def test_header_preamble_and_declarations(generate_scenario) -> None:
	header, _ = _native(generate_scenario)
	lines = header.splitlines()
	assert lines[0] == "// Generated by xbridge. Do not edit."
	assert lines[1] == "#pragma once"
	assert '#include "xbridge/bridge.h"' in lines
	assert "namespace tests::ffi {" in lines
	assert "} // namespace tests::ffi" in lines
	assert "class C;" in lines
	assert "struct R;" in lines
	assert "enum class Color : ::std::int32_t {" in lines
	assert "  Green = 5," in lines
	assert "  Blue = 6," in lines
	assert "/// Color of a thing." in lines


def test_struct_layout_is_pinned_by_static_asserts(generate_scenario) -> None:
	header, _ = _native(generate_scenario, target_word_bits=64)
	assert "  ::tests::ffi::Shared inner;" in header
	assert 'static_assert(sizeof(Shared) == 8, "Shared: size mismatch");' in header
	assert 'static_assert(alignof(Mixed) == 8, "Mixed: alignment mismatch");' in header
	assert 'static_assert(offsetof(Mixed, wide) == 8, "Mixed::wide: offset mismatch");' in header
	assert 'static_assert(offsetof(Mixed, inner) == 24, "Mixed::inner: offset mismatch");' in header
	header32, _ = _native(generate_scenario, target_word_bits=32)
	assert 'static_assert(sizeof(Shared) == 4, "Shared: size mismatch");' in header32
	assert 'static_assert(offsetof(Mixed, inner) == 20, "Mixed::inner: offset mismatch");' in header32


def test_user_prototypes(generate_scenario) -> None:
	header, _ = _native(generate_scenario)
	lines = header.splitlines()
	for prototype in (
		"::std::size_t c_return_primitive();",
		"void c_take_shared(::tests::ffi::Shared shared);",
		"::std::size_t c_take_str(::xbridge::Str s);",
		"::std::uint32_t c_take_slice(::xbridge::Slice<const ::std::uint32_t> s);",
		"void c_take_mut_vec(::xbridge::Vec<::std::uint8_t> &v);",
		"const ::std::size_t &c_return_ref(const ::tests::ffi::Shared &shared);",
		"::std::unique_ptr<::tests::ffi::C> c_return_unique_ptr();",
		"void c_take_box(::xbridge::Box<::tests::ffi::R> r);",
		"::std::size_t c_take_callback(::xbridge::Fn<::std::size_t(::xbridge::Str)> callback);",
		"::tests::ffi::Color c_take_enum(::tests::ffi::Color color);",
		"::std::size_t r_take_string(::xbridge::String s);",
	):
		assert prototype in lines, prototype


def test_host_function_table(generate_scenario) -> None:
	header, _ = _native(generate_scenario)
	assert "struct XBridgeHostFns {" in header
	assert "  ::std::size_t (*r_return_primitive)();" in header
	assert "  ::std::size_t (*r_take_string)(::xbridge::StringRepr *);" in header
	assert "  void (*r_return_shared)(::tests::ffi::Shared *);" in header
	assert "  void (*r_fail_void)(::xbridge::Result<::xbridge::Unit> *);" in header


def test_extern_symbols(generate_scenario) -> None:
	header, _ = _native(generate_scenario)
	assert 'extern "C" {' in header
	for prototype in (
		"::std::size_t tests$ffi$xbridge$c_return_primitive() noexcept;",
		"void tests$ffi$xbridge$c_take_vec_u8(::xbridge::VecRepr<::std::uint8_t> *v) noexcept;",
		"void tests$ffi$xbridge$c_return_str(const ::tests::ffi::Shared *shared, ::xbridge::StrRepr *return$) noexcept;",
		"const ::std::size_t *tests$ffi$xbridge$c_return_ref(const ::tests::ffi::Shared *shared) noexcept;",
		"::std::size_t tests$ffi$xbridge$C$get(const ::tests::ffi::C *self) noexcept;",
		"::std::size_t tests$ffi$xbridge$C$set(::tests::ffi::C *self, ::std::size_t n) noexcept;",
		"void tests$ffi$xbridge$c_fail_return_primitive(::xbridge::Result<::std::size_t> *return$) noexcept;",
		"void tests$ffi$xbridge$unique_ptr$C$drop(::tests::ffi::C *ptr) noexcept;",
		"void tests$ffi$xbridge$install_runtime(const ::xbridge::RuntimeVTable *vtable) noexcept;",
		"void tests$ffi$xbridge$install_host_fns(const ::tests::ffi::XBridgeHostFns *fns) noexcept;",
	):
		assert f"  {prototype}" in header, prototype
	assert "r_return_primitive() noexcept" not in header


def test_native_shims(generate_scenario) -> None:
	_, impl = _native(generate_scenario)
	assert impl.startswith("// Generated by xbridge. Do not edit.\n#include \"tests.bridge.h\"\n")
	assert '#include "tests/ffi/tests.h"' in impl
	for line in (
		"return ::tests::ffi::c_return_primitive();",
		"::new (return$) ::tests::ffi::Shared(::tests::ffi::c_return_shared());",
		"::new (return$) ::xbridge::StringRepr(::tests::ffi::c_return_string().into_repr());",
		"::new (return$) ::xbridge::StrRepr(::tests::ffi::c_return_str(*shared).repr());",
		"return &::tests::ffi::c_return_ref(*shared);",
		"return ::tests::ffi::c_return_unique_ptr().release();",
		"::tests::ffi::c_take_vec_u8(::xbridge::Vec<::std::uint8_t>::from_repr(*v));",
		"return ::tests::ffi::c_take_str(::xbridge::Str(s));",
		"::tests::ffi::c_take_mut_vec(::xbridge::detail::as_vec_mut(v));",
		"return ::tests::ffi::c_take_unique_ptr(::std::unique_ptr<::tests::ffi::C>(c));",
		"::tests::ffi::c_take_box(::xbridge::Box<::tests::ffi::R>::from_raw(r));",
		"return ::tests::ffi::c_take_callback(callback);",
		"return self->get();",
		"return self->set(n);",
		"::std::default_delete<::tests::ffi::C>()(ptr);",
		"::xbridge::detail::install_runtime(vtable);",
		"::tests::ffi::xbridge_host::slot() = fns;",
	):
		assert line in impl, line


def test_fallible_shims_catch_every_exception(generate_scenario) -> None:
	_, impl = _native(generate_scenario)
	assert "::xbridge::detail::set_ok<::std::size_t>(return$, ::tests::ffi::c_fail_return_primitive());" in impl
	assert "::xbridge::detail::set_ok<::xbridge::StringRepr>(return$, ::tests::ffi::c_try_return_string().into_repr());" in impl
	assert "::xbridge::detail::set_unit(return$);" in impl
	assert impl.count("} catch (const ::std::exception &e) {") == 3
	assert impl.count("::xbridge::detail::set_err(return$, e.what());") == 3
	assert impl.count('::xbridge::detail::set_err(return$, "unknown C++ exception");') == 3


def test_host_wrappers_call_through_the_table(generate_scenario) -> None:
	_, impl = _native(generate_scenario)
	for line in (
		"namespace xbridge_host {",
		"return xbridge_host::fns().r_return_primitive();",
		"::xbridge::StringRepr s$ = s.into_repr();",
		"return xbridge_host::fns().r_take_string(&s$);",
		"::tests::ffi::Shared return$;",
		"xbridge_host::fns().r_return_shared(&return$);",
		"::xbridge::Result<::std::size_t> return$;",
		"::xbridge::detail::throw_if_err(return$);",
		"return return$.ok;",
		"return ::xbridge::Box<::tests::ffi::R>::from_raw(xbridge_host::fns().r_return_box());",
	):
		assert line in impl, line


def test_header_only_skips_the_implementation(generate_scenario) -> None:
	header, impl = _native(generate_scenario, header_only=True)
	assert impl is None
	assert "#pragma once" in header


def test_bridge_without_host_functions_has_no_table() -> None:
	result = generate('namespace a;\nextern "C++" {\n\tfn f(x: u8) -> u8;\n}\n', file="a.bridge")
	assert result.ok
	header = result.artifact("native-header").text
	impl = result.artifact("native-implementation").text
	assert "XBridgeHostFns" not in header
	assert "install_host_fns" not in header
	assert "xbridge_host" not in impl
	assert "return ::a::f(x);" in impl
