# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
import types
from typing import Callable

import pytest

from xbridge.bridgec.pipeline import GeneratorConfig, GenerationResult, generate

SCENARIO = """\
/// Bridge exercised by the generator tests.
namespace tests::ffi;

struct Shared {
	z: usize,
}

/// Color of a thing.
enum Color { Red, Green = 5, Blue }

struct Mixed {
	flag: bool,
	wide: u64,
	color: Color,
	inner: Shared,
}

extern "Python" {
	type R;

	fn r_return_primitive() -> usize;
	fn r_return_box() -> Box<R>;
	fn r_take_string(s: String) -> usize;
	fn r_return_shared() -> Shared;
	fn r_try_return_primitive() -> Result<usize>;
	fn r_fail_void() -> Result<()>;
}

extern "C++" {
	include!("tests/ffi/tests.h");

	type C;

	fn c_return_primitive() -> usize;
	fn c_return_shared() -> Shared;
	fn c_return_string() -> String;
	fn c_return_unique_ptr() -> UniquePtr<C>;
	fn c_return_ref(shared: &Shared) -> &usize;
	fn c_return_str(shared: &Shared) -> &str;
	fn c_take_shared(shared: Shared);
	fn c_take_vec_u8(v: Vec<u8>);
	fn c_take_str(s: &str) -> usize;
	fn c_take_slice(s: &[u32]) -> u32;
	fn c_take_mut_vec(v: &mut Vec<u8>);
	fn c_take_enum(color: Color) -> Color;
	fn c_take_unique_ptr(c: UniquePtr<C>) -> usize;
	fn c_take_box(r: Box<R>);
	fn c_take_callback(callback: fn(&str) -> usize) -> usize;
	/// Current value.
	fn get(self: &C) -> usize;
	fn set(self: &mut C, n: usize) -> usize;
	fn c_fail_return_primitive() -> Result<usize>;
	fn c_try_return_string() -> Result<String>;
	fn c_try_void() -> Result<()>;
}
"""


@pytest.fixture
def scenario_source() -> str:
	return SCENARIO


@pytest.fixture
def generate_scenario() -> Callable[..., GenerationResult]:
	def _generate(**config: object) -> GenerationResult:
		result = generate(SCENARIO, file="tests.bridge", config=GeneratorConfig(**config))
		assert result.ok, [d.render() for d in result.diagnostics]
		return result

	return _generate


@pytest.fixture
def load_generated() -> Callable[[str, str], types.ModuleType]:
	"""Execute generated host glue as a fresh module (no library bound)."""

	def _load(text: str, name: str = "tests_bridge") -> types.ModuleType:
		module = types.ModuleType(name)
		exec(compile(text, f"<{name}>", "exec"), module.__dict__)
		return module

	return _load
