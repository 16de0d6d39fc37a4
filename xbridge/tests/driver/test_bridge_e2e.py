# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Manifest -> generated C++ -> g++/clang++ shared library -> bind() smoke test.

The C++ side is a small hand-written implementation of the scenario bridge;
some of its functions call back into the host table so both directions run
through real compiled shims.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from xbridge.bridgec.pipeline import generate, write_artifacts
from xbridge.runtime import include_dir
from xbridge.runtime.errors import BridgeError
from xbridge.runtime.heap import ALLOCATOR, HEAP

TESTS_HEADER = """\
#pragma once

#include <cstddef>

namespace tests {
namespace ffi {

class C {
public:
  explicit C(std::size_t value) : value_(value) {}
  std::size_t get() const { return value_; }
  std::size_t set(std::size_t n) {
    value_ = n;
    return value_;
  }

private:
  std::size_t value_;
};

} // namespace ffi
} // namespace tests
"""

TESTS_IMPL = """\
#include "tests.bridge.h"
#include "tests/ffi/tests.h"

#include <memory>
#include <stdexcept>
#include <string>

namespace tests {
namespace ffi {

std::size_t c_return_primitive() { return 2020; }

Shared c_return_shared() { return r_return_shared(); }

::xbridge::String c_return_string() { return ::xbridge::String("2020", 4); }

std::unique_ptr<C> c_return_unique_ptr() { return std::unique_ptr<C>(new C(r_return_primitive())); }

const std::size_t &c_return_ref(const Shared &shared) { return shared.z; }

::xbridge::Str c_return_str(const Shared &shared) { return shared.z == 2020 ? "2020" : "other"; }

void c_take_shared(Shared shared) { r_take_string(::xbridge::String(std::to_string(shared.z))); }

void c_take_vec_u8(::xbridge::Vec<std::uint8_t> v) {
  std::string joined;
  for (std::size_t i = 0; i < v.size(); ++i) {
    if (i != 0) {
      joined += ",";
    }
    joined += std::to_string(v[i]);
  }
  r_take_string(::xbridge::String(joined));
}

std::size_t c_take_str(::xbridge::Str s) { return s.size(); }

std::uint32_t c_take_slice(::xbridge::Slice<const std::uint32_t> s) {
  std::uint32_t total = 0;
  for (std::size_t i = 0; i < s.size(); ++i) {
    total += s[i];
  }
  return total;
}

void c_take_mut_vec(::xbridge::Vec<std::uint8_t> &v) { v.push_back(static_cast<std::uint8_t>(v.size())); }

Color c_take_enum(Color color) { return color == Color::Blue ? Color::Green : Color::Red; }

std::size_t c_take_unique_ptr(std::unique_ptr<C> c) { return c->get(); }

void c_take_box(::xbridge::Box<R> r) {
  ::xbridge::Box<R> other = r_return_box();
}

std::size_t c_take_callback(::xbridge::Fn<std::size_t(::xbridge::Str)> callback) {
  return callback("20") + callback("2020");
}

std::size_t c_fail_return_primitive() { throw std::logic_error("logic error"); }

::xbridge::String c_try_return_string() { return ::xbridge::String(std::to_string(r_try_return_primitive())); }

void c_try_void() { r_fail_void(); }

} // namespace ffi
} // namespace tests
"""


def _compiler() -> str:
	cxx = shutil.which("g++") or shutil.which("clang++")
	if cxx is None:
		pytest.skip("no C++ compiler (g++ or clang++) available")
	return cxx


def _build_library(source: str, build_dir: Path) -> Path:
	"""Generate `source` into `build_dir` and link it with the test implementation."""
	cxx = _compiler()
	result = generate(source, file="tests.bridge")
	assert result.ok, [d.render() for d in result.diagnostics]
	assert write_artifacts(result.artifacts, build_dir) == []

	header_dir = build_dir / "tests" / "ffi"
	header_dir.mkdir(parents=True, exist_ok=True)
	(header_dir / "tests.h").write_text(TESTS_HEADER)
	impl_path = build_dir / "tests_impl.cc"
	impl_path.write_text(TESTS_IMPL)
	lib_path = build_dir / "libtests_bridge.so"

	compile_res = subprocess.run(
		[
			cxx,
			"-std=c++17",
			"-shared",
			"-fPIC",
			"-I",
			str(include_dir()),
			"-I",
			str(build_dir),
			str(build_dir / "tests.bridge.cc"),
			str(impl_path),
			"-o",
			str(lib_path),
		],
		capture_output=True,
		text=True,
	)
	if compile_res.returncode != 0:
		raise RuntimeError(f"{cxx} failed: {compile_res.stderr}")
	return lib_path


class _Host:
	def __init__(self, shared):
		self.shared = shared
		self.strings = []
		self.failure = None

	def r_return_primitive(self):
		return 2020

	def r_return_box(self):
		return "boxed"

	def r_take_string(self, s):
		self.strings.append(s)
		return len(s)

	def r_return_shared(self):
		return self.shared(z=2020)

	def r_try_return_primitive(self):
		if self.failure is not None:
			raise RuntimeError(self.failure)
		return 2020

	def r_fail_void(self):
		raise BridgeError("kept verbatim")


@pytest.fixture(scope="module")
def build_dir(tmp_path_factory):
	return tmp_path_factory.mktemp("bridge_e2e")


@pytest.fixture
def native(build_dir, generate_scenario, load_generated, scenario_source):
	lib_path = build_dir / "libtests_bridge.so"
	if not lib_path.exists():
		_build_library(scenario_source, build_dir)
	bridge = load_generated(generate_scenario().artifact("host-module").text)
	host = _Host(bridge.Shared)
	bridge.bind(str(lib_path), host=host)
	return bridge, host


def test_values_cross_the_compiled_boundary(native) -> None:
	bridge, host = native
	assert bridge.c_return_primitive() == 2020
	assert bridge.c_return_shared().z == 2020
	assert bridge.c_return_string() == "2020"
	assert bridge.c_take_str("héllo") == 6
	assert bridge.c_take_slice([1, 2, 3]) == 6
	assert bridge.c_take_enum(bridge.Color.Blue) is bridge.Color.Green
	shared = bridge.Shared(z=2020)
	assert bridge.c_return_ref(shared) == 2020
	assert bridge.c_return_str(shared) == "2020"


def test_owned_values_move_to_native(native) -> None:
	bridge, host = native
	before = ALLOCATOR.outstanding()
	host.strings.clear()
	bridge.c_take_shared(bridge.Shared(z=7))
	bridge.c_take_vec_u8([86, 75, 30, 9])
	assert host.strings == ["7", "86,75,30,9"]
	items = [1, 2]
	bridge.c_take_mut_vec(items)
	assert items == [1, 2, 2]
	assert ALLOCATOR.outstanding() == before


def test_native_handles_and_boxes(native) -> None:
	bridge, host = native
	with bridge.c_return_unique_ptr() as handle:
		assert handle.get() == 2020
		assert handle.set(7) == 7
		assert handle.get() == 7
	moved = bridge.c_return_unique_ptr()
	assert bridge.c_take_unique_ptr(moved) == 2020
	assert moved.closed

	live = HEAP.live()
	bridge.c_take_box({"state": 1})
	assert HEAP.live() == live


def test_callbacks_run_from_native(native) -> None:
	bridge, host = native
	seen = []

	def callback(word):
		seen.append(word)
		return len(word)

	assert bridge.c_take_callback(callback) == 6
	assert seen == ["20", "2020"]


def test_errors_cross_in_both_directions(native) -> None:
	bridge, host = native
	with pytest.raises(BridgeError, match="^logic error$"):
		bridge.c_fail_return_primitive()
	assert bridge.c_try_return_string() == "2020"
	host.failure = "host failure"
	try:
		with pytest.raises(BridgeError, match="^host failure$"):
			bridge.c_try_return_string()
	finally:
		host.failure = None
	with pytest.raises(BridgeError, match="^kept verbatim$"):
		bridge.c_try_void()
