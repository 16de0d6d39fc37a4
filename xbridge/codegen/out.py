# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Line-oriented text builder shared by the host and native generators.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional


@dataclass
class CodeWriter:
	"""Accumulates generated source with indentation tracking."""

	indent_str: str = "    "
	lines: List[str] = field(default_factory=list)
	indent_level: int = 0

	def indent(self) -> None:
		self.indent_level += 1

	def dedent(self) -> None:
		if self.indent_level == 0:
			raise RuntimeError("dedent below zero")
		self.indent_level -= 1

	def emit(self, line: str = "") -> None:
		if line:
			self.lines.append(self.indent_str * self.indent_level + line)
		else:
			self.lines.append("")

	def blank(self, count: int = 1) -> None:
		"""Pad the output to `count` trailing empty lines; never adds more than that."""
		if not self.lines:
			return
		trailing = 0
		for line in reversed(self.lines):
			if line:
				break
			trailing += 1
		self.lines.extend([""] * (count - trailing))

	@contextmanager
	def block(self, opener: str, closer: Optional[str] = None) -> Iterator[None]:
		"""Emit `opener`, indent the body, then emit `closer` if given."""
		self.emit(opener)
		self.indent()
		try:
			yield
		finally:
			self.dedent()
			if closer is not None:
				self.emit(closer)

	def doc_comment(self, doc: Optional[str], prefix: str) -> None:
		if not doc:
			return
		for line in doc.splitlines():
			self.emit(f"{prefix} {line}".rstrip())

	def render(self) -> str:
		text = "\n".join(self.lines)
		return text.rstrip("\n") + "\n"


__all__ = ["CodeWriter"]
