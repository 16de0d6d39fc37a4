# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Diagnostics reported by the parser, checker and driver.

A run collects every diagnostic it produces and surfaces them together at the
end; nothing is printed from inside a phase.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable

from .span import Span


class InternalGeneratorError(RuntimeError):
	"""
	An invariant the validator should have guaranteed does not hold.

	Raised from lowering and code generation. It indicates a bug in xbridge,
	not a problem with the manifest, and is never turned into a diagnostic.
	"""


@dataclass
class Diagnostic:
	"""Represents a generator diagnostic (error/warning/note)."""

	message: str
	code: str | None = None
	# "parser", "checker" or "driver".
	phase: str | None = None
	severity: str = "error"
	span: Span = field(default_factory=Span)
	notes: list[str] = field(default_factory=list)

	def __post_init__(self) -> None:
		if self.span is None:  # type: ignore[unreachable]
			self.span = Span()

	def render(self) -> str:
		"""Human form: `file:line:col: severity: message`, notes on following lines."""
		lines = [f"{self.span.label()}: {self.severity}: {self.message}"]
		lines.extend(f"  note: {note}" for note in self.notes)
		return "\n".join(lines)

	def to_json(self) -> Dict[str, Any]:
		return {
			"phase": self.phase,
			"code": self.code,
			"severity": self.severity,
			"message": self.message,
			"file": self.span.file,
			"line": self.span.line,
			"column": self.span.column,
			"end_line": self.span.end_line,
			"end_column": self.span.end_column,
			"notes": list(self.notes),
		}


def has_errors(diagnostics: Iterable[Diagnostic]) -> bool:
	return any(d.severity == "error" for d in diagnostics)


__all__ = ["Diagnostic", "InternalGeneratorError", "has_errors"]
