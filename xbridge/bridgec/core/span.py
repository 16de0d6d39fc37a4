# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Source spans for bridge manifest diagnostics.

Lines and columns are 1-based, as lark reports them. `end_column` is
exclusive: a span covering the token `Foo` at column 9 ends at column 12.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Best-effort file/line/column range plus the raw parser object it came from."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None
	end_line: Optional[int] = None
	end_column: Optional[int] = None
	raw: Any = None

	@classmethod
	def from_loc(cls, loc: Any, *, file: Optional[str] = None) -> "Span":
		"""
		Build a Span from an AST `Located` (or anything with line/column attributes).

		An existing Span is returned as-is, except that a missing file name is
		filled in from `file`.
		"""
		if loc is None:
			return cls(file=file)
		if isinstance(loc, cls):
			if loc.file is None and file is not None:
				return cls(file, loc.line, loc.column, loc.end_line, loc.end_column, loc.raw)
			return loc
		return cls(
			file=file,
			line=getattr(loc, "line", None),
			column=getattr(loc, "column", None),
			end_line=getattr(loc, "end_line", None),
			end_column=getattr(loc, "end_column", None),
			raw=loc,
		)

	def covers(self, line: int, column: int) -> bool:
		"""True if (line, column) falls inside this span."""
		if self.line is None or self.column is None:
			return False
		end_line = self.end_line if self.end_line is not None else self.line
		end_column = self.end_column if self.end_column is not None else self.column + 1
		if (line, column) < (self.line, self.column):
			return False
		return (line, column) < (end_line, end_column)

	def label(self) -> str:
		"""`file:line:col`, dropping the parts that are unknown."""
		parts = [self.file or "<manifest>"]
		if self.line is not None:
			parts.append(str(self.line))
			if self.column is not None:
				parts.append(str(self.column))
		return ":".join(parts)


__all__ = ["Span"]
