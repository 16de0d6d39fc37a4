# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Exceptions raised by the host half of the runtime type library.

`BridgeError` is the only one user code is expected to catch routinely: it
is what a failing fallible native call turns into. The others signal misuse
of the glue (moved-from handles, a library built from a different manifest).
"""

from __future__ import annotations


class BridgeError(Exception):
	"""Failure reported across the boundary; `message` is the native text verbatim."""

	def __init__(self, message: str) -> None:
		super().__init__(message)
		self.message = message


class OwnershipError(RuntimeError):
	"""A tombstoned (already moved or closed) handle was used again."""


class LayoutError(RuntimeError):
	"""Host ctypes layout disagrees with the layout the generator computed."""


class BindingError(RuntimeError):
	"""A generated module could not be bound to a library or host implementation."""


__all__ = ["BridgeError", "OwnershipError", "LayoutError", "BindingError"]
