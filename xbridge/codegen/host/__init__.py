# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Python (ctypes) glue generator."""

from __future__ import annotations

from .python_glue import PythonGlueBuilder, generate

__all__ = ["PythonGlueBuilder", "generate"]
