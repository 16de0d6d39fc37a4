# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""C++ glue generator."""

from __future__ import annotations

from .cxx_glue import CxxGlueBuilder, NativeArtifacts, generate

__all__ = ["CxxGlueBuilder", "NativeArtifacts", "generate"]
