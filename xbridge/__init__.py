# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
xbridge: a generator of matching C++ and Python glue from one bridge manifest.

Packages:
  bridgec: manifest parser, checker, IR and the command-line driver
  codegen: renderers for the host (Python) and native (C++) artifacts
  runtime: the runtime type library both artifacts are built on
"""

__version__ = "0.1.0"

__all__ = ["bridgec", "codegen", "runtime"]
