"""
xbridge.codegen: renderers from the Bridge IR to generated source.

Packages:
  - host: Python ctypes glue module
  - native: C++ header and implementation unit
"""

__all__ = ["host", "native", "out"]
