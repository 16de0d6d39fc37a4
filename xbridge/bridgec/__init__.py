# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
xbridge bridge compiler (`bridgec`).

The CLI entrypoint is `xbridge.bridgec.bridgec:main`; library users call
`xbridge.bridgec.pipeline.generate`.
"""

__all__ = []
