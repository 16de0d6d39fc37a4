# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
CLI entrypoint for `python -m xbridge.bridgec`.
"""

from .bridgec import main

if __name__ == "__main__":
	import sys
	sys.exit(main())
