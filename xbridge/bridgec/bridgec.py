# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
bridgec: command-line driver for the bridge generator.

	python -m xbridge.bridgec MANIFEST -o OUTDIR [--header-only] [--namespace NS]
		[--target-word-bits N] [--json] [-v]

Exit codes: 0 when artifacts were written, 1 when diagnostics were reported,
2 for usage errors (argparse's own convention).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from xbridge.bridgec.core.catalog import CXX_KEYWORDS
from xbridge.bridgec.core.diagnostics import Diagnostic, has_errors
from xbridge.bridgec.core.span import Span
from xbridge.bridgec.ir import SUPPORTED_WORD_BITS
from xbridge.bridgec.pipeline import HOST_WORD_BITS, GeneratorConfig, generate, write_artifacts
from xbridge.runtime import include_dir

logger = logging.getLogger(__name__)


def _parse_namespace(parser: argparse.ArgumentParser, text: str) -> tuple:
	segments = tuple(text.split("::")) if text else ()
	for segment in segments:
		if not segment.isidentifier() or segment in CXX_KEYWORDS or segment.startswith("__"):
			parser.error(f"invalid namespace '{text}': bad segment '{segment}'")
	return segments


def _report(diagnostics: List[Diagnostic], *, as_json: bool, exit_code: int, artifacts: List[str]) -> None:
	if as_json:
		payload = {
			"exit_code": exit_code,
			"diagnostics": [d.to_json() for d in diagnostics],
			"artifacts": artifacts,
		}
		print(json.dumps(payload))
		return
	for diag in diagnostics:
		print(diag.render(), file=sys.stderr)


def build_arg_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="bridgec",
		description="Generate matching C++ and Python glue from a bridge manifest",
	)
	parser.add_argument("manifest", type=Path, nargs="?", help="Path to the bridge manifest")
	parser.add_argument("-o", "--out-dir", type=Path, default=Path("."), help="Directory for generated files")
	parser.add_argument("--header-only", action="store_true", help="Emit only the C++ header (and the host module)")
	parser.add_argument("--namespace", type=str, help="C++ namespace (`a::b`) overriding the manifest's declaration")
	parser.add_argument(
		"--target-word-bits",
		type=int,
		default=HOST_WORD_BITS,
		choices=SUPPORTED_WORD_BITS,
		help=f"Pointer width of the target in bits (default: {HOST_WORD_BITS})",
	)
	parser.add_argument("--runtime-include", type=str, default="xbridge/bridge.h", help="How the header includes the runtime")
	parser.add_argument("--stem", type=str, help="Base name for generated files (default: manifest file name)")
	parser.add_argument(
		"--json",
		action="store_true",
		help="Emit diagnostics as JSON (phase/code/message/severity/file/line/column)",
	)
	parser.add_argument(
		"--print-include-dir",
		action="store_true",
		help="Print the directory holding xbridge/bridge.h and exit",
	)
	parser.add_argument("-v", "--verbose", action="count", default=0, help="Log progress (-vv for debug output)")
	return parser


def main(argv: Optional[List[str]] = None) -> int:
	parser = build_arg_parser()
	args = parser.parse_args(argv)

	level = logging.WARNING
	if args.verbose == 1:
		level = logging.INFO
	elif args.verbose > 1:
		level = logging.DEBUG
	logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)

	if args.print_include_dir:
		print(include_dir())
		return 0
	if args.manifest is None:
		parser.error("the following arguments are required: manifest")

	namespace = _parse_namespace(parser, args.namespace) if args.namespace is not None else None
	config = GeneratorConfig(
		namespace=namespace,
		target_word_bits=args.target_word_bits,
		header_only=args.header_only,
		runtime_include=args.runtime_include,
		stem=args.stem,
	)

	manifest_path: Path = args.manifest
	try:
		source = manifest_path.read_text(encoding="utf-8")
	except (OSError, UnicodeDecodeError) as err:
		diag = Diagnostic(
			message=f"cannot read manifest: {err}",
			code="BRIDGE_IO",
			phase="driver",
			span=Span(file=str(manifest_path)),
		)
		_report([diag], as_json=args.json, exit_code=1, artifacts=[])
		return 1

	result = generate(source, file=str(manifest_path), config=config)
	diagnostics = list(result.diagnostics)
	if not result.ok:
		_report(diagnostics, as_json=args.json, exit_code=1, artifacts=[])
		return 1

	diagnostics.extend(write_artifacts(result.artifacts, args.out_dir))
	exit_code = 1 if has_errors(diagnostics) else 0
	written = [str(args.out_dir / a.name) for a in result.artifacts] if exit_code == 0 else []
	_report(diagnostics, as_json=args.json, exit_code=exit_code, artifacts=written)
	return exit_code


if __name__ == "__main__":  # pragma: no cover
	sys.exit(main())
