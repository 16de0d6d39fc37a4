# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
One generation run: manifest text in, artifacts or diagnostics out.

parse -> validate -> lower -> {native generator, host generator}

The run is all-or-nothing. Syntax errors stop it before validation, and any
error-severity diagnostic from validation stops it before lowering, so a
failed run returns diagnostics and no artifacts. Artifacts are rendered in
memory; `write_artifacts` writes them only once all of them exist.
"""

from __future__ import annotations

import ctypes
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from xbridge.bridgec.checker import validate
from xbridge.bridgec.core.diagnostics import Diagnostic, has_errors
from xbridge.bridgec.core.span import Span
from xbridge.bridgec.ir import BridgeIR, lower
from xbridge.bridgec.parser import parse_manifest
from xbridge.codegen import host as host_codegen
from xbridge.codegen import native as native_codegen

logger = logging.getLogger(__name__)

HOST_WORD_BITS = ctypes.sizeof(ctypes.c_void_p) * 8
DEFAULT_STEM = "bridge"

_NON_IDENT = re.compile(r"[^A-Za-z0-9_]")


@dataclass(frozen=True)
class GeneratorConfig:
	"""
	Settings for one run.

	`namespace` replaces the manifest's own namespace declaration when set.
	`stem` names the artifacts (`<stem>.bridge.h`, `<stem>.bridge.cc`,
	`<stem>_bridge.py`); it defaults to the manifest file name.
	"""

	namespace: Optional[Tuple[str, ...]] = None
	target_word_bits: int = HOST_WORD_BITS
	header_only: bool = False
	runtime_include: str = "xbridge/bridge.h"
	stem: Optional[str] = None


@dataclass(frozen=True)
class Artifact:
	name: str
	kind: str  # "native-header" | "native-implementation" | "host-module"
	text: str


@dataclass
class GenerationResult:
	artifacts: List[Artifact] = field(default_factory=list)
	diagnostics: List[Diagnostic] = field(default_factory=list)
	ir: Optional[BridgeIR] = None

	@property
	def ok(self) -> bool:
		return not has_errors(self.diagnostics)

	def artifact(self, kind: str) -> Artifact:
		return next(a for a in self.artifacts if a.kind == kind)


def artifact_stem(file: Optional[str], config: GeneratorConfig) -> str:
	if config.stem:
		return config.stem
	if not file:
		return DEFAULT_STEM
	stem = Path(file).name.split(".", 1)[0]
	stem = _NON_IDENT.sub("_", stem)
	return stem or DEFAULT_STEM


def generate(source: str, *, file: Optional[str] = None, config: Optional[GeneratorConfig] = None) -> GenerationResult:
	config = config or GeneratorConfig()
	parsed = parse_manifest(source, file=file)
	diagnostics = list(parsed.diagnostics)
	if has_errors(diagnostics):
		logger.debug("%s: %d syntax errors; skipping validation", file or "<manifest>", len(diagnostics))
		return GenerationResult(diagnostics=diagnostics)

	validated = validate(parsed.manifest)
	diagnostics.extend(validated.diagnostics)
	if has_errors(diagnostics):
		return GenerationResult(diagnostics=diagnostics)

	ir = lower(validated.checked, config.target_word_bits, config.namespace)
	stem = artifact_stem(file, config)
	header_name = f"{stem}.bridge.h"
	native = native_codegen.generate(
		ir,
		header_name=header_name,
		runtime_include=config.runtime_include,
		header_only=config.header_only,
	)
	artifacts = [Artifact(header_name, "native-header", native.header)]
	if native.implementation is not None:
		artifacts.append(Artifact(f"{stem}.bridge.cc", "native-implementation", native.implementation))
	artifacts.append(Artifact(f"{stem}_bridge.py", "host-module", host_codegen.generate(ir)))
	logger.info("generated %s", ", ".join(a.name for a in artifacts))
	return GenerationResult(artifacts=artifacts, diagnostics=diagnostics, ir=ir)


def write_artifacts(artifacts: Sequence[Artifact], out_dir: Path) -> List[Diagnostic]:
	"""Write every artifact under `out_dir`; I/O failures come back as driver diagnostics."""
	diagnostics: List[Diagnostic] = []
	try:
		out_dir.mkdir(parents=True, exist_ok=True)
	except OSError as err:
		return [_io_error(out_dir, err)]
	for artifact in artifacts:
		path = out_dir / artifact.name
		try:
			path.write_text(artifact.text, encoding="utf-8")
		except OSError as err:
			diagnostics.append(_io_error(path, err))
			continue
		logger.debug("wrote %s (%d bytes)", path, len(artifact.text))
	return diagnostics


def _io_error(path: Path, err: OSError) -> Diagnostic:
	reason = err.strerror or str(err)
	return Diagnostic(
		message=f"cannot write {path}: {reason}",
		code="BRIDGE_IO",
		phase="driver",
		severity="error",
		span=Span(file=str(path)),
	)


__all__ = [
	"HOST_WORD_BITS",
	"GeneratorConfig",
	"Artifact",
	"GenerationResult",
	"artifact_stem",
	"generate",
	"write_artifacts",
]
