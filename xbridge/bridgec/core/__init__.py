"""
xbridge.bridgec.core: types and diagnostics shared by every stage.

Modules:
  - catalog: TypeKind/PassingMode/Direction and the legality matrix
  - diagnostics: Diagnostic plus the internal-error exception
  - span: source spans
"""

__all__ = [
	"catalog",
	"diagnostics",
	"span",
]
