from __future__ import annotations

from typing import Iterable, List, Optional


class ElementNetworkError(Exception):
    """Base class for failures raised by the element network study."""


class QueryError(ElementNetworkError, RuntimeError):
    """The occurrence graph failed or returned a malformed payload."""

    def __init__(self, element: str, reason: str):
        self.element = element
        self.reason = reason
        super().__init__(f"Occurrence query failed for element {element}: {reason}")


class JoinMismatchError(ElementNetworkError, ValueError):
    """Catalog symbols and extracted statistics do not line up one-to-one."""

    def __init__(
        self,
        missing: Optional[Iterable[str]] = None,
        unexpected: Optional[Iterable[str]] = None,
        duplicated: Optional[Iterable[str]] = None,
    ):
        self.missing: List[str] = sorted(missing) if missing is not None else []
        self.unexpected: List[str] = sorted(unexpected) if unexpected is not None else []
        self.duplicated: List[str] = sorted(duplicated) if duplicated is not None else []
        parts = []
        if self.missing:
            parts.append(f"missing from extracted stats: {', '.join(map(str, self.missing))}")
        if self.unexpected:
            parts.append(f"not in catalog: {', '.join(map(str, self.unexpected))}")
        if self.duplicated:
            parts.append(f"duplicated symbols: {', '.join(map(str, self.duplicated))}")
        super().__init__("Element key mismatch (" + "; ".join(parts) + ")")


class DegenerateFitError(ElementNetworkError, ValueError):
    """Regression cannot be estimated for the requested relationship."""

    def __init__(self, relationship: str, reason: str):
        self.relationship = relationship
        self.reason = reason
        super().__init__(f"Degenerate fit for {relationship}: {reason}")


class UndefinedTransformError(ElementNetworkError, ValueError):
    """A log transform was requested on zero or negative values."""

    def __init__(self, relationship: str, column: str, symbols: Iterable[str]):
        self.relationship = relationship
        self.column = column
        self.symbols: List[str] = list(symbols)
        super().__init__(
            f"log({column}) undefined for {relationship}: "
            f"non-positive values for {', '.join(self.symbols)}"
        )
