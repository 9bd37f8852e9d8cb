"""Exception types raised while decoding slices and assembling volumes."""

from __future__ import annotations


class AssemblyError(ValueError):
    """Base class for every terminal failure of a volume assembly call."""


class EmptyInput(AssemblyError):
    """No slices were supplied."""

    def __init__(self, message: str = "No slices supplied for volume assembly") -> None:
        super().__init__(message)


class DimensionMismatch(AssemblyError):
    """Slices disagree on their pixel grid, or a sample array has the wrong length."""

    def __init__(
        self,
        slice_id: object,
        expected: tuple[int, int],
        actual: tuple[int, int],
        detail: str = "",
    ) -> None:
        self.slice_id = slice_id
        self.expected = expected
        self.actual = actual
        message = (
            f"Slice {slice_id!r} has grid {actual[0]}x{actual[1]}, "
            f"expected {expected[0]}x{expected[1]}"
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class DecodeFailure(AssemblyError):
    """A slice could not be read or decoded."""

    def __init__(self, slice_id: object, reason: str) -> None:
        self.slice_id = slice_id
        self.reason = reason
        super().__init__(f"Failed to decode slice {slice_id!r}: {reason}")


class PixelKindMismatch(AssemblyError):
    """Strict mode: a slice's pixel kind differs from the resolved volume kind."""

    def __init__(self, slice_id: object, expected: str, actual: str) -> None:
        self.slice_id = slice_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Slice {slice_id!r} has pixel kind {actual}, volume kind is {expected}"
        )


class UnsupportedPixelKind(ValueError):
    """A sample array uses a numeric type outside the supported pixel kinds."""
