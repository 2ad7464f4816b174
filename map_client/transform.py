"""Immutable 2D affine transform used for the map pan/zoom state."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

_EPSILON = 1e-12


@dataclass(frozen=True)
class Transform:
    """Affine matrix ``[[a, c, e], [b, d, f], [0, 0, 1]]``.

    A point maps as ``x' = a*x + c*y + e`` and ``y' = b*x + d*y + f``.
    Instances are always invertible; building a singular or non-finite
    matrix raises ``ValueError``.
    """

    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0

    def __post_init__(self) -> None:
        values = (self.a, self.b, self.c, self.d, self.e, self.f)
        if not all(math.isfinite(value) for value in values):
            raise ValueError("transform components must be finite")
        if abs(self.determinant) <= _EPSILON:
            raise ValueError("transform is not invertible")

    @classmethod
    def identity(cls) -> "Transform":
        return cls()

    @classmethod
    def translation(cls, dx: float, dy: float) -> "Transform":
        return cls(e=float(dx), f=float(dy))

    @classmethod
    def scaling(cls, sx: float, sy: float | None = None) -> "Transform":
        return cls(a=float(sx), d=float(sx if sy is None else sy))

    @property
    def determinant(self) -> float:
        return self.a * self.d - self.b * self.c

    def multiply(self, other: "Transform") -> "Transform":
        """Return ``self ∘ other``: ``other`` is applied first."""
        return Transform(
            a=self.a * other.a + self.c * other.b,
            b=self.b * other.a + self.d * other.b,
            c=self.a * other.c + self.c * other.d,
            d=self.b * other.c + self.d * other.d,
            e=self.a * other.e + self.c * other.f + self.e,
            f=self.b * other.e + self.d * other.f + self.f,
        )

    def translate(self, dx: float, dy: float) -> "Transform":
        return self.multiply(Transform.translation(dx, dy))

    def scale(self, sx: float, sy: float | None = None) -> "Transform":
        return self.multiply(Transform.scaling(sx, sy))

    def inverse(self) -> "Transform":
        det = self.determinant
        return Transform(
            a=self.d / det,
            b=-self.b / det,
            c=-self.c / det,
            d=self.a / det,
            e=(self.c * self.f - self.d * self.e) / det,
            f=(self.b * self.e - self.a * self.f) / det,
        )

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        return (
            self.a * x + self.c * y + self.e,
            self.b * x + self.d * y + self.f,
        )

    def as_tuple(self) -> Tuple[float, float, float, float, float, float]:
        return (self.a, self.b, self.c, self.d, self.e, self.f)
