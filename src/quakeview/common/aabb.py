from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from quakeview.maps.geometry import Vec3


@dataclass(frozen=True)
class AABB:
    minimum: Vec3
    maximum: Vec3

    @staticmethod
    def from_points(points: Iterable[Vec3]) -> AABB | None:
        it = iter(points)
        first = next(it, None)
        if first is None:
            return None
        min_x, min_y, min_z = first
        max_x, max_y, max_z = first
        for x, y, z in it:
            min_x, max_x = min(min_x, x), max(max_x, x)
            min_y, max_y = min(min_y, y), max(max_y, y)
            min_z, max_z = min(min_z, z), max(max_z, z)
        return AABB(minimum=(min_x, min_y, min_z), maximum=(max_x, max_y, max_z))

    def union(self, other: AABB) -> AABB:
        a, b = self.minimum, other.minimum
        c, d = self.maximum, other.maximum
        return AABB(
            minimum=(min(a[0], b[0]), min(a[1], b[1]), min(a[2], b[2])),
            maximum=(max(c[0], d[0]), max(c[1], d[1]), max(c[2], d[2])),
        )

    @property
    def center(self) -> Vec3:
        a, b = self.minimum, self.maximum
        return ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0, (a[2] + b[2]) / 2.0)

    @property
    def size(self) -> Vec3:
        a, b = self.minimum, self.maximum
        return (abs(b[0] - a[0]), abs(b[1] - a[1]), abs(b[2] - a[2]))
