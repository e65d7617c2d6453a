"""
Hex coordinate math for the tactical combat grid.

Uses axial coordinates (q, r) with flat-top hexes. Offset addressing
(col, row) follows the odd-q layout used by the map editor.
"""

import math
from typing import NamedTuple


class AxialCoord(NamedTuple):
    """Integer hex address."""
    q: int
    r: int

    @property
    def s(self) -> int:
        """Third cube coordinate (q + r + s = 0)."""
        return -self.q - self.r

    def cube_coords(self) -> tuple[int, int, int]:
        return (self.q, self.r, self.s)


# Axial direction vectors for flat-top hexes
DIRECTIONS: tuple[AxialCoord, ...] = (
    AxialCoord(1, 0),
    AxialCoord(1, -1),
    AxialCoord(0, -1),
    AxialCoord(-1, 0),
    AxialCoord(-1, 1),
    AxialCoord(0, 1),
)


def _require_int(*values) -> None:
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"hex coordinates must be integers, got {value!r}")


def coord(value) -> AxialCoord:
    """Coerce a tuple, dict or object with q/r into an AxialCoord."""
    if isinstance(value, AxialCoord):
        return value
    if isinstance(value, dict):
        q, r = value["q"], value["r"]
    elif isinstance(value, (tuple, list)):
        q, r = value
    else:
        q, r = value.q, value.r
    _require_int(q, r)
    return AxialCoord(q, r)


def offset_to_axial(col: int, row: int) -> AxialCoord:
    """Convert odd-q offset (col, row) to axial (q, r)."""
    _require_int(col, row)
    q = col
    r = row - (col - (col & 1)) // 2
    return AxialCoord(q, r)


def axial_to_offset(q: int, r: int) -> tuple[int, int]:
    """Convert axial (q, r) to odd-q offset (col, row)."""
    _require_int(q, r)
    col = q
    row = r + (q - (q & 1)) // 2
    return (col, row)


def hex_distance(a, b) -> int:
    """Calculate distance in hexes between two coordinates."""
    a, b = coord(a), coord(b)
    return (abs(a.q - b.q) + abs(a.q + a.r - b.q - b.r) + abs(a.r - b.r)) // 2


def neighbors(center) -> list[AxialCoord]:
    """All six adjacent coordinates, in DIRECTIONS order."""
    c = coord(center)
    return [AxialCoord(c.q + d.q, c.r + d.r) for d in DIRECTIONS]


def hex_round(q: float, r: float) -> AxialCoord:
    """Round fractional hex coordinates to nearest hex."""
    s = -q - r
    rq, rr, rs = round(q), round(r), round(s)

    q_diff = abs(rq - q)
    r_diff = abs(rr - r)
    s_diff = abs(rs - s)

    if q_diff > r_diff and q_diff > s_diff:
        rq = -rr - rs
    elif r_diff > s_diff:
        rr = -rq - rs

    return AxialCoord(int(rq), int(rr))


def hex_line(a, b) -> list[AxialCoord]:
    """Get all hexes along a line between two points, both ends included."""
    a, b = coord(a), coord(b)
    n = hex_distance(a, b)
    if n == 0:
        return [a]

    # Nudge off exact edges so rounding is stable along hex boundaries
    eps_q, eps_r = 1e-6, 2e-6
    results = []
    for i in range(n + 1):
        t = i / n
        q = a.q + eps_q + (b.q - a.q) * t
        r = a.r + eps_r + (b.r - a.r) * t
        results.append(hex_round(q, r))

    return results


def coords_in_radius(center, radius: int) -> list[AxialCoord]:
    """Get all coordinates within radius hexes of center (center included)."""
    c = coord(center)
    cells = []
    for dq in range(-radius, radius + 1):
        for dr in range(max(-radius, -dq - radius), min(radius, -dq + radius) + 1):
            cells.append(AxialCoord(c.q + dq, c.r + dr))
    return cells


def axial_to_world(q: int, r: int, size: float = 1.0) -> tuple[float, float]:
    """Centre of a hex in world units (x, z) for a hex of circumradius size."""
    x = size * math.sqrt(3) * (q + r / 2)
    z = size * 1.5 * r
    return (x, z)


def bearing(a, b) -> float:
    """World-space angle in degrees from a to b, 0 along +x, counter-clockwise."""
    ax, az = axial_to_world(*coord(a))
    bx, bz = axial_to_world(*coord(b))
    return math.degrees(math.atan2(bz - az, bx - ax)) % 360
