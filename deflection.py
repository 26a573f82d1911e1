"""
Pointer deflection → control axes.

Drag displacement is measured from the drag start point to the current point
in widget pixels. At DEFLECTION_RADIUS pixels an axis reaches its nominal full
scale:
  up/down    → linear axis   (1.0 at full scale)
  left/right → angular axis  (~pi/2 at full scale)

Screen y grows downwards, so dragging up gives a positive linear axis and
dragging left a positive (CCW) angular axis.
"""
from dataclasses import dataclass
from typing import NamedTuple

DEFLECTION_RADIUS = 100.0
LINEAR_FULL_SCALE = 1.0
ANGULAR_FULL_SCALE = 1.5707


@dataclass(frozen=True)
class Point:
    x: float
    y: float


class Axes(NamedTuple):
    linear:  float
    angular: float


def map_deflection(start: Point, current: Point) -> Axes:
    dx = start.x - current.x
    dy = start.y - current.y
    angular = (dx / DEFLECTION_RADIUS) * ANGULAR_FULL_SCALE
    linear  = (dy / DEFLECTION_RADIUS) * LINEAR_FULL_SCALE
    return Axes(linear, angular)
