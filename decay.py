"""
Release decay.

After the pointer is let go, the last drag point is pulled back toward the
start point a little on every tick so the commanded speed ramps down instead
of dropping to zero. The filter only reports whether to keep going; stopping
the timer is the scheduler's job.
"""
from typing import NamedTuple, Protocol

from deflection import Axes, Point
from session import DragSession

DEFAULT_BLEND          = 0.1
DEFAULT_STOP_THRESHOLD = 0.0005


class DecayStep(NamedTuple):
    axes: Axes
    done: bool


class DecayPolicy(Protocol):
    def step(self, session: DragSession) -> DecayStep: ...


class ExponentialDecay:
    def __init__(self, blend: float = DEFAULT_BLEND,
                 stop_threshold: float = DEFAULT_STOP_THRESHOLD):
        if not 0.0 < blend <= 1.0:
            raise ValueError(f'decay blend must be in (0, 1], got {blend}')
        if stop_threshold <= 0.0:
            raise ValueError(f'stop threshold must be > 0, got {stop_threshold}')
        self.blend = blend
        self.stop_threshold = stop_threshold

    @classmethod
    def from_cfg(cls, cfg: dict) -> 'ExponentialDecay':
        return cls(
            blend=float(cfg.get('blend', DEFAULT_BLEND)),
            stop_threshold=float(cfg.get('stop_threshold', DEFAULT_STOP_THRESHOLD)),
        )

    def step(self, session: DragSession) -> DecayStep:
        start, last = session.start_point, session.last_point
        keep = 1.0 - self.blend
        blended = Point(
            last.x * keep + start.x * self.blend,
            last.y * keep + start.y * self.blend,
        )
        axes = session.move(blended)
        return DecayStep(axes, abs(axes.linear) < self.stop_threshold)
