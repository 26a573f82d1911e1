"""
Command scheduler.

  IDLE ──start──▶ DRIVING ──end──▶ DECAYING ──settled──▶ IDLE
                     ▲                 │
                     └─────start───────┘

DRIVING and DECAYING each own one periodic timer ticking at publish_rate.
Every transition goes through _transition(), which cancels the running timer
before starting the next one, so at most one timer is ever live.
Move events only update the session; publishing happens on ticks.
"""
import asyncio
import enum
import logging
import math
from typing import Callable, Optional

from config import ControlConfig
from decay import DecayPolicy, ExponentialDecay
from deflection import Axes, Point
from session import DragSession

logger = logging.getLogger(__name__)


class SchedulerState(enum.Enum):
    IDLE     = 'idle'
    DRIVING  = 'driving'
    DECAYING = 'decaying'


class PeriodicTimer:
    """setInterval-style repeating callback on the asyncio loop."""

    def __init__(self, interval: float, callback: Callable[[], None],
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self.interval = interval
        self.callback = callback
        self._loop = loop or asyncio.get_running_loop()
        self._handle: Optional[asyncio.TimerHandle] = self._loop.call_later(
            self.interval, self._fire)

    @property
    def active(self) -> bool:
        return self._handle is not None

    def cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self):
        # re-arm before the callback so the callback may cancel us
        self._handle = self._loop.call_later(self.interval, self._fire)
        self.callback()


def _finite(p: Point) -> bool:
    return math.isfinite(p.x) and math.isfinite(p.y)


TimerFactory = Callable[[float, Callable[[], None]], PeriodicTimer]


class CommandScheduler:
    def __init__(self, publisher, config: ControlConfig,
                 decay: Optional[DecayPolicy] = None,
                 timer_factory: Optional[TimerFactory] = None):
        self.publisher = publisher
        self.config = config
        self.decay = decay or ExponentialDecay()
        self._timer_factory = timer_factory or PeriodicTimer

        self.state = SchedulerState.IDLE
        self.session: Optional[DragSession] = None
        self.owner = None
        self._timer = None

    # ------------------------------------------------------------------
    # Drag events
    # ------------------------------------------------------------------

    def on_start(self, position: Point, owner=None):
        if not _finite(position):
            logger.warning(f'Ignoring drag start at non-finite point {position}')
            return
        self.session = DragSession.begin(position)
        self.owner = owner
        self._transition(SchedulerState.DRIVING)

    def on_move(self, position: Point):
        if self.state is not SchedulerState.DRIVING:
            return
        if not _finite(position):
            logger.warning(f'Ignoring drag move to non-finite point {position}')
            return
        self.session.move(position)

    def on_end(self, owner=None):
        """End the drag. An ``owner`` only ends the drag it started itself."""
        if self.state is not SchedulerState.DRIVING:
            return
        if owner is not None and owner is not self.owner:
            return
        self._transition(SchedulerState.DECAYING)

    def update_config(self, config: ControlConfig):
        # speeds apply from the next tick, the rate from the next timer
        self.config = config

    def shutdown(self):
        self._transition(SchedulerState.IDLE)
        self.session = None

    # ------------------------------------------------------------------

    @property
    def timer_active(self) -> bool:
        return self._timer is not None

    def _transition(self, new_state: SchedulerState):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if new_state is SchedulerState.DRIVING:
            self._timer = self._timer_factory(self.config.interval, self._drive_tick)
        elif new_state is SchedulerState.DECAYING:
            self._timer = self._timer_factory(self.config.interval, self._decay_tick)

        if new_state is not self.state:
            logger.debug(f'{self.state.value} → {new_state.value}')
        self.state = new_state

    def _drive_tick(self):
        if self.session is None or not self.session.has_command:
            return
        self._publish(self.session.pending)

    def _decay_tick(self):
        if self.session is None or not self.session.has_command:
            # released before any move: nothing to ramp down
            self._transition(SchedulerState.IDLE)
            return

        step = self.decay.step(self.session)
        self._publish(step.axes)
        if step.done:
            self._transition(SchedulerState.IDLE)

    def _publish(self, axes: Axes):
        cfg = self.config
        self.publisher.publish(axes.linear * cfg.max_linear_speed,
                               axes.angular * cfg.max_angular_speed)

    def snapshot(self) -> dict:
        pending = self.session.pending if self.session else None
        return {
            'state':   self.state.value,
            'linear_axis':  pending.linear if pending else 0.0,
            'angular_axis': pending.angular if pending else 0.0,
        }
