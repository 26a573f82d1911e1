from unittest.mock import Mock

import pytest

from config import ControlConfig
from publisher import PublisherAdapter
from scheduler import CommandScheduler
from targets import Target, TargetRegistry, VEL_CMD_SCHEMA_ROS_2


class FakeTimer:
    def __init__(self, interval, callback):
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self, n=1):
        for _ in range(n):
            if self.cancelled:
                return
            self.callback()


class FakeTimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, interval, callback):
        timer = FakeTimer(interval, callback)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        return [t for t in self.timers if not t.cancelled]

    @property
    def current(self):
        live = self.live
        assert len(live) <= 1
        return live[0] if live else None


@pytest.fixture
def sink():
    return Mock(spec=['publish', 'advertise', 'unadvertise'])


@pytest.fixture
def registry(sink):
    return TargetRegistry(sink, Target('/cmd_vel_array', VEL_CMD_SCHEMA_ROS_2))


@pytest.fixture
def publisher(registry, sink):
    return PublisherAdapter(registry, sink)


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def scheduler(publisher, timers):
    cfg = ControlConfig(publish_rate=10, max_linear_speed=2.0, max_angular_speed=1.0)
    return CommandScheduler(publisher, cfg, timer_factory=timers)
