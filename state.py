import asyncio
import json
import time
import dataclasses
from dataclasses import dataclass
from typing import List

from config import ControlConfig
from publisher import PublishResult


@dataclass
class Alert:
    level:   str = 'ok'
    message: str = ''


@dataclass
class CommandStatus:
    linear_speed:    float = 0.0
    angular_speed:   float = 0.0
    last_result:     str   = ''
    published_count: int   = 0


class SharedState:
    """Status view over the running components, pushed to browser clients."""

    def __init__(self, scheduler, publisher, registry):
        self.scheduler = scheduler
        self.publisher = publisher
        self.registry  = registry
        self.alerts: List[Alert] = []

        self._subscribers: list = []

    @property
    def config(self) -> ControlConfig:
        return self.scheduler.config

    def command_status(self) -> CommandStatus:
        cmd = self.publisher.last_command
        res = self.publisher.last_result
        return CommandStatus(
            linear_speed=cmd.linear_speed if cmd else 0.0,
            angular_speed=cmd.angular_speed if cmd else 0.0,
            last_result=res.value if res else '',
            published_count=self.publisher.published_count,
        )

    def _validate(self):
        alerts: List[Alert] = []

        for field_name, msg in self.registry.errors().items():
            alerts.append(Alert('warn', f'{field_name}: {msg}'))

        res = self.publisher.last_result
        if res is PublishResult.UNRECOGNIZED_SCHEMA:
            alerts.append(Alert('error', 'Unknown message schema — commands not published'))

        self.alerts = alerts

    def _broadcast_sync(self):
        data = self.to_json()
        for q in self._subscribers[:]:
            try:
                q.put_nowait(data)
            except asyncio.QueueFull:
                pass

    def add_subscriber(self, q):
        self._subscribers.append(q)

    def remove_subscriber(self, q):
        try:
            self._subscribers.remove(q)
        except ValueError:
            pass

    def to_json(self) -> str:
        def _d(obj):
            return dataclasses.asdict(obj)

        target = self.registry.current
        return json.dumps({
            'scheduler':   self.scheduler.snapshot(),
            'command':     _d(self.command_status()),
            'config':      self.config.to_dict(),
            'envelope':    self.publisher.envelope,
            'target':      _d(target) if target else None,
            'topics':      [_d(t) for t in self.registry.available],
            'alerts':      [_d(a) for a in self.alerts],
            'server_time': time.time(),
        })
