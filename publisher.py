"""
Velocity command publisher.

Each speed is wrapped in its own std_msgs/Float64MultiArray-shaped payload:

  {'layout': {'dim': [], 'data_offset': 0}, 'data': [value]}

Envelope modes:
  linear   : only the linear payload is published (one message per tick)
  combined : one message carrying [linear, angular]
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from targets import VEL_CMD_SCHEMAS

logger = logging.getLogger(__name__)

ENVELOPE_LINEAR   = 'linear'
ENVELOPE_COMBINED = 'combined'
ENVELOPE_MODES = (ENVELOPE_LINEAR, ENVELOPE_COMBINED)


class PublishResult(enum.Enum):
    PUBLISHED           = 'published'
    NO_TARGET           = 'no_target'
    UNRECOGNIZED_SCHEMA = 'unrecognized_schema'


class PublishSink(Protocol):
    def publish(self, target_name: str, payload: dict) -> None: ...


@dataclass(frozen=True)
class Command:
    linear_speed:  float
    angular_speed: float


def build_multi_array(data: Sequence[float], labels: Sequence[str] = ()) -> dict:
    dims = [{'label': label, 'size': len(data), 'stride': len(data)} for label in labels]
    return {
        'layout': {'dim': dims, 'data_offset': 0},
        'data':   [float(v) for v in data],
    }


@dataclass(frozen=True)
class VelocityEnvelope:
    linear:  dict
    angular: dict

    @classmethod
    def from_command(cls, cmd: Command) -> 'VelocityEnvelope':
        return cls(
            linear=build_multi_array([cmd.linear_speed]),
            angular=build_multi_array([cmd.angular_speed]),
        )


class PublisherAdapter:
    def __init__(self, registry, sink: Optional[PublishSink] = None,
                 envelope: str = ENVELOPE_LINEAR):
        if envelope not in ENVELOPE_MODES:
            raise ValueError(f'unknown envelope mode: {envelope!r}')
        self.registry = registry
        self.sink = sink
        self.envelope = envelope

        self.last_command: Optional[Command] = None
        self.last_result:  Optional[PublishResult] = None
        self.published_count = 0

    def publish(self, linear_speed: float, angular_speed: float) -> PublishResult:
        result = self._publish(Command(linear_speed, angular_speed))
        self.last_result = result
        return result

    def _publish(self, cmd: Command) -> PublishResult:
        target = self.registry.current
        if target is None:
            return PublishResult.NO_TARGET

        if target.schema_name not in VEL_CMD_SCHEMAS:
            logger.error(f'Unknown message schema: {target.schema_name!r} on {target.name}')
            return PublishResult.UNRECOGNIZED_SCHEMA

        self.last_command = cmd
        if self.sink is not None:
            self.sink.publish(target.name, self._payload(cmd))
        self.published_count += 1
        return PublishResult.PUBLISHED

    def _payload(self, cmd: Command) -> dict:
        if self.envelope == ENVELOPE_COMBINED:
            return build_multi_array([cmd.linear_speed, cmd.angular_speed], labels=['cmd'])
        return VelocityEnvelope.from_command(cmd).linear
