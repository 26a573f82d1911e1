"""
Publish target (topic) selection.

Only topics whose schema is a Float64MultiArray spelling are offered for
selection. Switching the target unadvertises the old topic on the sink and
advertises the new one.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

VEL_CMD_SCHEMA_ROS_1 = 'std_msgs/Float64MultiArray'
VEL_CMD_SCHEMA_ROS_2 = 'std_msgs/msg/Float64MultiArray'
VEL_CMD_SCHEMAS = (VEL_CMD_SCHEMA_ROS_1, VEL_CMD_SCHEMA_ROS_2)


@dataclass(frozen=True)
class Target:
    name:        str
    schema_name: str


class TargetRegistry:
    def __init__(self, sink=None, current: Optional[Target] = None):
        self._sink = sink
        self._available: List[Target] = []
        self._current: Optional[Target] = None
        if current is not None:
            self._switch(current)

    @classmethod
    def from_cfg(cls, cfg: dict, sink=None) -> 'TargetRegistry':
        topic  = cfg.get('topic')
        schema = cfg.get('message_schema')
        initial = Target(topic, schema) if topic and schema else None
        registry = cls(sink, initial)
        registry.set_available(
            Target(t['name'], t['schema']) for t in cfg.get('topics', []) or [])
        return registry

    @property
    def current(self) -> Optional[Target]:
        return self._current

    @property
    def available(self) -> List[Target]:
        return list(self._available)

    def set_available(self, topics: Iterable[Target]):
        self._available = [t for t in topics if t.schema_name in VEL_CMD_SCHEMAS]

    def select(self, name: str) -> Optional[Target]:
        """Select ``name`` from the available topics; unknown names clear the target."""
        found = next((t for t in self._available if t.name == name), None)
        if found is None:
            logger.warning(f'Topic does not exist: {name!r}')
        self._switch(found)
        return found

    def errors(self) -> dict:
        errs = {}
        cur = self._current
        if cur is None or not any(t.name == cur.name for t in self._available):
            errs['topic'] = 'Topic does not exist'
        if cur is None or not cur.schema_name:
            errs['message_schema'] = 'Message schema not found'
        return errs

    def close(self):
        self._switch(None)

    def _switch(self, target: Optional[Target]):
        prev = self._current
        if prev == target:
            return
        if self._sink is not None and prev is not None:
            self._sink.unadvertise(prev.name)
        self._current = target
        if self._sink is not None and target is not None:
            self._sink.advertise(target.name, target.schema_name)
        logger.info(f'Target → {target.name if target else None}')
