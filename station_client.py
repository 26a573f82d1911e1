"""
Station client — zenoh publish sink for velocity commands.

Connects to a zenoh router (or scouts for one) and keeps one publisher per
advertised topic. ROS-style topic names are turned into key expressions by
stripping the slashes at either end:

  /cmd_vel_array → cmd_vel_array
"""
import json
import logging

import zenoh

logger = logging.getLogger(__name__)


def topic_to_key(name: str) -> str:
    return name.strip('/')


class StationClient:
    def __init__(self):
        self._session = None
        self._pubs: dict = {}

    def start(self, locator: str = '') -> None:
        conf = zenoh.Config()
        if locator:
            conf.insert_json5('connect/endpoints', json.dumps([locator]))
        self._session = zenoh.open(conf)
        logger.info(f'StationClient started → {locator or "auto-discovery"}')

    def stop(self) -> None:
        for pub in self._pubs.values():
            pub.undeclare()
        self._pubs.clear()
        if self._session:
            self._session.close()
            self._session = None

    # ── Publish sink ──────────────────────────────────────────────────────────

    def advertise(self, name: str, schema_name: str) -> None:
        key = topic_to_key(name)
        if self._session is None or key in self._pubs:
            return
        self._pubs[key] = self._session.declare_publisher(key)
        logger.info(f'Advertised {name} ({schema_name})')

    def unadvertise(self, name: str) -> None:
        pub = self._pubs.pop(topic_to_key(name), None)
        if pub is not None:
            pub.undeclare()
            logger.info(f'Unadvertised {name}')

    def publish(self, name: str, payload: dict) -> None:
        key = topic_to_key(name)
        pub = self._pubs.get(key)
        if pub is None:
            return
        try:
            pub.put(json.dumps(payload))
        except Exception as e:
            logger.warning(f'zenoh put [{key}]: {e}')
