"""
Configuration loading and the control settings snapshot.

Config file keys (config.yaml):
  web_port            : FastAPI port                    (default 8080)
  zenoh_locator       : zenoh router endpoint           (default '' → scouting)
  state_push_interval : status push period to browsers  (default 0.5 s)
  topic               : selected publish topic
  message_schema      : schema of the selected topic
  topics              : [{name, schema}, ...] topics offered for selection
  publish_rate        : command rate Hz                 (default 5,  min 1)
  max_linear_speed    : m/s at full deflection          (default 1,  min 0)
  max_angular_speed   : rad/s at full deflection        (default 1,  min 0)
  envelope            : 'linear' | 'combined'           (default 'linear')
  decay               : {blend, stop_threshold}
  drag_pad            : {enabled, size}                 local pygame pad
  persist_settings    : write settings changes back     (default True)
"""
import dataclasses
import logging
import math
from dataclasses import dataclass
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

MIN_PUBLISH_RATE = 1.0

# keys the settings editor is allowed to write back to the config file
SETTINGS_KEYS = ('topic', 'message_schema', 'publish_rate',
                 'max_linear_speed', 'max_angular_speed', 'envelope')


def load_config(path: str, overrides: dict) -> dict:
    cfg = {}
    p = Path(path)
    if p.exists():
        cfg = yaml.safe_load(p.read_text()) or {}
    cfg.update({k: v for k, v in overrides.items() if v is not None})
    return cfg


def save_settings(path: str, settings: dict):
    """Merge ``settings`` into the YAML file at ``path``, keeping other keys."""
    p = Path(path)
    cfg = {}
    if p.exists():
        cfg = yaml.safe_load(p.read_text()) or {}
    cfg.update({k: v for k, v in settings.items() if k in SETTINGS_KEYS})
    p.write_text(yaml.safe_dump(cfg, sort_keys=False))
    logger.info(f'Settings saved → {p}')


@dataclass(frozen=True)
class ControlConfig:
    publish_rate:      float = 5.0
    max_linear_speed:  float = 1.0
    max_angular_speed: float = 1.0

    def __post_init__(self):
        for name in ('publish_rate', 'max_linear_speed', 'max_angular_speed'):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f'{name} must be finite, got {getattr(self, name)}')
        # out-of-range requests are raised to the limit, never rejected
        if self.publish_rate < MIN_PUBLISH_RATE:
            object.__setattr__(self, 'publish_rate', MIN_PUBLISH_RATE)
        if self.max_linear_speed < 0:
            object.__setattr__(self, 'max_linear_speed', 0.0)
        if self.max_angular_speed < 0:
            object.__setattr__(self, 'max_angular_speed', 0.0)

    @property
    def interval(self) -> float:
        return 1.0 / self.publish_rate

    @classmethod
    def from_cfg(cls, cfg: dict) -> 'ControlConfig':
        return cls(
            publish_rate=float(cfg.get('publish_rate', 5.0)),
            max_linear_speed=float(cfg.get('max_linear_speed', 1.0)),
            max_angular_speed=float(cfg.get('max_angular_speed', 1.0)),
        )

    def updated(self, **changes) -> 'ControlConfig':
        return dataclasses.replace(
            self, **{k: float(v) for k, v in changes.items() if v is not None})

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)
