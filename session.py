from dataclasses import dataclass, field
from typing import Optional

from deflection import Axes, Point, map_deflection


@dataclass
class DragSession:
    """One pointer interaction, from drag start until the decay settles.

    ``pending`` stays ``None`` until the first move (or decay step) computes
    axes for it.
    """
    start_point: Point
    last_point:  Point
    pending:     Optional[Axes] = field(default=None)

    @classmethod
    def begin(cls, position: Point) -> 'DragSession':
        return cls(start_point=position, last_point=position)

    def move(self, position: Point) -> Axes:
        self.last_point = position
        self.pending = map_deflection(self.start_point, position)
        return self.pending

    @property
    def has_command(self) -> bool:
        return self.pending is not None
