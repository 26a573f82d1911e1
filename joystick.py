"""
Local drag pad (pygame).

A small window with an on-screen joystick: press inside the base circle to
start a drag, move to steer, release to let the command decay. The knob is
kept inside the base radius so a full drag reaches full deflection.

Config keys (drag_pad:):
  enabled : open the window on startup   (default False)
  size    : base diameter in pixels      (default 200)

pygame runs in its own thread; drag events are handed to the asyncio loop
with call_soon_threadsafe so the scheduler only ever runs on the loop.
"""
import math
import threading
import logging
from typing import Optional

from deflection import Point

logger = logging.getLogger(__name__)

try:
    import pygame
    _HAS_PYGAME = True
except ImportError:
    _HAS_PYGAME = False
    logger.warning('pygame not installed — drag pad disabled')

BG    = (13, 17, 23)
BASE  = (48, 54, 61)
KNOB  = (201, 209, 217)
DRAG  = (88, 166, 255)


def clamp_to_radius(center: Point, pos: Point, radius: float) -> Point:
    dx = pos.x - center.x
    dy = pos.y - center.y
    dist = math.hypot(dx, dy)
    if dist <= radius:
        return pos
    k = radius / dist
    return Point(center.x + dx * k, center.y + dy * k)


class DragPadHandler:
    def __init__(self, scheduler, cfg: dict):
        self.scheduler = scheduler
        self.size      = cfg.get('size', 200)
        self.radius    = self.size / 2.0
        self.center    = Point(self.size * 0.75, self.size * 0.75)

        self._loop = None
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._dragging = False
        self._knob = self.center

    def set_loop(self, loop):
        self._loop = loop

    def start(self):
        if not _HAS_PYGAME:
            return
        self._running = True
        self._thread = threading.Thread(target=self._run, name='drag_pad', daemon=True)
        self._thread.start()

    def stop(self):
        self._running = False
        if self._thread:
            self._thread.join(timeout=2.0)

    # ------------------------------------------------------------------

    def _run(self):
        pygame.init()
        side = int(self.size * 1.5)
        screen = pygame.display.set_mode((side, side))
        pygame.display.set_caption('Velocity Command')
        clock = pygame.time.Clock()

        while self._running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    self._running = False
                else:
                    self.handle_event(event)
            self._draw(screen)
            clock.tick(60)

        if self._dragging:
            self._dragging = False
            self._post(self.scheduler.on_end, self)
        pygame.quit()

    def handle_event(self, event):
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            pos = Point(*event.pos)
            if math.hypot(pos.x - self.center.x, pos.y - self.center.y) > self.radius:
                return
            self._dragging = True
            self._knob = pos
            # nipple-style pad: the drag is anchored at the base centre
            self._post(self.scheduler.on_start, self.center, self)
            self._post(self.scheduler.on_move, pos)

        elif event.type == pygame.MOUSEMOTION and self._dragging:
            self._knob = clamp_to_radius(self.center, Point(*event.pos), self.radius)
            self._post(self.scheduler.on_move, self._knob)

        elif event.type == pygame.MOUSEBUTTONUP and event.button == 1 and self._dragging:
            self._dragging = False
            self._knob = self.center
            self._post(self.scheduler.on_end, self)

    def _post(self, fn, *args):
        if self._loop is None:
            logger.warning('Drag pad event dropped: no event loop')
            return
        self._loop.call_soon_threadsafe(fn, *args)

    def _draw(self, screen):
        screen.fill(BG)
        c = (int(self.center.x), int(self.center.y))
        pygame.draw.circle(screen, BASE, c, int(self.radius))
        knob = (int(self._knob.x), int(self._knob.y))
        pygame.draw.circle(screen, DRAG if self._dragging else KNOB, knob, int(self.radius / 4))
        pygame.display.flip()
