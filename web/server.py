"""
FastAPI web server for the velocity command station.

Endpoints:
  GET  /                      → drag pad page
  GET  /api/state             → current status snapshot (JSON)
  GET  /api/config            → control settings
  POST /api/config            → update control settings (clamped, persisted)
  GET  /api/topics            → selectable topics + current target
  POST /api/topic             → select publish target
  WS   /ws                    → real-time status push
  WS   /ws/joystick           → drag events from the browser pad
"""
import asyncio
import json
import logging
from pathlib import Path
from typing import Literal, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field, ValidationError

from deflection import Point
from publisher import ENVELOPE_MODES

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / 'static'


class DragEvent(BaseModel):
    type: Literal['start', 'move', 'end']
    x: float = Field(0.0, allow_inf_nan=False)
    y: float = Field(0.0, allow_inf_nan=False)


class ConfigReq(BaseModel):
    publish_rate:      Optional[float] = Field(None, allow_inf_nan=False)
    max_linear_speed:  Optional[float] = Field(None, allow_inf_nan=False)
    max_angular_speed: Optional[float] = Field(None, allow_inf_nan=False)
    envelope:          Optional[str] = None


class TopicReq(BaseModel):
    topic: str


def dispatch_drag(scheduler, ev: DragEvent, owner=None):
    if ev.type == 'start':
        scheduler.on_start(Point(ev.x, ev.y), owner)
    elif ev.type == 'move':
        scheduler.on_move(Point(ev.x, ev.y))
    else:
        scheduler.on_end(owner)


async def _wait_disconnect(ws: WebSocket):
    while True:
        msg = await ws.receive()
        if msg['type'] == 'websocket.disconnect':
            return


def create_app(state, save_settings=None):
    """``save_settings(dict)`` is called after every settings change, if given."""
    app = FastAPI(title='vel_cmd GCS', docs_url=None, redoc_url=None)

    app.mount('/static', StaticFiles(directory=str(STATIC_DIR)), name='static')

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        # rejected inputs may be NaN/Infinity, which JSON cannot carry back
        errors = [{'loc': list(e['loc']), 'msg': e['msg']} for e in exc.errors()]
        logger.warning(f'Rejected {request.url.path}: {errors}')
        return JSONResponse(status_code=422, content={'detail': errors})

    scheduler = state.scheduler
    registry  = state.registry
    publisher = state.publisher

    def settings() -> dict:
        target = registry.current
        return {
            **scheduler.config.to_dict(),
            'envelope':       publisher.envelope,
            'topic':          target.name if target else None,
            'message_schema': target.schema_name if target else None,
        }

    async def persist():
        if save_settings is not None:
            # file write, kept off the event loop
            await asyncio.to_thread(save_settings, settings())

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    @app.get('/', response_class=HTMLResponse)
    async def index():
        return (STATIC_DIR / 'index.html').read_text()

    # ------------------------------------------------------------------
    # REST
    # ------------------------------------------------------------------

    @app.get('/api/state')
    async def get_state():
        state._validate()
        return json.loads(state.to_json())

    @app.get('/api/config')
    async def get_config():
        return settings()

    @app.post('/api/config')
    async def set_config(req: ConfigReq):
        if req.envelope is not None and req.envelope not in ENVELOPE_MODES:
            return {'ok': False, 'error': f'invalid envelope: {req.envelope}'}
        scheduler.update_config(scheduler.config.updated(
            publish_rate=req.publish_rate,
            max_linear_speed=req.max_linear_speed,
            max_angular_speed=req.max_angular_speed,
        ))
        if req.envelope is not None:
            publisher.envelope = req.envelope
        await persist()
        logger.info(f'Config → {scheduler.config}')
        return {'ok': True, **settings()}

    @app.get('/api/topics')
    async def get_topics():
        target = registry.current
        return {
            'topics':  [{'name': t.name, 'schema': t.schema_name} for t in registry.available],
            'current': target.name if target else None,
            'errors':  registry.errors(),
        }

    @app.post('/api/topic')
    async def set_topic(req: TopicReq):
        found = registry.select(req.topic)
        if found is None:
            # keep the configured topic on disk; only the live target is cleared
            return {'ok': False, 'error': 'Topic does not exist'}
        await persist()
        return {'ok': True, 'topic': found.name, 'message_schema': found.schema_name}

    # ------------------------------------------------------------------
    # WebSocket
    # ------------------------------------------------------------------

    @app.websocket('/ws')
    async def ws_endpoint(ws: WebSocket):
        await ws.accept()
        queue: asyncio.Queue = asyncio.Queue(maxsize=20)
        state.add_subscriber(queue)
        logger.info(f'WebSocket client connected: {ws.client}')

        gone = asyncio.ensure_future(_wait_disconnect(ws))
        try:
            await ws.send_text(state.to_json())

            while True:
                get = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait(
                    {get, gone}, timeout=5.0, return_when=asyncio.FIRST_COMPLETED)
                if gone in done:
                    get.cancel()
                    break
                if get in done:
                    await ws.send_text(get.result())
                else:
                    # keepalive
                    get.cancel()
                    await ws.send_text(state.to_json())
        except WebSocketDisconnect:
            pass
        finally:
            gone.cancel()
            state.remove_subscriber(queue)
            logger.info(f'WebSocket client disconnected: {ws.client}')

    @app.websocket('/ws/joystick')
    async def joystick_ws(ws: WebSocket):
        await ws.accept()
        logger.info(f'Drag pad connected: {ws.client}')
        # identifies this connection's drags to the scheduler
        owner = object()
        try:
            while True:
                msg = await ws.receive()
                if msg['type'] == 'websocket.disconnect':
                    break
                raw = msg.get('text')
                if raw is None:
                    logger.warning(f'Ignoring non-text drag frame from {ws.client}')
                    continue
                try:
                    ev = DragEvent.model_validate_json(raw)
                except ValidationError as exc:
                    logger.warning(f'Bad drag event {raw!r}: {exc.error_count()} error(s)')
                    continue
                dispatch_drag(scheduler, ev, owner)
        except WebSocketDisconnect:
            pass
        finally:
            # a pad that drops mid-drag must not keep the vehicle driving,
            # but it only releases a drag it started
            scheduler.on_end(owner)
            logger.info(f'Drag pad disconnected: {ws.client}')

    return app
