#!/usr/bin/env python3
import argparse
import asyncio
import functools
import logging

import uvicorn

from config import ControlConfig, load_config, save_settings
from decay import ExponentialDecay
from joystick import DragPadHandler
from publisher import PublisherAdapter
from scheduler import CommandScheduler
from state import SharedState
from station_client import StationClient
from targets import TargetRegistry
from web.server import create_app

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s  %(levelname)-7s  %(name)s: %(message)s',
    datefmt='%H:%M:%S',
)
logger = logging.getLogger('main')


async def run_state_push(state: SharedState, cfg: dict):
    """Periodic status push so browsers see the command while it decays."""
    push_interval = cfg.get('state_push_interval', 0.5)
    while True:
        state._validate()
        state._broadcast_sync()
        await asyncio.sleep(push_interval)


async def run(cfg: dict, config_path: str):
    web_port = cfg.get('web_port', 8080)

    client = StationClient()
    client.start(cfg.get('zenoh_locator', ''))

    registry  = TargetRegistry.from_cfg(cfg, sink=client)
    publisher = PublisherAdapter(registry, client, envelope=cfg.get('envelope', 'linear'))
    scheduler = CommandScheduler(
        publisher,
        ControlConfig.from_cfg(cfg),
        decay=ExponentialDecay.from_cfg(cfg.get('decay', {}) or {}),
    )
    state = SharedState(scheduler, publisher, registry)

    pad_cfg = cfg.get('drag_pad', {}) or {}
    pad = DragPadHandler(scheduler, pad_cfg)
    if pad_cfg.get('enabled', False):
        pad.set_loop(asyncio.get_running_loop())
        pad.start()

    saver = None
    if cfg.get('persist_settings', True):
        saver = functools.partial(save_settings, config_path)

    app = create_app(state, saver)
    uv_cfg = uvicorn.Config(
        app,
        host='0.0.0.0',
        port=web_port,
        log_level='warning',
        loop='none',
    )
    server = uvicorn.Server(uv_cfg)
    logger.info(f'Web  http://0.0.0.0:{web_port}')

    push = asyncio.create_task(run_state_push(state, cfg))
    try:
        await server.serve()
    finally:
        push.cancel()
        pad.stop()
        scheduler.shutdown()
        registry.close()
        client.stop()
        logger.info('Shutdown complete')


def main():
    parser = argparse.ArgumentParser(description='vel_cmd GCS')
    parser.add_argument('--config',        default='config.yaml')
    parser.add_argument('--web-port',      type=int, default=None)
    parser.add_argument('--zenoh-locator', default=None)
    parser.add_argument('--topic',         default=None)
    parser.add_argument('--message-schema', default=None)
    parser.add_argument('--publish-rate',  type=float, default=None)
    args = parser.parse_args()

    cfg = load_config(args.config, {
        'web_port':       args.web_port,
        'zenoh_locator':  args.zenoh_locator,
        'topic':          args.topic,
        'message_schema': args.message_schema,
        'publish_rate':   args.publish_rate,
    })

    try:
        asyncio.run(run(cfg, args.config))
    except KeyboardInterrupt:
        logger.info('Stopped by user')


if __name__ == '__main__':
    main()
