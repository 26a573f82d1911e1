import asyncio
import random

import pytest

from config import ControlConfig
from deflection import Point
from publisher import PublisherAdapter, PublishResult
from scheduler import CommandScheduler, PeriodicTimer, SchedulerState
from targets import Target, TargetRegistry


def published(sink):
    return [c.args for c in sink.publish.call_args_list]


def test_starts_idle(scheduler, timers):
    assert scheduler.state is SchedulerState.IDLE
    assert timers.current is None


def test_start_begins_driving(scheduler, timers):
    scheduler.on_start(Point(100, 100))
    assert scheduler.state is SchedulerState.DRIVING
    assert timers.current is not None
    assert timers.current.interval == pytest.approx(0.1)


def test_tick_without_move_publishes_nothing(scheduler, timers, sink):
    scheduler.on_start(Point(100, 100))
    timers.current.fire(3)
    scheduler.on_end()
    assert scheduler.state is SchedulerState.DECAYING
    timers.current.fire()

    assert scheduler.state is SchedulerState.IDLE
    assert timers.current is None
    sink.publish.assert_not_called()


def test_move_does_not_publish_until_tick(scheduler, timers, sink):
    scheduler.on_start(Point(100, 100))
    scheduler.on_move(Point(100, 50))
    sink.publish.assert_not_called()

    timers.current.fire()
    sink.publish.assert_called_once()


def test_drive_scenario(scheduler, timers, publisher):
    scheduler.on_start(Point(100, 100))
    scheduler.on_move(Point(100, 50))
    timers.current.fire()

    assert publisher.last_command.linear_speed == pytest.approx(1.0)
    assert publisher.last_command.angular_speed == pytest.approx(0.0)


def test_release_scenario(scheduler, timers, publisher, sink):
    scheduler.on_start(Point(100, 100))
    scheduler.on_move(Point(100, 50))
    timers.current.fire()
    scheduler.on_end()
    timers.current.fire()

    assert scheduler.session.last_point.y == pytest.approx(55.0)
    assert publisher.last_command.linear_speed == pytest.approx(0.9)
    name, payload = published(sink)[-1]
    assert name == '/cmd_vel_array'
    assert payload['data'] == [pytest.approx(0.9)]


def test_speeds_follow_latest_move(scheduler, timers, publisher):
    scheduler.on_start(Point(0, 0))
    for x, y in [(10, -20), (-30, 40), (25, -75)]:
        scheduler.on_move(Point(x, y))
        timers.current.fire()
        dx, dy = 0 - x, 0 - y
        assert publisher.last_command.linear_speed == pytest.approx(dy / 100 * 1.0 * 2.0)
        assert publisher.last_command.angular_speed == pytest.approx(dx / 100 * 1.5707 * 1.0)


def test_decay_runs_to_idle(scheduler, timers, sink):
    scheduler.on_start(Point(0, 0))
    scheduler.on_move(Point(0, -100))
    scheduler.on_end()
    decay_timer = timers.current

    ticks = 0
    while scheduler.state is SchedulerState.DECAYING:
        decay_timer.fire()
        ticks += 1
        assert ticks <= 73

    assert decay_timer.cancelled
    assert timers.current is None
    speeds = [payload['data'][0] for _, payload in published(sink)]
    assert speeds == sorted(speeds, reverse=True)
    assert abs(speeds[-1]) < 0.0005 * 2.0


def test_restart_while_decaying_cancels_decay(scheduler, timers):
    scheduler.on_start(Point(0, 0))
    scheduler.on_move(Point(0, -50))
    scheduler.on_end()
    decay_timer = timers.current

    scheduler.on_start(Point(10, 10))

    assert decay_timer.cancelled
    assert scheduler.state is SchedulerState.DRIVING
    assert scheduler.session.start_point == Point(10, 10)
    assert not scheduler.session.has_command
    assert len(timers.live) == 1


def test_move_and_end_ignored_when_idle(scheduler, timers, sink):
    scheduler.on_move(Point(1, 1))
    scheduler.on_end()
    assert scheduler.state is SchedulerState.IDLE
    assert timers.timers == []
    sink.publish.assert_not_called()


def test_move_ignored_while_decaying(scheduler, timers):
    scheduler.on_start(Point(0, 0))
    scheduler.on_move(Point(0, -50))
    scheduler.on_end()
    scheduler.on_move(Point(0, -100))
    assert scheduler.session.last_point == Point(0, -50)


def test_non_finite_points_ignored(scheduler, timers):
    scheduler.on_start(Point(float('nan'), 0))
    assert scheduler.state is SchedulerState.IDLE
    assert timers.timers == []

    scheduler.on_start(Point(0, 0))
    scheduler.on_move(Point(0, -50))
    scheduler.on_move(Point(float('inf'), 0))
    assert scheduler.session.last_point == Point(0, -50)


def test_end_from_other_owner_ignored(scheduler, timers):
    pad, browser = object(), object()
    scheduler.on_start(Point(0, 0), pad)
    scheduler.on_end(browser)
    assert scheduler.state is SchedulerState.DRIVING

    scheduler.on_end(pad)
    assert scheduler.state is SchedulerState.DECAYING


def test_shutdown_cancels_active_timer(scheduler, timers):
    scheduler.on_start(Point(0, 0))
    scheduler.on_move(Point(0, -50))
    scheduler.shutdown()
    assert scheduler.state is SchedulerState.IDLE
    assert timers.live == []
    assert scheduler.session is None


def test_speed_change_applies_on_next_tick(scheduler, timers, publisher):
    scheduler.on_start(Point(0, 0))
    scheduler.on_move(Point(0, -50))
    scheduler.update_config(scheduler.config.updated(max_linear_speed=4.0))
    timers.current.fire()
    assert publisher.last_command.linear_speed == pytest.approx(2.0)


def test_rate_change_not_applied_to_running_timer(scheduler, timers):
    scheduler.on_start(Point(0, 0))
    drive_timer = timers.current
    scheduler.update_config(scheduler.config.updated(publish_rate=20))

    assert drive_timer.interval == pytest.approx(0.1)
    assert not drive_timer.cancelled

    scheduler.on_end()
    assert timers.current.interval == pytest.approx(0.05)


def test_no_target_keeps_ticking(scheduler, timers, registry, sink):
    registry.close()
    scheduler.on_start(Point(0, 0))
    scheduler.on_move(Point(0, -50))
    timers.current.fire(5)
    assert scheduler.state is SchedulerState.DRIVING
    sink.publish.assert_not_called()


def test_unrecognized_schema_keeps_ticking(timers, sink):
    registry = TargetRegistry(sink, Target('/cmd_vel', 'geometry_msgs/Twist'))
    sched = CommandScheduler(PublisherAdapter(registry, sink), ControlConfig(),
                             timer_factory=timers)
    sched.on_start(Point(0, 0))
    sched.on_move(Point(0, -50))
    timers.current.fire(5)
    assert sched.state is SchedulerState.DRIVING
    assert sched.publisher.last_result is PublishResult.UNRECOGNIZED_SCHEMA
    sink.publish.assert_not_called()


def test_at_most_one_timer_for_any_interleaving(scheduler, timers):
    rng = random.Random(1234)
    for _ in range(2000):
        op = rng.choice(['start', 'move', 'end', 'tick', 'tick'])
        if op == 'start':
            scheduler.on_start(Point(rng.uniform(0, 200), rng.uniform(0, 200)))
        elif op == 'move':
            scheduler.on_move(Point(rng.uniform(0, 200), rng.uniform(0, 200)))
        elif op == 'end':
            scheduler.on_end()
        elif timers.current is not None:
            timers.current.fire()

        assert len(timers.live) <= 1
        assert (timers.current is not None) == (scheduler.state is not SchedulerState.IDLE)


def test_periodic_timer_on_real_loop(publisher, sink):
    async def scenario():
        cfg = ControlConfig(publish_rate=100, max_linear_speed=1.0)
        sched = CommandScheduler(publisher, cfg)
        sched.on_start(Point(0, 0))
        sched.on_move(Point(0, -100))
        await asyncio.sleep(0.1)
        sched.on_end()
        driving_calls = sink.publish.call_count
        # 73 decay ticks at 100 Hz
        await asyncio.sleep(1.5)
        return sched, driving_calls

    sched, driving_calls = asyncio.run(scenario())

    assert driving_calls >= 3
    assert sched.state is SchedulerState.IDLE
    assert not sched.timer_active
    assert sink.publish.call_count > driving_calls


def test_periodic_timer_cancel_from_callback():
    async def scenario():
        fired = []
        timer = None

        def cb():
            fired.append(1)
            if len(fired) == 3:
                timer.cancel()

        timer = PeriodicTimer(0.01, cb)
        await asyncio.sleep(0.2)
        return fired, timer

    fired, timer = asyncio.run(scenario())
    assert len(fired) == 3
    assert not timer.active
