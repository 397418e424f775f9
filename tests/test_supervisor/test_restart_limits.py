# tests/test_supervisor/test_restart_limits.py
"""
Test the helper supervisor's restart budget and backoff.
"""

import asyncio
import pytest

from oniongate.runtime.backends import AnyIOProcessLauncher
from oniongate.runtime.data import SupervisorOutcome, SupervisorState
from oniongate.supervisor import ProcessSupervisor
from tests.helpers import FakeLauncher, FailingLauncher

COMMAND = ["arti", "proxy", "-c", "/etc/arti/onionservice.toml"]


def make_supervisor(launcher, broadcaster, max_attempts=5, backoff=0.01):
    return ProcessSupervisor(
        COMMAND,
        launcher,
        broadcaster.subscribe("supervisor"),
        broadcaster,
        max_attempts=max_attempts,
        backoff=backoff,
    )


@pytest.mark.asyncio
async def test_crashing_helper_exhausts_budget(broadcaster):
    """Every crash is restarted until the fifth, then the supervisor fails."""
    launcher = FakeLauncher(plan=[(0.01, 1)])
    supervisor = make_supervisor(launcher, broadcaster)

    outcome = await asyncio.wait_for(supervisor.run(), timeout=5)

    assert outcome is SupervisorOutcome.FAILED
    assert supervisor.state is SupervisorState.FAILED
    assert launcher.launches == 5
    assert supervisor.attempts == 5
    assert [e.returncode for e in supervisor.exits] == [1] * 5
    assert all(command == COMMAND for command in launcher.commands)


@pytest.mark.asyncio
async def test_budget_exhaustion_requests_global_shutdown(broadcaster):
    launcher = FakeLauncher(plan=[(0.01, 1)])
    supervisor = make_supervisor(launcher, broadcaster, max_attempts=2)
    other = broadcaster.subscribe("listener")

    await asyncio.wait_for(supervisor.run(), timeout=5)

    assert broadcaster.fired
    assert other.is_set()
    assert "budget" in broadcaster.reason


@pytest.mark.asyncio
async def test_clean_exit_is_still_restarted(broadcaster):
    """A helper that exits with status 0 is unexpected and gets restarted."""
    launcher = FakeLauncher(plan=[(0.01, 0)])
    supervisor = make_supervisor(launcher, broadcaster, max_attempts=3)

    outcome = await asyncio.wait_for(supervisor.run(), timeout=5)

    assert outcome is SupervisorOutcome.FAILED
    assert launcher.launches == 3
    assert all(e.clean for e in supervisor.exits)


@pytest.mark.asyncio
async def test_restarts_below_budget(broadcaster):
    """Two crashes within the budget leave the third instance running."""
    launcher = FakeLauncher(plan=[(0.01, 1), (0.01, 2), (None, 0)])
    supervisor = make_supervisor(launcher, broadcaster)
    task = asyncio.create_task(supervisor.run())

    for _ in range(100):
        if launcher.launches == 3 and supervisor.state is SupervisorState.RUNNING:
            break
        await asyncio.sleep(0.01)

    assert supervisor.state is SupervisorState.RUNNING
    assert supervisor.attempts == 2
    assert not broadcaster.fired

    broadcaster.fire("test over")
    assert await asyncio.wait_for(task, timeout=2) is SupervisorOutcome.STOPPED


@pytest.mark.asyncio
async def test_backoff_between_restarts(broadcaster):
    launcher = FakeLauncher(plan=[(0.0, 1)])
    supervisor = make_supervisor(launcher, broadcaster, max_attempts=3, backoff=0.1)

    await asyncio.wait_for(supervisor.run(), timeout=5)

    gaps = [b - a for a, b in zip(launcher.launch_times, launcher.launch_times[1:])]
    assert len(gaps) == 2
    assert all(gap >= 0.09 for gap in gaps), gaps


@pytest.mark.asyncio
async def test_launch_failures_count_against_budget(broadcaster):
    """A missing helper binary is retried at the backoff until the budget runs out."""
    launcher = FailingLauncher()
    supervisor = make_supervisor(launcher, broadcaster, backoff=0.05)

    outcome = await asyncio.wait_for(supervisor.run(), timeout=5)

    assert outcome is SupervisorOutcome.FAILED
    assert launcher.attempts == 5
    assert supervisor.exits == []
    gaps = [b - a for a, b in zip(launcher.attempt_times, launcher.attempt_times[1:])]
    assert all(gap >= 0.04 for gap in gaps), gaps


@pytest.mark.asyncio
async def test_missing_binary_with_real_launcher(broadcaster, tmp_path):
    supervisor = ProcessSupervisor(
        [str(tmp_path / "no-such-arti"), "proxy"],
        AnyIOProcessLauncher(),
        broadcaster.subscribe("supervisor"),
        broadcaster,
        max_attempts=3,
        backoff=0.01,
    )

    outcome = await asyncio.wait_for(supervisor.run(), timeout=5)

    assert outcome is SupervisorOutcome.FAILED
    assert supervisor.attempts == 3
    assert broadcaster.fired


@pytest.mark.asyncio
async def test_zero_budget_never_launches(broadcaster):
    launcher = FakeLauncher()
    supervisor = make_supervisor(launcher, broadcaster, max_attempts=0)

    assert await supervisor.run() is SupervisorOutcome.FAILED
    assert launcher.launches == 0
