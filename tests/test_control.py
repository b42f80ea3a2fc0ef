import io

import pytest

from hostprep.config import BT_SERIAL, default_desired_state
from hostprep.control import VERBS, control_actions, dispatch, usage


@pytest.fixture
def bt():
    return default_desired_state(BT_SERIAL).bluetooth


def _dispatch(verb, bt, runner):
    sleeps = []
    out = io.StringIO()
    rc = dispatch(verb, bt, runner=runner, sleep=sleeps.append, out=out)
    return rc, runner, sleeps, out.getvalue()


def test_no_verb_prints_usage(bt, scripted_runner):
    rc, runner, _, out = _dispatch(None, bt, scripted_runner)
    assert rc == 1
    assert out == "Usage: bt-control [start|stop|restart|status|enable|disable]\n"
    assert runner.calls == []


def test_unknown_verb(bt, scripted_runner):
    rc, runner, _, out = _dispatch("reboot", bt, scripted_runner)
    assert rc == 1
    assert out.splitlines() == ["Unknown command: reboot", usage(bt)]
    assert runner.calls == []


def test_start_and_stop_order(bt, scripted_runner):
    _, runner, _, out = _dispatch("start", bt, scripted_runner)
    assert runner.calls == [["systemctl", "start", "bt-pin-agent.service"], ["systemctl", "start", "bt-serial.service"]]
    assert out.startswith("Starting Bluetooth serial services...")

    runner.calls.clear()
    _dispatch("stop", bt, runner)
    assert runner.calls == [["systemctl", "stop", "bt-serial.service"], ["systemctl", "stop", "bt-pin-agent.service"]]


def test_restart_waits_for_the_stack(bt, scripted_runner):
    rc, runner, sleeps, _ = _dispatch("restart", bt, scripted_runner)
    assert rc == 0
    assert sleeps == [2.0, 3.0]
    assert runner.calls[2] == ["systemctl", "stop", "bluetooth"]
    assert runner.calls[3] == ["systemctl", "start", "bluetooth"]


def test_status_shows_command_output(bt, scripted_runner):
    runner = scripted_runner.on("rfcomm", stdout="rfcomm0: 00:11 channel 1 connected\n")
    rc, runner, _, out = _dispatch("status", bt, runner)
    assert rc == 0
    assert "=== RFCOMM Connections ===\nrfcomm0: 00:11 channel 1 connected\n" in out
    assert ["sdptool", "browse", "local"] in runner.calls


def test_failed_command_does_not_abort(bt, scripted_runner):
    runner = scripted_runner.on("systemctl", "enable", "bt-pin-agent.service", returncode=1)
    rc, runner, _, _ = _dispatch("enable", bt, runner)
    assert rc == 0
    assert runner.calls[-1] == ["systemctl", "enable", "bt-serial.service"]


def test_every_verb_has_actions(bt):
    assert tuple(control_actions(bt)) == VERBS
