"""bt-control: start/stop/restart/status/enable/disable for the serial bridge.

One verb table drives both the generated bash script installed on the host
and the `hostprep-bt-control` console script.
"""

from __future__ import annotations

import logging
import shlex
import sys
import time
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from .config import BT_SERIAL, BluetoothSettings, default_desired_state
from .lib.command import Runner, run_cmd
from .lib.systemd import systemctl

logger = logging.getLogger(__name__)

VERBS = ("start", "stop", "restart", "status", "enable", "disable")

Action = Tuple[str, Union[str, float, Tuple[str, ...]]]


def _echo(msg: str) -> Action:
    return ("echo", msg)


def _run(*argv: str) -> Action:
    return ("run", tuple(argv))


def _sleep(seconds: float) -> Action:
    return ("sleep", seconds)


def usage(bt: BluetoothSettings) -> str:
    return f"Usage: {bt.control_script} [{'|'.join(VERBS)}]"


def control_actions(bt: BluetoothSettings) -> Dict[str, List[Action]]:
    agent = bt.pin_agent_unit
    serial = bt.serial_bridge_unit
    stack = bt.bluetooth_unit
    return {
        "start": [
            _echo("Starting Bluetooth serial services..."),
            _run(*systemctl("start", agent)),
            _run(*systemctl("start", serial)),
        ],
        "stop": [
            _echo("Stopping Bluetooth serial services..."),
            _run(*systemctl("stop", serial)),
            _run(*systemctl("stop", agent)),
        ],
        "restart": [
            _echo("Restarting Bluetooth stack and services..."),
            _run(*systemctl("stop", serial)),
            _run(*systemctl("stop", agent)),
            _run(*systemctl("stop", stack)),
            _sleep(2),
            _run(*systemctl("start", stack)),
            _sleep(3),
            _run(*systemctl("start", agent)),
            _run(*systemctl("start", serial)),
        ],
        "status": [
            _echo("=== Bluetooth Service Status ==="),
            _run(*systemctl("status", stack)),
            _echo("=== PIN Agent Status ==="),
            _run(*systemctl("status", agent)),
            _echo("=== Serial Service Status ==="),
            _run(*systemctl("status", serial)),
            _echo("=== RFCOMM Connections ==="),
            _run("rfcomm"),
            _echo("=== Bluetooth Adapter Status ==="),
            _run("hciconfig", "-a"),
            _echo("=== Bluetooth Services ==="),
            _run("sdptool", "browse", "local"),
        ],
        "enable": [
            _echo("Enabling Bluetooth serial services to start at boot..."),
            _run(*systemctl("enable", agent)),
            _run(*systemctl("enable", serial)),
        ],
        "disable": [
            _echo("Disabling Bluetooth serial services at boot..."),
            _run(*systemctl("disable", serial)),
            _run(*systemctl("disable", agent)),
        ],
    }


def _bash_line(action: Action) -> str:
    kind, arg = action
    if kind == "echo":
        return f'echo "{arg}"'
    if kind == "sleep":
        return f"sleep {arg:g}"
    return " ".join(shlex.quote(a) for a in arg)


def render_control_script(bt: BluetoothSettings) -> str:
    out: List[str] = [
        "#!/bin/bash",
        "",
        "# Display usage if no parameters given",
        'if [ -z "$1" ]; then',
        f'    echo "{usage(bt)}"',
        "    exit 1",
        "fi",
        "",
        'case "$1" in',
    ]
    for verb, actions in control_actions(bt).items():
        out.append(f"    {verb})")
        out += [f"        {_bash_line(a)}" for a in actions]
        out.append("        ;;")
    out += [
        "    *)",
        '        echo "Unknown command: $1"',
        f'        echo "{usage(bt)}"',
        "        exit 1",
        "        ;;",
        "esac",
        "",
        "exit 0",
    ]
    return "\n".join(out) + "\n"


def dispatch(
    verb: Optional[str],
    bt: BluetoothSettings,
    *,
    runner: Runner = run_cmd,
    sleep: Callable[[float], None] = time.sleep,
    out=None,
) -> int:
    out = out or sys.stdout
    table = control_actions(bt)

    if not verb:
        print(usage(bt), file=out)
        return 1
    if verb not in table:
        print(f"Unknown command: {verb}", file=out)
        print(usage(bt), file=out)
        return 1

    for kind, arg in table[verb]:
        if kind == "echo":
            print(arg, file=out)
        elif kind == "sleep":
            sleep(float(arg))
        else:
            r = runner(list(arg), check=False)
            if r.stdout:
                out.write(r.stdout)
            if r.returncode != 0:
                logger.warning("%s exited %d", " ".join(arg), r.returncode)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    bt = default_desired_state(BT_SERIAL).bluetooth
    return dispatch(args[0] if args else None, bt)


if __name__ == "__main__":
    raise SystemExit(main())
