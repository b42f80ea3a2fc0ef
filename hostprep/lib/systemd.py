from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from ..config import BluetoothSettings

logger = logging.getLogger(__name__)

Section = Tuple[str, Sequence[Tuple[str, str]]]


def render_unit(sections: Sequence[Section]) -> str:
    """Render an ordered unit file; key order is preserved as given."""

    blocks: List[str] = []
    for name, entries in sections:
        lines = [f"[{name}]"] + [f"{k}={v}" for k, v in entries]
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + "\n"


def pin_agent_unit(bt: BluetoothSettings) -> str:
    stack = f"{bt.bluetooth_unit}.service"
    return render_unit(
        [
            (
                "Unit",
                [
                    ("Description", "Bluetooth PIN Agent"),
                    ("After", stack),
                    ("Requires", stack),
                ],
            ),
            (
                "Service",
                [
                    ("ExecStart", bt.script_path(bt.pin_agent_script)),
                    ("Type", "simple"),
                    ("Restart", "on-failure"),
                ],
            ),
            ("Install", [("WantedBy", "multi-user.target")]),
        ]
    )


def serial_bridge_unit(bt: BluetoothSettings) -> str:
    stack = f"{bt.bluetooth_unit}.service"
    return render_unit(
        [
            (
                "Unit",
                [
                    ("Description", "Bluetooth Serial Service"),
                    ("After", f"{stack} {bt.pin_agent_unit}"),
                    ("Requires", stack),
                ],
            ),
            (
                "Service",
                [
                    ("Type", "simple"),
                    ("User", "root"),
                    ("ExecStart", bt.script_path(bt.serial_bridge_script)),
                    ("Restart", "always"),
                    ("RestartSec", "10"),
                ],
            ),
            ("Install", [("WantedBy", "multi-user.target")]),
        ]
    )


def systemctl(verb: str, *units: str) -> list[str]:
    return ["systemctl", verb, *units]
