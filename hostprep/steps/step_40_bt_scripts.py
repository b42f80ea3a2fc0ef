from __future__ import annotations

import logging

from ..control import render_control_script
from ..lib.bluez import render_pin_agent, render_serial_bridge
from ..lib.systemd import systemctl
from ..reconciler import ProvisionCtx
from .base import ManagedFileStep

logger = logging.getLogger(__name__)


class PinAgentScriptStep(ManagedFileStep):
    resource = "pin-agent-script"
    mode = 0o755

    def target(self, ctx: ProvisionCtx) -> str:
        bt = ctx.desired.bluetooth
        return bt.script_path(bt.pin_agent_script)

    def render(self, ctx: ProvisionCtx) -> str:
        return render_pin_agent(ctx.desired.bluetooth)

    def after_write(self, ctx: ProvisionCtx) -> None:
        # Picks up a new PIN if the agent is already running; no-op otherwise.
        ctx.run(systemctl("try-restart", ctx.desired.bluetooth.pin_agent_unit), check=False)


class SerialBridgeScriptStep(ManagedFileStep):
    resource = "serial-bridge-script"
    mode = 0o755

    def target(self, ctx: ProvisionCtx) -> str:
        bt = ctx.desired.bluetooth
        return bt.script_path(bt.serial_bridge_script)

    def render(self, ctx: ProvisionCtx) -> str:
        return render_serial_bridge(ctx.desired.bluetooth)

    def after_write(self, ctx: ProvisionCtx) -> None:
        ctx.run(systemctl("try-restart", ctx.desired.bluetooth.serial_bridge_unit), check=False)


class ControlScriptStep(ManagedFileStep):
    resource = "control-script"
    mode = 0o755

    def target(self, ctx: ProvisionCtx) -> str:
        bt = ctx.desired.bluetooth
        return bt.script_path(bt.control_script)

    def render(self, ctx: ProvisionCtx) -> str:
        return render_control_script(ctx.desired.bluetooth)
