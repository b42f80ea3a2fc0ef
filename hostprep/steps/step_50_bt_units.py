from __future__ import annotations

import logging

from ..lib.systemd import pin_agent_unit, serial_bridge_unit, systemctl
from ..reconciler import ProvisionCtx
from .base import ManagedFileStep

logger = logging.getLogger(__name__)


class _UnitFileStep(ManagedFileStep):
    mode = 0o644

    def after_write(self, ctx: ProvisionCtx) -> None:
        ctx.run(systemctl("daemon-reload"))


class PinAgentUnitStep(_UnitFileStep):
    resource = "pin-agent-unit"
    depends_on = ("pin-agent-script",)

    def target(self, ctx: ProvisionCtx) -> str:
        bt = ctx.desired.bluetooth
        return bt.unit_path(bt.pin_agent_unit)

    def render(self, ctx: ProvisionCtx) -> str:
        return pin_agent_unit(ctx.desired.bluetooth)


class SerialBridgeUnitStep(_UnitFileStep):
    resource = "serial-bridge-unit"
    depends_on = ("serial-bridge-script",)

    def target(self, ctx: ProvisionCtx) -> str:
        bt = ctx.desired.bluetooth
        return bt.unit_path(bt.serial_bridge_unit)

    def render(self, ctx: ProvisionCtx) -> str:
        return serial_bridge_unit(ctx.desired.bluetooth)
