from __future__ import annotations

import logging
from typing import Tuple

from ..lib.systemd import systemctl
from ..reconciler import ConvergenceStep, Probe, ProvisionCtx

logger = logging.getLogger(__name__)


def _unit_state(ctx: ProvisionCtx, unit: str) -> Tuple[bool, bool]:
    ctx.require("systemctl")
    enabled = ctx.query(systemctl("is-enabled", unit)).stdout.strip() == "enabled"
    active = ctx.query(systemctl("is-active", unit)).stdout.strip() == "active"
    return enabled, active


class _ServiceStep(ConvergenceStep):
    """Unit enabled at boot and running now."""

    def unit(self, ctx: ProvisionCtx) -> str:
        raise NotImplementedError

    def probe(self, ctx: ProvisionCtx) -> Probe:
        unit = self.unit(ctx)
        enabled, active = _unit_state(ctx, unit)
        if enabled and active:
            return Probe.matching(f"{unit} enabled+active")
        if enabled or active:
            return Probe.mismatching(f"{unit} enabled={enabled} active={active}")
        return Probe.absent(f"{unit} disabled+inactive")

    def apply(self, ctx: ProvisionCtx) -> None:
        unit = self.unit(ctx)
        enabled, active = _unit_state(ctx, unit)
        if not enabled:
            self.log_action("enable %s", unit)
            ctx.run(systemctl("enable", unit))
        if not active:
            self.log_action("start %s", unit)
            ctx.run(systemctl("start", unit))


class PinAgentServiceStep(_ServiceStep):
    resource = "pin-agent-service"
    depends_on = ("pin-agent-unit", "bluetooth-adapter")

    def unit(self, ctx: ProvisionCtx) -> str:
        return ctx.desired.bluetooth.pin_agent_unit


class SerialBridgeServiceStep(_ServiceStep):
    resource = "serial-bridge-service"
    depends_on = ("serial-bridge-unit", "pin-agent-service")

    def unit(self, ctx: ProvisionCtx) -> str:
        return ctx.desired.bluetooth.serial_bridge_unit
