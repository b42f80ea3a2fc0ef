from __future__ import annotations

import logging

from ..errors import ProbeUnavailable
from ..lib.bluez import adapter_listed
from ..lib.systemd import systemctl
from ..reconciler import ConvergenceStep, Probe, ProvisionCtx

logger = logging.getLogger(__name__)


class BtAdapterStep(ConvergenceStep):
    """The radio itself. Without it nothing else in the profile makes sense."""

    resource = "bluetooth-adapter"
    fatal = True
    tolerate_degraded = True

    def _listed(self, ctx: ProvisionCtx) -> bool:
        ctx.require("hciconfig")
        return adapter_listed(ctx.query(["hciconfig", "-a"]).stdout, ctx.desired.bluetooth.adapter)

    def probe(self, ctx: ProvisionCtx) -> Probe:
        adapter = ctx.desired.bluetooth.adapter
        if self._listed(ctx):
            return Probe.matching(f"{adapter} present")
        return Probe.absent(f"{adapter} not listed by hciconfig")

    def apply(self, ctx: ProvisionCtx) -> None:
        bt = ctx.desired.bluetooth
        try:
            if self._listed(ctx):
                return
        except ProbeUnavailable:
            # Without hciconfig there is nothing to check; verification decides.
            pass
        self.log_action("reset-stack modules=%s", ",".join(bt.kernel_modules))

        ctx.run(systemctl("stop", bt.bluetooth_unit), check=False)
        for module in bt.kernel_modules:
            ctx.run(["modprobe", "-r", module], check=False)
        ctx.settle(bt.settle_modules)
        for module in reversed(bt.kernel_modules):
            ctx.run(["modprobe", module], check=False)
        ctx.settle(bt.settle_modules)

        ctx.run(systemctl("start", bt.bluetooth_unit))
        ctx.settle(bt.settle_service)

    def fallback(self, ctx: ProvisionCtx) -> None:
        bt = ctx.desired.bluetooth
        self.log_action("rfkill-unblock")
        ctx.run(["rfkill", "unblock", "bluetooth"])
        ctx.settle(bt.settle_modules)
