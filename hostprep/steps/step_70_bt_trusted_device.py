from __future__ import annotations

import logging
from typing import Optional

from ..lib.bluez import PairedDevice, list_paired_devices, parse_device_info, select_paired_device
from ..reconciler import ConvergenceStep, Probe, ProvisionCtx

logger = logging.getLogger(__name__)


class TrustedDeviceStep(ConvergenceStep):
    """Mark the most recently paired device as trusted so it can reconnect unattended.

    Having nothing paired yet is a valid converged state.
    """

    resource = "trusted-device"
    optional = True
    depends_on = ("bluetooth-adapter",)

    def _device(self, ctx: ProvisionCtx) -> Optional[PairedDevice]:
        bt = ctx.desired.bluetooth
        return select_paired_device(list_paired_devices(ctx.path(bt.bluez_state_dir)))

    def probe(self, ctx: ProvisionCtx) -> Probe:
        if not ctx.desired.bluetooth.trust_paired_device:
            return Probe.matching("disabled")
        device = self._device(ctx)
        if device is None:
            return Probe.matching("no paired device")
        ctx.require("bluetoothctl")
        info = parse_device_info(ctx.query(["bluetoothctl", "info", device.address]).stdout)
        if info.get("Trusted") == "yes":
            return Probe.matching(f"{device.address} trusted")
        return Probe.mismatching(f"{device.address} not trusted")

    def apply(self, ctx: ProvisionCtx) -> None:
        if self.probe(ctx).converged:
            return
        device = self._device(ctx)
        if device is None:
            return
        self.log_action("trust %s (%s)", device.address, device.name or "unnamed")
        ctx.run(["bluetoothctl", "trust", device.address])
