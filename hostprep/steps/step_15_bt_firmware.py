from __future__ import annotations

import logging

from ..errors import ResourceAbsent
from ..reconciler import ConvergenceStep, Probe, ProvisionCtx

logger = logging.getLogger(__name__)


class BtFirmwareStep(ConvergenceStep):
    """Known Broadcom blobs; a missing blob is a warning, not a stop."""

    resource = "bt-firmware"
    optional = True

    def probe(self, ctx: ProvisionCtx) -> Probe:
        for path, label in ctx.desired.bluetooth.firmware.items():
            if ctx.path(path).is_file():
                return Probe.matching(f"{label} firmware found")
        return Probe.absent("no known firmware file")

    def apply(self, ctx: ProvisionCtx) -> None:
        raise ResourceAbsent("Could not find Bluetooth firmware files")
