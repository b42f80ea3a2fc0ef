from __future__ import annotations

import logging

from ..lib.pkg import apt_install, apt_update, missing_packages
from ..reconciler import ConvergenceStep, Probe, ProvisionCtx

logger = logging.getLogger(__name__)


class BtPackagesStep(ConvergenceStep):
    resource = "bt-packages"

    def probe(self, ctx: ProvisionCtx) -> Probe:
        wanted = ctx.desired.bluetooth.packages
        missing = missing_packages(ctx, wanted)
        if not missing:
            return Probe.matching(f"{len(wanted)} packages installed")
        if len(missing) == len(wanted):
            return Probe.absent("none installed")
        return Probe.mismatching("missing " + ",".join(missing))

    def apply(self, ctx: ProvisionCtx) -> None:
        missing = missing_packages(ctx, ctx.desired.bluetooth.packages)
        if not missing:
            return
        self.log_action("apt-install %s", ",".join(missing))
        apt_update(ctx)
        apt_install(ctx, missing)
