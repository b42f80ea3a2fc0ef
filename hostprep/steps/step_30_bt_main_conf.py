from __future__ import annotations

import logging

from ..lib.bluez import render_main_conf
from ..lib.systemd import systemctl
from ..reconciler import ProvisionCtx
from .base import ManagedFileStep

logger = logging.getLogger(__name__)


class BtMainConfStep(ManagedFileStep):
    resource = "bluez-main-conf"
    depends_on = ("bluetooth-adapter",)

    def target(self, ctx: ProvisionCtx) -> str:
        return ctx.desired.bluetooth.main_conf

    def render(self, ctx: ProvisionCtx) -> str:
        return render_main_conf(ctx.desired.bluetooth)

    def after_write(self, ctx: ProvisionCtx) -> None:
        bt = ctx.desired.bluetooth
        ctx.run(systemctl("restart", bt.bluetooth_unit))
        ctx.settle(bt.settle_restart)
