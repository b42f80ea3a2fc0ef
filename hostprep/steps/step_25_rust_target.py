from __future__ import annotations

import logging

from ..errors import ProbeUnavailable
from ..lib.rust import find_cargo_tool
from ..reconciler import ConvergenceStep, Probe, ProvisionCtx

logger = logging.getLogger(__name__)


def _rustup(ctx: ProvisionCtx) -> str:
    rustup = find_cargo_tool(ctx, ctx.desired.editor.cargo_home, "rustup")
    if rustup is None:
        raise ProbeUnavailable("rustup not found")
    return rustup


class RustTargetStep(ConvergenceStep):
    resource = "rust-target"
    depends_on = ("rustup",)

    def probe(self, ctx: ProvisionCtx) -> Probe:
        target = ctx.desired.editor.rust_target
        r = ctx.query([_rustup(ctx), "target", "list", "--installed"])
        if r.returncode != 0:
            raise ProbeUnavailable(f"rustup target list exited {r.returncode}")
        if target in {line.strip() for line in r.stdout.splitlines()}:
            return Probe.matching(target)
        return Probe.absent(f"{target} not installed")

    def apply(self, ctx: ProvisionCtx) -> None:
        target = ctx.desired.editor.rust_target
        self.log_action("rustup target add %s", target)
        ctx.run([_rustup(ctx), "target", "add", target])
