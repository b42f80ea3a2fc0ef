from __future__ import annotations

import logging

from ..lib.rust import find_cargo_tool
from ..lib.windows import download
from ..reconciler import ConvergenceStep, Probe, ProvisionCtx

logger = logging.getLogger(__name__)


class RustupStep(ConvergenceStep):
    resource = "rustup"
    fatal = True

    def probe(self, ctx: ProvisionCtx) -> Probe:
        ed = ctx.desired.editor
        rustup = find_cargo_tool(ctx, ed.cargo_home, "rustup")
        if rustup is None:
            return Probe.absent("rustup not installed")
        r = ctx.query([rustup, "--version"])
        if r.returncode != 0:
            return Probe.mismatching(f"{rustup} --version exited {r.returncode}")
        return Probe.matching((r.stdout.splitlines() or [""])[0].strip())

    def apply(self, ctx: ProvisionCtx) -> None:
        if self.probe(ctx).converged:
            return
        ed = ctx.desired.editor
        init = download(ctx, ed.rustup_init_url, ed.download_dir, "rustup-init.exe")
        self.log_action("rustup-init toolchain=%s", ed.rust_toolchain)
        ctx.run(
            [
                init,
                "-y",
                "--default-toolchain",
                ed.rust_toolchain,
                "--default-host",
                ed.rust_target,
                "--profile",
                "minimal",
            ]
        )

    def fallback(self, ctx: ProvisionCtx) -> None:
        ed = ctx.desired.editor
        winget = ctx.require("winget")
        self.log_action("winget install %s", ed.rustup_winget_id)
        ctx.run(
            [
                winget,
                "install",
                "--id",
                ed.rustup_winget_id,
                "-e",
                "--silent",
                "--accept-package-agreements",
                "--accept-source-agreements",
            ]
        )
        rustup = find_cargo_tool(ctx, ed.cargo_home, "rustup") or "rustup"
        ctx.run([rustup, "default", ed.rust_toolchain])
