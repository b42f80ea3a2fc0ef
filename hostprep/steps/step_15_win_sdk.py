from __future__ import annotations

import logging
from pathlib import PurePosixPath

from ..errors import ConvergenceFailed
from ..lib.windows import sdk_installed, vswhere_installation
from ..reconciler import ConvergenceStep, Probe, ProvisionCtx
from .step_10_win_build_tools import VS_OK_CODES

logger = logging.getLogger(__name__)


class WindowsSdkStep(ConvergenceStep):
    resource = "windows-sdk"
    tolerate_degraded = True
    depends_on = ("msvc-build-tools",)

    def probe(self, ctx: ProvisionCtx) -> Probe:
        ed = ctx.desired.editor
        if sdk_installed(ctx, ed.sdk_kits_dir, ed.sdk_version):
            return Probe.matching(ed.sdk_version)
        if sdk_installed(ctx, ed.sdk_kits_dir, ed.sdk_fallback_version):
            return Probe.mismatching(f"only {ed.sdk_fallback_version} installed")
        return Probe.absent("no Windows SDK")

    def verify_fallback(self, ctx: ProvisionCtx) -> Probe:
        ed = ctx.desired.editor
        if sdk_installed(ctx, ed.sdk_kits_dir, ed.sdk_fallback_version):
            return Probe.matching(f"{ed.sdk_fallback_version} (fallback)")
        return self.probe(ctx)

    def _modify(self, ctx: ProvisionCtx, component: str) -> None:
        ed = ctx.desired.editor
        setup = str(PurePosixPath(ed.vswhere).with_name("setup.exe"))
        install_path = vswhere_installation(ctx, ed.vswhere, ed.msvc_required_component) or ed.msvc_install_path
        self.log_action("add %s", component)
        r = ctx.run(
            [setup, "modify", "--installPath", install_path, "--add", component, "--quiet", "--norestart"],
            check=False,
        )
        if r.returncode not in VS_OK_CODES:
            raise ConvergenceFailed(f"VS installer modify exited {r.returncode}")

    def apply(self, ctx: ProvisionCtx) -> None:
        if self.probe(ctx).converged:
            return
        self._modify(ctx, ctx.desired.editor.sdk_component)

    def fallback(self, ctx: ProvisionCtx) -> None:
        self._modify(ctx, ctx.desired.editor.sdk_fallback_component)
