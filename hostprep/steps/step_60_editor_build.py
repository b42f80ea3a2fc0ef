from __future__ import annotations

import logging

from ..errors import ProbeUnavailable
from ..lib.cargo_config import BUILD_ALIAS, build_args
from ..lib.rust import find_cargo_tool
from ..reconciler import ConvergenceStep, Probe, ProvisionCtx

logger = logging.getLogger(__name__)


class EditorBuildStep(ConvergenceStep):
    """Release build; falls back to a minimal-feature build."""

    resource = "editor-build"
    tolerate_degraded = True
    depends_on = ("cargo-config", "rust-target", "msvc-build-tools")

    def probe(self, ctx: ProvisionCtx) -> Probe:
        ed = ctx.desired.editor
        if ctx.path(ed.binary_path).is_file():
            return Probe.matching(ed.binary_path)
        return Probe.absent(f"{ed.binary_path} not built")

    def _cargo(self, ctx: ProvisionCtx) -> str:
        cargo = find_cargo_tool(ctx, ctx.desired.editor.cargo_home, "cargo")
        if cargo is None:
            raise ProbeUnavailable("cargo not found")
        return cargo

    def apply(self, ctx: ProvisionCtx) -> None:
        if self.probe(ctx).converged:
            return
        ed = ctx.desired.editor
        self.log_action("cargo %s features=%s", BUILD_ALIAS, ",".join(ed.features) or "default")
        ctx.run([self._cargo(ctx), BUILD_ALIAS], cwd=str(ctx.path(ed.source_dir)))

    def fallback(self, ctx: ProvisionCtx) -> None:
        ed = ctx.desired.editor
        self.log_action("cargo minimal build")
        ctx.run([self._cargo(ctx), *build_args(ed.features, minimal=True)], cwd=str(ctx.path(ed.source_dir)))
