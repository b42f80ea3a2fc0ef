from __future__ import annotations

import logging
from typing import List

from ..errors import ProbeUnavailable
from ..reconciler import ConvergenceStep, Probe, ProvisionCtx

logger = logging.getLogger(__name__)


class VcpkgStep(ConvergenceStep):
    """vcpkg checkout, bootstrapped."""

    resource = "vcpkg"

    def probe(self, ctx: ProvisionCtx) -> Probe:
        ed = ctx.desired.editor
        if ctx.path(ed.vcpkg_exe).is_file():
            return Probe.matching(ed.vcpkg_exe)
        if ctx.path(f"{ed.vcpkg_root}/.git").exists():
            return Probe.mismatching("checkout present, not bootstrapped")
        return Probe.absent(f"{ed.vcpkg_root} missing")

    def apply(self, ctx: ProvisionCtx) -> None:
        if self.probe(ctx).converged:
            return
        ed = ctx.desired.editor
        if not ctx.path(f"{ed.vcpkg_root}/.git").exists():
            git = ctx.require("git")
            self.log_action("clone %s", ed.vcpkg_repo_url)
            ctx.run([git, "clone", ed.vcpkg_repo_url, ed.vcpkg_root])
        self.log_action("bootstrap %s", ed.vcpkg_root)
        ctx.run(["cmd", "/c", f"{ed.vcpkg_root}/bootstrap-vcpkg.bat", "-disableMetrics"])


def installed_ports(listing: str) -> List[str]:
    """First column of `vcpkg list`, e.g. "openssl:x64-windows"."""
    return [line.split()[0] for line in listing.splitlines() if line.strip()]


class NativeLibsStep(ConvergenceStep):
    resource = "native-libs"
    depends_on = ("vcpkg",)

    def _wanted(self, ctx: ProvisionCtx) -> List[str]:
        ed = ctx.desired.editor
        return [f"{p}:{ed.vcpkg_triplet}" for p in ed.vcpkg_packages]

    def probe(self, ctx: ProvisionCtx) -> Probe:
        ed = ctx.desired.editor
        wanted = self._wanted(ctx)
        if not wanted:
            return Probe.matching("nothing requested")
        if not ctx.path(ed.vcpkg_exe).is_file():
            raise ProbeUnavailable(f"{ed.vcpkg_exe} missing")
        r = ctx.query([ed.vcpkg_exe, "list"])
        if r.returncode != 0:
            raise ProbeUnavailable(f"vcpkg list exited {r.returncode}")
        have = set(installed_ports(r.stdout))
        missing = [w for w in wanted if w not in have]
        if not missing:
            return Probe.matching(",".join(wanted))
        if len(missing) == len(wanted):
            return Probe.absent("none installed")
        return Probe.mismatching("missing " + ",".join(missing))

    def apply(self, ctx: ProvisionCtx) -> None:
        ed = ctx.desired.editor
        wanted = self._wanted(ctx)
        self.log_action("vcpkg install %s", ",".join(wanted))
        ctx.run([ed.vcpkg_exe, "install", *wanted])
