from __future__ import annotations

import logging

from ..errors import ConvergenceFailed
from ..lib.windows import download, vs_installer_args, vswhere_installation
from ..reconciler import ConvergenceStep, Probe, ProvisionCtx

logger = logging.getLogger(__name__)

# The VS installer reports "success, reboot required" as 3010.
VS_OK_CODES = (0, 3010)


class MsvcBuildToolsStep(ConvergenceStep):
    """MSVC compiler + linker from the Visual Studio Build Tools."""

    resource = "msvc-build-tools"
    fatal = True

    def probe(self, ctx: ProvisionCtx) -> Probe:
        ed = ctx.desired.editor
        if not ctx.path(ed.vswhere).is_file():
            return Probe.absent("Visual Studio installer not present")
        path = vswhere_installation(ctx, ed.vswhere, ed.msvc_required_component)
        if path:
            return Probe.matching(path)
        return Probe.absent(f"no instance with {ed.msvc_required_component}")

    def apply(self, ctx: ProvisionCtx) -> None:
        if self.probe(ctx).converged:
            return
        ed = ctx.desired.editor
        installer = download(ctx, ed.msvc_installer_url, ed.download_dir, "vs_buildtools.exe")
        self.log_action("install build tools into %s", ed.msvc_install_path)
        r = ctx.run(
            [
                installer,
                "--quiet",
                "--wait",
                "--norestart",
                "--nocache",
                "--installPath",
                ed.msvc_install_path,
                *vs_installer_args(ed.msvc_components),
            ],
            check=False,
        )
        if r.returncode not in VS_OK_CODES:
            raise ConvergenceFailed(f"vs_buildtools exited {r.returncode}")
        if r.returncode == 3010:
            logger.warning("Build Tools installed; a reboot is required before building")
