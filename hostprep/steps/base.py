from __future__ import annotations

import logging
import os
import stat
from typing import Optional

from ..errors import ProbeUnavailable
from ..lib.files import read_text, write_file
from ..reconciler import ConvergenceStep, Probe, ProvisionCtx

logger = logging.getLogger(__name__)


class ManagedFileStep(ConvergenceStep):
    """A file whose whole content (and optionally mode) is owned by hostprep."""

    mode: Optional[int] = None

    def target(self, ctx: ProvisionCtx) -> str:
        raise NotImplementedError

    def render(self, ctx: ProvisionCtx) -> str:
        raise NotImplementedError

    def after_write(self, ctx: ProvisionCtx) -> None:
        """Hook for reloads/restarts once the file changed."""

    def probe(self, ctx: ProvisionCtx) -> Probe:
        target = self.target(ctx)
        p = ctx.path(target)
        try:
            current = read_text(p)
            current_mode = stat.S_IMODE(p.stat().st_mode) if current is not None else None
        except OSError as e:
            raise ProbeUnavailable(f"cannot read {target}: {e}") from e
        if current is None:
            return Probe.absent(f"{target} missing")
        if current != self.render(ctx):
            return Probe.mismatching(f"{target} content differs")
        if self.mode is not None and os.name == "posix" and current_mode != self.mode:
            return Probe.mismatching(f"{target} mode {oct(current_mode)}")
        return Probe.matching(target)

    def apply(self, ctx: ProvisionCtx) -> None:
        target = self.target(ctx)
        self.log_action("write %s", target)
        if write_file(ctx.path(target), self.render(ctx), mode=self.mode, dry_run=ctx.dry_run):
            self.after_write(ctx)
