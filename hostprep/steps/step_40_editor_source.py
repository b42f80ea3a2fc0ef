from __future__ import annotations

import logging

from ..reconciler import ConvergenceStep, Probe, ProvisionCtx

logger = logging.getLogger(__name__)


class EditorSourceStep(ConvergenceStep):
    resource = "editor-source"
    fatal = True

    def probe(self, ctx: ProvisionCtx) -> Probe:
        ed = ctx.desired.editor
        if not ctx.path(f"{ed.source_dir}/.git").exists():
            return Probe.absent(f"{ed.source_dir} is not a checkout")
        git = ctx.require("git")
        origin = ctx.query([git, "-C", ed.source_dir, "remote", "get-url", "origin"]).stdout.strip()
        if origin == ed.repo_url:
            return Probe.matching(origin)
        return Probe.mismatching(f"origin is {origin or 'unset'}")

    def apply(self, ctx: ProvisionCtx) -> None:
        ed = ctx.desired.editor
        git = ctx.require("git")
        if not ctx.path(f"{ed.source_dir}/.git").exists():
            self.log_action("clone %s", ed.repo_url)
            ctx.run([git, "clone", ed.repo_url, ed.source_dir])
            return
        self.log_action("set origin %s", ed.repo_url)
        r = ctx.run([git, "-C", ed.source_dir, "remote", "set-url", "origin", ed.repo_url], check=False)
        if r.returncode != 0:
            ctx.run([git, "-C", ed.source_dir, "remote", "add", "origin", ed.repo_url])
