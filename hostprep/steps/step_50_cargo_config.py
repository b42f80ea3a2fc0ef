from __future__ import annotations

import logging

from ..lib.cargo_config import patch_managed_block, render_cargo_fragment
from ..lib.files import read_text
from ..reconciler import ProvisionCtx
from .base import ManagedFileStep

logger = logging.getLogger(__name__)


class CargoConfigStep(ManagedFileStep):
    """Managed block in <source>/.cargo/config.toml: link-search path and build alias.

    Whatever else the project keeps in that file is left alone.
    """

    resource = "cargo-config"
    depends_on = ("editor-source",)

    def target(self, ctx: ProvisionCtx) -> str:
        return ctx.desired.editor.cargo_config

    def render(self, ctx: ProvisionCtx) -> str:
        ed = ctx.desired.editor
        fragment = render_cargo_fragment(
            target=ed.rust_target,
            link_search=ed.link_search,
            features=ed.features,
        )
        return patch_managed_block(read_text(ctx.path(self.target(ctx))), fragment)
