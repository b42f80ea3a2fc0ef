from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import List, Optional

logger = logging.getLogger(__name__)


def vswhere_installation(ctx, vswhere: str, component: str) -> Optional[str]:
    """Installation path of a VS instance that carries component, or None."""

    r = ctx.query(
        [
            vswhere,
            "-products",
            "*",
            "-latest",
            "-requires",
            component,
            "-property",
            "installationPath",
        ]
    )
    if r.returncode != 0:
        return None
    path = r.stdout.strip().splitlines()
    return path[0].strip() if path and path[0].strip() else None


def download(ctx, url: str, dest_dir: str, filename: Optional[str] = None) -> str:
    """Fetch url into dest_dir with curl (shipped with Windows 10+). Returns the file path."""

    name = filename or PurePosixPath(url.split("?", 1)[0]).name
    dest = f"{dest_dir.rstrip('/')}/{name}"
    if not ctx.dry_run:
        ctx.path(dest_dir).mkdir(parents=True, exist_ok=True)
    ctx.run(["curl", "-fsSL", "--retry", "3", "-o", dest, url])
    return dest


def vs_installer_args(components: List[str]) -> List[str]:
    args: List[str] = []
    for c in components:
        args += ["--add", c]
    return args


def sdk_installed(ctx, kits_dir: str, version: str) -> bool:
    return ctx.path(f"{kits_dir.rstrip('/')}/Include/{version}").is_dir()
