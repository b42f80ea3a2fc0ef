from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from ..errors import ProbeUnavailable

logger = logging.getLogger(__name__)


def parse_dpkg_status(output: str) -> Dict[str, bool]:
    """Parse `dpkg-query -W -f='${Package} ${Status}\\n'` output."""

    installed: Dict[str, bool] = {}
    for line in output.splitlines():
        parts = line.split()
        if not parts:
            continue
        pkg = parts[0].split(":", 1)[0]
        installed[pkg] = parts[1:] == ["install", "ok", "installed"]
    return installed


def missing_packages(ctx, packages: Sequence[str]) -> List[str]:
    """Packages from the list that dpkg does not report as installed."""

    if not packages:
        return []
    ctx.require("dpkg-query")
    r = ctx.query(["dpkg-query", "-W", "-f=${Package} ${Status}\n", *packages])
    # dpkg-query exits 1 when some names are unknown; the rest is still printed.
    if r.returncode not in (0, 1):
        raise ProbeUnavailable(f"dpkg-query failed ({r.returncode}): {r.stderr.strip()}")
    status = parse_dpkg_status(r.stdout)
    return [p for p in packages if not status.get(p, False)]


def apt_update(ctx) -> None:
    ctx.run(["apt-get", "update"])


def apt_install(ctx, packages: Sequence[str]) -> None:
    if not packages:
        return
    ctx.run(["apt-get", "install", "-y", *packages], env={"DEBIAN_FRONTEND": "noninteractive"})
