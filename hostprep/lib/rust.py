from __future__ import annotations

from typing import Optional


def find_cargo_tool(ctx, cargo_home: str, name: str) -> Optional[str]:
    """Locate rustup/cargo: PATH first, then <cargo_home>/bin.

    A fresh rustup install only lands on PATH for new shells, so the
    current process has to look in cargo_home as well.
    """

    found = ctx.which(name)
    if found:
        return found
    for candidate in (f"{cargo_home.rstrip('/')}/bin/{name}.exe", f"{cargo_home.rstrip('/')}/bin/{name}"):
        if ctx.path(candidate).is_file():
            return candidate
    return None
