from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def host_path(root: str, path: str) -> Path:
    """Map an absolute host path below root ("/" on a real run)."""
    return Path(root) / path.lstrip("/")


def read_text(p: Path) -> Optional[str]:
    """File contents, or None when absent. Undecodable bytes become U+FFFD."""
    if not p.is_file():
        return None
    return p.read_text(encoding="utf-8", errors="replace")


def write_file(p: Path, contents: str, *, mode: int | None = None, dry_run: bool = False) -> bool:
    """Write contents to p if they differ. Returns True when something changed."""

    current = read_text(p)
    needs_mode = mode is not None and os.name == "posix" and (
        not p.exists() or stat.S_IMODE(p.stat().st_mode) != mode
    )
    if current == contents and not needs_mode:
        logger.debug("Unchanged %s", str(p))
        return False

    if dry_run:
        logger.info("Would write %s", str(p))
        return True

    p.parent.mkdir(parents=True, exist_ok=True)
    if current != contents:
        # newline="" keeps LF endings on Windows hosts too.
        with p.open("w", encoding="utf-8", newline="") as f:
            f.write(contents)
        logger.info("Wrote %s (%d bytes)", str(p), len(contents.encode("utf-8")))
    if mode is not None and os.name == "posix":
        p.chmod(mode)
    return True
