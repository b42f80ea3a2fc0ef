from __future__ import annotations

import logging
import os
from pathlib import Path

DEFAULT_LOG_PATH = "/var/log/hostprep.log"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(profile)s] %(name)s: %(message)s"


class _ProfileFilter(logging.Filter):
    """Stamp every record with the profile being provisioned."""

    def __init__(self, profile: str) -> None:
        super().__init__()
        self.profile = profile

    def filter(self, record: logging.LogRecord) -> bool:
        record.profile = self.profile
        return True


def _open_log_file(log_path: str) -> tuple[logging.FileHandler, str]:
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path), log_path
    except OSError:
        # /var/log needs root; keep the profile's file name next to the caller.
        fallback = str(Path.cwd() / (Path(log_path).name or "hostprep.log"))
        return logging.FileHandler(fallback), fallback


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    *,
    profile: str = "-",
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Send everything to the profile's log file and to the console.

    Each profile has a fixed log file (bt-serial writes /var/log/bt-setup.log),
    and every line carries the profile name. Calling again with the same path
    and profile is a no-op; a different one replaces the handlers, so a
    process that provisions both profiles gets two separate logs.

    Returns the file path actually in use.
    """

    root = logging.getLogger()
    root.setLevel(level)

    if getattr(root, "_hostprep_requested", None) == (log_path, profile):
        return getattr(root, "_hostprep_log_path")
    reset_logging()

    file_handler, chosen_path = _open_log_file(log_path)
    handlers: list[logging.Handler] = [file_handler]
    if also_console:
        handlers.append(logging.StreamHandler())

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")
    tag = _ProfileFilter(profile)
    for h in handlers:
        h.setFormatter(fmt)
        h.addFilter(tag)
        root.addHandler(h)

    setattr(root, "_hostprep_requested", (log_path, profile))
    setattr(root, "_hostprep_log_path", chosen_path)
    setattr(root, "_hostprep_handlers", handlers)

    logger = logging.getLogger(__name__)
    if chosen_path != log_path:
        logger.warning("Cannot write %s; logging to %s instead", log_path, chosen_path)
    else:
        logger.info("Logging to %s", chosen_path)
    return chosen_path


def reset_logging() -> None:
    """Remove the handlers installed by configure_logging()."""

    root = logging.getLogger()
    for h in getattr(root, "_hostprep_handlers", []):
        root.removeHandler(h)
        h.close()
    for attr in ("_hostprep_requested", "_hostprep_log_path", "_hostprep_handlers"):
        if hasattr(root, attr):
            delattr(root, attr)
