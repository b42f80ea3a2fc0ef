from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, Optional

from .config import BT_SERIAL, PROFILES, DesiredState, load_desired_state
from .errors import FatalPrerequisiteMissing
from .logging_utils import configure_logging
from .reconciler import ProvisionCtx, ReconcileResult, run_reconciler
from .state_store import ensure_defaults, load_state, save_state
from .steps import build_steps

logger = logging.getLogger(__name__)


DEFAULT_STATE_PATH = "/var/lib/hostprep/state.json"

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INCOMPLETE = 2


def _summary(desired: DesiredState) -> None:
    if desired.profile == BT_SERIAL:
        bt = desired.bluetooth
        logger.info("PIN code is set to: %s", bt.pin_code)
        logger.info("Your device should appear as '%s'", bt.name)
        logger.info(
            "Use '%s [start|stop|restart|status|enable|disable]' to control the service",
            bt.script_path(bt.control_script),
        )
        logger.info("Reboot for all changes to take full effect")
    else:
        ed = desired.editor
        logger.info("Editor binary: %s", ed.binary_path)


def run(
    *,
    desired: DesiredState,
    state_path: str = DEFAULT_STATE_PATH,
    log_path: Optional[str] = None,
    root: str = "/",
    dry_run: bool = False,
    ctx: Optional[ProvisionCtx] = None,
) -> ReconcileResult:
    """Probe and converge every resource of the profile, persisting the run record."""

    actual_log_path = configure_logging(log_path or desired.log_path, profile=desired.profile)
    logger.info("Starting %s provisioning (dry_run=%s)", desired.profile, dry_run)

    state = ensure_defaults(load_state(state_path))
    state["profile"] = desired.profile
    exe = state.setdefault("execution", {})
    exe["runs"] = int(exe.get("runs") or 0) + 1
    exe.setdefault("paths", {})["log_path_actual"] = actual_log_path

    ctx = ctx or ProvisionCtx(desired=desired, root=root, dry_run=dry_run)

    try:
        result = run_reconciler(state=state, steps=build_steps(desired.profile), ctx=ctx)
        exe["ok"] = result.ok
        if result.ok:
            logger.info("Setup complete")
            _summary(desired)
        else:
            bad = [r.resource for r in result.reports if not r.ok]
            logger.error("Setup incomplete: %s", ", ".join(bad))
        return result
    except FatalPrerequisiteMissing as e:
        exe["ok"] = False
        exe.setdefault("errors", []).append({"resource": exe.get("current_resource"), "error": str(e), "fatal": True})
        raise
    except Exception as e:
        logger.exception("Provisioning failed")
        exe["ok"] = False
        exe.setdefault("errors", []).append({"resource": exe.get("current_resource"), "error": str(e)})
        raise
    finally:
        save_state(state_path, state)


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="hostprep")
    p.add_argument("profile", nargs="?", default=BT_SERIAL, choices=PROFILES, help="What to provision")
    p.add_argument("--config", default=None, help="YAML overrides for the profile defaults")
    p.add_argument("--state", default=DEFAULT_STATE_PATH, help="Path to run record (json|yaml)")
    p.add_argument("--log", default=None, help="Log file (defaults to the profile's log path)")
    p.add_argument("--root", default="/", help="Filesystem root for generated files")
    p.add_argument("--dry-run", action="store_true", help="Probe and log, change nothing")

    args = p.parse_args(argv)

    desired = load_desired_state(args.profile, args.config)
    try:
        result = run(
            desired=desired,
            state_path=args.state,
            log_path=args.log,
            root=args.root,
            dry_run=bool(args.dry_run),
        )
    except FatalPrerequisiteMissing:
        return EXIT_FATAL
    return EXIT_OK if result.ok else EXIT_INCOMPLETE


if __name__ == "__main__":
    raise SystemExit(main())
