from __future__ import annotations

from typing import Callable, List, Optional, Sequence, Set

import pytest

from hostprep.config import BT_SERIAL, EDITOR_TOOLCHAIN, default_desired_state
from hostprep.errors import CommandFailed
from hostprep.lib.command import CmdResult
from hostprep.logging_utils import reset_logging
from hostprep.reconciler import ProvisionCtx


class FakeBtHost:
    """Scripted Linux host for the bt-serial profile.

    query() calls arrive without dry_run; run() calls always pass it, which
    lets the fake tell read-only probes from state-changing commands.
    """

    def __init__(self, packages: Sequence[str]) -> None:
        self.known_packages = set(packages)
        self.installed: Set[str] = set()
        self.adapter_present = False
        self.adapter_after_reset = True
        self.adapter_after_rfkill = False
        self.enabled: Set[str] = set()
        self.active: Set[str] = set()
        self.trusted: Set[str] = set()
        self.missing_tools: Set[str] = set()
        self.calls: List[List[str]] = []
        self.mutations: List[List[str]] = []

    def which(self, name: str) -> Optional[str]:
        if name in self.missing_tools:
            return None
        return f"/usr/bin/{name}"

    def _ok(self, argv: List[str], stdout: str = "", rc: int = 0) -> CmdResult:
        return CmdResult(argv=argv, returncode=rc, stdout=stdout, stderr="")

    def __call__(self, argv, *, check=True, env=None, cwd=None, input_text=None, dry_run=None):
        argv = list(argv)
        self.calls.append(argv)
        if dry_run is not None:
            self.mutations.append(argv)
            if dry_run:
                return self._ok(argv)

        r = self._dispatch(argv)
        if check and r.returncode != 0:
            raise CommandFailed(f"{argv} failed", returncode=r.returncode)
        return r

    def _dispatch(self, argv: List[str]) -> CmdResult:
        cmd = argv[0]
        if cmd == "dpkg-query":
            pkgs = [a for a in argv[1:] if not a.startswith("-")]
            lines = [f"{p} install ok installed" for p in pkgs if p in self.installed]
            return self._ok(argv, "\n".join(lines) + "\n", 0 if len(lines) == len(pkgs) else 1)
        if cmd == "apt-get":
            if argv[1] == "install":
                self.installed.update(a for a in argv[2:] if a in self.known_packages)
            return self._ok(argv)
        if cmd == "hciconfig":
            out = "hci0:\tType: Primary  Bus: UART\n\tUP RUNNING PSCAN\n" if self.adapter_present else ""
            return self._ok(argv, out)
        if cmd == "modprobe":
            return self._ok(argv)
        if cmd == "rfkill":
            if self.adapter_after_rfkill:
                self.adapter_present = True
            return self._ok(argv)
        if cmd == "systemctl":
            return self._systemctl(argv)
        if cmd == "bluetoothctl":
            addr = argv[2]
            if argv[1] == "trust":
                self.trusted.add(addr)
                return self._ok(argv)
            trusted = "yes" if addr in self.trusted else "no"
            return self._ok(argv, f"Device {addr} (public)\n\tName: phone\n\tTrusted: {trusted}\n")
        raise AssertionError(f"unexpected command {argv}")

    def _systemctl(self, argv: List[str]) -> CmdResult:
        verb = argv[1]
        unit = argv[2] if len(argv) > 2 else ""
        if verb == "is-enabled":
            return self._ok(argv, "enabled\n" if unit in self.enabled else "disabled\n", 0 if unit in self.enabled else 1)
        if verb == "is-active":
            return self._ok(argv, "active\n" if unit in self.active else "inactive\n", 0 if unit in self.active else 3)
        if verb == "enable":
            self.enabled.add(unit)
        elif verb == "start":
            if unit == "bluetooth" and self.adapter_after_reset:
                self.adapter_present = True
            self.active.add(unit)
        elif verb == "stop":
            self.active.discard(unit)
        return self._ok(argv)


class ScriptedRunner:
    """Runner answering by argv prefix; unmatched commands succeed with no output."""

    def __init__(self) -> None:
        self.rules: List[tuple] = []
        self.calls: List[List[str]] = []

    def on(self, *prefix: str, stdout="", returncode: int = 0, effect: Optional[Callable[[List[str]], None]] = None):
        self.rules.insert(0, (list(prefix), stdout, returncode, effect))
        return self

    def __call__(self, argv, *, check=True, env=None, cwd=None, input_text=None, dry_run=None):
        argv = list(argv)
        self.calls.append(argv)
        for prefix, stdout, rc, effect in self.rules:
            if argv[: len(prefix)] == prefix:
                if effect is not None:
                    effect(argv)
                out = stdout() if callable(stdout) else stdout
                break
        else:
            out, rc = "", 0
        if check and rc != 0:
            raise CommandFailed(f"{argv} failed", returncode=rc)
        return CmdResult(argv=argv, returncode=rc, stdout=out, stderr="")

    def ran(self, *prefix: str) -> List[List[str]]:
        return [c for c in self.calls if c[: len(prefix)] == list(prefix)]


@pytest.fixture
def bt_desired():
    return default_desired_state(BT_SERIAL)


@pytest.fixture
def bt_host(bt_desired):
    return FakeBtHost(bt_desired.bluetooth.packages)


@pytest.fixture
def bt_ctx(tmp_path, bt_desired, bt_host):
    return ProvisionCtx(
        desired=bt_desired,
        root=str(tmp_path),
        runner=bt_host,
        which=bt_host.which,
        sleep=lambda s: None,
    )


@pytest.fixture
def editor_desired():
    return default_desired_state(EDITOR_TOOLCHAIN, {"rust": {"cargo_home": "/home/dev/.cargo"}})


@pytest.fixture
def scripted_runner():
    return ScriptedRunner()


@pytest.fixture
def editor_ctx(tmp_path, editor_desired, scripted_runner):
    return ProvisionCtx(
        desired=editor_desired,
        root=str(tmp_path),
        runner=scripted_runner,
        which=lambda name: None,
        sleep=lambda s: None,
    )


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    reset_logging()


