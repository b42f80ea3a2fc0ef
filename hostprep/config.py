from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

BT_SERIAL = "bt-serial"
EDITOR_TOOLCHAIN = "editor-toolchain"

PROFILES = (BT_SERIAL, EDITOR_TOOLCHAIN)


_BT_SERIAL_DEFAULTS: Dict[str, Any] = {
    "log_path": "/var/log/bt-setup.log",
    "bluetooth": {
        "adapter": "hci0",
        "name": "KaliPi-BT",
        "device_class": "0x000100",
        "pin_code": "5471",
        "rfcomm_channel": 1,
        "discoverable_timeout": 0,
        "pairable_timeout": 0,
        "auto_connect_timeout": 60000,
        "auto_enable": True,
        "disabled_profiles": ["audio", "media", "a2dp", "avrcp"],
        "agent_path": "/test/agent",
        "agent_capability": "DisplayYesNo",
        "packages": ["bluetooth", "bluez", "bluez-tools", "python3-dbus", "python3-gi", "rfkill"],
        # Unload order; loading happens in reverse.
        "kernel_modules": ["btusb", "bluetooth"],
        "firmware": {
            "/lib/firmware/brcm/BCM43430A1.hcd": "Raspberry Pi 3/Zero W",
            "/lib/firmware/brcm/BCM4345C0.hcd": "Raspberry Pi 3B+/4",
        },
        "serial_log_path": "/var/log/bt-serial.log",
        "watchdog_interval": 60,
        "trust_paired_device": True,
    },
    "paths": {
        "main_conf": "/etc/bluetooth/main.conf",
        "bin_dir": "/usr/local/bin",
        "unit_dir": "/etc/systemd/system",
        "bluez_state_dir": "/var/lib/bluetooth",
    },
    "names": {
        "pin_agent_script": "bt-pin-agent.py",
        "serial_bridge_script": "bt-serial.sh",
        "control_script": "bt-control",
        "pin_agent_unit": "bt-pin-agent.service",
        "serial_bridge_unit": "bt-serial.service",
        "bluetooth_unit": "bluetooth",
    },
    # Seconds to wait for the radio stack to settle after module/service changes.
    "settle": {"modules": 2, "service": 5, "restart": 3},
}

_EDITOR_DEFAULTS: Dict[str, Any] = {
    "log_path": "C:/hostprep/editor-setup.log",
    "download_dir": "C:/hostprep/downloads",
    "msvc": {
        "installer_url": "https://aka.ms/vs/17/release/vs_buildtools.exe",
        "vswhere": "C:/Program Files (x86)/Microsoft Visual Studio/Installer/vswhere.exe",
        "install_path": "C:/BuildTools",
        "required_component": "Microsoft.VisualStudio.Component.VC.Tools.x86.x64",
        "components": [
            "Microsoft.VisualStudio.Workload.VCTools",
            "Microsoft.VisualStudio.Component.VC.Tools.x86.x64",
        ],
    },
    "sdk": {
        "kits_dir": "C:/Program Files (x86)/Windows Kits/10",
        "component": "Microsoft.VisualStudio.Component.Windows11SDK.22621",
        "version": "10.0.22621.0",
        "fallback_component": "Microsoft.VisualStudio.Component.Windows10SDK.19041",
        "fallback_version": "10.0.19041.0",
    },
    "rust": {
        "rustup_init_url": "https://win.rustup.rs/x86_64",
        "winget_id": "Rustlang.Rustup",
        "toolchain": "stable",
        "target": "x86_64-pc-windows-msvc",
        "cargo_home": "~/.cargo",
    },
    "vcpkg": {
        "root": "C:/vcpkg",
        "repo_url": "https://github.com/microsoft/vcpkg.git",
        "triplet": "x64-windows",
        "packages": ["openssl"],
    },
    "editor": {
        "repo_url": "https://github.com/lapce/lapce.git",
        "source_dir": "C:/src/lapce",
        "binary": "lapce.exe",
        "features": [],
        # Defaults to <vcpkg root>/installed/<triplet>/lib.
        "link_search": None,
    },
}

_DEFAULTS: Dict[str, Dict[str, Any]] = {
    BT_SERIAL: _BT_SERIAL_DEFAULTS,
    EDITOR_TOOLCHAIN: _EDITOR_DEFAULTS,
}


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep-merge override into a copy of base. Lists and scalars replace."""

    out = copy.deepcopy(base)
    for k, v in override.items():
        if isinstance(v, Mapping) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = copy.deepcopy(v)
    return out


@dataclass(frozen=True)
class BluetoothSettings:
    adapter: str
    name: str
    device_class: str
    pin_code: str
    rfcomm_channel: int
    discoverable_timeout: int
    pairable_timeout: int
    auto_connect_timeout: int
    auto_enable: bool
    disabled_profiles: List[str]
    agent_path: str
    agent_capability: str
    packages: List[str]
    kernel_modules: List[str]
    firmware: Dict[str, str]
    serial_log_path: str
    watchdog_interval: int
    trust_paired_device: bool
    main_conf: str
    bin_dir: str
    unit_dir: str
    bluez_state_dir: str
    pin_agent_script: str
    serial_bridge_script: str
    control_script: str
    pin_agent_unit: str
    serial_bridge_unit: str
    bluetooth_unit: str
    settle_modules: float
    settle_service: float
    settle_restart: float

    def script_path(self, name: str) -> str:
        return f"{self.bin_dir.rstrip('/')}/{name}"

    def unit_path(self, name: str) -> str:
        return f"{self.unit_dir.rstrip('/')}/{name}"

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "BluetoothSettings":
        bt = raw.get("bluetooth") or {}
        paths = raw.get("paths") or {}
        names = raw.get("names") or {}
        settle = raw.get("settle") or {}
        pin = str(bt["pin_code"])
        if not pin.isdigit():
            raise ValueError(f"bluetooth.pin_code must be numeric, got {pin!r}")
        name = str(bt["name"])
        # Lands inside double quotes in the bridge script.
        if not name.strip() or any(c in name for c in '"$`\\\n'):
            raise ValueError(f"bluetooth.name must be non-empty plain text, got {name!r}")
        return cls(
            adapter=str(bt["adapter"]),
            name=name,
            device_class=str(bt["device_class"]),
            pin_code=pin,
            rfcomm_channel=int(bt["rfcomm_channel"]),
            discoverable_timeout=int(bt["discoverable_timeout"]),
            pairable_timeout=int(bt["pairable_timeout"]),
            auto_connect_timeout=int(bt["auto_connect_timeout"]),
            auto_enable=bool(bt["auto_enable"]),
            disabled_profiles=[str(p) for p in bt.get("disabled_profiles") or []],
            agent_path=str(bt["agent_path"]),
            agent_capability=str(bt["agent_capability"]),
            packages=[str(p) for p in bt.get("packages") or []],
            kernel_modules=[str(m) for m in bt.get("kernel_modules") or []],
            firmware={str(k): str(v) for k, v in (bt.get("firmware") or {}).items()},
            serial_log_path=str(bt["serial_log_path"]),
            watchdog_interval=int(bt["watchdog_interval"]),
            trust_paired_device=bool(bt["trust_paired_device"]),
            main_conf=str(paths["main_conf"]),
            bin_dir=str(paths["bin_dir"]),
            unit_dir=str(paths["unit_dir"]),
            bluez_state_dir=str(paths["bluez_state_dir"]),
            pin_agent_script=str(names["pin_agent_script"]),
            serial_bridge_script=str(names["serial_bridge_script"]),
            control_script=str(names["control_script"]),
            pin_agent_unit=str(names["pin_agent_unit"]),
            serial_bridge_unit=str(names["serial_bridge_unit"]),
            bluetooth_unit=str(names["bluetooth_unit"]),
            settle_modules=float(settle.get("modules", 0)),
            settle_service=float(settle.get("service", 0)),
            settle_restart=float(settle.get("restart", 0)),
        )


@dataclass(frozen=True)
class EditorSettings:
    download_dir: str
    msvc_installer_url: str
    vswhere: str
    msvc_install_path: str
    msvc_required_component: str
    msvc_components: List[str]
    sdk_kits_dir: str
    sdk_component: str
    sdk_version: str
    sdk_fallback_component: str
    sdk_fallback_version: str
    rustup_init_url: str
    rustup_winget_id: str
    rust_toolchain: str
    rust_target: str
    cargo_home: str
    vcpkg_root: str
    vcpkg_repo_url: str
    vcpkg_triplet: str
    vcpkg_packages: List[str]
    repo_url: str
    source_dir: str
    binary: str
    features: List[str]
    link_search: str

    @property
    def vcpkg_exe(self) -> str:
        return f"{self.vcpkg_root.rstrip('/')}/vcpkg.exe"

    @property
    def cargo_config(self) -> str:
        return f"{self.source_dir.rstrip('/')}/.cargo/config.toml"

    @property
    def binary_path(self) -> str:
        return f"{self.source_dir.rstrip('/')}/target/release/{self.binary}"

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "EditorSettings":
        msvc = raw.get("msvc") or {}
        sdk = raw.get("sdk") or {}
        rust = raw.get("rust") or {}
        vcpkg = raw.get("vcpkg") or {}
        editor = raw.get("editor") or {}
        vcpkg_root = str(vcpkg["root"])
        triplet = str(vcpkg["triplet"])
        link_search = editor.get("link_search") or f"{vcpkg_root.rstrip('/')}/installed/{triplet}/lib"
        return cls(
            download_dir=str(raw["download_dir"]),
            msvc_installer_url=str(msvc["installer_url"]),
            vswhere=str(msvc["vswhere"]),
            msvc_install_path=str(msvc["install_path"]),
            msvc_required_component=str(msvc["required_component"]),
            msvc_components=[str(c) for c in msvc.get("components") or []],
            sdk_kits_dir=str(sdk["kits_dir"]),
            sdk_component=str(sdk["component"]),
            sdk_version=str(sdk["version"]),
            sdk_fallback_component=str(sdk["fallback_component"]),
            sdk_fallback_version=str(sdk["fallback_version"]),
            rustup_init_url=str(rust["rustup_init_url"]),
            rustup_winget_id=str(rust["winget_id"]),
            rust_toolchain=str(rust["toolchain"]),
            rust_target=str(rust["target"]),
            cargo_home=os.path.expanduser(str(rust["cargo_home"])).replace("\\", "/"),
            vcpkg_root=vcpkg_root,
            vcpkg_repo_url=str(vcpkg["repo_url"]),
            vcpkg_triplet=triplet,
            vcpkg_packages=[str(p) for p in vcpkg.get("packages") or []],
            repo_url=str(editor["repo_url"]),
            source_dir=str(editor["source_dir"]),
            binary=str(editor["binary"]),
            features=[str(f) for f in editor.get("features") or []],
            link_search=str(link_search),
        )


@dataclass(frozen=True)
class DesiredState:
    """Target configuration for one provisioning run.

    Static for the duration of a run; every step reads it through the
    provisioning context rather than from module globals.
    """

    profile: str
    raw: Dict[str, Any]

    @property
    def log_path(self) -> str:
        return str(self.raw["log_path"])

    @property
    def bluetooth(self) -> BluetoothSettings:
        if self.profile != BT_SERIAL:
            raise ValueError(f"profile {self.profile} has no bluetooth settings")
        return BluetoothSettings.from_raw(self.raw)

    @property
    def editor(self) -> EditorSettings:
        if self.profile != EDITOR_TOOLCHAIN:
            raise ValueError(f"profile {self.profile} has no editor settings")
        return EditorSettings.from_raw(self.raw)


def default_desired_state(profile: str, overrides: Optional[Mapping[str, Any]] = None) -> DesiredState:
    if profile not in _DEFAULTS:
        raise ValueError(f"Unknown profile {profile!r} (expected one of {', '.join(PROFILES)})")
    raw = _merge(_DEFAULTS[profile], overrides or {})
    return DesiredState(profile=profile, raw=raw)


def load_desired_state(profile: str, path: Optional[str] = None) -> DesiredState:
    """Profile defaults, deep-merged with an optional YAML override file."""

    if path is None:
        return default_desired_state(profile)

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)
    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("hostprep config must be YAML")

    overrides = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(overrides, dict):
        raise ValueError(f"{path} must contain a mapping/object")

    # Allow one file to carry both profiles under their own keys.
    if profile in overrides and isinstance(overrides[profile], dict):
        overrides = overrides[profile]

    return default_desired_state(profile, overrides)
