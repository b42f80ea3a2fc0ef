from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

from ..config import BluetoothSettings

logger = logging.getLogger(__name__)

_MAC_RE = re.compile(r"^[0-9A-F]{2}(:[0-9A-F]{2}){5}$")


def fill_template(template: str, values: Mapping[str, object]) -> str:
    """Substitute @KEY@ tokens.

    Shell and Python templates are full of $ and braces, so neither
    string.Template nor str.format fit. Unknown tokens are an error.
    """

    out = template
    for key, value in values.items():
        out = out.replace(f"@{key}@", str(value))
    leftover = re.findall(r"@[A-Z_]+@", out)
    if leftover:
        raise KeyError(f"Unresolved template tokens: {', '.join(sorted(set(leftover)))}")
    return out


def render_main_conf(bt: BluetoothSettings) -> str:
    lines = [
        "[General]",
        f"Name = {bt.name}",
        f"Class = {bt.device_class}",
        f"DiscoverableTimeout = {bt.discoverable_timeout}",
        f"PairableTimeout = {bt.pairable_timeout}",
        f"AutoConnectTimeout = {bt.auto_connect_timeout}",
        "",
        "[Policy]",
        f"AutoEnable={'true' if bt.auto_enable else 'false'}",
    ]
    if bt.disabled_profiles:
        lines += [
            "",
            "# Disable audio profiles",
            f"Disable={','.join(bt.disabled_profiles)}",
        ]
    return "\n".join(lines) + "\n"


_PIN_AGENT_TEMPLATE = '''#!/usr/bin/python3
import sys
import dbus
import dbus.service
import dbus.mainloop.glib
from gi.repository import GLib

BUS_NAME = 'org.bluez'
AGENT_INTERFACE = 'org.bluez.Agent1'
AGENT_PATH = "@AGENT_PATH@"
PIN_CODE = "@PIN_CODE@"

class Agent(dbus.service.Object):
    @dbus.service.method(AGENT_INTERFACE, in_signature="", out_signature="")
    def Release(self):
        print("Release")

    @dbus.service.method(AGENT_INTERFACE, in_signature="os", out_signature="")
    def AuthorizeService(self, device, uuid):
        print("AuthorizeService (%s, %s)" % (device, uuid))
        return

    @dbus.service.method(AGENT_INTERFACE, in_signature="o", out_signature="s")
    def RequestPinCode(self, device):
        print("RequestPinCode (%s)" % (device))
        return PIN_CODE

    @dbus.service.method(AGENT_INTERFACE, in_signature="o", out_signature="u")
    def RequestPasskey(self, device):
        print("RequestPasskey (%s)" % (device))
        return dbus.UInt32(PIN_CODE)

    @dbus.service.method(AGENT_INTERFACE, in_signature="ouq", out_signature="")
    def DisplayPasskey(self, device, passkey, entered):
        print("DisplayPasskey (%s, %06u entered %u)" % (device, passkey, entered))

    @dbus.service.method(AGENT_INTERFACE, in_signature="os", out_signature="")
    def DisplayPinCode(self, device, pincode):
        print("DisplayPinCode (%s, %s)" % (device, pincode))

    @dbus.service.method(AGENT_INTERFACE, in_signature="ou", out_signature="")
    def RequestConfirmation(self, device, passkey):
        print("RequestConfirmation (%s, %06d)" % (device, passkey))
        return

    @dbus.service.method(AGENT_INTERFACE, in_signature="o", out_signature="")
    def RequestAuthorization(self, device):
        print("RequestAuthorization (%s)" % (device))
        return

    @dbus.service.method(AGENT_INTERFACE, in_signature="", out_signature="")
    def Cancel(self):
        print("Cancel")

if __name__ == '__main__':
    dbus.mainloop.glib.DBusGMainLoop(set_as_default=True)
    bus = dbus.SystemBus()
    agent = Agent(bus, AGENT_PATH)
    obj = bus.get_object(BUS_NAME, "/org/bluez")
    manager = dbus.Interface(obj, "org.bluez.AgentManager1")
    manager.RegisterAgent(AGENT_PATH, "@CAPABILITY@")
    print("Agent registered")
    manager.RequestDefaultAgent(AGENT_PATH)
    print("Default agent request completed")
    mainloop = GLib.MainLoop()
    mainloop.run()
'''


def render_pin_agent(bt: BluetoothSettings) -> str:
    return fill_template(
        _PIN_AGENT_TEMPLATE,
        {
            "AGENT_PATH": bt.agent_path,
            "PIN_CODE": bt.pin_code,
            "CAPABILITY": bt.agent_capability,
        },
    )


_SERIAL_BRIDGE_TEMPLATE = '''#!/bin/bash

# Log file
LOGFILE="@LOGFILE@"
exec > >(tee -a "$LOGFILE") 2>&1

echo "Starting Bluetooth serial service at $(date)"

# Make sure device exists
if ! hciconfig -a | grep -q "@ADAPTER@"; then
    echo "ERROR: No Bluetooth adapter found"
    systemctl restart @BLUETOOTH_UNIT@
    sleep 3

    if ! hciconfig -a | grep -q "@ADAPTER@"; then
        echo "CRITICAL: Still no Bluetooth adapter. Exiting."
        exit 1
    fi
fi

# Configure Bluetooth adapter
echo "Configuring Bluetooth adapter..."
hciconfig @ADAPTER@ up
hciconfig @ADAPTER@ reset
sleep 1

# Set class to Serial Port device only (@CLASS@)
hciconfig @ADAPTER@ class @CLASS@
hciconfig @ADAPTER@ name "@NAME@"
hciconfig @ADAPTER@ piscan

# Disable SSP for classic PIN code
echo "Disabling Simple Secure Pairing..."
btmgmt ssp off

# Make sure there are no stale RFCOMM sessions
echo "Cleaning up any existing RFCOMM sessions..."
killall rfcomm 2>/dev/null
sleep 1

# Remove existing services
echo "Removing any existing service profiles..."
for i in $(sdptool browse local | grep "Service RecHandle" | awk '{print $3}'); do
    sdptool del $i
done

# Register only the Serial Port Profile
echo "Registering Serial Port Profile..."
sdptool add --channel=@CHANNEL@ SP

# Start RFCOMM in watch mode
echo "Starting RFCOMM watch on channel @CHANNEL@..."
rfcomm watch @ADAPTER@ @CHANNEL@ /bin/bash -c "cat /dev/rfcomm0 | /bin/bash 2>&1 | cat > /dev/rfcomm0" &
RFCOMM_PID=$!

# Keep the service running
while true; do
    echo "=== Status check at $(date) ==="

    # Verify adapter is up
    if ! hciconfig -a | grep -q "UP RUNNING"; then
        echo "Adapter down, bringing it up..."
        hciconfig @ADAPTER@ up
        hciconfig @ADAPTER@ class @CLASS@
        hciconfig @ADAPTER@ piscan
    fi

    # Check if RFCOMM process is running
    if ! ps -p $RFCOMM_PID > /dev/null; then
        echo "RFCOMM process died, restarting..."
        rfcomm watch @ADAPTER@ @CHANNEL@ /bin/bash -c "cat /dev/rfcomm0 | /bin/bash 2>&1 | cat > /dev/rfcomm0" &
        RFCOMM_PID=$!
    fi

    # Display current status
    echo "Current adapter status:"
    hciconfig -a

    echo "Current services:"
    sdptool browse local

    echo "RFCOMM status:"
    rfcomm

    sleep @INTERVAL@
done
'''


def render_serial_bridge(bt: BluetoothSettings) -> str:
    """Watchdog script: RFCOMM shell bridge plus a periodic adapter/RFCOMM check."""

    return fill_template(
        _SERIAL_BRIDGE_TEMPLATE,
        {
            "LOGFILE": bt.serial_log_path,
            "ADAPTER": bt.adapter,
            "BLUETOOTH_UNIT": bt.bluetooth_unit,
            "CLASS": bt.device_class,
            "NAME": bt.name,
            "CHANNEL": bt.rfcomm_channel,
            "INTERVAL": bt.watchdog_interval,
        },
    )


def adapter_listed(hciconfig_output: str, adapter: str) -> bool:
    """True when `hciconfig -a` output has a block for adapter (e.g. "hci0:")."""

    for line in hciconfig_output.splitlines():
        if line[:1].isspace() or ":" not in line:
            continue
        if line.split(":", 1)[0].strip() == adapter:
            return True
    return False


@dataclass(frozen=True)
class PairedDevice:
    address: str
    name: str
    paired_at: float


def parse_device_info(text: str) -> dict[str, str]:
    """Parse `bluetoothctl info` / BlueZ info-file style "Key: value" lines."""

    out: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith(("Device ", "[")):
            continue
        # Info files use Key=value, bluetoothctl uses Key: value; values may hold colons.
        seps = [s for s in ("=", ":") if s in line]
        if not seps:
            continue
        sep = min(seps, key=line.index)
        k, v = line.split(sep, 1)
        out[k.strip()] = v.strip()
    return out


def list_paired_devices(state_dir: Path, adapter_address: Optional[str] = None) -> List[PairedDevice]:
    """Read paired devices from BlueZ's storage (/var/lib/bluetooth/<adapter>/<device>/info).

    paired_at is the mtime of the info file, which BlueZ rewrites on pairing.
    """

    if not state_dir.is_dir():
        return []

    devices: List[PairedDevice] = []
    adapters: Iterable[Path]
    if adapter_address:
        adapters = [state_dir / adapter_address]
    else:
        adapters = sorted(p for p in state_dir.iterdir() if p.is_dir() and _MAC_RE.match(p.name))

    for adapter_dir in adapters:
        if not adapter_dir.is_dir():
            continue
        for dev_dir in sorted(adapter_dir.iterdir()):
            info = dev_dir / "info"
            if not (_MAC_RE.match(dev_dir.name) and info.is_file()):
                continue
            text = info.read_text(encoding="utf-8", errors="ignore")
            if "[LinkKey]" not in text:
                continue
            fields = parse_device_info(text)
            devices.append(
                PairedDevice(
                    address=dev_dir.name,
                    name=fields.get("Name", ""),
                    paired_at=info.stat().st_mtime,
                )
            )
    return devices


def select_paired_device(devices: Iterable[PairedDevice]) -> Optional[PairedDevice]:
    """Most recently paired device; ties broken by address so the choice is stable."""

    candidates = list(devices)
    if not candidates:
        return None
    return max(candidates, key=lambda d: (d.paired_at, d.address))
