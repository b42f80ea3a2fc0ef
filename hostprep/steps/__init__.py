from typing import List

from ..config import BT_SERIAL, EDITOR_TOOLCHAIN
from ..reconciler import ConvergenceStep
from .step_10_bt_packages import BtPackagesStep
from .step_10_win_build_tools import MsvcBuildToolsStep
from .step_15_bt_firmware import BtFirmwareStep
from .step_15_win_sdk import WindowsSdkStep
from .step_20_bt_adapter import BtAdapterStep
from .step_20_rustup import RustupStep
from .step_25_rust_target import RustTargetStep
from .step_30_bt_main_conf import BtMainConfStep
from .step_30_vcpkg import NativeLibsStep, VcpkgStep
from .step_40_bt_scripts import ControlScriptStep, PinAgentScriptStep, SerialBridgeScriptStep
from .step_40_editor_source import EditorSourceStep
from .step_50_bt_units import PinAgentUnitStep, SerialBridgeUnitStep
from .step_50_cargo_config import CargoConfigStep
from .step_60_bt_services import PinAgentServiceStep, SerialBridgeServiceStep
from .step_60_editor_build import EditorBuildStep
from .step_70_bt_trusted_device import TrustedDeviceStep

__all__ = [
    "BtPackagesStep",
    "BtFirmwareStep",
    "BtAdapterStep",
    "BtMainConfStep",
    "PinAgentScriptStep",
    "SerialBridgeScriptStep",
    "ControlScriptStep",
    "PinAgentUnitStep",
    "SerialBridgeUnitStep",
    "PinAgentServiceStep",
    "SerialBridgeServiceStep",
    "TrustedDeviceStep",
    "MsvcBuildToolsStep",
    "WindowsSdkStep",
    "RustupStep",
    "RustTargetStep",
    "VcpkgStep",
    "NativeLibsStep",
    "EditorSourceStep",
    "CargoConfigStep",
    "EditorBuildStep",
    "build_steps",
]


def build_steps(profile: str) -> List[ConvergenceStep]:
    if profile == BT_SERIAL:
        return [
            BtPackagesStep(),
            BtFirmwareStep(),
            BtAdapterStep(),
            BtMainConfStep(),
            PinAgentScriptStep(),
            SerialBridgeScriptStep(),
            ControlScriptStep(),
            PinAgentUnitStep(),
            SerialBridgeUnitStep(),
            PinAgentServiceStep(),
            SerialBridgeServiceStep(),
            TrustedDeviceStep(),
        ]
    if profile == EDITOR_TOOLCHAIN:
        return [
            MsvcBuildToolsStep(),
            WindowsSdkStep(),
            RustupStep(),
            RustTargetStep(),
            VcpkgStep(),
            NativeLibsStep(),
            EditorSourceStep(),
            CargoConfigStep(),
            EditorBuildStep(),
        ]
    raise ValueError(f"Unknown profile {profile!r}")
