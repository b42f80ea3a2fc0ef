import pytest

from hostprep.config import (
    BT_SERIAL,
    EDITOR_TOOLCHAIN,
    default_desired_state,
    load_desired_state,
)


def test_bt_defaults():
    bt = default_desired_state(BT_SERIAL).bluetooth
    assert bt.pin_code == "5471"
    assert bt.name == "KaliPi-BT"
    assert bt.rfcomm_channel == 1
    assert bt.script_path(bt.control_script) == "/usr/local/bin/bt-control"
    assert bt.unit_path(bt.serial_bridge_unit) == "/etc/systemd/system/bt-serial.service"


def test_overrides_deep_merge():
    bt = default_desired_state(BT_SERIAL, {"bluetooth": {"name": "Bench"}}).bluetooth
    assert bt.name == "Bench"
    assert bt.pin_code == "5471"


def test_pin_must_be_numeric():
    with pytest.raises(ValueError):
        default_desired_state(BT_SERIAL, {"bluetooth": {"pin_code": "12ab"}}).bluetooth


def test_unknown_profile():
    with pytest.raises(ValueError):
        default_desired_state("kiosk")


def test_profile_sections_are_exclusive():
    with pytest.raises(ValueError):
        default_desired_state(BT_SERIAL).editor
    with pytest.raises(ValueError):
        default_desired_state(EDITOR_TOOLCHAIN).bluetooth


def test_editor_derived_paths():
    ed = default_desired_state(EDITOR_TOOLCHAIN, {"rust": {"cargo_home": "C:\\Users\\dev\\.cargo"}}).editor
    assert ed.link_search == "C:/vcpkg/installed/x64-windows/lib"
    assert ed.cargo_config == "C:/src/lapce/.cargo/config.toml"
    assert ed.binary_path == "C:/src/lapce/target/release/lapce.exe"
    assert ed.vcpkg_exe == "C:/vcpkg/vcpkg.exe"
    assert ed.cargo_home == "C:/Users/dev/.cargo"


def test_load_yaml_keyed_by_profile(tmp_path):
    cfg = tmp_path / "hostprep.yaml"
    cfg.write_text(
        "bt-serial:\n  bluetooth:\n    pin_code: '0000'\n"
        "editor-toolchain:\n  editor:\n    features: [lsp]\n"
    )
    assert load_desired_state(BT_SERIAL, str(cfg)).bluetooth.pin_code == "0000"
    assert load_desired_state(EDITOR_TOOLCHAIN, str(cfg)).editor.features == ["lsp"]


def test_load_rejects_non_yaml_and_non_mapping(tmp_path):
    json_cfg = tmp_path / "hostprep.json"
    json_cfg.write_text("{}")
    with pytest.raises(ValueError):
        load_desired_state(BT_SERIAL, str(json_cfg))

    list_cfg = tmp_path / "list.yml"
    list_cfg.write_text("- a\n- b\n")
    with pytest.raises(ValueError):
        load_desired_state(BT_SERIAL, str(list_cfg))

    with pytest.raises(FileNotFoundError):
        load_desired_state(BT_SERIAL, str(tmp_path / "missing.yaml"))


@pytest.mark.parametrize("name", ['Pi "one"', "Pi $(reboot)", "", "a\nb"])
def test_name_must_be_plain_text(name):
    with pytest.raises(ValueError):
        default_desired_state(BT_SERIAL, {"bluetooth": {"name": name}}).bluetooth
