import pytest

from hostprep.config import BT_SERIAL, default_desired_state
from hostprep.control import render_control_script, usage
from hostprep.lib.bluez import fill_template, render_main_conf, render_pin_agent, render_serial_bridge
from hostprep.lib.systemd import pin_agent_unit, serial_bridge_unit


@pytest.fixture
def bt():
    return default_desired_state(BT_SERIAL).bluetooth


def test_main_conf(bt):
    assert render_main_conf(bt) == (
        "[General]\n"
        "Name = KaliPi-BT\n"
        "Class = 0x000100\n"
        "DiscoverableTimeout = 0\n"
        "PairableTimeout = 0\n"
        "AutoConnectTimeout = 60000\n"
        "\n"
        "[Policy]\n"
        "AutoEnable=true\n"
        "\n"
        "# Disable audio profiles\n"
        "Disable=audio,media,a2dp,avrcp\n"
    )


def test_main_conf_without_disabled_profiles():
    bt = default_desired_state(BT_SERIAL, {"bluetooth": {"disabled_profiles": [], "auto_enable": False}}).bluetooth
    assert render_main_conf(bt).endswith("[Policy]\nAutoEnable=false\n")


def test_pin_agent_unit(bt):
    assert pin_agent_unit(bt) == (
        "[Unit]\n"
        "Description=Bluetooth PIN Agent\n"
        "After=bluetooth.service\n"
        "Requires=bluetooth.service\n"
        "\n"
        "[Service]\n"
        "ExecStart=/usr/local/bin/bt-pin-agent.py\n"
        "Type=simple\n"
        "Restart=on-failure\n"
        "\n"
        "[Install]\n"
        "WantedBy=multi-user.target\n"
    )


def test_serial_bridge_unit(bt):
    text = serial_bridge_unit(bt)
    assert "After=bluetooth.service bt-pin-agent.service\n" in text
    assert "User=root\nExecStart=/usr/local/bin/bt-serial.sh\nRestart=always\nRestartSec=10\n" in text


def test_pin_agent_script(bt):
    text = render_pin_agent(bt)
    assert text.startswith("#!/usr/bin/python3\n")
    assert 'PIN_CODE = "5471"' in text
    assert 'AGENT_PATH = "/test/agent"' in text
    assert 'manager.RegisterAgent(AGENT_PATH, "DisplayYesNo")' in text
    compile(text, "bt-pin-agent.py", "exec")


def test_serial_bridge_script(bt):
    text = render_serial_bridge(bt)
    assert "@" not in text
    assert 'LOGFILE="/var/log/bt-serial.log"' in text
    assert "sdptool add --channel=1 SP" in text
    assert "hciconfig hci0 class 0x000100" in text
    assert "    sleep 60\ndone\n" in text


def test_control_script(bt):
    text = render_control_script(bt)
    assert text.startswith('#!/bin/bash\n\n# Display usage if no parameters given\nif [ -z "$1" ]; then\n')
    assert f'    echo "{usage(bt)}"\n    exit 1\nfi\n' in text
    assert (
        "    restart)\n"
        '        echo "Restarting Bluetooth stack and services..."\n'
        "        systemctl stop bt-serial.service\n"
        "        systemctl stop bt-pin-agent.service\n"
        "        systemctl stop bluetooth\n"
        "        sleep 2\n"
        "        systemctl start bluetooth\n"
        "        sleep 3\n"
        "        systemctl start bt-pin-agent.service\n"
        "        systemctl start bt-serial.service\n"
        "        ;;\n"
    ) in text
    assert text.endswith('        echo "Unknown command: $1"\n' f'        echo "{usage(bt)}"\n' "        exit 1\n        ;;\nesac\n\nexit 0\n")


def test_fill_template_rejects_unresolved_tokens():
    assert fill_template("a=@A@", {"A": 1}) == "a=1"
    with pytest.raises(KeyError):
        fill_template("a=@A@ b=@B@", {"A": 1})


def test_name_with_spaces_is_quoted_in_bridge():
    bt = default_desired_state(BT_SERIAL, {"bluetooth": {"name": "My Pi"}}).bluetooth
    assert 'hciconfig hci0 name "My Pi"\n' in render_serial_bridge(bt)
