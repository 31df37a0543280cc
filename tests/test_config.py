import json

import pytest

from chat_printer.core.config import Settings, get_config_path, load_config, load_settings, save_config
from chat_printer.core.errors import ConfigInvalid
from chat_printer.protocol import MAX_ROW_WIDTH


def _irc() -> dict:
    return {"irc_token": "abc", "irc_username": "bot", "irc_channel": "chan"}


def _write(tmp_path, data) -> str:
    path = tmp_path / "config.json"
    save_config(data, path=str(path))
    return str(path)


def test_defaults_in_test_text_mode(tmp_path):
    settings = load_settings(_write(tmp_path, {"test_text": True}), environ={})
    assert settings.width == 500
    assert settings.height == 500
    assert settings.clock_time == 300
    assert settings.usb_vendor_id == 0x3513
    assert settings.print_queue_size == 8
    assert settings.text_parser_enabled is False


def test_missing_file_uses_defaults_with_overrides(tmp_path):
    settings = load_settings(str(tmp_path / "missing.json"), environ={}, overrides={"test_text": True})
    assert settings.test_text is True


def test_env_overrides_file(tmp_path):
    path = _write(tmp_path, {**_irc(), "width": 400})
    env = {
        "CHATPRINTER_WIDTH": "256",
        "CHATPRINTER_OPERATORS": "alice, bob",
        "CHATPRINTER_DISABLE_PRINTER": "true",
        "CHATPRINTER_USB_PRODUCT_ID": "0x0002",
    }
    settings = load_settings(path, environ=env)
    assert settings.width == 256
    assert settings.operators == ["alice", "bob"]
    assert settings.disable_printer is True
    assert settings.usb_product_id == 0x0002


def test_explicit_overrides_win(tmp_path):
    path = _write(tmp_path, {"test_text": False, **_irc()})
    settings = load_settings(path, environ={"CHATPRINTER_CLOCK_TIME": "10"}, overrides={"clock_time": 20})
    assert settings.clock_time == 20


def test_hex_usb_ids():
    settings = Settings(usb_vendor_id="0x3513", usb_product_id="")
    assert settings.usb_vendor_id == 0x3513
    assert settings.usb_product_id is None


def test_width_must_be_multiple_of_eight(tmp_path):
    with pytest.raises(ConfigInvalid) as exc:
        load_settings(_write(tmp_path, {"test_text": True, "width": 10}), environ={})
    assert exc.value.details["errors"]


def test_invalid_printer_type(tmp_path):
    with pytest.raises(ConfigInvalid):
        load_settings(_write(tmp_path, {"test_text": True, "printer_type": "bluetooth"}), environ={})


def test_missing_irc_credentials(tmp_path):
    with pytest.raises(ConfigInvalid, match="IRC token"):
        load_settings(_write(tmp_path, {}), environ={})
    with pytest.raises(ConfigInvalid, match="IRC channel"):
        load_settings(_write(tmp_path, {"irc_token": "t", "irc_username": "u"}), environ={})


def test_serial_requires_port(tmp_path):
    with pytest.raises(ConfigInvalid, match="serial_port"):
        load_settings(_write(tmp_path, {**_irc(), "printer_type": "serial"}), environ={})
    settings = load_settings(
        _write(tmp_path, {**_irc(), "printer_type": "serial", "disable_printer": True}),
        environ={},
    )
    assert settings.printer_type == "serial"


def test_unreadable_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigInvalid):
        load_settings(str(path), environ={})


def test_non_object_root(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps([1, 2]), encoding="utf-8")
    with pytest.raises(ConfigInvalid):
        load_settings(str(path), environ={})


def test_shutdown_time_is_clamped():
    assert Settings(set_shutdown_timer=9.6).shutdown_time == 4
    assert Settings(set_shutdown_timer=-1).shutdown_time == 0
    assert Settings(set_shutdown_timer=2.4).shutdown_time == 2


def test_config_path_env_override(tmp_path, monkeypatch):
    target = tmp_path / "custom.json"
    monkeypatch.setenv("CHATPRINTER_CONFIG_PATH", str(target))
    assert get_config_path() == str(target)


def test_save_and_load_round_trip(tmp_path):
    path = str(tmp_path / "nested" / "config.json")
    save_config({"width": 384}, path=path)
    assert load_config(path) == {"width": 384}
    assert load_config(str(tmp_path / "absent.json")) is None


def test_width_is_capped_at_one_frame_per_row(tmp_path):
    settings = load_settings(_write(tmp_path, {"test_text": True, "width": 1992, "height": 2}), environ={})
    assert settings.width == MAX_ROW_WIDTH == 1992
    with pytest.raises(ConfigInvalid):
        load_settings(_write(tmp_path, {"test_text": True, "width": 2000, "height": 2}), environ={})
