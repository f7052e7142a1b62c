from __future__ import annotations

from pylabtwin._redact import payload_preview, redact_for_log


def test_redact_for_log_redacts_credentials() -> None:
    payload = {
        "host": "broker",
        "password": "pw",
        "mqttPassword": "pw2",
        "nested": {"token": "abc", "username": "lab"},
    }

    redacted = redact_for_log(payload)
    assert redacted["host"] == "broker"
    assert redacted["password"] == "<redacted>"
    assert redacted["mqttPassword"] == "<redacted>"
    assert redacted["nested"]["token"] == "<redacted>"
    assert redacted["nested"]["username"] == "lab"


def test_empty_password_is_left_visible() -> None:
    assert redact_for_log({"password": ""})["password"] == ""


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_payload_preview() -> None:
    assert payload_preview(b'{"targetName": "Cube"}') == '{"targetName": "Cube"}'
    preview = payload_preview(b"y" * 500, limit=20)
    assert preview.startswith("y" * 20)
    assert preview.endswith("<500b>")
    assert payload_preview(b"\xff") == "�"
