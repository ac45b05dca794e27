import json

from shared.config.bridge import (
    DEFAULT_LFG_EXPIRY_MINUTES,
    load_bridge_config,
    purpose_label,
    save_bridge_config,
    validate_bridge_config,
)


def test_missing_file_yields_defaults(tmp_path):
    config = load_bridge_config(tmp_path / "missing.json")

    assert config["bridge"]["communities"] == {}
    assert config["bridge"]["settings"]["filter_links"] is False
    assert config["bridge"]["settings"]["lfg_expiry_minutes"] == DEFAULT_LFG_EXPIRY_MINUTES


def test_defaults_override_is_applied(tmp_path):
    config = load_bridge_config(
        tmp_path / "missing.json",
        defaults={"filter_links": True, "lfg_expiry_minutes": 90},
    )

    assert config["bridge"]["settings"] == {"filter_links": True, "lfg_expiry_minutes": 90}


def test_malformed_entries_are_normalized(tmp_path):
    path = tmp_path / "bridge.json"
    path.write_text(
        json.dumps(
            {
                "bridge": {
                    "communities": {
                        "not-a-snowflake": {"name": "Bad"},
                        "123": {
                            "name": "  Good  ",
                            "channels": {
                                "news": {"channel_id": "456", "webhook_url": "http://insecure"},
                                "bogus": {"channel_id": "1"},
                            },
                        },
                    },
                    "settings": {"lfg_expiry_minutes": 99999, "filter_links": "yes"},
                }
            }
        ),
        encoding="utf-8",
    )

    config = load_bridge_config(path)
    communities = config["bridge"]["communities"]

    assert list(communities) == ["123"]
    assert communities["123"]["name"] == "Good"
    assert communities["123"]["channels"] == {
        "news": {"channel_id": "456", "webhook_url": None, "role_id": None}
    }
    assert config["bridge"]["settings"]["lfg_expiry_minutes"] == DEFAULT_LFG_EXPIRY_MINUTES
    assert config["bridge"]["settings"]["filter_links"] is False


def test_unreadable_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "bridge.json"
    path.write_text("{not json", encoding="utf-8")

    assert load_bridge_config(path)["bridge"]["communities"] == {}


def test_save_creates_parent_directory(tmp_path):
    path = tmp_path / "nested" / "bridge.json"
    save_bridge_config({"bridge": {"communities": {}, "settings": {"filter_links": True}}}, path)

    assert path.exists()
    assert load_bridge_config(path)["bridge"]["settings"]["filter_links"] is True


def test_validate_bridge_config():
    good = {
        "bridge": {
            "communities": {
                "1": {"channels": {"lfg": {"channel_id": "2", "webhook_url": "https://x", "role_id": None}}}
            },
            "settings": {"filter_links": False, "lfg_expiry_minutes": 60},
        }
    }
    assert validate_bridge_config(good)
    assert validate_bridge_config({})

    assert not validate_bridge_config({"bridge": {"settings": {"lfg_expiry_minutes": 1}}})
    assert not validate_bridge_config({"bridge": {"settings": {"filter_links": "on"}}})
    assert not validate_bridge_config({"bridge": {"communities": {"abc": {}}}})
    assert not validate_bridge_config(
        {"bridge": {"communities": {"1": {"channels": {"memes": {}}}}}}
    )


def test_purpose_label_known_and_unknown():
    assert purpose_label("lfg") != "lfg"
    assert purpose_label("side_events") == "Side Events"


def test_validate_config_script(tmp_path, capsys):
    from scripts.validate_config import main

    good = tmp_path / "good.json"
    good.write_text(json.dumps({"bridge": {"settings": {"lfg_expiry_minutes": 30}}}), encoding="utf-8")
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"bridge": {"settings": {"lfg_expiry_minutes": 0}}}), encoding="utf-8")

    assert main([str(good)]) == 0
    assert main([str(bad)]) == 1
    assert main([str(tmp_path / "absent.json")]) == 0
    assert "Configuration validation failed." in capsys.readouterr().err
