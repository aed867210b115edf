import json

import pytest

from settings import SettingsManager


@pytest.fixture
def manager(tmp_path):
    return SettingsManager(tmp_path / "settings.json")


def test_defaults_written_on_first_run(manager, tmp_path):
    assert (tmp_path / "settings.json").exists()
    assert manager.get("sync.debounce_ms") == 250
    assert manager.get("sync.artwork_lock_ms") == 2000
    assert manager.get("missing.key", "fallback") == "fallback"


def test_set_converts_and_bounds(manager):
    manager.set("sync.debounce_ms", "300")
    assert manager.get("sync.debounce_ms") == 300

    manager.set("server.port", 70000)
    assert manager.get("server.port") == 9020

    manager.set("sync.forensic_enabled", "off")
    assert manager.get("sync.forensic_enabled") is False

    manager.set("station.placeholder_titles", "Buffering..., Tuning in")
    assert manager.get("station.placeholder_titles") == ["Buffering...", "Tuning in"]

    with pytest.raises(KeyError):
        manager.set("nope", 1)


def test_saved_values_survive_reload(manager, tmp_path):
    manager.set("station.name", "Radio Ten")
    manager.save_to_config()

    reloaded = SettingsManager(tmp_path / "settings.json")
    assert reloaded.get("station.name") == "Radio Ten"


def test_corrupted_file_is_backed_up(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not valid json", encoding="utf-8")

    manager = SettingsManager(path)

    assert manager.get("sync.verify_attempts") == 3
    assert (tmp_path / "settings.json.corrupted").exists()
    assert json.loads(path.read_text(encoding="utf-8"))["sync.verify_attempts"] == 3


def test_get_all_groups_by_category(manager):
    grouped = manager.get_all()
    assert grouped["Sync"]["sync.verify_delay_ms"]["value"] == 500
    assert grouped["Server"]["server.port"]["min"] == 1


def test_reset_to_defaults(manager):
    manager.set("sync.debounce_ms", 1000)
    manager.save_to_config()
    manager.reset_to_defaults()
    assert manager.get("sync.debounce_ms") == 250
