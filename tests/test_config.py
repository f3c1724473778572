import json

from moddypy.config import ModConfig


def test_missing_file_gives_defaults(tmp_path):
    cfg = ModConfig.load(tmp_path / "config.json")
    assert cfg == ModConfig()
    assert cfg.cache_ttl_seconds == 900
    assert not cfg.has_nexus_key


def test_round_trip_uses_host_keys(tmp_path):
    path = tmp_path / "config.json"
    ModConfig(check_for_updates_on_launch=False, cache_minutes=5, nexus_api_key="K").save(path)
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data == {"CheckForUpdatesOnLaunch": False, "CacheMinutes": 5, "NexusApiKey": "K", "NexusBrowsingEnabled": True}

    cfg = ModConfig.load(path)
    assert cfg.cache_ttl_seconds == 300
    assert cfg.has_nexus_key


def test_malformed_file_gives_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("not json", encoding="utf-8")
    assert ModConfig.load(path) == ModConfig()
    path.write_text("[1]", encoding="utf-8")
    assert ModConfig.load(path) == ModConfig()


def test_bad_cache_minutes_and_blank_key():
    cfg = ModConfig.from_dict({"CacheMinutes": "soon", "NexusApiKey": "  "})
    assert cfg.cache_minutes == 15
    assert not cfg.has_nexus_key
