import pytest

from moddypy import paths as paths_mod
from moddypy.paths import EnginePaths, is_same_dir


def test_layout(tmp_path):
    p = EnginePaths.from_game_dir(tmp_path / "Game", engine_dir=tmp_path / "Game" / "Mods" / "Moddy", queue_dir=tmp_path / "q")
    assert p.mods_dir == (tmp_path / "Game" / "Mods").resolve()
    assert p.nexus_cache_dir == p.engine_dir / "cache" / "nexus"
    assert p.registry_path.name == "registry.json"
    assert p.catalog_dirs == [p.engine_dir / "Data", p.engine_dir]


def test_package_dir_is_single_component(paths):
    assert paths.package_dir("Cool") == paths.mods_dir / "Cool"
    assert paths.package_dir("a/b/Cool") == paths.mods_dir / "Cool"
    for bad in ("", ".", ".."):
        with pytest.raises(ValueError):
            paths.package_dir(bad)


def test_is_same_dir_ignores_trailing_separator(tmp_path):
    assert is_same_dir(tmp_path, str(tmp_path) + "/")
    assert not is_same_dir(tmp_path, tmp_path / "other")


def test_default_queue_dir_respects_xdg(monkeypatch, tmp_path):
    monkeypatch.setattr(paths_mod.platform, "system", lambda: "Linux")
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
    assert paths_mod.default_queue_dir() == tmp_path / "Moddy" / "nxm_queue"
