import json

import pytest

from fakes import FakeResponse, make_zip, manifest, release_json
from moddypy.installer import ModInstaller, find_manifest, pick_asset
from moddypy.types_models import CatalogEntry, GitHubRelease, ModSource, NexusFileInfo


def _entry(**kw):
    base = dict(owner="Author", repo="CoolMod", display_name="Cool Mod", unique_id="Author.Cool")
    base.update(kw)
    return CatalogEntry(**base)


@pytest.fixture
def installer(paths, registry, github, nexus):
    return ModInstaller(paths, registry, github=github, nexus=nexus)


def test_installs_top_level_folder_and_registers(installer, paths, registry):
    data = make_zip({"CoolMod/manifest.json": manifest("Author.Cool", "1.2.0"), "CoolMod/lib/a.dll": b"x"})
    assert installer.install_from_bytes(_entry(), data, "v9.9") is True

    assert (paths.mods_dir / "CoolMod" / "lib" / "a.dll").read_bytes() == b"x"
    info = registry.get("Author/CoolMod")
    assert info.installed_version == "1.2.0"
    assert info.installed_folder_name == "CoolMod"
    assert info.unique_id == "Author.Cool"
    assert info.auto_update and info.locked_version is None
    assert info.installed_at is not None


def test_reinstall_replaces_previous_copy(installer, paths):
    stale = paths.mods_dir / "CoolMod" / "stale.txt"
    stale.parent.mkdir(parents=True)
    stale.write_text("old", encoding="utf-8")
    data = make_zip({"CoolMod/manifest.json": manifest("Author.Cool")})
    assert installer.install_from_bytes(_entry(), data, "1.0")
    assert not stale.exists()


def test_archive_without_manifest_is_rejected(installer, paths, registry):
    data = make_zip({"CoolMod/a.dll": b"x", "__MACOSX/CoolMod/manifest.json": "{}"})
    assert installer.install_from_bytes(_entry(), data, "1.0") is False
    assert len(registry) == 0
    assert not (paths.mods_dir / "CoolMod").exists()


def test_corrupt_archive_is_rejected(installer, registry):
    assert installer.install_from_bytes(_entry(), b"not a zip", "1.0") is False
    assert len(registry) == 0


def test_flat_archive_uses_display_name_and_fallback_version(installer, paths, registry):
    data = make_zip({"manifest.json": json.dumps({"UniqueID": "Author.Cool"}), "a.dll": b"x"})
    assert installer.install_from_bytes(_entry(), data, "2.0.0")
    assert (paths.mods_dir / "CoolMod" / "a.dll").exists()
    assert registry.get("Author/CoolMod").installed_version == "2.0.0"


def test_self_update_moves_locked_files_aside(paths, registry):
    engine_dll = paths.engine_dir / "Moddy.dll"
    engine_dll.parent.mkdir(parents=True, exist_ok=True)
    engine_dll.write_bytes(b"old engine")
    (paths.engine_dir / "registry.json").write_text("{}", encoding="utf-8")
    locked = {engine_dll}

    def writer(dest, data):
        if dest in locked:
            locked.discard(dest)
            raise PermissionError("file in use")
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)

    inst = ModInstaller(paths, registry, writer=writer)
    data = make_zip({"Moddy/manifest.json": manifest("Author.Moddy", "2.0.0"), "Moddy/Moddy.dll": b"new engine"})
    entry = _entry(repo="Moddy", display_name="Moddy", unique_id="Author.Moddy")

    assert inst.install_from_bytes(entry, data, "2.0.0")
    assert engine_dll.read_bytes() == b"new engine"
    assert (paths.engine_dir / "Moddy.dll.old").read_bytes() == b"old engine"
    assert (paths.engine_dir / "registry.json").exists()
    assert registry.get("Author/Moddy").installed_version == "2.0.0"


def test_local_entries_cannot_be_installed(installer, registry):
    entry = _entry(source=ModSource.Local, is_from_catalog=False)
    data = make_zip({"CoolMod/manifest.json": manifest("Author.Cool")})
    assert installer.install_from_bytes(entry, data, "1.0") is False
    assert len(registry) == 0


def test_custom_registrar_receives_record(paths, registry):
    recorded = []
    inst = ModInstaller(paths, registry, registrar=lambda key, info: recorded.append((key, info)))
    data = make_zip({"CoolMod/manifest.json": manifest("Author.Cool", "1.0.0")})
    assert inst.install_from_bytes(_entry(), data, "1.0")
    assert recorded[0][0] == "Author/CoolMod"
    assert len(registry) == 0


def test_install_release_downloads_selected_asset(installer, gh_session, registry):
    gh_session.add("/dl/win.zip", FakeResponse(200, content=make_zip({
        "CoolMod/manifest.json": json.dumps({"UniqueID": "Author.Cool"}),
    })))
    release = GitHubRelease.from_dict(release_json("v1.5.0", assets=[
        ("CoolMod-mac.zip", "https://example.test/dl/mac.zip"),
        ("CoolMod-win.zip", "https://example.test/dl/win.zip"),
    ]))
    assert installer.install_release(_entry(asset_filter="win"), release)
    assert registry.get("Author/CoolMod").installed_version == "v1.5.0"


def test_install_release_without_zip_asset(installer, gh_session):
    release = GitHubRelease.from_dict(release_json("v1.0", assets=[("notes.txt", "https://example.test/n.txt")]))
    assert installer.install_release(_entry(), release) is False
    assert gh_session.calls == []


def test_install_from_nexus_direct(installer, nx_session, cdn_session, registry):
    nx_session.add("/mods/2400/files/9001/download_link.json",
                   FakeResponse(200, [{"URI": "https://cdn.test/main.zip", "name": "CDN"}]))
    cdn_session.add("cdn.test/main.zip", FakeResponse(200, content=make_zip({
        "SMAPI/manifest.json": json.dumps({"UniqueID": "Pathoschild.SMAPI"}),
    })))
    entry = CatalogEntry(source=ModSource.Nexus, nexus_mod_id=2400, display_name="SMAPI")
    file = NexusFileInfo(file_id=9001, category_name="MAIN", version="4.0.8", file_name="main.zip")

    assert installer.install_from_nexus_direct(entry, file)
    info = registry.get("nexus:2400")
    assert info.installed_version == "4.0.8"
    assert info.source is ModSource.Nexus
    assert nx_session.calls[0]["params"] is None


def test_nexus_direct_without_links(installer, nx_session, registry):
    nx_session.add("download_link.json", FakeResponse(403))
    entry = CatalogEntry(source=ModSource.Nexus, nexus_mod_id=2400, display_name="SMAPI")
    assert installer.install_from_nexus_direct(entry, NexusFileInfo(file_id=9001)) is False
    assert len(registry) == 0


def test_uninstall_removes_folder_then_record(installer, paths, registry):
    installer.install_from_bytes(_entry(), make_zip({"CoolMod/manifest.json": manifest("Author.Cool")}), "1.0")
    assert installer.uninstall(_entry()) is True
    assert not (paths.mods_dir / "CoolMod").exists()
    assert "Author/CoolMod" not in registry
    assert installer.uninstall(_entry()) is False


def test_uninstall_refuses_local_entries(installer):
    assert installer.uninstall(_entry(source=ModSource.Local, is_from_catalog=False)) is False


def test_pick_asset():
    release = GitHubRelease.from_dict(release_json("v1", assets=[
        ("readme.md", "u0"), ("Mod-1.0.zip", "u1"), ("Mod-1.0-android.ZIP", "u2"),
    ]))
    assert pick_asset(_entry(), release).name == "Mod-1.0.zip"
    assert pick_asset(_entry(asset_filter="ANDROID"), release).name == "Mod-1.0-android.ZIP"
    assert pick_asset(_entry(asset_filter="linux"), release).name == "Mod-1.0.zip"
    assert pick_asset(_entry(asset_filter="("), release).name == "Mod-1.0.zip"
    assert pick_asset(_entry(), GitHubRelease.from_dict(release_json("v1"))) is None


def test_find_manifest_prefers_shallowest():
    names = ["Mod/sub/manifest.json", "Mod/Manifest.JSON", "__MACOSX/manifest.json", "Mod/"]
    assert find_manifest(names) == "Mod/Manifest.JSON"
    assert find_manifest(["a.dll"]) is None
