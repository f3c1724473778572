import json

import pytest

from moddypy.catalog import LOCAL_DESCRIPTION, Catalog, load_catalog_file
from moddypy.scanner import InstalledModScanner
from moddypy.types_models import ModSource


def _write(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


def _mod(mods_dir, folder, **manifest):
    _write(mods_dir / folder / "manifest.json", manifest)


def test_load_merges_both_documents_and_sorts(tmp_path):
    _write(tmp_path / "Data" / "catalog.json", [
        {"owner": "a", "repo": "low", "displayName": "Low", "stars": 3, "source": "Nexus"},
        {"owner": "a", "repo": "high", "displayName": "High", "stars": 300},
    ])
    _write(tmp_path / "nexus_catalog.json", [
        {"nexusModId": 5, "displayName": "Nexus Thing", "endorsements": 50},
    ])
    catalog = Catalog([tmp_path / "Data", tmp_path])
    catalog.load()

    assert [e.display_name for e in catalog] == ["High", "Nexus Thing", "Low"]
    assert catalog.find_by_key("a/low").source is ModSource.GitHub
    assert catalog.find_by_nexus_id(5).catalog_key == "nexus:5"


def test_nexus_catalog_skipped_when_browsing_disabled(tmp_path):
    _write(tmp_path / "catalog.json", [])
    _write(tmp_path / "nexus_catalog.json", [{"nexusModId": 5}])
    catalog = Catalog([tmp_path], nexus_enabled=False)
    assert catalog.load() == []


def test_missing_or_broken_documents_degrade(tmp_path):
    (tmp_path / "catalog.json").write_text("{oops", encoding="utf-8")
    assert Catalog([tmp_path]).load() == []
    assert Catalog([tmp_path / "absent"]).load() == []


def test_load_catalog_file_requires_array(tmp_path):
    _write(tmp_path / "c.json", {"owner": "x"})
    with pytest.raises(ValueError):
        load_catalog_file(tmp_path / "c.json")


def test_merge_installed_adds_local_entries(tmp_path):
    _write(tmp_path / "catalog.json", [{"owner": "a", "repo": "b", "displayName": "B", "uniqueID": "A.B", "stars": 1}])
    mods = tmp_path / "Mods"
    _mod(mods, "B", UniqueID="a.b", Name="B")
    _mod(mods, "Extra", UniqueID="Me.Extra", Name="Extra", Author="Me")
    _mod(mods, "Nameless", UniqueID="Me.Nameless")
    _mod(mods, "NoId", Name="No id")

    catalog = Catalog([tmp_path])
    catalog.load()
    added = catalog.merge_installed(InstalledModScanner(mods).scan())

    assert added == 2
    local = {e.display_name: e for e in catalog.filter(source=ModSource.Local)}
    assert set(local) == {"Extra", "Nameless"}
    assert local["Extra"].owner == "Me"
    assert local["Nameless"].owner == "Local"
    assert local["Extra"].stars == -1
    assert not local["Extra"].is_from_catalog
    assert local["Extra"].description == LOCAL_DESCRIPTION


def test_filter_matches_name_or_description(tmp_path):
    _write(tmp_path / "catalog.json", [
        {"owner": "a", "repo": "b", "displayName": "Lookup Anything", "description": "hover info"},
        {"owner": "a", "repo": "c", "displayName": "Automate", "description": "Machines"},
    ])
    catalog = Catalog([tmp_path])
    catalog.load()
    assert [e.repo for e in catalog.filter("LOOKUP")] == ["b"]
    assert [e.repo for e in catalog.filter("machines")] == ["c"]
    assert len(catalog.filter("")) == 2
    assert catalog.filter("x", source=ModSource.Nexus) == []
