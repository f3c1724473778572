from datetime import datetime, timezone

from moddypy.types_models import CatalogEntry, GitHubRelease, InstalledModInfo, ModSource, NexusFileInfo, NxmRequest


def test_catalog_key_for_each_source():
    gh = CatalogEntry.from_dict({"owner": "Pathoschild", "repo": "SMAPI", "displayName": "SMAPI"})
    nx = CatalogEntry.from_dict({"nexusModId": 2400, "displayName": "SMAPI"}, source=ModSource.Nexus)
    assert gh.catalog_key == "Pathoschild/SMAPI"
    assert nx.catalog_key == "nexus:2400"
    assert NxmRequest(mod_id=2400, file_id=1).catalog_key == nx.catalog_key


def test_catalog_key_is_stable_across_fields():
    entry = CatalogEntry(owner="a", repo="b", display_name="One", stars=5)
    key = entry.catalog_key
    entry.display_name = "Two"
    entry.stars = 500
    assert entry.catalog_key == key


def test_popularity_uses_source_metric():
    assert CatalogEntry(source=ModSource.Nexus, endorsements=7, stars=99).popularity == 7
    assert CatalogEntry(source=ModSource.GitHub, endorsements=7, stars=99).popularity == 99


def test_mod_source_parse():
    assert ModSource.parse("nexus") is ModSource.Nexus
    assert ModSource.parse(2) is ModSource.Local
    assert ModSource.parse("bogus") is ModSource.GitHub


def test_installed_info_round_trip():
    info = InstalledModInfo(
        catalog_key="nexus:1", unique_id="Author.Mod", installed_version="1.2.3",
        installed_folder_name="Mod", installed_at=datetime(2024, 5, 1, 12, tzinfo=timezone.utc),
        auto_update=False, locked_version="1.2.3", source=ModSource.Nexus,
    )
    assert InstalledModInfo.from_dict(info.to_dict()) == info


def test_update_eligibility():
    assert InstalledModInfo(auto_update=True).is_update_eligible
    assert not InstalledModInfo(auto_update=False).is_update_eligible
    assert not InstalledModInfo(auto_update=True, locked_version="1.0").is_update_eligible


def test_release_stability_and_assets():
    rel = GitHubRelease.from_dict({
        "tag_name": "v1.0", "prerelease": True,
        "assets": [{"name": "a.zip", "browser_download_url": "https://x/a.zip", "size": 10}],
    })
    assert not rel.is_stable
    assert rel.assets[0].name == "a.zip"
    assert rel.published_at is None


def test_nexus_file_main_is_case_insensitive():
    assert NexusFileInfo.from_dict({"category_name": "main"}).is_main
    assert not NexusFileInfo.from_dict({"category_name": "OPTIONAL"}).is_main
