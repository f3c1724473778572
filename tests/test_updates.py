import pytest

from fakes import FakeResponse, release_json
from moddypy.types_models import InstalledModInfo, ModSource
from moddypy.updates import UpdateChecker, nexus_mod_id


def _record(version, **kw):
    return InstalledModInfo(installed_version=version, installed_folder_name="X", **kw)


@pytest.fixture
def validated_nexus(nexus, nx_session):
    nx_session.add("/users/validate.json", FakeResponse(200, {"is_premium": False}))
    assert nexus.validate()
    return nexus


def test_nexus_mod_id():
    assert nexus_mod_id("nexus:2400") == 2400
    assert nexus_mod_id("nexus:abc") is None
    assert nexus_mod_id("owner/repo") is None


def test_github_update_detected(registry, github, gh_session):
    gh_session.add("/repos/a/b/releases", FakeResponse(200, [
        release_json("v2.0-rc1", prerelease=True), release_json("v1.10.0"),
    ]))
    registry.register("a/b", _record("1.2.0"))
    checker = UpdateChecker(registry, github)

    assert checker.check_all() == {"a/b": "v1.10.0"}
    assert checker.latest_release("a/b").tag_name == "v1.10.0"
    assert checker.is_update_available("a/b", "1.2.0")
    assert not checker.is_update_available("a/b", "1.10")


def test_locked_and_disabled_records_are_skipped(registry, github, gh_session):
    gh_session.add("/releases", FakeResponse(200, [release_json("v9.0")]))
    registry.register("a/locked", _record("1.0", locked_version="1.0"))
    registry.register("a/off", _record("1.0", auto_update=False))
    checker = UpdateChecker(registry, github)

    assert checker.check_all() == {}
    assert gh_session.calls == []
    assert checker.latest_version("a/locked") is None


def test_unparseable_versions_never_offer_updates(registry, github, gh_session):
    gh_session.add("/repos/a/b/releases", FakeResponse(200, [release_json("nightly")]))
    registry.register("a/b", _record("1.0"))
    checker = UpdateChecker(registry, github)
    assert checker.check_all() == {}
    assert not checker.is_update_available("a/b", "1.0")


def test_malformed_keys_are_ignored(registry, github, gh_session):
    registry.register("not-a-repo", _record("1.0"))
    registry.register("a/b/c", _record("1.0"))
    assert UpdateChecker(registry, github).check_all() == {}
    assert gh_session.calls == []


def test_nexus_update_uses_main_file(registry, github, validated_nexus, nx_session):
    nx_session.add("/mods/2400/files.json", FakeResponse(200, {"files": [
        {"file_id": 1, "category_name": "OPTIONAL", "version": "9.0"},
        {"file_id": 2, "category_name": "MAIN", "version": "4.1.0"},
    ]}))
    registry.register("nexus:2400", _record("4.0.8", source=ModSource.Nexus))
    checker = UpdateChecker(registry, github, validated_nexus)

    assert checker.check_all() == {"nexus:2400": "4.1.0"}
    assert checker.latest_nexus_version("nexus:2400") == "4.1.0"
    assert checker.latest_version("nexus:2400") == "4.1.0"


def test_nexus_skipped_until_validated(registry, github, nexus, nx_session):
    registry.register("nexus:2400", _record("1.0", source=ModSource.Nexus))
    assert UpdateChecker(registry, github, nexus).check_all() == {}
    assert nx_session.calls == []


def test_one_failing_entry_does_not_stop_the_rest(registry, github, gh_session, monkeypatch):
    gh_session.add("/repos/ok/repo/releases", FakeResponse(200, [release_json("v2.0")]))
    registry.register("bad/repo", _record("1.0"))
    registry.register("ok/repo", _record("1.0"))
    checker = UpdateChecker(registry, github)
    original = github.latest_stable_release

    def flaky(owner, repo):
        if owner == "bad":
            raise RuntimeError("boom")
        return original(owner, repo)

    monkeypatch.setattr(github, "latest_stable_release", flaky)
    assert checker.check_all() == {"ok/repo": "v2.0"}
