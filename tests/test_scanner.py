import json

from moddypy.scanner import InstalledModScanner, read_manifest


def test_scan_keys_by_folded_unique_id(tmp_path):
    (tmp_path / "A").mkdir()
    (tmp_path / "A" / "manifest.json").write_bytes(
        b"\xef\xbb\xbf" + json.dumps({"UniqueID": "Pathoschild.LookupAnything", "Version": "1.4"}).encode()
    )
    (tmp_path / "Broken").mkdir()
    (tmp_path / "Broken" / "manifest.json").write_text("{", encoding="utf-8")
    (tmp_path / "Empty").mkdir()
    (tmp_path / "stray.txt").write_text("", encoding="utf-8")

    scanner = InstalledModScanner(tmp_path)
    result = scanner.scan()

    assert list(result) == ["pathoschild.lookupanything"]
    assert scanner.find("PATHOSCHILD.LOOKUPANYTHING").folder_name == "A"
    assert scanner.is_installed("pathoschild.lookupanything")
    assert not scanner.is_installed("")


def test_missing_directory(tmp_path):
    assert InstalledModScanner(tmp_path / "nope").scan() == {}


def test_read_manifest_requires_object(tmp_path):
    (tmp_path / "manifest.json").write_text("[]", encoding="utf-8")
    assert read_manifest(tmp_path) is None
