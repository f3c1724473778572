import pytest

from moddypy.exceptions import InstallError
from moddypy.fileops import atomic_write, extract_with_rename, is_junk_member, safe_member_path, safe_remove, sweep_old_files


def test_atomic_write_creates_parents(tmp_path):
    dest = atomic_write(tmp_path / "a" / "b.json", b"{}")
    assert dest.read_bytes() == b"{}"
    assert [p.name for p in dest.parent.iterdir()] == ["b.json"]


def test_safe_member_path_rejects_escapes(tmp_path):
    assert safe_member_path(tmp_path, "Mod/manifest.json") == tmp_path / "Mod" / "manifest.json"
    for bad in ("../evil.dll", "/etc/passwd", "C:/x.dll", "Mod/../../x"):
        with pytest.raises(InstallError):
            safe_member_path(tmp_path, bad)


def test_junk_members():
    assert is_junk_member("__MACOSX/Mod/._manifest.json")
    assert not is_junk_member("Mod/manifest.json")


def test_extract_with_rename_moves_locked_file_aside(tmp_path):
    dest = tmp_path / "Moddy.dll"
    dest.write_bytes(b"old")
    (tmp_path / "Moddy.dll.old").write_bytes(b"older")
    attempts = []

    def locked_once(path, data):
        attempts.append(path)
        if len(attempts) == 1:
            raise PermissionError("in use")
        path.write_bytes(data)

    assert extract_with_rename(dest, b"new", writer=locked_once) is True
    assert dest.read_bytes() == b"new"
    assert (tmp_path / "Moddy.dll.old").read_bytes() == b"old"


def test_extract_with_rename_plain_write(tmp_path):
    dest = tmp_path / "sub" / "file.txt"
    assert extract_with_rename(dest, b"x") is False
    assert dest.read_bytes() == b"x"


def test_extract_with_rename_fails_when_new_file_cannot_be_written(tmp_path):
    def always_fails(path, data):
        raise PermissionError("denied")

    with pytest.raises(InstallError):
        extract_with_rename(tmp_path / "missing.dll", b"x", writer=always_fails)


def test_sweep_old_files(tmp_path):
    (tmp_path / "a.dll.old").write_bytes(b"")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b.old").write_bytes(b"")
    (tmp_path / "keep.dll").write_bytes(b"")
    assert sweep_old_files(tmp_path) == 2
    assert [p.name for p in tmp_path.rglob("*") if p.is_file()] == ["keep.dll"]


def test_sweep_missing_dir(tmp_path):
    assert sweep_old_files(tmp_path / "nope") == 0


def test_safe_remove(tmp_path):
    d = tmp_path / "d"
    (d / "x").mkdir(parents=True)
    safe_remove(d)
    safe_remove(d)
    assert not d.exists()
