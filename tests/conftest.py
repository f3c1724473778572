import sys
from pathlib import Path

import pytest

SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

TESTS = Path(__file__).resolve().parent
if str(TESTS) not in sys.path:
    sys.path.insert(0, str(TESTS))

from fakes import FakeSession  # noqa: E402
from moddypy.github import GitHubSource  # noqa: E402
from moddypy.nexus import NexusSource  # noqa: E402
from moddypy.paths import EnginePaths  # noqa: E402
from moddypy.registry import ModRegistry  # noqa: E402


class Clock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def paths(tmp_path):
    p = EnginePaths.from_dirs(tmp_path / "Mods" / "Moddy", tmp_path / "Mods", queue_dir=tmp_path / "queue")
    p.ensure_dirs()
    return p


@pytest.fixture
def registry(paths):
    return ModRegistry(paths.registry_path)


@pytest.fixture
def gh_session():
    return FakeSession()


@pytest.fixture
def nx_session():
    return FakeSession()


@pytest.fixture
def cdn_session():
    return FakeSession()


@pytest.fixture
def github(paths, gh_session, clock):
    return GitHubSource(session=gh_session, cache_dir=paths.cache_dir, clock=clock)


@pytest.fixture
def nexus(paths, nx_session, cdn_session):
    return NexusSource("KEY", session=nx_session, download_session=cdn_session, cache_dir=paths.nexus_cache_dir)
