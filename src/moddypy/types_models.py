"""
types_models.py

Typed dataclasses for catalog entries, registry records and the remote API objects
of both sources.

Purpose
-------
- Provide typed, documented containers instead of ad-hoc dict handling.
- Supply `from_dict()` factories to convert raw JSON/dict into typed objects, and
  `to_dict()` for the documents this library writes itself (registry, catalog).
- Keep the original raw payload available in `.data` for API objects, for debugging
  and forward-compatibility.

Notes
-----
- These dataclasses are intentionally lightweight (no validation beyond presence/type coercion).
- JSON key names follow the on-disk formats (camelCase for catalog/registry documents,
  snake_case for the endorsement-source API, GitHub's own names for releases).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from enum import Enum
from datetime import datetime, timezone
import dateutil.parser as _dateutil_parser


NEXUS_KEY_PREFIX = "nexus:"


def _parse_dt(value: Any) -> Optional[datetime]:
    """Parse an ISO-ish timestamp into an aware UTC datetime (None when absent or invalid)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = _dateutil_parser.isoparse(str(value))
        except (ValueError, OverflowError):
            try:
                dt = _dateutil_parser.parse(str(value))
            except (ValueError, OverflowError):
                return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _fmt_dt(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class ModSource(str, Enum):
    """Where a catalog entry / installed package comes from."""
    GitHub = "GitHub"
    Nexus = "Nexus"
    Local = "Local"

    @classmethod
    def parse(cls, value: Any, default: "ModSource" = None) -> "ModSource":
        if isinstance(value, ModSource):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        # numeric enum values written by older hosts: 0 GitHub, 1 Nexus, 2 Local
        if isinstance(value, int) and 0 <= value < len(cls):
            return list(cls)[value]
        return default if default is not None else cls.GitHub


# Catalog / registry documents
@dataclass
class CatalogEntry:
    """
    An installable package, regardless of origin.

    Attributes
    ----------
    source : ModSource
        GitHub (release-based), Nexus (endorsement/file-based) or Local (synthesized from a scan).
    owner : str
        Repository owner, or the package author for local entries.
    repo : str
        Repository name (empty for Nexus and local entries).
    display_name : str
        Human-readable name. Also the install folder name (spaces stripped) for flat archives.
    description : str
        Short description shown in the browser.
    unique_id : str
        Package-unique identifier from the package manifest; joins catalog and disk.
    stars : int
        Follower count on GitHub (-1 for local entries).
    asset_filter : Optional[str]
        Regular expression used to choose between several release zips.
    nexus_mod_id : int
        Numeric Nexus mod id (0 for other sources).
    author : str
        Author name (Nexus catalog).
    endorsements : int
        Endorsement count on Nexus.
    is_from_catalog : bool
        False for entries synthesized from the installed-package scan. Such entries are
        read-only: they cannot be installed, updated or uninstalled through the engine.
    """
    source: ModSource = ModSource.GitHub
    owner: str = ""
    repo: str = ""
    display_name: str = ""
    description: str = ""
    unique_id: str = ""
    stars: int = 0
    asset_filter: Optional[str] = None
    nexus_mod_id: int = 0
    author: str = ""
    endorsements: int = 0
    is_from_catalog: bool = True

    @property
    def catalog_key(self) -> str:
        """Stable join key between catalog and registry: ``owner/repo`` or ``nexus:<id>``."""
        if self.source == ModSource.Nexus:
            return f"{NEXUS_KEY_PREFIX}{self.nexus_mod_id}"
        return f"{self.owner}/{self.repo}"

    @property
    def popularity(self) -> int:
        """Endorsements for Nexus entries, stars otherwise. Not comparable across sources."""
        return self.endorsements if self.source == ModSource.Nexus else self.stars

    @classmethod
    def from_dict(cls, d: Dict[str, Any], *, source: Optional[ModSource] = None) -> "CatalogEntry":
        d = d or {}
        return cls(
            source=source or ModSource.parse(d.get("source"), ModSource.GitHub),
            owner=d.get("owner") or "",
            repo=d.get("repo") or "",
            display_name=d.get("displayName") or "",
            description=d.get("description") or "",
            unique_id=d.get("uniqueID") or "",
            stars=_as_int(d.get("stars")),
            asset_filter=d.get("assetFilter") or None,
            nexus_mod_id=_as_int(d.get("nexusModId")),
            author=d.get("author") or "",
            endorsements=_as_int(d.get("endorsements")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source.value,
            "owner": self.owner,
            "repo": self.repo,
            "displayName": self.display_name,
            "description": self.description,
            "uniqueID": self.unique_id,
            "stars": self.stars,
            "assetFilter": self.asset_filter,
            "nexusModId": self.nexus_mod_id,
            "author": self.author,
            "endorsements": self.endorsements,
        }


@dataclass
class InstalledModInfo:
    """
    One registry record per package installed by the engine, keyed by catalog key.

    Attributes
    ----------
    catalog_key : str
        Join key to the catalog entry.
    unique_id : str
        Package-unique identifier read from the installed manifest.
    installed_version : str
        Version string recorded at install time.
    installed_folder_name : str
        Literal directory name under the packages directory.
    installed_at : Optional[datetime]
        UTC installation timestamp.
    auto_update : bool
        Whether the update checker considers this package.
    locked_version : Optional[str]
        When set, suppresses update checks/offers regardless of ``auto_update``.
    source : ModSource
        Origin of the installed archive.
    """
    catalog_key: str = ""
    unique_id: str = ""
    installed_version: str = ""
    installed_folder_name: str = ""
    installed_at: Optional[datetime] = None
    auto_update: bool = True
    locked_version: Optional[str] = None
    source: ModSource = ModSource.GitHub

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InstalledModInfo":
        d = d or {}
        auto_update = d.get("autoUpdate", True)
        return cls(
            catalog_key=d.get("catalogKey") or "",
            unique_id=d.get("uniqueID") or "",
            installed_version=d.get("installedVersion") or "",
            installed_folder_name=d.get("installedFolderName") or "",
            installed_at=_parse_dt(d.get("installedAt")),
            auto_update=bool(auto_update) if auto_update is not None else True,
            locked_version=d.get("lockedVersion"),
            source=ModSource.parse(d.get("source"), ModSource.GitHub),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "catalogKey": self.catalog_key,
            "uniqueID": self.unique_id,
            "installedVersion": self.installed_version,
            "installedFolderName": self.installed_folder_name,
            "installedAt": _fmt_dt(self.installed_at),
            "autoUpdate": self.auto_update,
            "lockedVersion": self.locked_version,
            "source": self.source.value,
        }

    @property
    def is_update_eligible(self) -> bool:
        return self.auto_update and self.locked_version is None


# Repository/release source (GitHub)
@dataclass
class GitHubAsset:
    """A downloadable file attached to a release."""
    name: str = ""
    browser_download_url: str = ""
    size: int = 0
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GitHubAsset":
        d = d or {}
        return cls(
            name=d.get("name") or "",
            browser_download_url=d.get("browser_download_url") or "",
            size=_as_int(d.get("size")),
            data=d,
        )


@dataclass
class GitHubRelease:
    """
    One entry of ``GET /repos/{owner}/{repo}/releases``.

    Attributes
    ----------
    tag_name : str
        Git tag; used as the release version (a leading ``v`` is tolerated).
    name : str
        Release title.
    published_at : Optional[datetime]
        Publication time.
    body : str
        Release notes (markdown).
    assets : List[GitHubAsset]
        Attached files.
    prerelease, draft : bool
        Neither is eligible for update offers.
    """
    tag_name: str = ""
    name: str = ""
    published_at: Optional[datetime] = None
    body: str = ""
    assets: List[GitHubAsset] = field(default_factory=list)
    prerelease: bool = False
    draft: bool = False
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GitHubRelease":
        d = d or {}
        return cls(
            tag_name=d.get("tag_name") or "",
            name=d.get("name") or "",
            published_at=_parse_dt(d.get("published_at")),
            body=d.get("body") or "",
            assets=[GitHubAsset.from_dict(a) for a in (d.get("assets") or []) if isinstance(a, dict)],
            prerelease=bool(d.get("prerelease", False)),
            draft=bool(d.get("draft", False)),
            data=d,
        )

    @property
    def is_stable(self) -> bool:
        return not self.draft and not self.prerelease


# Endorsement/file source (Nexus)
@dataclass
class NexusModInfo:
    """Mod metadata from ``/games/{domain}/mods/{id}.json``."""
    mod_id: int = 0
    name: str = ""
    summary: str = ""
    version: str = ""
    author: str = ""
    endorsement_count: int = 0
    mod_downloads: int = 0
    picture_url: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "NexusModInfo":
        d = d or {}
        return cls(
            mod_id=_as_int(d.get("mod_id")),
            name=d.get("name") or "",
            summary=d.get("summary") or "",
            version=d.get("version") or "",
            author=d.get("author") or "",
            endorsement_count=_as_int(d.get("endorsement_count")),
            mod_downloads=_as_int(d.get("mod_downloads")),
            picture_url=d.get("picture_url"),
            data=d,
        )


@dataclass
class NexusFileInfo:
    """A single file entry for a mod. ``category_name`` is MAIN / UPDATE / OPTIONAL / OLD_VERSION / ..."""
    file_id: int = 0
    category_name: str = ""
    version: str = ""
    file_name: str = ""
    size_in_bytes: Optional[int] = None
    size_kb: int = 0
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "NexusFileInfo":
        d = d or {}
        size_in_bytes = d.get("size_in_bytes")
        return cls(
            file_id=_as_int(d.get("file_id")),
            category_name=d.get("category_name") or "",
            version=d.get("version") or "",
            file_name=d.get("file_name") or "",
            size_in_bytes=_as_int(size_in_bytes) if size_in_bytes is not None else None,
            size_kb=_as_int(d.get("size_kb")),
            data=d,
        )

    @property
    def is_main(self) -> bool:
        return self.category_name.strip().upper() == "MAIN"


@dataclass
class NexusDownloadLink:
    """A CDN mirror returned by ``download_link.json``."""
    uri: str = ""
    name: str = ""
    short_name: str = ""

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "NexusDownloadLink":
        d = d or {}
        return cls(
            uri=d.get("URI") or "",
            name=d.get("name") or "",
            short_name=d.get("short_name") or "",
        )


@dataclass
class NexusUser:
    """Validated key owner, from ``/users/validate.json``. The key itself is never kept here."""
    user_id: int = 0
    name: str = ""
    is_premium: bool = False
    is_supporter: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "NexusUser":
        d = d or {}
        return cls(
            user_id=_as_int(d.get("user_id")),
            name=d.get("name") or "",
            is_premium=bool(d.get("is_premium", False)),
            is_supporter=bool(d.get("is_supporter", False)),
        )


# Local state
@dataclass
class ScannedMod:
    """A package found on disk by reading its folder's manifest."""
    unique_id: str = ""
    version: str = ""
    name: str = ""
    folder_name: str = ""
    author: str = ""
    description: str = ""


@dataclass(frozen=True)
class NxmRequest:
    """
    A queued cross-process download intent.

    ``key`` and ``expires`` come from the website's "download with manager" link and
    pre-authorize the download for accounts without direct-download rights.
    """
    mod_id: int
    file_id: int
    key: Optional[str] = None
    expires: Optional[int] = None

    @property
    def catalog_key(self) -> str:
        return f"{NEXUS_KEY_PREFIX}{self.mod_id}"
