"""
moddypy.installer
-----------------

Archive installer for packages from either remote source.

Overview
- Entry points:
  * install_release(entry, release): pick a zip asset, download it, extract and register
  * install_from_nexus_direct(entry, file): premium path, resolve mirrors without a key
  * install_from_bytes(entry, data, version): archive bytes already fetched (queued NXM requests)
  * uninstall(entry): remove the installed folder, then the registry record
- Extraction:
  * the archive must contain a ``manifest.json`` (case-insensitive, ``__MACOSX`` ignored);
    its top-level folder becomes the install folder, or the display name without spaces
    for flat archives
  * a normal install deletes any previous copy first, then extracts
  * installing into the engine's own directory (self-update) overwrites in place, moving
    locked files aside as ``<name>.old``
- Any failure aborts that single install, is logged at ERROR and leaves the registry untouched.

Usage
-----
inst = ModInstaller(paths, registry, github=gh, nexus=nx)
ok = inst.install_release(entry, release)
"""

from __future__ import annotations

import io
import logging
import re
import zipfile
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import *

from .exceptions import InstallError, ManifestError
from .fileops import Writer, extract_with_rename, is_junk_member, safe_member_path, safe_remove, write_member
from .paths import EnginePaths, is_same_dir
from .registry import ModRegistry
from .scanner import MANIFEST_NAME, read_manifest
from .types_models import CatalogEntry, GitHubAsset, GitHubRelease, InstalledModInfo, NexusFileInfo

if TYPE_CHECKING:
    from .github import GitHubSource
    from .nexus import NexusSource

logger = logging.getLogger(__name__)

Registrar = Callable[[str, InstalledModInfo], None]


def pick_asset(entry: CatalogEntry, release: GitHubRelease) -> Optional[GitHubAsset]:
    """
    Choose the archive to install from a release.

    Only ``.zip`` assets qualify. When the entry has an asset filter it is applied as a
    case-insensitive regular expression and the first match wins; otherwise, or when
    nothing matches, the first zip is used.
    """
    zips = [a for a in release.assets if a.name.lower().endswith(".zip")]
    if not zips:
        return None
    if entry.asset_filter:
        try:
            pattern = re.compile(entry.asset_filter, re.IGNORECASE)
        except re.error as exc:
            logger.warning("Invalid asset filter %r for %s: %s", entry.asset_filter, entry.display_name, exc)
        else:
            match = next((a for a in zips if pattern.search(a.name)), None)
            if match is not None:
                return match
    return zips[0]


def find_manifest(names: Iterable[str]) -> Optional[str]:
    """Shallowest ``manifest.json`` member (case-insensitive), ignoring junk entries."""
    candidates = [
        n for n in names
        if not n.endswith("/") and not is_junk_member(n)
        and PurePosixPath(n.replace("\\", "/")).name.lower() == MANIFEST_NAME
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda n: (n.replace("\\", "/").count("/"), n))


class ModInstaller:
    """
    Installs archives into the packages directory and records them in the registry.

    Parameters
    ----------
    paths : EnginePaths
        Engine and packages directories.
    registry : ModRegistry
        Registry that receives a record for each successful install.
    github : Optional[GitHubSource]
        Needed by :meth:`install_release`.
    nexus : Optional[NexusSource]
        Needed by :meth:`install_from_nexus_direct`.
    registrar : Optional[Callable[[str, InstalledModInfo], None]]
        How a finished install is recorded. Defaults to ``registry.register``; the engine
        passes a callable that defers the write to its foreground tick.
    writer : Callable[[Path, bytes], None]
        Writes one extracted file.
    """

    def __init__(self,
                 paths: EnginePaths,
                 registry: ModRegistry,
                 *,
                 github: Optional["GitHubSource"] = None,
                 nexus: Optional["NexusSource"] = None,
                 registrar: Optional[Registrar] = None,
                 writer: Writer = write_member):
        self.paths = paths
        self.registry = registry
        self.github = github
        self.nexus = nexus
        self.registrar = registrar or registry.register
        self.writer = writer

    # Entry points
    def install_release(self, entry: CatalogEntry, release: GitHubRelease) -> bool:
        """Download the release's archive and install it. Version falls back to the tag."""
        if not self._check_installable(entry):
            return False
        if self.github is None:
            logger.error("Install of %s failed: no GitHub source configured", entry.display_name)
            return False
        asset = pick_asset(entry, release)
        if asset is None:
            logger.error("No matching ZIP asset found for %s", entry.display_name)
            return False

        logger.info("Downloading %s (%dKB)...", asset.name, asset.size // 1024)
        data = self.github.download_asset(asset.browser_download_url)
        if data is None:
            return False
        return self.extract_and_register(data, entry, release.tag_name)

    def install_from_nexus_direct(self, entry: CatalogEntry, file: NexusFileInfo) -> bool:
        """
        Premium direct download: resolve mirrors without a key, fetch the first one, install.
        Version falls back to the file's version.
        """
        if not self._check_installable(entry):
            return False
        if self.nexus is None:
            logger.error("Install of %s failed: no Nexus source configured", entry.display_name)
            return False

        logger.info("Getting download links for %s file %s...", entry.display_name, file.file_name)
        links = self.nexus.get_download_links(entry.nexus_mod_id, file.file_id)
        if not links:
            logger.error("No download links available for %s", entry.display_name)
            return False

        logger.info("Downloading %s (%dKB)...", file.file_name, file.size_kb)
        data = self.nexus.download_file(links[0].uri)
        if data is None:
            return False
        return self.extract_and_register(data, entry, file.version)

    def install_from_bytes(self, entry: CatalogEntry, data: bytes, version: str) -> bool:
        """Install an archive that has already been downloaded."""
        if not self._check_installable(entry):
            return False
        return self.extract_and_register(data, entry, version)

    # Extraction
    def is_self_update(self, target_dir: Path) -> bool:
        """True when `target_dir` is the engine's own directory (case-insensitive, trailing separators ignored)."""
        return is_same_dir(target_dir, self.paths.engine_dir)

    def extract(self, data: bytes, entry: CatalogEntry, fallback_version: str) -> InstalledModInfo:
        """
        Extract `data` into the packages directory and build the registry record.

        Raises
        ------
        ManifestError
            The archive has no ``manifest.json``.
        InstallError
            Unsafe member names, an unusable folder name, or a locked file that cannot be moved aside.
        zipfile.BadZipFile, OSError
            Corrupt archive or I/O failure.
        """
        mods_dir = self.paths.mods_dir
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            members = [i for i in zf.infolist() if not i.is_dir() and not is_junk_member(i.filename)]
            manifest_name = find_manifest(i.filename for i in members)
            if manifest_name is None:
                raise ManifestError("No manifest.json found in ZIP")

            manifest_dir = str(PurePosixPath(manifest_name.replace("\\", "/")).parent).strip("/")
            if manifest_dir == ".":
                manifest_dir = ""
            flat = not manifest_dir
            folder_name = entry.display_name.replace(" ", "") if flat else manifest_dir.split("/")[0]
            target_dir = self.paths.package_dir(folder_name) if folder_name else None
            if target_dir is None:
                raise InstallError(f"Cannot derive an install folder for {entry.display_name!r}")

            self_update = self.is_self_update(target_dir)
            if self_update:
                logger.info("Self-update detected, using rename strategy for locked files")
            elif target_dir.exists():
                safe_remove(target_dir)

            renamed = 0
            for info in members:
                relative = f"{folder_name}/{info.filename}" if flat else info.filename
                dest = safe_member_path(mods_dir, relative)
                content = zf.read(info)
                if self_update:
                    renamed += extract_with_rename(dest, content, writer=self.writer)
                else:
                    self.writer(dest, content)
            if renamed:
                logger.info("Moved %d locked file(s) aside; they are removed on next startup", renamed)

        version = fallback_version
        unique_id = entry.unique_id
        manifest = read_manifest(target_dir)
        if manifest is not None:
            if isinstance(manifest.get("Version"), str) and manifest["Version"]:
                version = manifest["Version"]
            if isinstance(manifest.get("UniqueID"), str) and manifest["UniqueID"]:
                unique_id = manifest["UniqueID"]

        return InstalledModInfo(
            catalog_key=entry.catalog_key,
            unique_id=unique_id,
            installed_version=version,
            installed_folder_name=folder_name,
            installed_at=datetime.now(timezone.utc),
            auto_update=True,
            locked_version=None,
            source=entry.source,
        )

    def extract_and_register(self, data: bytes, entry: CatalogEntry, fallback_version: str) -> bool:
        """
        Extract `data` and record it. Returns False (registry untouched) on any failure.
        """
        try:
            info = self.extract(data, entry, fallback_version)
        except Exception as exc:
            logger.error("Install failed for %s: %s", entry.display_name, exc)
            return False
        self.registrar(info.catalog_key, info)
        logger.info("Installed %s v%s to %s", entry.display_name, info.installed_version, info.installed_folder_name)
        return True

    # Removal
    def uninstall(self, entry: CatalogEntry) -> bool:
        """
        Delete the installed folder recorded for `entry`, then its registry record.

        Returns False when there is no record, or when deletion fails (the record is kept
        so the removal can be retried).
        """
        if not entry.is_from_catalog:
            logger.warning("%s was not installed through the catalog; refusing to uninstall", entry.display_name)
            return False
        info = self.registry.get(entry.catalog_key)
        if info is None:
            return False
        try:
            safe_remove(self.paths.package_dir(info.installed_folder_name))
            self.registry.unregister(entry.catalog_key)
        except Exception as exc:
            logger.error("Uninstall failed for %s: %s", entry.display_name, exc)
            return False
        logger.info("Uninstalled %s from %s", entry.display_name, info.installed_folder_name)
        return True

    def _check_installable(self, entry: CatalogEntry) -> bool:
        if entry.is_from_catalog:
            return True
        logger.warning("%s is a locally discovered package and cannot be installed", entry.display_name)
        return False

    def __repr__(self) -> str:
        return f"<ModInstaller mods={str(self.paths.mods_dir)!r}>"
