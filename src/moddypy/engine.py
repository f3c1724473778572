"""
moddypy.engine
--------------

Composition root and scheduler.

ModdyEngine owns one instance of every component and runs them on two kinds of thread:

- the foreground thread, which calls :meth:`ModdyEngine.tick` once per host frame. It is
  the only thread that mutates the registry or the engine's own state;
- a small ThreadPoolExecutor for network calls, downloads and archive extraction.
  Background work reports back through a thread-safe queue that ``tick`` drains.

Startup order: sweep ``*.old`` files left by a previous self-update, load configuration,
apply the saved API key, load the registry, prepare the NXM queue, then optionally run
the update check and key validation in the background.

Usage
-----
engine = ModdyEngine(EnginePaths.from_game_dir(game_dir, engine_dir=mod_dir))
engine.start()
while running:
    engine.tick()
engine.shutdown()
"""

from __future__ import annotations

import logging
import queue
from concurrent.futures import Future, ThreadPoolExecutor
from typing import *

from .catalog import Catalog
from .config import ModConfig
from .fileops import sweep_old_files
from .github import GitHubSource
from .installer import ModInstaller
from .nexus import NexusSource
from .nxm import FileNxmQueue, NxmQueue, QueuePoller
from .paths import EnginePaths
from .registry import ModRegistry
from .scanner import InstalledModScanner
from .types_models import CatalogEntry, GitHubRelease, InstalledModInfo, ModSource, NexusFileInfo, NxmRequest
from .updates import UpdateChecker

logger = logging.getLogger(__name__)

NXM_DESCRIPTION = "Installed via nxm:// link"


class ModdyEngine:
    """
    Parameters
    ----------
    paths : EnginePaths
        Filesystem layout.
    config : Optional[ModConfig]
        Configuration; read from ``paths.config_path`` when omitted.
    github, nexus : Optional
        Pre-built sources (tests); built from `config` when omitted.
    nxm_queue : Optional[NxmQueue]
        Request queue; a :class:`FileNxmQueue` on ``paths.queue_dir`` when omitted.
    max_workers : int
        Background thread count.
    poll_interval_ticks : int
        Ticks between two queue polls.
    """

    def __init__(self,
                 paths: EnginePaths,
                 config: Optional[ModConfig] = None,
                 *,
                 github: Optional[GitHubSource] = None,
                 nexus: Optional[NexusSource] = None,
                 nxm_queue: Optional[NxmQueue] = None,
                 max_workers: int = 4,
                 poll_interval_ticks: int = 60,
                 show_progress: bool = False):
        self.paths = paths
        # must run before anything opens files under the engine directory
        sweep_old_files(paths.engine_dir)

        self.config = config or ModConfig.load(paths.config_path)
        ttl = self.config.cache_ttl_seconds
        self.github = github or GitHubSource(cache_dir=paths.cache_dir, cache_ttl=ttl, show_progress=show_progress)
        self.nexus = nexus or NexusSource(
            game_domain=self.config.nexus_game_domain,
            cache_dir=paths.nexus_cache_dir,
            cache_ttl=ttl,
            show_progress=show_progress,
        )
        if self.config.has_nexus_key:
            self.nexus.set_api_key(self.config.nexus_api_key)

        self.registry = ModRegistry(paths.registry_path, autoload=False)
        self.scanner = InstalledModScanner(paths.mods_dir)
        self.installer = ModInstaller(
            paths, self.registry, github=self.github, nexus=self.nexus, registrar=self._register_deferred,
        )
        self.updates = UpdateChecker(self.registry, self.github, self.nexus)
        self.nxm_queue = nxm_queue or FileNxmQueue(paths.queue_dir, game_domain=self.config.nexus_game_domain)
        self.poller = QueuePoller(poll_interval_ticks)

        self.pending_installs: List[str] = []
        self.status: Optional[str] = None
        self.busy = False
        self._results: "queue.Queue[Callable[[], None]]" = queue.Queue()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="moddy")
        self._started = False

    # Lifecycle
    def start(self) -> None:
        """Load persistent state and schedule the launch-time background work."""
        if self._started:
            return
        self._started = True
        self.registry.load()
        try:
            self.paths.ensure_dirs()
        except OSError as exc:
            logger.warning("Failed to create engine directories: %s", exc)
        try:
            self.nxm_queue.ensure_ready()
        except OSError as exc:
            logger.warning("Failed to create nxm queue directory: %s", exc)
        installed = self.scanner.scan()
        logger.debug("Found %d installed mods", len(installed))

        if self.config.check_for_updates_on_launch:
            self.submit(self.updates.check_all)
        if self.config.has_nexus_key:
            self.submit(self.nexus.validate)
        logger.info("Moddy loaded")

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        self.tick_results()
        self.github.close()
        self.nexus.close()

    def __enter__(self) -> "ModdyEngine":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # Scheduling
    def post(self, action: Callable[[], None]) -> None:
        """Queue `action` to run on the foreground thread at the next tick."""
        self._results.put(action)

    def submit(self, fn: Callable[..., Any], *args, on_done: Optional[Callable[[Any], None]] = None) -> Future:
        """
        Run `fn(*args)` in the background. `on_done(result)` later runs on the foreground
        thread; a raised exception is logged there instead.
        """
        future = self._executor.submit(fn, *args)

        def _report(f: Future) -> None:
            self.post(lambda: self._finish(f, on_done))

        future.add_done_callback(_report)
        return future

    def _finish(self, future: Future, on_done: Optional[Callable[[Any], None]]) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Background task failed: %s", exc, exc_info=exc)
            return
        if on_done is not None:
            on_done(future.result())

    def tick_results(self) -> int:
        """Run every queued foreground action. Returns how many ran."""
        ran = 0
        while True:
            try:
                action = self._results.get_nowait()
            except queue.Empty:
                return ran
            try:
                action()
            except Exception:
                logger.exception("Foreground action failed")
            ran += 1

    def tick(self) -> None:
        """Per-frame entry point: apply background results, then poll the NXM queue when due."""
        self.tick_results()
        if not self.poller.tick():
            return
        if not self.nexus.is_validated:
            return
        try:
            requests = self.nxm_queue.drain()
        except Exception:
            logger.exception("Failed to drain nxm queue")
            return
        for request in requests:
            logger.info("Processing nxm request: mod %s, file %s", request.mod_id, request.file_id)
            self.submit(self.process_nxm_request, request)

    def _register_deferred(self, key: str, info: InstalledModInfo) -> None:
        self.post(lambda: self.registry.register(key, info))

    def set_status(self, message: str) -> None:
        self.status = message
        logger.debug("status: %s", message)

    # Catalog / state queries
    def load_catalog(self) -> Catalog:
        """Fresh catalog with locally discovered packages merged in."""
        catalog = Catalog(self.paths.catalog_dirs, nexus_enabled=self.config.nexus_browsing_enabled)
        catalog.load()
        catalog.merge_installed(self.scanner.scan())
        catalog.sort()
        return catalog

    def is_installed(self, entry: CatalogEntry) -> bool:
        """A registry record or a scanned package with the same unique id."""
        if entry.is_from_catalog and self.registry.get(entry.catalog_key) is not None:
            return True
        return self.scanner.is_installed(entry.unique_id)

    def has_update(self, entry: CatalogEntry) -> bool:
        info = self.registry.get(entry.catalog_key)
        if info is None or not entry.is_from_catalog:
            return False
        return self.updates.is_update_available(entry.catalog_key, info.installed_version)

    # User actions
    def _install_finished(self, entry: CatalogEntry, ok: bool) -> None:
        self.busy = False
        if ok:
            self.pending_installs.append(entry.display_name)
            self.scanner.scan()
            self.set_status(f"Installed {entry.display_name}.")
        else:
            self.set_status("Install failed.")

    def install(self,
                entry: CatalogEntry,
                *,
                release: Optional[GitHubRelease] = None,
                nexus_file: Optional[NexusFileInfo] = None) -> Optional[Future]:
        """
        Start a background install of `entry` from a GitHub release or a Nexus file.

        Nexus installs without a file use the mod's MAIN file (else its first file) and
        require a validated premium key.
        """
        if self.busy:
            return None
        if entry.source == ModSource.Nexus:
            if not self.nexus.is_premium:
                self.set_status("Direct downloads need a premium account; use 'Download with Manager'.")
                return None
            job = lambda: self._install_nexus(entry, nexus_file)
        elif release is not None:
            job = lambda: self.installer.install_release(entry, release)
        else:
            self.set_status("No release selected.")
            return None

        self.busy = True
        self.set_status("Installing...")
        return self.submit(job, on_done=lambda ok: self._install_finished(entry, bool(ok)))

    def _install_nexus(self, entry: CatalogEntry, nexus_file: Optional[NexusFileInfo]) -> bool:
        if nexus_file is None:
            files = self.nexus.get_mod_files(entry.nexus_mod_id) or []
            nexus_file = next((f for f in files if f.is_main), files[0] if files else None)
        if nexus_file is None:
            logger.error("No files available for %s", entry.display_name)
            return False
        return self.installer.install_from_nexus_direct(entry, nexus_file)

    def uninstall(self, entry: CatalogEntry) -> bool:
        """Foreground uninstall."""
        ok = self.installer.uninstall(entry)
        if ok:
            self.scanner.scan()
        self.set_status("Uninstalled." if ok else "Uninstall failed.")
        return ok

    def set_auto_update(self, entry: CatalogEntry, enabled: bool) -> bool:
        return self.registry.set_auto_update(entry.catalog_key, enabled)

    def toggle_version_lock(self, entry: CatalogEntry) -> Optional[str]:
        return self.registry.toggle_version_lock(entry.catalog_key)

    # NXM requests
    def find_or_create_nexus_entry(self, mod_id: int, catalog: Optional[Catalog] = None) -> CatalogEntry:
        """Catalog entry for a Nexus mod id, or a synthesized one when the catalog lacks it."""
        catalog = catalog or Catalog(self.paths.catalog_dirs, nexus_enabled=True)
        if not catalog.entries:
            catalog.load()
        entry = catalog.find_by_nexus_id(mod_id)
        if entry is not None:
            return entry
        return CatalogEntry(
            source=ModSource.Nexus,
            nexus_mod_id=mod_id,
            display_name=f"Nexus Mod {mod_id}",
            description=NXM_DESCRIPTION,
        )

    def process_nxm_request(self, request: NxmRequest) -> bool:
        """
        Resolve, download and install one queued request (runs in the background).

        Returns
        -------
        bool
            True when the archive was installed. The display name is added to
            `pending_installs` on the foreground thread.
        """
        try:
            links = self.nexus.get_download_links(request.mod_id, request.file_id, request.key, request.expires)
            if not links:
                logger.warning("No download links for nxm mod %s file %s", request.mod_id, request.file_id)
                return False

            logger.info("Downloading from Nexus CDN...")
            data = self.nexus.download_file(links[0].uri)
            if data is None:
                logger.error("Download failed")
                return False

            entry = self.find_or_create_nexus_entry(request.mod_id)
            files = self.nexus.get_mod_files(request.mod_id) or []
            file_info = next((f for f in files if f.file_id == request.file_id), None)
            version = file_info.version if file_info and file_info.version else "unknown"

            ok = self.installer.install_from_bytes(entry, data, version)
        except Exception as exc:
            logger.error("nxm install error for mod %s: %s", request.mod_id, exc)
            return False

        if ok:
            logger.info("Installed %s v%s from nxm:// link", entry.display_name, version)
            self.post(lambda: self.pending_installs.append(entry.display_name))
        else:
            logger.error("Failed to install %s from nxm:// link", entry.display_name)
        return ok

    def __repr__(self) -> str:
        return f"<ModdyEngine engine={str(self.paths.engine_dir)!r} installed={len(self.registry)}>"
