"""
moddypy package initializer.

This file exposes the high-level public API for the package:
 - ModdyEngine (composition root)
 - GitHubSource / NexusSource (cached remote sources)
 - ModRegistry, ModInstaller, Catalog, UpdateChecker
 - exceptions (module with custom exceptions)

Avoid heavy work at import time: nothing here touches the network or the filesystem.
"""

__all__ = [
    "ModdyEngine", "EnginePaths", "ModConfig",
    "GitHubSource", "NexusSource", "TwoTierCache",
    "ModRegistry", "ModInstaller", "InstalledModScanner", "Catalog", "UpdateChecker",
    "FileNxmQueue", "parse_nxm_url",
    "CatalogEntry", "GitHubRelease", "InstalledModInfo", "ModSource", "NexusFileInfo", "NxmRequest",
    "exceptions", "__version__",
]

# package version (update as you release)
__version__ = "0.1.0"

# re-export exceptions for convenience
from .exceptions import *  # noqa: F401,F403
from . import exceptions

from .cache import TwoTierCache
from .catalog import Catalog
from .config import ModConfig
from .engine import ModdyEngine
from .github import GitHubSource
from .installer import ModInstaller
from .nexus import NexusSource
from .nxm import FileNxmQueue, parse_nxm_url
from .paths import EnginePaths
from .registry import ModRegistry
from .scanner import InstalledModScanner
from .types_models import CatalogEntry, GitHubRelease, InstalledModInfo, ModSource, NexusFileInfo, NxmRequest
from .updates import UpdateChecker
