"""
Query pack location: version resolution, local/remote sources, downloads.

Public API:
    - resolve: Map a version indicator to a canonical pack key
    - closest_available: Best not-newer substitute among available keys
    - LocalPackSource / RemotePackSource: Individual pack sources
    - FallbackPackSource: Local -> remote -> closest-local chain
    - LoadedPack: Pack text plus the key and source it came from
    - download_packs: Bulk download with manifest update
"""

from sql_diagnostic_tool.packs.downloader import DownloadResult, download_packs
from sql_diagnostic_tool.packs.source import (
    FallbackPackSource,
    LoadedPack,
    LocalPackSource,
    PackSource,
    RemotePackSource,
    pack_filename,
)
from sql_diagnostic_tool.packs.versions import (
    BASELINE_KEY,
    KNOWN_KEYS,
    closest_available,
    fallback_chain,
    resolve,
)

__all__ = [
    "BASELINE_KEY",
    "KNOWN_KEYS",
    "DownloadResult",
    "FallbackPackSource",
    "LoadedPack",
    "LocalPackSource",
    "PackSource",
    "RemotePackSource",
    "closest_available",
    "download_packs",
    "fallback_chain",
    "pack_filename",
    "resolve",
]
