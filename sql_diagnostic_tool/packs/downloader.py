"""
Bulk download of query packs into a local pack directory.

Used at setup time (`sql-diagnostic-tool packs download`) so that later runs
can load every pack locally without network access. Downloads run one at a
time with a short pause between them, then manifest.json is rewritten to
describe every pack present.
"""

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from ..exceptions import PackFetchError
from ..utils.time import utc_timestamp
from .manifest import PackManifest, PackManifestEntry, read_manifest, write_manifest
from .source import RemotePackSource, pack_filename
from .versions import KNOWN_KEYS

logger = logging.getLogger(__name__)

# Pause between consecutive downloads, in seconds
DOWNLOAD_DELAY_SECONDS = 1.0


@dataclass(frozen=True)
class DownloadResult:
    """Outcome of downloading one pack."""

    version_key: str
    filename: str
    success: bool
    size: int = 0
    downloaded_at: str | None = None
    error_message: str | None = None


def download_packs(
    pack_dir: str | Path,
    remote: RemotePackSource,
    version_keys: Iterable[str] | None = None,
    delay_seconds: float = DOWNLOAD_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    on_result: Callable[[DownloadResult], None] | None = None,
) -> list[DownloadResult]:
    """
    Download packs and record them in the pack manifest.

    Failed downloads leave any existing file for that key untouched and are
    reported in the returned list; they never abort the remaining downloads.

    Args:
        pack_dir: Destination directory (created if missing)
        remote: Source used to fetch each pack
        version_keys: Keys to download; defaults to every known key
        delay_seconds: Pause between downloads
        sleep: Blocking sleep function (injectable for tests)
        on_result: Optional callback invoked after each download

    Returns:
        One DownloadResult per requested key, in request order
    """
    pack_dir = Path(pack_dir)
    pack_dir.mkdir(parents=True, exist_ok=True)

    keys = list(KNOWN_KEYS if version_keys is None else version_keys)
    results: list[DownloadResult] = []

    for index, key in enumerate(keys):
        if index > 0 and delay_seconds > 0:
            sleep(delay_seconds)

        result = _download_one(pack_dir, remote, key)
        results.append(result)
        if on_result is not None:
            on_result(result)

    _update_manifest(pack_dir, results)

    succeeded = sum(1 for r in results if r.success)
    logger.info(f"Downloaded {succeeded}/{len(results)} query packs into {pack_dir}")
    return results


def _download_one(pack_dir: Path, remote: RemotePackSource, key: str) -> DownloadResult:
    filename = pack_filename(key)
    url = remote.urls.get(key)
    if not url:
        return DownloadResult(
            version_key=key,
            filename=filename,
            success=False,
            error_message=f"No download URL configured for {key}",
        )

    try:
        text = remote.fetch(url)
        (pack_dir / filename).write_text(text, encoding="utf-8")
    except (PackFetchError, OSError) as e:
        logger.error(f"Failed to download SQL Server {key} pack: {e}")
        return DownloadResult(
            version_key=key, filename=filename, success=False, error_message=str(e)
        )

    size = len(text.encode("utf-8"))
    logger.info(f"Downloaded SQL Server {key} pack ({size // 1024} KB) -> {filename}")
    return DownloadResult(
        version_key=key,
        filename=filename,
        success=True,
        size=size,
        downloaded_at=utc_timestamp(),
    )


def _update_manifest(pack_dir: Path, results: list[DownloadResult]) -> None:
    existing = read_manifest(pack_dir)
    packs = dict(existing.packs) if existing is not None else {}

    for result in results:
        if result.success:
            packs[result.version_key] = PackManifestEntry(
                filename=result.filename,
                size=result.size,
                downloaded_at=result.downloaded_at or utc_timestamp(),
            )

    # Drop entries whose files have since disappeared
    packs = {k: v for k, v in packs.items() if (pack_dir / v.filename).is_file()}

    write_manifest(
        pack_dir,
        PackManifest(downloaded_at=utc_timestamp(), total_packs=len(packs), packs=packs),
    )
