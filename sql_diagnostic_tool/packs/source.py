"""
Query pack sources and the fallback chain that composes them.

A pack source turns a version key into raw pack text, or None when it has
nothing for that key. Two sources exist:

- LocalPackSource: pre-downloaded files in a pack directory
- RemotePackSource: HTTP download from the upstream URL for the key

FallbackPackSource tries them in a fixed order, computed up front as an
explicit candidate list:

1. Local pack for the requested key
2. Remote pack for the requested key
3. Local pack for the closest available older key (local only, one step)

Any failure inside a step is logged and treated as "not found"; only when
every candidate misses does the chain return None, and the caller then falls
back to the built-in sample queries.

Example:
    >>> chain = FallbackPackSource(
    ...     LocalPackSource("./data/query-packs"),
    ...     RemotePackSource(timeout=30.0),
    ... )
    >>> pack = chain.load("2019")
    >>> pack.origin, pack.key
    ('local', '2019')
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import httpx

from ..exceptions import PackFetchError, PackNotFoundError
from .retry_config import (
    BACKOFF_SECONDS,
    MAX_ATTEMPTS,
    REQUEST_TIMEOUT,
    RETRY_STATUS_CODES,
    USER_AGENT,
    create_fetch_retry_decorator,
)
from .versions import (
    KNOWN_KEYS,
    closest_available,
    fallback_chain,
    sort_keys_newest_first,
)

logger = logging.getLogger(__name__)

# Upstream download location per version key
PACK_URLS: dict[str, str] = {
    "2025": "https://www.dropbox.com/scl/fi/8qtdi3w5ix2bra8ytk7oy/SQL-Server-2025-Diagnostic-Information-Queries.sql?rlkey=kv1t4fdwe60nkd7fl0jukhnnq&dl=1",
    "2022": "https://www.dropbox.com/s/6rb2f97ocvkq7fw/SQL%20Server%202022%20Diagnostic%20Information%20Queries.sql?dl=1",
    "2019": "https://www.dropbox.com/s/k1vauzxxhyh1fnb/SQL%20Server%202019%20Diagnostic%20Information%20Queries.sql?dl=1",
    "2017": "https://www.dropbox.com/scl/fi/0q4sbb7xb3x3vmbhkdga3/SQL-Server-2017-Diagnostic-Information-Queries.sql?rlkey=nli5q22tgqqw7oxvoqyeujmmc&dl=1",
    "2016": "https://www.dropbox.com/s/w6gi8j76k64fgbg/SQL%20Server%202016%20SP1%20Diagnostic%20Information%20Queries.sql?dl=1",
    "2016SP2": "https://www.dropbox.com/s/pkpxihdkq3odgbj/SQL%20Server%202016%20SP2%20Diagnostic%20Information%20Queries.sql?dl=1",
    "2014": "https://www.dropbox.com/s/uttp0843e5078vs/SQL%20Server%202014%20Diagnostic%20Information%20Queries.sql?dl=1",
    "2012": "https://www.dropbox.com/s/3l4yotzedk45xeh/SQL%20Server%202012%20Diagnostic%20Information%20Queries.sql?dl=1",
    "2008": "https://www.dropbox.com/s/fq6hyw899fe3crv/SQL%20Server%202008%20R2%20Diagnostic%20Information%20Queries.sql?dl=1",
    "2008R2": "https://www.dropbox.com/s/fq6hyw899fe3crv/SQL%20Server%202008%20R2%20Diagnostic%20Information%20Queries.sql?dl=1",
    "2008STD": "https://www.dropbox.com/s/mjxw1w9tgw7eo6g/SQL%20Server%202008%20Diagnostic%20Information%20Queries.sql?dl=1",
    "2005": "https://www.dropbox.com/s/3kkskuheyzauih9/SQL%20Server%202005%20Diagnostic%20Information%20Queries.sql?dl=1",
}


def pack_filename(version_key: str) -> str:
    """
    Filename of the pack for a version key.

    Example:
        >>> pack_filename("2016SP2")
        'sql-server-2016SP2-queries.sql'
    """
    return f"sql-server-{version_key}-queries.sql"


class PackSource(Protocol):
    """
    Protocol for anything that can supply raw pack text by version key.

    Implementations return None for "not found" and never raise for missing
    or unreachable packs.
    """

    name: str

    def load(self, version_key: str) -> str | None:
        """Return raw pack text for version_key, or None."""
        ...


@dataclass(frozen=True)
class PackCandidate:
    """One step of the fallback chain: which key to ask which source for."""

    version_key: str
    source: str


@dataclass(frozen=True)
class LoadedPack:
    """
    Raw pack text together with where it actually came from.

    Attributes:
        requested_key: Key the caller asked for
        key: Key of the pack that was loaded (differs after a fallback)
        origin: Name of the source that supplied it ("local" or "remote")
        text: Raw pack text
    """

    requested_key: str
    key: str
    origin: str
    text: str

    @property
    def is_fallback(self) -> bool:
        return self.key != self.requested_key


class LocalPackSource:
    """
    Pre-downloaded packs stored as files in one directory.

    Attributes:
        pack_dir: Directory holding sql-server-<key>-queries.sql files
        known_keys: Keys this source will look for
    """

    name = "local"

    def __init__(self, pack_dir: str | Path, known_keys: tuple[str, ...] = KNOWN_KEYS):
        self.pack_dir = Path(pack_dir)
        self.known_keys = known_keys

    def path_for(self, version_key: str) -> Path:
        return self.pack_dir / pack_filename(version_key)

    def load(self, version_key: str) -> str | None:
        if version_key not in self.known_keys:
            logger.debug(f"No local pack mapped for version {version_key}")
            return None

        path = self.path_for(version_key)
        if not path.is_file():
            logger.debug(f"Local pack file not found: {path}")
            return None

        try:
            # utf-8-sig strips the BOM some pack files ship with
            text = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read local pack {path}: {e}")
            return None

        logger.debug(f"Loaded {len(text) // 1024}KB from {path.name}")
        return text

    def available_keys(self) -> list[str]:
        """
        Keys with a pack file present, newest first.

        Only the files decide; manifest.json is not consulted, so packs copied
        in by hand count as well.
        """
        keys = [key for key in self.known_keys if self.path_for(key).is_file()]
        return sort_keys_newest_first(keys)


class RemotePackSource:
    """
    Downloads packs from their upstream URLs.

    Network errors, timeouts and non-2xx responses are logged and reported
    as "not found". Transient failures are retried via tenacity first.
    """

    name = "remote"

    def __init__(
        self,
        urls: Mapping[str, str] | None = None,
        timeout: float = REQUEST_TIMEOUT,
        user_agent: str = USER_AGENT,
        max_attempts: int = MAX_ATTEMPTS,
        backoff_seconds: float = BACKOFF_SECONDS,
    ):
        self.urls = dict(PACK_URLS if urls is None else urls)
        self.timeout = timeout
        self.user_agent = user_agent
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds

    def load(self, version_key: str) -> str | None:
        url = self.urls.get(version_key)
        if not url:
            logger.warning(f"No download URL configured for SQL Server {version_key}")
            return None

        logger.info(f"Downloading query pack for SQL Server {version_key}")
        try:
            return self.fetch(url)
        except PackFetchError as e:
            logger.warning(f"Remote pack unavailable for SQL Server {version_key}: {e}")
            return None

    def fetch(self, url: str) -> str:
        """
        Download one pack and return its text.

        Raises:
            PackFetchError: On network failure after retries or a non-2xx status
        """
        retrying = create_fetch_retry_decorator(self.max_attempts, self.backoff_seconds)

        with httpx.Client(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
        ) as client:

            @retrying
            def _get() -> httpx.Response:
                response = client.get(url)
                if response.status_code in RETRY_STATUS_CODES:
                    response.raise_for_status()
                return response

            try:
                response = _get()
            except httpx.HTTPStatusError as e:
                raise PackFetchError(
                    f"HTTP {e.response.status_code} downloading {url}"
                ) from e
            except httpx.TransportError as e:
                raise PackFetchError(f"Network error downloading {url}: {e}") from e

            if not response.is_success:
                raise PackFetchError(f"HTTP {response.status_code} downloading {url}")

            return response.text


class FallbackPackSource:
    """
    Local, then remote, then closest-older local.

    Attributes:
        local: Source for pre-downloaded packs
        remote: Optional download source; None disables step 2
    """

    def __init__(self, local: LocalPackSource, remote: RemotePackSource | None = None):
        self.local = local
        self.remote = remote

    def candidates(self, version_key: str) -> list[PackCandidate]:
        """
        Ordered fallback candidates for a key.

        The closest-available step only ever targets the local source, so the
        chain has at most three entries.
        """
        steps = [PackCandidate(version_key, self.local.name)]
        if self.remote is not None:
            steps.append(PackCandidate(version_key, self.remote.name))

        available = self.local.available_keys()
        substitutes = fallback_chain(version_key, available)
        # No older local pack: closest_available falls back to the oldest newer one
        closest = substitutes[0] if substitutes else closest_available(version_key, available)
        if closest is not None and closest != version_key:
            steps.append(PackCandidate(closest, self.local.name))

        return steps

    def load(self, version_key: str) -> LoadedPack | None:
        sources: dict[str, PackSource] = {self.local.name: self.local}
        if self.remote is not None:
            sources[self.remote.name] = self.remote

        for candidate in self.candidates(version_key):
            text = sources[candidate.source].load(candidate.version_key)
            if text:
                if candidate.version_key != version_key:
                    logger.warning(
                        f"Using closest available query pack {candidate.version_key} "
                        f"for SQL Server {version_key}"
                    )
                return LoadedPack(
                    requested_key=version_key,
                    key=candidate.version_key,
                    origin=candidate.source,
                    text=text,
                )

        logger.warning(f"No query pack available for SQL Server {version_key}")
        return None

    def require(self, version_key: str) -> LoadedPack:
        """
        Like load(), but an exhausted chain raises.

        Raises:
            PackNotFoundError: No candidate produced any text
        """
        pack = self.load(version_key)
        if pack is None:
            raise PackNotFoundError(
                f"No query pack found for SQL Server {version_key}", version_key=version_key
            )
        return pack
