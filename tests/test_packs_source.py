"""
Tests for packs.source module.

Tests cover:
- LocalPackSource file lookup, BOM handling and available_keys()
- RemotePackSource downloads with pytest-httpx (success, retries, failures)
- FallbackPackSource candidate order and fallback results
"""

import httpx
import pytest

from sql_diagnostic_tool.exceptions import PackFetchError, PackNotFoundError
from sql_diagnostic_tool.packs.manifest import (
    PackManifest,
    PackManifestEntry,
    write_manifest,
)
from sql_diagnostic_tool.packs.retry_config import USER_AGENT
from sql_diagnostic_tool.packs.source import (
    PACK_URLS,
    FallbackPackSource,
    LocalPackSource,
    PackCandidate,
    RemotePackSource,
    pack_filename,
)

PACK_URL = "https://packs.example.com/sql-server-2019.sql"


class StubRemote:
    """In-memory remote source recording the keys it was asked for."""

    name = "remote"

    def __init__(self, packs=None):
        self.packs = packs or {}
        self.requested = []

    def load(self, version_key):
        self.requested.append(version_key)
        return self.packs.get(version_key)


def write_pack(pack_dir, key, text="SELECT 1;"):
    pack_dir.mkdir(parents=True, exist_ok=True)
    path = pack_dir / pack_filename(key)
    path.write_text(text, encoding="utf-8")
    return path


class TestPackFilename:
    def test_filename_includes_key(self):
        """Pack files are named sql-server-<key>-queries.sql."""
        assert pack_filename("2019") == "sql-server-2019-queries.sql"
        assert pack_filename("2016SP2") == "sql-server-2016SP2-queries.sql"

    def test_every_known_key_has_url(self):
        """The built-in URL table covers suffixed keys too."""
        for key in ("2025", "2022", "2019", "2016SP2", "2008R2", "2008STD", "2005"):
            assert PACK_URLS[key].startswith("https://")


class TestLocalPackSource:
    """Test suite for LocalPackSource."""

    def test_load_existing_pack(self, tmp_path):
        """load() returns file contents for a present pack."""
        write_pack(tmp_path, "2019", "SELECT @@VERSION;")
        source = LocalPackSource(tmp_path)

        assert source.load("2019") == "SELECT @@VERSION;"

    def test_load_missing_pack_returns_none(self, tmp_path):
        """load() returns None when the file does not exist."""
        assert LocalPackSource(tmp_path).load("2019") is None

    def test_load_unknown_key_returns_none(self, tmp_path):
        """Keys outside known_keys are never looked up."""
        write_pack(tmp_path, "2099")
        assert LocalPackSource(tmp_path).load("2099") is None

    def test_load_strips_utf8_bom(self, tmp_path):
        """A leading byte order mark is removed."""
        path = tmp_path / pack_filename("2017")
        path.write_bytes("﻿SELECT 1;".encode())

        assert LocalPackSource(tmp_path).load("2017") == "SELECT 1;"

    def test_load_undecodable_file_returns_none(self, tmp_path):
        """Invalid UTF-8 is reported as not found."""
        path = tmp_path / pack_filename("2017")
        path.write_bytes(b"\xff\xfe\xfa invalid")

        assert LocalPackSource(tmp_path).load("2017") is None

    def test_available_keys_scans_directory(self, tmp_path):
        """Without a manifest, present files are listed newest first."""
        for key in ("2012", "2019", "2016SP2"):
            write_pack(tmp_path, key)

        assert LocalPackSource(tmp_path).available_keys() == ["2019", "2016SP2", "2012"]

    def test_available_keys_ignores_manifest(self, tmp_path):
        """Files missing from the manifest still count; listed but absent ones do not."""
        write_pack(tmp_path, "2016")
        write_pack(tmp_path, "2019")
        write_manifest(
            tmp_path,
            PackManifest(
                total_packs=2,
                packs={
                    "2019": PackManifestEntry(filename=pack_filename("2019")),
                    "2022": PackManifestEntry(filename=pack_filename("2022")),
                },
            ),
        )

        assert LocalPackSource(tmp_path).available_keys() == ["2019", "2016"]

    def test_available_keys_empty_directory(self, tmp_path):
        """A missing directory has no keys."""
        assert LocalPackSource(tmp_path / "missing").available_keys() == []


class TestRemotePackSource:
    """Test suite for RemotePackSource."""

    def test_load_success(self, httpx_mock):
        """A 200 response body is returned as pack text."""
        httpx_mock.add_response(url=PACK_URL, text="-- pack text")
        source = RemotePackSource(urls={"2019": PACK_URL}, backoff_seconds=0)

        assert source.load("2019") == "-- pack text"

    def test_sends_fixed_user_agent(self, httpx_mock):
        """Requests carry the configured User-Agent header."""
        httpx_mock.add_response(url=PACK_URL, text="ok")
        RemotePackSource(urls={"2019": PACK_URL}, backoff_seconds=0).load("2019")

        request = httpx_mock.get_request()
        assert request.headers["User-Agent"] == USER_AGENT

    def test_not_found_returns_none(self, httpx_mock):
        """Non-2xx responses are treated as not found."""
        httpx_mock.add_response(url=PACK_URL, status_code=404)
        source = RemotePackSource(urls={"2019": PACK_URL}, backoff_seconds=0)

        assert source.load("2019") is None

    def test_missing_url_returns_none(self):
        """Keys without a URL are not requested at all."""
        assert RemotePackSource(urls={}).load("2019") is None

    def test_retries_server_error_then_succeeds(self, httpx_mock):
        """A transient 503 is retried."""
        httpx_mock.add_response(url=PACK_URL, status_code=503)
        httpx_mock.add_response(url=PACK_URL, text="recovered")
        source = RemotePackSource(urls={"2019": PACK_URL}, max_attempts=2, backoff_seconds=0)

        assert source.load("2019") == "recovered"
        assert len(httpx_mock.get_requests()) == 2

    def test_retries_network_error_then_succeeds(self, httpx_mock):
        """Connection errors are retried."""
        httpx_mock.add_exception(httpx.ConnectError("connection refused"))
        httpx_mock.add_response(url=PACK_URL, text="recovered")
        source = RemotePackSource(urls={"2019": PACK_URL}, max_attempts=2, backoff_seconds=0)

        assert source.load("2019") == "recovered"

    def test_fetch_raises_after_exhausting_retries(self, httpx_mock):
        """fetch() wraps the final failure in PackFetchError."""
        httpx_mock.add_response(url=PACK_URL, status_code=503)
        httpx_mock.add_response(url=PACK_URL, status_code=503)
        source = RemotePackSource(urls={"2019": PACK_URL}, max_attempts=2, backoff_seconds=0)

        with pytest.raises(PackFetchError, match="HTTP 503"):
            source.fetch(PACK_URL)

    def test_fetch_network_error(self, httpx_mock):
        """A network error on the only attempt raises PackFetchError."""
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"))
        source = RemotePackSource(urls={"2019": PACK_URL}, max_attempts=1, backoff_seconds=0)

        with pytest.raises(PackFetchError, match="Network error"):
            source.fetch(PACK_URL)


class TestFallbackPackSource:
    """Test suite for FallbackPackSource."""

    def test_candidates_order(self, tmp_path):
        """Local, remote, then the closest older local key."""
        write_pack(tmp_path, "2016")
        chain = FallbackPackSource(LocalPackSource(tmp_path), StubRemote())

        assert chain.candidates("2017") == [
            PackCandidate("2017", "local"),
            PackCandidate("2017", "remote"),
            PackCandidate("2016", "local"),
        ]

    def test_candidates_without_remote(self, tmp_path):
        """No remote source means no remote step."""
        write_pack(tmp_path, "2016")
        chain = FallbackPackSource(LocalPackSource(tmp_path))

        assert chain.candidates("2017") == [
            PackCandidate("2017", "local"),
            PackCandidate("2016", "local"),
        ]

    def test_candidates_skip_closest_equal_to_target(self, tmp_path):
        """The closest step is omitted when it is the target itself."""
        write_pack(tmp_path, "2019")
        chain = FallbackPackSource(LocalPackSource(tmp_path))

        assert chain.candidates("2019") == [PackCandidate("2019", "local")]

    def test_closest_local_not_listed_in_manifest(self, tmp_path):
        """A hand-copied older pack beats a newer one the manifest knows about."""
        write_pack(tmp_path, "2016", "older pack")
        write_pack(tmp_path, "2019", "newer pack")
        write_manifest(
            tmp_path,
            PackManifest(
                total_packs=1,
                packs={"2019": PackManifestEntry(filename=pack_filename("2019"))},
            ),
        )

        pack = FallbackPackSource(LocalPackSource(tmp_path)).load("2017")

        assert pack.key == "2016"
        assert pack.text == "older pack"

    def test_candidates_oldest_newer_key_as_last_resort(self, tmp_path):
        """With only newer local packs, the oldest of them is tried."""
        write_pack(tmp_path, "2019")
        write_pack(tmp_path, "2014")
        chain = FallbackPackSource(LocalPackSource(tmp_path))

        assert chain.candidates("2012") == [
            PackCandidate("2012", "local"),
            PackCandidate("2014", "local"),
        ]

    def test_candidates_suffixed_target_falls_back_to_bare_year(self, tmp_path):
        """2016SP2 falls back to the plain 2016 pack of the same year."""
        write_pack(tmp_path, "2016")
        write_pack(tmp_path, "2019")
        chain = FallbackPackSource(LocalPackSource(tmp_path))

        assert chain.candidates("2016SP2") == [
            PackCandidate("2016SP2", "local"),
            PackCandidate("2016", "local"),
        ]

    def test_local_hit_skips_remote(self, tmp_path):
        """A local pack is used without touching the remote source."""
        write_pack(tmp_path, "2019", "local text")
        remote = StubRemote({"2019": "remote text"})

        pack = FallbackPackSource(LocalPackSource(tmp_path), remote).load("2019")

        assert pack.text == "local text"
        assert pack.origin == "local"
        assert pack.is_fallback is False
        assert remote.requested == []

    def test_remote_used_when_local_missing(self, tmp_path):
        """The remote source supplies a missing local pack."""
        remote = StubRemote({"2019": "remote text"})

        pack = FallbackPackSource(LocalPackSource(tmp_path), remote).load("2019")

        assert pack.origin == "remote"
        assert pack.key == "2019"
        assert pack.text == "remote text"

    def test_closest_local_used_when_remote_fails(self, tmp_path):
        """Closest older local pack is the last resort."""
        write_pack(tmp_path, "2016", "older pack")
        write_pack(tmp_path, "2019", "newer pack")
        remote = StubRemote()

        pack = FallbackPackSource(LocalPackSource(tmp_path), remote).load("2017")

        assert pack.key == "2016"
        assert pack.requested_key == "2017"
        assert pack.origin == "local"
        assert pack.is_fallback is True
        assert remote.requested == ["2017"]

    def test_closest_step_never_asks_remote(self, tmp_path):
        """The remote source is only ever asked for the requested key."""
        write_pack(tmp_path, "2012")
        remote = StubRemote({"2012": "remote 2012"})

        pack = FallbackPackSource(LocalPackSource(tmp_path), remote).load("2014")

        assert remote.requested == ["2014"]
        assert pack.origin == "local"
        assert pack.key == "2012"

    def test_exhausted_chain_returns_none(self, tmp_path):
        """Nothing anywhere yields None."""
        chain = FallbackPackSource(LocalPackSource(tmp_path), StubRemote())
        assert chain.load("2019") is None

    def test_require_raises_when_exhausted(self, tmp_path):
        chain = FallbackPackSource(LocalPackSource(tmp_path))

        with pytest.raises(PackNotFoundError) as exc_info:
            chain.require("2022")

        assert exc_info.value.version_key == "2022"

    def test_require_returns_pack(self, tmp_path):
        write_pack(tmp_path, "2019", "local text")
        assert FallbackPackSource(LocalPackSource(tmp_path)).require("2019").text == "local text"

    def test_empty_local_file_is_a_miss(self, tmp_path):
        """An empty pack file does not stop the chain."""
        write_pack(tmp_path, "2019", "")
        remote = StubRemote({"2019": "remote text"})

        pack = FallbackPackSource(LocalPackSource(tmp_path), remote).load("2019")

        assert pack.origin == "remote"
