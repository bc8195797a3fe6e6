"""
Query pack manifest.

The pack directory holds one SQL file per version key plus a manifest.json
written by the downloader:

    {
      "downloadedAt": "2025-11-02T08:00:00Z",
      "totalPacks": 2,
      "packs": {
        "2019": {"filename": "sql-server-2019-queries.sql", "size": 412345,
                 "downloadedAt": "2025-11-02T08:00:01Z"},
        ...
      }
    }

The manifest is advisory: a key only counts as available when its file is
actually present.
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..utils.time import parse_timestamp, utc_timestamp

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"


class PackManifestEntry(BaseModel):
    """One downloaded pack."""

    model_config = ConfigDict(populate_by_name=True)

    filename: str
    size: int = 0
    downloaded_at: str = Field(default="", alias="downloadedAt")

    @field_validator("downloaded_at")
    @classmethod
    def validate_downloaded_at(cls, v: str) -> str:
        if v:
            parse_timestamp(v)
        return v


class PackManifest(BaseModel):
    """Manifest describing which packs are present in a pack directory."""

    model_config = ConfigDict(populate_by_name=True)

    downloaded_at: str = Field(default_factory=utc_timestamp, alias="downloadedAt")
    total_packs: int = Field(default=0, alias="totalPacks")
    packs: dict[str, PackManifestEntry] = Field(default_factory=dict)

    @field_validator("downloaded_at")
    @classmethod
    def validate_downloaded_at(cls, v: str) -> str:
        parse_timestamp(v)
        return v


def read_manifest(pack_dir: str | Path) -> PackManifest | None:
    """
    Read manifest.json from a pack directory.

    Returns:
        PackManifest, or None if the file is missing or unreadable
    """
    manifest_path = Path(pack_dir) / MANIFEST_FILENAME
    if not manifest_path.exists():
        logger.debug(f"No pack manifest at {manifest_path}")
        return None

    try:
        with manifest_path.open(encoding="utf-8") as f:
            return PackManifest.model_validate(json.load(f))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Failed to read pack manifest {manifest_path}: {e}")
        return None


def write_manifest(pack_dir: str | Path, manifest: PackManifest) -> Path:
    """
    Write manifest.json into a pack directory, creating it if needed.

    Keys are written in camelCase so manifests stay interchangeable with the
    files produced by earlier downloader versions.

    Returns:
        Path of the written manifest
    """
    pack_dir = Path(pack_dir)
    pack_dir.mkdir(parents=True, exist_ok=True)
    manifest_path = pack_dir / MANIFEST_FILENAME

    with manifest_path.open("w", encoding="utf-8") as f:
        json.dump(manifest.model_dump(by_alias=True), f, indent=2)
        f.write("\n")

    logger.info(f"Wrote pack manifest with {manifest.total_packs} packs: {manifest_path}")
    return manifest_path
