"""Vulnerability database metadata and the update/download client."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

SCHEMA_VERSION = 1
DB_REPOSITORY = "ghcr.io/vulnscope/vulnscope-db"
DB_MEDIA_TYPE = "application/vnd.vulnscope.db.layer.v1.tar+gzip"
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_logger = logging.getLogger(__name__)
_TIME_RE = re.compile(r"(.+?T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})")


class DBError(Exception):
    """Raised when the vulnerability database cannot be checked or fetched."""


@dataclass
class Metadata:
    """Contents of the database's metadata.json."""

    version: int = 0
    next_update: datetime = ZERO_TIME
    updated_at: datetime = ZERO_TIME
    downloaded_at: datetime = ZERO_TIME


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    text = f"{moment.year:04d}-" + moment.strftime("%m-%dT%H:%M:%S")
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    return text + "Z"


def _parse_time(text: str) -> datetime:
    match = _TIME_RE.fullmatch(text)
    if match is None:
        raise DBError(f"invalid timestamp: {text!r}")
    base, fraction, zone = match.groups()
    fraction = "." + fraction[:6].ljust(6, "0") if fraction else ""
    try:
        return datetime.fromisoformat(base + fraction + ("+00:00" if zone == "Z" else zone))
    except ValueError as exc:
        raise DBError(f"invalid timestamp: {text!r}") from exc


class MetadataStore:
    """Reads and writes ``<cache_dir>/db/metadata.json``."""

    def __init__(self, cache_dir: str | os.PathLike[str]) -> None:
        self.path = Path(cache_dir) / "db" / "metadata.json"

    def get(self) -> Metadata:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise DBError(f"unable to open a file: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise DBError(f"unable to decode metadata: {exc}") from exc
        if not isinstance(data, dict):
            raise DBError("unable to decode metadata: not an object")

        def when(key: str) -> datetime:
            value = data.get(key)
            return _parse_time(value) if isinstance(value, str) else ZERO_TIME

        return Metadata(
            version=int(data.get("Version") or 0),
            next_update=when("NextUpdate"),
            updated_at=when("UpdatedAt"),
            downloaded_at=when("DownloadedAt"),
        )

    def update(self, meta: Metadata) -> None:
        data = {
            "Version": meta.version,
            "NextUpdate": _format_time(meta.next_update),
            "UpdatedAt": _format_time(meta.updated_at),
            "DownloadedAt": _format_time(meta.downloaded_at),
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, separators=(",", ":")), encoding="utf-8")
        except OSError as exc:
            raise DBError(f"unable to write metadata: {exc}") from exc

    def delete(self) -> None:
        try:
            self.path.unlink()
        except OSError as exc:
            raise DBError(f"unable to remove metadata: {exc}") from exc


class Client:
    """Decides whether the local database is stale and downloads a fresh one."""

    def __init__(
        self,
        cache_dir: str | os.PathLike[str],
        quiet: bool = False,
        *,
        artifact: Any = None,
        clock: Callable[[], datetime] | None = None,
        artifact_factory: Callable[[str, str, bool], Any] | None = None,
    ) -> None:
        self.cache_dir = cache_dir
        self.quiet = quiet
        self.artifact = artifact
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.artifact_factory = artifact_factory
        self.metadata = MetadataStore(cache_dir)

    def _now(self) -> datetime:
        now = self.clock()
        return now if now.tzinfo else now.replace(tzinfo=timezone.utc)

    def needs_update(self, cli_version: str, skip: bool) -> bool:
        try:
            meta = self.metadata.get()
        except DBError as exc:
            _logger.debug("There is no valid metadata file: %s", exc)
            if skip:
                _logger.error("The first run cannot skip downloading DB")
                raise DBError("--skip-update cannot be specified on the first run") from exc
            meta = Metadata(version=SCHEMA_VERSION)

        if SCHEMA_VERSION < meta.version:
            _logger.error("vulnscope version (%s) is old. Update to the latest version.", cli_version)
            raise DBError(
                "the version of DB schema doesn't match. "
                f"Local DB: {meta.version}, Expected: {SCHEMA_VERSION}"
            )

        if skip:
            if SCHEMA_VERSION != meta.version:
                _logger.error("The local DB has an old schema version. It needs to be updated.")
                raise DBError(
                    "validate error: --skip-update cannot be specified with the old DB schema"
                )
            return False

        if SCHEMA_VERSION != meta.version:
            return True
        return not self._is_new_db(meta)

    def _is_new_db(self, meta: Metadata) -> bool:
        now = self._now()
        if now < meta.next_update:
            _logger.debug("DB update was skipped because the local DB is the latest")
            return True
        if now < meta.downloaded_at + timedelta(hours=1):
            _logger.debug("DB update was skipped because the local DB was downloaded recently")
            return True
        return False

    def download(self, dst: str | os.PathLike[str]) -> None:
        """Fetch the database into ``dst`` and stamp its download time."""
        try:
            self.metadata.delete()
        except DBError:
            _logger.debug("no metadata file")

        if self.artifact is None:
            repo = f"{DB_REPOSITORY}:{SCHEMA_VERSION}"
            if self.artifact_factory is None:
                raise DBError(f"OCI artifact error: no artifact source configured for {repo}")
            try:
                self.artifact = self.artifact_factory(repo, DB_MEDIA_TYPE, self.quiet)
            except Exception as exc:
                raise DBError(f"OCI artifact error: {exc}") from exc

        try:
            self.artifact.download(str(Path(dst) / "db"))
        except Exception as exc:
            raise DBError(f"database download error: {exc}") from exc

        # The destination may differ from the cache directory.
        _logger.debug("Updating database metadata...")
        store = MetadataStore(dst)
        try:
            meta = store.get()
            meta.downloaded_at = self._now().astimezone(timezone.utc)
            store.update(meta)
        except DBError as exc:
            raise DBError(f"failed to update downloaded_at: {exc}") from exc