"""Local artifact caches, cache maintenance and database/policy preparation."""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import shutil
import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any

import redis

from vulnscope.db import Client as DBClient
from vulnscope.db import DBError, Metadata, MetadataStore
from vulnscope.options import CacheOption

_logger = logging.getLogger(__name__)
_REDIS_PREFIX = "vulnscope"


class OperationError(Exception):
    """Raised when a cache, database or policy operation fails."""


def _encode(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return list(value)
    raise TypeError(f"cannot encode {type(value).__name__}")


def _to_json(value: Any) -> str:
    return json.dumps(value, default=_encode)


class FSCache:
    """Artifact cache kept in an SQLite file under the cache directory."""

    def __init__(self, cache_dir: str | os.PathLike[str]) -> None:
        self.directory = Path(cache_dir) / "artifacts"
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._conn: sqlite3.Connection | None = sqlite3.connect(
                self.directory / "cache.db", check_same_thread=False
            )
            with self._conn:
                for table in ("artifact", "blob"):
                    self._conn.execute(
                        f"CREATE TABLE IF NOT EXISTS {table} (id TEXT PRIMARY KEY, info TEXT NOT NULL)"
                    )
        except (OSError, sqlite3.Error) as exc:
            raise OperationError(f"unable to open the cache: {exc}") from exc

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise OperationError("the cache is closed")
        return self._conn

    def _put(self, table: str, key: str, info: Any) -> None:
        conn = self._connection()
        try:
            with conn:
                conn.execute(
                    f"INSERT OR REPLACE INTO {table} (id, info) VALUES (?, ?)", (key, _to_json(info))
                )
        except (sqlite3.Error, TypeError) as exc:
            raise OperationError(f"unable to store {table} ({key}): {exc}") from exc

    def _exists(self, table: str, key: str) -> bool:
        try:
            query = f"SELECT 1 FROM {table} WHERE id = ?"
            return self._connection().execute(query, (key,)).fetchone() is not None
        except sqlite3.Error as exc:
            raise OperationError(f"unable to read {table} ({key}): {exc}") from exc

    def put_artifact(self, artifact_id: str, artifact_info: Any) -> None:
        self._put("artifact", artifact_id, artifact_info)

    def put_blob(self, blob_id: str, blob_info: Any) -> None:
        self._put("blob", blob_id, blob_info)

    def missing_blobs(self, artifact_id: str, blob_ids: Sequence[str]) -> tuple[bool, list[str]]:
        missing = [blob_id for blob_id in blob_ids if not self._exists("blob", blob_id)]
        return not self._exists("artifact", artifact_id), missing

    def clear(self) -> None:
        """Close the cache and remove its files."""
        self.close()
        try:
            shutil.rmtree(self.directory, ignore_errors=False) if self.directory.exists() else None
        except OSError as exc:
            raise OperationError(f"unable to remove {self.directory}: {exc}") from exc

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


class RedisCache:
    """Artifact cache kept in a Redis server."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def _put(self, kind: str, key: str, info: Any) -> None:
        try:
            self.client.set(f"{_REDIS_PREFIX}::{kind}::{key}", _to_json(info))
        except (redis.RedisError, TypeError) as exc:
            raise OperationError(f"unable to store {kind} ({key}): {exc}") from exc

    def put_artifact(self, artifact_id: str, artifact_info: Any) -> None:
        self._put("artifact", artifact_id, artifact_info)

    def put_blob(self, blob_id: str, blob_info: Any) -> None:
        self._put("blob", blob_id, blob_info)

    def missing_blobs(self, artifact_id: str, blob_ids: Sequence[str]) -> tuple[bool, list[str]]:
        def exists(kind: str, key: str) -> bool:
            return bool(self.client.exists(f"{_REDIS_PREFIX}::{kind}::{key}"))

        try:
            missing = [blob_id for blob_id in blob_ids if not exists("blob", blob_id)]
            return not exists("artifact", artifact_id), missing
        except redis.RedisError as exc:
            raise OperationError(f"unable to check missing blobs: {exc}") from exc

    def clear(self) -> None:
        try:
            keys = list(self.client.scan_iter(match=f"{_REDIS_PREFIX}::*"))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError as exc:
            raise OperationError(f"unable to clear the cache: {exc}") from exc

    def close(self) -> None:
        self.client.close()


@dataclass
class Cache:
    """An artifact cache together with the directory holding the database."""

    backend: Any
    cache_dir: Path

    def reset(self) -> None:
        try:
            self.clear_db()
        except OperationError as exc:
            raise OperationError(f"failed to clear the database: {exc}") from exc
        try:
            self.clear_artifacts()
        except OperationError as exc:
            raise OperationError(f"failed to clear the artifact cache: {exc}") from exc

    def clear_db(self) -> None:
        _logger.info("Removing DB file...")
        try:
            if self.cache_dir.exists():
                shutil.rmtree(self.cache_dir)
        except OSError as exc:
            raise OperationError(f"failed to remove the directory ({self.cache_dir}) : {exc}") from exc

    def clear_artifacts(self) -> None:
        _logger.info("Removing artifact caches...")
        try:
            self.backend.clear()
        except Exception as exc:
            raise OperationError(f"failed to remove the cache: {exc}") from exc

    def close(self) -> None:
        self.backend.close()


def _redis_client(option: CacheOption) -> Any:
    url = option.cache_backend
    kwargs: dict[str, Any] = {}
    if not option.redis.is_empty():
        for path in (option.redis.ca_cert, option.redis.cert, option.redis.key):
            if not path or not Path(path).is_file():
                raise OperationError(f"unable to read TLS file: {path}")
        url = "rediss://" + url[len("redis://"):]
        kwargs = {
            "ssl_ca_certs": option.redis.ca_cert,
            "ssl_certfile": option.redis.cert,
            "ssl_keyfile": option.redis.key,
            "ssl_cert_reqs": "required",
        }
    try:
        return redis.Redis.from_url(url, **kwargs)
    except ValueError as exc:
        raise OperationError(f"invalid redis URL: {exc}") from exc


def new_cache(cache_option: CacheOption, cache_dir: str | os.PathLike[str] | None = None) -> Cache:
    """Open the cache the backend option names: Redis for redis:// URLs, files otherwise."""
    if cache_dir:
        directory = Path(cache_dir)
    else:
        directory = Path(os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache") / "vulnscope"
    if cache_option.cache_backend.startswith("redis://"):
        _logger.info("Redis cache: %s", cache_option.cache_backend)
        return Cache(RedisCache(_redis_client(cache_option)), directory)
    try:
        return Cache(FSCache(directory), directory)
    except OperationError as exc:
        raise OperationError(f"unable to initialize fs cache: {exc}") from exc


def download_db(
    app_version: str,
    cache_dir: str | os.PathLike[str],
    quiet: bool,
    skip_update: bool,
    client: DBClient | None = None,
) -> Metadata:
    """Bring the vulnerability database up to date and return its metadata."""
    client = client or DBClient(cache_dir, quiet)
    try:
        needs_update = client.needs_update(app_version, skip_update)
    except DBError as exc:
        raise OperationError(f"database error: {exc}") from exc

    if needs_update:
        _logger.info("Need to update DB")
        _logger.info("Downloading DB...")
        try:
            client.download(cache_dir)
        except DBError as exc:
            raise OperationError(f"failed to download vulnerability DB: {exc}") from exc

    try:
        return show_db_info(cache_dir)
    except OperationError as exc:
        raise OperationError(f"failed to show database info: {exc}") from exc


def init_builtin_policies(
    cache_dir: str | os.PathLike[str],
    quiet: bool,
    skip_update: bool,
    policy_client: Any,
) -> list[str]:
    """Update the built-in policies if needed and return the paths to load."""
    _logger.debug("policy cache dir: %s (quiet: %s)", cache_dir, quiet)
    needs_update = False
    if not skip_update:
        try:
            needs_update = policy_client.needs_update()
        except Exception as exc:
            raise OperationError(
                f"unable to check if built-in policies need to be updated: {exc}"
            ) from exc

    if needs_update:
        _logger.info("Need to update the built-in policies")
        _logger.info("Downloading the built-in policies...")
        try:
            policy_client.download_builtin_policies()
        except Exception as exc:
            raise OperationError(f"failed to download built-in policies: {exc}") from exc

    try:
        return list(policy_client.load_builtin_policies())
    except Exception as exc:
        if skip_update:
            _logger.info("No built-in policies were loaded")
            return []
        raise OperationError(f"policy load error: {exc}") from exc


def show_db_info(cache_dir: str | os.PathLike[str]) -> Metadata:
    """Return the database metadata, logging it for debugging."""
    try:
        meta = MetadataStore(cache_dir).get()
    except DBError as exc:
        raise OperationError(f"something wrong with DB: {exc}") from exc
    _logger.debug(
        "DB Schema: %d, UpdatedAt: %s, NextUpdate: %s, DownloadedAt: %s",
        meta.version, meta.updated_at, meta.next_update, meta.downloaded_at,
    )
    return meta