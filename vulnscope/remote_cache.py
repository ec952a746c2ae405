"""Artifact cache kept on a remote scanning server, spoken to over JSON RPC."""

from __future__ import annotations

import dataclasses
import json
import urllib.error
import urllib.request
from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any

CACHE_PATH_PREFIX = "/twirp/vulnscope.cache.v1.Cache/"

_STATUS_CODES = {401: "unauthenticated", 403: "permission_denied", 404: "bad_route"}


class RemoteCacheError(Exception):
    """Raised when the remote cache rejects a request or cannot be reached."""

    def __init__(self, message: str, code: str = "unknown") -> None:
        super().__init__(message)
        self.code = code


def _encode(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return list(value)
    raise TypeError(f"cannot encode {type(value).__name__}")


class RemoteCache:
    """Stores artifact and blob information on a remote server."""

    def __init__(
        self,
        url: str,
        custom_headers: Mapping[str, str | Sequence[str]] | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.url = url.rstrip("/")
        self.headers = {
            name: value if isinstance(value, str) else ", ".join(value)
            for name, value in (custom_headers or {}).items()
        }
        self.timeout = timeout

    def _call(self, method: str, payload: dict[str, Any], context: str) -> dict[str, Any]:
        request = urllib.request.Request(
            self.url + CACHE_PATH_PREFIX + method,
            data=json.dumps(payload, default=_encode).encode("utf-8"),
            method="POST",
            headers={**self.headers, "Content-Type": "application/json"},
        )

        def fail(code: str, msg: str) -> RemoteCacheError:
            return RemoteCacheError(f"{context}: twirp error {code}: {msg}", code)

        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                body = response.read()
        except urllib.error.HTTPError as exc:
            with exc:
                body = exc.read()
            try:
                data = json.loads(body)
            except ValueError:
                data = None
            if isinstance(data, dict) and isinstance(data.get("code"), str):
                raise fail(data["code"], str(data.get("msg", ""))) from None
            raise fail(_STATUS_CODES.get(exc.code, "internal"), f"HTTP status {exc.code}") from None
        except OSError as exc:
            raise fail("unavailable", str(exc)) from exc

        try:
            data = json.loads(body or b"{}")
        except ValueError as exc:
            raise fail("internal", "failed to decode the response") from exc
        if not isinstance(data, dict):
            raise fail("internal", "unexpected response")
        return data

    def put_artifact(self, image_id: str, artifact_info: Any) -> None:
        self._call(
            "PutArtifact",
            {"artifact_id": image_id, "artifact_info": artifact_info},
            "unable to store cache on the server",
        )

    def put_blob(self, diff_id: str, blob_info: Any) -> None:
        self._call(
            "PutBlob",
            {"diff_id": diff_id, "blob_info": blob_info},
            "unable to store cache on the server",
        )

    def missing_blobs(self, image_id: str, layer_ids: Sequence[str]) -> tuple[bool, list[str]]:
        """Return whether the artifact is missing and which layers are missing."""
        data = self._call(
            "MissingBlobs",
            {"artifact_id": image_id, "blob_ids": list(layer_ids)},
            "unable to fetch missing layers",
        )
        return bool(data.get("missing_artifact", False)), list(data.get("missing_blob_ids") or [])