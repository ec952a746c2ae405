import io
import json
import tarfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from vulnscope.db import (
    DB_MEDIA_TYPE,
    DB_REPOSITORY,
    SCHEMA_VERSION,
    Client,
    DBError,
    Metadata,
    MetadataStore,
)

UTC = timezone.utc
NOW = datetime(2019, 10, 1, tzinfo=UTC)
DAY1 = datetime(2019, 9, 1, tzinfo=UTC)
DAY2 = datetime(2019, 10, 2, tzinfo=UTC)


def fixed_clock():
    return NOW


@pytest.mark.parametrize(
    "skip, meta, want, want_err",
    [
        (False, Metadata(version=SCHEMA_VERSION, next_update=DAY1), True, None),
        (False, None, True, None),
        (False, Metadata(version=0, next_update=DAY1), True, None),
        (True, Metadata(version=SCHEMA_VERSION, next_update=DAY1), False, None),
        (False, Metadata(version=SCHEMA_VERSION, next_update=DAY2), False, None),
        (
            False,
            Metadata(version=SCHEMA_VERSION + 1, next_update=DAY2),
            False,
            "the version of DB schema doesn't match. "
            f"Local DB: {SCHEMA_VERSION + 1}, Expected: {SCHEMA_VERSION}",
        ),
        (True, None, False, "--skip-update cannot be specified on the first run"),
        (
            True,
            Metadata(version=0, next_update=DAY1),
            False,
            "--skip-update cannot be specified with the old DB",
        ),
        (
            False,
            Metadata(
                version=SCHEMA_VERSION,
                next_update=DAY1,
                downloaded_at=datetime(2019, 9, 30, 22, 30, tzinfo=UTC),
            ),
            True,
            None,
        ),
        (
            False,
            Metadata(
                version=SCHEMA_VERSION,
                next_update=DAY1,
                downloaded_at=datetime(2019, 9, 30, 23, 30, tzinfo=UTC),
            ),
            False,
            None,
        ),
    ],
    ids=[
        "happy path",
        "happy path for first run",
        "happy path with old schema version",
        "happy path with --skip-update",
        "skip downloading DB",
        "newer schema version",
        "--skip-update on the first run",
        "--skip-update with different schema version",
        "happy with old DownloadedAt",
        "skip downloading DB with recent DownloadedAt",
    ],
)
def test_needs_update(tmp_path, skip, meta, want, want_err):
    if meta is not None:
        MetadataStore(tmp_path).update(meta)
    client = Client(tmp_path, True, clock=fixed_clock)
    if want_err:
        with pytest.raises(DBError) as info:
            client.needs_update("test", skip)
        assert want_err in str(info.value)
    else:
        assert client.needs_update("test", skip) is want


class TarballArtifact:
    def __init__(self, path):
        self.path = path
        self.destinations = []

    def download(self, dst):
        self.destinations.append(dst)
        target = Path(dst)
        target.mkdir(parents=True, exist_ok=True)
        with tarfile.open(self.path, "r:gz") as tar:
            for member in tar.getmembers():
                data = tar.extractfile(member)
                if data is not None:
                    (target / Path(member.name).name).write_bytes(data.read())


def _make_db_tarball(path):
    meta = {
        "Version": 1,
        "NextUpdate": "3000-01-01T18:05:43.198355188Z",
        "UpdatedAt": "3000-01-01T12:05:43.198355588Z",
    }
    with tarfile.open(path, "w:gz") as tar:
        for name, payload in (
            ("metadata.json", json.dumps(meta).encode()),
            ("trivy.db", b"database"),
        ):
            info = tarfile.TarInfo(name)
            info.size = len(payload)
            tar.addfile(info, io.BytesIO(payload))


def test_download_happy_path(tmp_path):
    tarball = tmp_path / "db.tar.gz"
    _make_db_tarball(tarball)
    cache_dir = tmp_path / "cache"
    artifact = TarballArtifact(tarball)
    client = Client(cache_dir, True, artifact=artifact, clock=fixed_clock)

    client.download(cache_dir)

    got = MetadataStore(cache_dir).get()
    assert got == Metadata(
        version=1,
        next_update=datetime(3000, 1, 1, 18, 5, 43, 198355, tzinfo=UTC),
        updated_at=datetime(3000, 1, 1, 12, 5, 43, 198355, tzinfo=UTC),
        downloaded_at=NOW,
    )
    assert artifact.destinations == [str(cache_dir / "db")]


def test_download_invalid_gzip_removes_old_metadata(tmp_path):
    bogus = tmp_path / "trivy.db"
    bogus.write_bytes(b"not a gzip stream")
    cache_dir = tmp_path / "cache"
    MetadataStore(cache_dir).update(Metadata(version=SCHEMA_VERSION))
    client = Client(cache_dir, True, artifact=TarballArtifact(bogus), clock=fixed_clock)

    with pytest.raises(DBError, match="database download error"):
        client.download(cache_dir)
    with pytest.raises(DBError):
        MetadataStore(cache_dir).get()


def test_download_without_artifact_source(tmp_path):
    client = Client(tmp_path, True, clock=fixed_clock)
    with pytest.raises(DBError, match="OCI artifact error"):
        client.download(tmp_path)


def test_download_uses_factory(tmp_path):
    tarball = tmp_path / "db.tar.gz"
    _make_db_tarball(tarball)
    calls = []

    def factory(repo, media_type, quiet):
        calls.append((repo, media_type, quiet))
        return TarballArtifact(tarball)

    cache_dir = tmp_path / "cache"
    client = Client(cache_dir, True, artifact_factory=factory, clock=fixed_clock)
    client.download(cache_dir)

    assert calls == [(f"{DB_REPOSITORY}:{SCHEMA_VERSION}", DB_MEDIA_TYPE, True)]
    assert MetadataStore(cache_dir).get().downloaded_at == NOW


def test_download_without_metadata_in_archive(tmp_path):
    tarball = tmp_path / "db.tar.gz"
    with tarfile.open(tarball, "w:gz") as tar:
        info = tarfile.TarInfo("trivy.db")
        info.size = 1
        tar.addfile(info, io.BytesIO(b"x"))
    client = Client(tmp_path / "c", True, artifact=TarballArtifact(tarball), clock=fixed_clock)
    with pytest.raises(DBError, match="failed to update downloaded_at"):
        client.download(tmp_path / "c")


def test_metadata_file_format(tmp_path):
    meta = Metadata(
        version=42,
        next_update=datetime(2020, 3, 16, 23, 57, tzinfo=UTC),
        updated_at=datetime(2020, 3, 16, 23, 40, 20, tzinfo=UTC),
        downloaded_at=datetime(2020, 3, 16, 23, 40, 20, tzinfo=UTC),
    )
    store = MetadataStore(tmp_path)
    store.update(meta)

    data = json.loads((tmp_path / "db" / "metadata.json").read_text())
    assert data == {
        "Version": 42,
        "NextUpdate": "2020-03-16T23:57:00Z",
        "UpdatedAt": "2020-03-16T23:40:20Z",
        "DownloadedAt": "2020-03-16T23:40:20Z",
    }
    assert store.get() == meta


def test_metadata_get_missing_and_delete(tmp_path):
    store = MetadataStore(tmp_path)
    with pytest.raises(DBError):
        store.get()
    with pytest.raises(DBError):
        store.delete()
    store.update(Metadata(version=3))
    store.delete()
    assert not (tmp_path / "db" / "metadata.json").exists()