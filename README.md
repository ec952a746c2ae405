# vulnscope

vulnscope holds the command-side machinery of a vulnerability scanner for
container images, filesystems and repositories:

- **Options** (`vulnscope.options`): global, artifact, cache, config, DB,
  image and report options. Each one is built from parsed command-line values
  and checked with its `init()` method. Invalid combinations raise
  `OptionError`. Examples are `--skip-db-update` together with
  `--download-db-only`, an unsupported cache backend, an unknown vulnerability
  type or security check, and more than one scan target.
- **Vulnerability DB** (`vulnscope.db`): `Client.needs_update()` decides from
  the stored `Metadata` whether the local database must be downloaded.
  `Client.download()` fetches it and records when it was downloaded.
- **Caches** (`vulnscope.operation`, `vulnscope.remote_cache`): a local
  `FSCache`, a `RedisCache` for `redis://` backends, and a `RemoteCache` that
  talks to a scan server. `new_cache()` picks the local or Redis backend.
  `Cache.reset()`, `Cache.clear_db()` and `Cache.clear_artifacts()` clean them up.
- **Scan runs** (`vulnscope.artifact_run`, `vulnscope.client_run`,
  `vulnscope.server_run`): they wire options, cache, DB and scanner together.
  The standalone entry points are `image_run`, `filesystem_run`, `rootfs_run`,
  `repository_run` and `config_run`. The client and server modes each have
  their own `run`.

## Installation

```
pip install .
```

Redis support uses the `redis` package, which is installed with vulnscope.

## Quick look

```python
from vulnscope.options import parse_severity, is_known_vuln_type, is_known_security_check
from vulnscope.client_option import split_custom_headers

parse_severity("CRITICAL")           # Severity member for CRITICAL
is_known_vuln_type("os")             # True
is_known_security_check("config")    # True

# "name:value" pairs become request headers; malformed entries are dropped
split_custom_headers(["x-api-token:token", "malformed"])
```

Checking DB options:

```python
from vulnscope.options import DBOption, OptionError

opt = DBOption(skip_db_update=True, download_db_only=True)
try:
    opt.init()
except OptionError as exc:
    print(exc)
    # --skip-db-update and --download-db-only options can not be specified both
```

## End-of-life table helper

The `vulnscope-eol` command prints end-of-life dates for Debian and Ubuntu
releases as a table of date entries. Run it from a directory that contains
`data/debian.csv` and `data/ubuntu.csv`:

```
vulnscope-eol
```

Releases that have no EOL date in the Debian data are given a date far in the
future.

## Running the tests

```
pip install .[test]
pytest
```