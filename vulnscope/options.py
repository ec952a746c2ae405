"""Command-line option groups shared by the scanning, client and server commands."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, IO

VULN_TYPE_OS = "os"
VULN_TYPE_LIBRARY = "library"
SECURITY_CHECK_VULNERABILITY = "vuln"
SECURITY_CHECK_CONFIG = "config"

_VULN_TYPES = frozenset({VULN_TYPE_OS, VULN_TYPE_LIBRARY})
_SECURITY_CHECKS = frozenset({SECURITY_CHECK_VULNERABILITY, SECURITY_CHECK_CONFIG})

_module_logger = logging.getLogger(__name__)


class OptionError(ValueError):
    """Raised when command-line options are invalid or inconsistent."""


@dataclass
class CliContext:
    """Parsed command line: positional arguments, explicit flags and flag defaults."""

    args: list[str] = field(default_factory=list)
    flags: dict[str, Any] = field(default_factory=dict)
    defaults: dict[str, Any] = field(default_factory=dict)
    app_version: str = ""

    def value(self, name: str, default: Any = None) -> Any:
        """Return the flag's value, its declared default, or ``default``."""
        if name in self.flags:
            return self.flags[name]
        return self.defaults.get(name, default)

    def _str(self, name: str) -> str:
        return str(self.value(name, "") or "")

    def _bool(self, name: str) -> bool:
        return bool(self.value(name, False))

    def _int(self, name: str) -> int:
        return int(self.value(name, 0) or 0)

    def _list(self, name: str) -> list[str]:
        return list(self.value(name, None) or [])


class Severity(IntEnum):
    UNKNOWN = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


def parse_severity(name: str) -> Severity:
    """Return the severity with exactly this name."""
    try:
        return Severity[name]
    except KeyError:
        raise OptionError(f"unknown severity: {name}") from None


def is_known_vuln_type(value: str) -> bool:
    return value in _VULN_TYPES


def is_known_security_check(value: str) -> bool:
    return value in _SECURITY_CHECKS


def _new_logger(debug: bool, quiet: bool) -> logging.Logger:
    logger = logging.getLogger("vulnscope")
    if debug:
        logger.setLevel(logging.DEBUG)
    elif quiet:
        logger.setLevel(logging.ERROR)
    else:
        logger.setLevel(logging.INFO)
    return logger


@dataclass
class GlobalOption:
    context: CliContext | None = None
    logger: logging.Logger | None = None
    app_version: str = ""
    quiet: bool = False
    debug: bool = False
    cache_dir: str = ""


def new_global_option(ctx: CliContext) -> GlobalOption:
    quiet = ctx._bool("quiet")
    debug = ctx._bool("debug")
    return GlobalOption(
        context=ctx,
        logger=_new_logger(debug, quiet),
        app_version=ctx.app_version,
        quiet=quiet,
        debug=debug,
        cache_dir=ctx._str("cache-dir"),
    )


@dataclass
class ArtifactOption:
    input: str = ""
    timeout: float = 0.0
    clear_cache: bool = False
    insecure: bool = False
    skip_dirs: list[str] = field(default_factory=list)
    skip_files: list[str] = field(default_factory=list)
    offline_scan: bool = False
    target: str = ""

    def init(self, ctx: CliContext, logger: logging.Logger) -> None:
        """Resolve the scan target from the positional arguments."""
        if not self.input and not ctx.args:
            logger.debug("trivy requires at least 1 argument or --input option")
            raise SystemExit(0)
        if len(ctx.args) > 1:
            logger.error("multiple targets cannot be specified")
            raise OptionError("arguments error")
        if not self.input:
            self.target = ctx.args[0]


def new_artifact_option(ctx: CliContext) -> ArtifactOption:
    return ArtifactOption(
        input=ctx._str("input"),
        timeout=float(ctx.value("timeout", 0.0) or 0.0),
        clear_cache=ctx._bool("clear-cache"),
        skip_files=ctx._list("skip-files"),
        skip_dirs=ctx._list("skip-dirs"),
        offline_scan=ctx._bool("offline-scan"),
        insecure=ctx._bool("insecure"),
    )


@dataclass
class RedisOption:
    ca_cert: str = ""
    cert: str = ""
    key: str = ""

    def is_empty(self) -> bool:
        return not (self.ca_cert or self.cert or self.key)


@dataclass
class CacheOption:
    cache_backend: str = ""
    redis: RedisOption = field(default_factory=RedisOption)

    def init(self) -> None:
        """Validate the backend name and the TLS settings."""
        backend = self.cache_backend
        if not backend.startswith("redis://") and backend not in ("fs", ""):
            raise OptionError(f"unsupported cache backend: {backend}")
        if not self.redis.is_empty():
            if not (self.redis.ca_cert and self.redis.cert and self.redis.key):
                raise OptionError(
                    "you must provide CA, cert and key file path when using tls"
                )


def new_cache_option(ctx: CliContext) -> CacheOption:
    return CacheOption(
        cache_backend=ctx._str("cache-backend"),
        redis=RedisOption(
            ca_cert=ctx._str("redis-ca"),
            cert=ctx._str("redis-cert"),
            key=ctx._str("redis-key"),
        ),
    )


@dataclass
class ConfigOption:
    file_patterns: list[str] = field(default_factory=list)
    include_non_failures: bool = False
    skip_policy_update: bool = False
    trace: bool = False
    policy_paths: list[str] = field(default_factory=list)
    data_paths: list[str] = field(default_factory=list)
    policy_namespaces: list[str] = field(default_factory=list)


def new_config_option(ctx: CliContext) -> ConfigOption:
    return ConfigOption(
        include_non_failures=ctx._bool("include-non-failures"),
        skip_policy_update=ctx._bool("skip-policy-update"),
        trace=ctx._bool("trace"),
        file_patterns=ctx._list("file-patterns"),
        policy_paths=ctx._list("config-policy"),
        data_paths=ctx._list("config-data"),
        policy_namespaces=ctx._list("policy-namespaces"),
    )


@dataclass
class DBOption:
    reset: bool = False
    download_db_only: bool = False
    skip_db_update: bool = False
    light: bool = False
    no_progress: bool = False

    def init(self) -> None:
        if self.skip_db_update and self.download_db_only:
            raise OptionError(
                "--skip-db-update and --download-db-only options can not be specified both"
            )
        if self.light:
            _module_logger.warning("'--light' option is deprecated and will be removed")


def new_db_option(ctx: CliContext) -> DBOption:
    return DBOption(
        reset=ctx._bool("reset"),
        download_db_only=ctx._bool("download-db-only"),
        skip_db_update=ctx._bool("skip-db-update"),
        light=ctx._bool("light"),
        no_progress=ctx._bool("no-progress"),
    )


@dataclass
class ImageOption:
    scan_removed_pkgs: bool = False
    list_all_pkgs: bool = False


def new_image_option(ctx: CliContext) -> ImageOption:
    return ImageOption(
        scan_removed_pkgs=ctx._bool("removed-pkgs"),
        list_all_pkgs=ctx._bool("list-all-pkgs"),
    )


@dataclass
class ReportOption:
    format: str = ""
    template: str = ""
    ignore_file: str = ""
    ignore_unfixed: bool = False
    exit_code: int = 0
    ignore_policy: str = ""

    # Raw flag values, consumed and cleared by init().
    raw_vuln_type: str = ""
    raw_security_checks: str = ""
    output_path: str = ""
    raw_severities: str = ""

    # Populated by init().
    vuln_type: list[str] = field(default_factory=list)
    security_checks: list[str] = field(default_factory=list)
    output: IO[str] | None = None
    severities: list[Severity] = field(default_factory=list)

    def init(self, logger: logging.Logger) -> None:
        """Check format/template consistency and parse the raw list flags."""
        if self.template:
            if not self.format:
                logger.warning(
                    "--template is ignored because --format template is not specified. "
                    "Use --template option with --format template option."
                )
            elif self.format != "template":
                logger.warning(
                    "--template is ignored because --format %s is specified. "
                    "Use --template option with --format template option.",
                    self.format,
                )
        if self.format == "template" and not self.template:
            logger.warning(
                "--format template is ignored because --template not is specified. "
                "Specify --template option when you use --format template."
            )

        self.severities = split_severity(logger, self.raw_severities)

        for value in self.raw_vuln_type.split(","):
            if not is_known_vuln_type(value):
                raise OptionError(f"vuln type: unknown vulnerability type ({value})")
            self.vuln_type.append(value)

        for value in self.raw_security_checks.split(","):
            if not is_known_security_check(value):
                raise OptionError(f"security checks: unknown security check ({value})")
            self.security_checks.append(value)

        self.raw_severities = ""
        self.raw_vuln_type = ""
        self.raw_security_checks = ""

        self.output = sys.stdout
        if self.output_path:
            try:
                self.output = open(self.output_path, "w", encoding="utf-8")
            except OSError as exc:
                raise OptionError(f"failed to create an output file: {exc}") from exc


def new_report_option(ctx: CliContext) -> ReportOption:
    return ReportOption(
        output_path=ctx._str("output"),
        format=ctx._str("format"),
        template=ctx._str("template"),
        ignore_policy=ctx._str("ignore-policy"),
        raw_vuln_type=ctx._str("vuln-type"),
        raw_security_checks=ctx._str("security-checks"),
        raw_severities=ctx._str("severity"),
        ignore_file=ctx._str("ignorefile"),
        ignore_unfixed=ctx._bool("ignore-unfixed"),
        exit_code=ctx._int("exit-code"),
    )


def split_severity(logger: logging.Logger, severity: str) -> list[Severity]:
    """Parse a comma-separated severity list; unknown names become UNKNOWN."""
    logger.debug("Severities: %s", severity)
    severities = []
    for name in severity.split(","):
        try:
            severities.append(parse_severity(name))
        except OptionError as exc:
            logger.warning("unknown severity option: %s", exc)
            severities.append(Severity.UNKNOWN)
    return severities