"""Options for the client command that scans against a remote server."""

from __future__ import annotations

from dataclasses import dataclass, field

from vulnscope.options import (
    ArtifactOption,
    CliContext,
    ConfigOption,
    GlobalOption,
    ImageOption,
    ReportOption,
    new_artifact_option,
    new_config_option,
    new_global_option,
    new_image_option,
    new_report_option,
)

_TOKEN_CHARS = frozenset(
    "!#$%&'*+-.^_`|~0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
)


def _canonical_header_key(key: str) -> str:
    """Capitalise each dash-separated word, as HTTP header names are written."""
    if not key or any(ch not in _TOKEN_CHARS for ch in key):
        return key
    return "-".join(part[:1].upper() + part[1:].lower() for part in key.split("-"))


@dataclass
class ClientOption:
    global_option: GlobalOption = field(default_factory=GlobalOption)
    artifact: ArtifactOption = field(default_factory=ArtifactOption)
    image: ImageOption = field(default_factory=ImageOption)
    report: ReportOption = field(default_factory=ReportOption)
    config: ConfigOption = field(default_factory=ConfigOption)

    # For policy downloading.
    no_progress: bool = False
    # Set by each scanning mode, never by the user.
    disabled_analyzers: list[str] = field(default_factory=list)

    remote_addr: str = ""
    token: str = ""
    token_header: str = ""
    raw_custom_headers: list[str] = field(default_factory=list)
    # Populated by init().
    custom_headers: dict[str, str] = field(default_factory=dict)

    def init(self) -> None:
        """Build the request headers and validate the report and target options."""
        # --clear-cache doesn't scan anything.
        if self.artifact.clear_cache:
            return

        self.custom_headers = split_custom_headers(self.raw_custom_headers)
        if self.token:
            self.custom_headers[_canonical_header_key(self.token_header)] = self.token

        logger = self.global_option.logger
        self.report.init(logger)
        self.artifact.init(self.global_option.context, logger)


def new_client_option(ctx: CliContext) -> ClientOption:
    return ClientOption(
        global_option=new_global_option(ctx),
        artifact=new_artifact_option(ctx),
        image=new_image_option(ctx),
        report=new_report_option(ctx),
        config=new_config_option(ctx),
        no_progress=ctx._bool("no-progress"),
        remote_addr=ctx._str("remote"),
        token=ctx._str("token"),
        token_header=ctx._str("token-header"),
        raw_custom_headers=ctx._list("custom-headers"),
    )


def split_custom_headers(headers: list[str]) -> dict[str, str]:
    """Turn ``name:value`` strings into headers; entries without a colon are dropped."""
    result: dict[str, str] = {}
    for header in headers:
        name, sep, value = header.partition(":")
        if not sep:
            continue
        result[_canonical_header_key(name)] = value
    return result