"""Options for the local artifact scanning commands."""

from __future__ import annotations

from dataclasses import dataclass, field

from vulnscope.options import (
    ArtifactOption,
    CacheOption,
    CliContext,
    ConfigOption,
    DBOption,
    GlobalOption,
    ImageOption,
    ReportOption,
    new_artifact_option,
    new_cache_option,
    new_config_option,
    new_db_option,
    new_global_option,
    new_image_option,
    new_report_option,
)


@dataclass
class ScanOption:
    """Every option group an artifact scan uses."""

    global_option: GlobalOption = field(default_factory=GlobalOption)
    artifact: ArtifactOption = field(default_factory=ArtifactOption)
    db: DBOption = field(default_factory=DBOption)
    image: ImageOption = field(default_factory=ImageOption)
    report: ReportOption = field(default_factory=ReportOption)
    cache: CacheOption = field(default_factory=CacheOption)
    config: ConfigOption = field(default_factory=ConfigOption)
    # Set by each scanning mode, never by the user.
    disabled_analyzers: list[str] = field(default_factory=list)

    def init(self) -> None:
        """Validate the option groups and resolve the scan target."""
        logger = self.global_option.logger
        self.report.init(logger)
        self.db.init()
        self.cache.init()

        # --clear-cache, --download-db-only and --reset don't scan anything.
        if self.skip_scan():
            return

        self.artifact.init(self.global_option.context, logger)

    def skip_scan(self) -> bool:
        return self.artifact.clear_cache or self.db.download_db_only or self.db.reset


def new_scan_option(ctx: CliContext) -> ScanOption:
    return ScanOption(
        global_option=new_global_option(ctx),
        artifact=new_artifact_option(ctx),
        db=new_db_option(ctx),
        image=new_image_option(ctx),
        report=new_report_option(ctx),
        cache=new_cache_option(ctx),
        config=new_config_option(ctx),
    )