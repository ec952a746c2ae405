"""Configuration for the server command."""

from __future__ import annotations

from dataclasses import dataclass, field

from vulnscope.options import (
    CacheOption,
    CliContext,
    DBOption,
    GlobalOption,
    new_cache_option,
    new_db_option,
    new_global_option,
)


@dataclass
class ServerConfig:
    global_option: GlobalOption = field(default_factory=GlobalOption)
    db: DBOption = field(default_factory=DBOption)
    cache: CacheOption = field(default_factory=CacheOption)

    listen: str = ""
    token: str = ""
    token_header: str = ""

    def init(self) -> None:
        self.db.init()
        self.cache.init()


def new_server_config(ctx: CliContext) -> ServerConfig:
    return ServerConfig(
        global_option=new_global_option(ctx),
        db=new_db_option(ctx),
        cache=new_cache_option(ctx),
        listen=ctx._str("listen"),
        token=ctx._str("token"),
        token_header=ctx._str("token-header"),
    )