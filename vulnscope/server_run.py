"""Start-up sequence of the server command."""

from __future__ import annotations

import logging
from typing import Any, Callable

from vulnscope.db import Client as DBClient
from vulnscope.operation import Cache, OperationError, download_db, new_cache
from vulnscope.options import OptionError
from vulnscope.server_config import ServerConfig

_logger = logging.getLogger(__name__)

ListenAndServe = Callable[[ServerConfig, Cache], Any]


def run(
    config: ServerConfig,
    listen_and_serve: ListenAndServe,
    db_client: DBClient | None = None,
) -> Any:
    """Prepare cache and database, then hand over to ``listen_and_serve``.

    Returns whatever ``listen_and_serve`` returns, or None when the command
    only resets the cache or downloads the database.
    """
    try:
        config.init()
    except OptionError as exc:
        raise OptionError(f"failed to initialize options: {exc}") from exc

    try:
        cache = new_cache(config.cache, config.global_option.cache_dir)
    except OperationError as exc:
        raise OperationError(f"server cache error: {exc}") from exc

    try:
        _logger.debug("cache dir:  %s", cache.cache_dir)

        if config.db.reset:
            cache.clear_db()
            return None

        download_db(
            config.global_option.app_version,
            cache.cache_dir,
            True,
            config.db.skip_db_update,
            db_client,
        )

        if config.db.download_db_only:
            return None

        return listen_and_serve(config, cache)
    finally:
        cache.close()