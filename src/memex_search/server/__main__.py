"""CLI entry point for the MCP server.

Allows running the server as a module:
    python -m memex_search.server
"""

import sys
from pathlib import Path

import click

from memex_search.config import load_config
from memex_search.errors import IndexBuildError
from memex_search.indexer.engine import SearchIndex
from memex_search.logging import get_logger, setup_logging
from memex_search.server.app import create_server
from memex_search.server.tools import MemexTools

logger = get_logger("server")


@click.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), help="Path to config.yaml")
@click.option("--build", "build_on_start", is_flag=True, help="Build the index before serving")
def main(config_path: Path | None, build_on_start: bool) -> None:
    """Serve the memex-search tools over MCP stdio."""
    config = load_config(config_path)
    setup_logging("server", log_dir=config.logging.log_dir, level=config.logging.level)

    build_on_start = build_on_start or config.index.build_on_start

    index = SearchIndex(config.index)
    if not index.attach() and build_on_start:
        try:
            index.build(config.archive.history_path)
        except IndexBuildError:
            logger.exception("Initial index build failed; serving with archive fallback")

    server = create_server(MemexTools(index, config.archive))
    logger.info(
        "Memex search server running on stdio: archive=%s workspace=%s db=%s",
        config.archive.history_path,
        config.archive.workspace_path,
        config.index.db_path,
    )
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        index.close()

    sys.exit(0)


if __name__ == "__main__":
    main()
