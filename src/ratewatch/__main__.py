import asyncio
import os
import sys
from datetime import datetime, timezone

import structlog

from ratewatch.cli import parse_args
from ratewatch.discovery import RolloutSessionDiscovery
from ratewatch.errors import ConfigError
from ratewatch.logging import setup_logging
from ratewatch.render import render_report
from ratewatch.report import StatusReportBuilder

logger = structlog.get_logger()


def main(argv: "list[str] | None" = None) -> "None":
    try:
        config = parse_args(argv)
    except ConfigError as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        raise SystemExit(1) from e

    setup_logging(config.log_level)
    logger.debug("config_loaded", codex_home=config.codex_home)

    builder = StatusReportBuilder(config, RolloutSessionDiscovery())
    report = asyncio.run(builder.build())

    now = datetime.now(timezone.utc)
    sys.stdout.write(render_report(report, now, None, os.path.expanduser("~")))


if __name__ == "__main__":
    main()
