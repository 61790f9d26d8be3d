import argparse
import os

from ratewatch.config import Config


def parse_args(argv: "list[str] | None" = None) -> "Config":
    """
    builds the Config: environment first, then config.toml,
    then command-line overrides.
    """
    parser = argparse.ArgumentParser(
        prog="ratewatch",
        description="Show model configuration, latest session usage and rate limits",
    )
    parser.add_argument(
        "--codex-home",
        dest="codex_home",
        default=None,
        help="Agent home directory (default: $CODEX_HOME or ~/.codex)",
    )
    parser.add_argument(
        "--model",
        dest="model",
        default=None,
        help="Model name to report instead of the configured one",
    )
    parser.add_argument(
        "--cwd",
        dest="cwd",
        default=None,
        help="Working directory to report (default: current directory)",
    )
    parser.add_argument(
        "--no-live",
        dest="live_fetch",
        action="store_false",
        help="Skip the live rate-limit request and use the session log only",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        default="warning",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: warning)",
    )

    args = parser.parse_args(argv)
    config = Config.from_env()
    if args.codex_home:
        config.codex_home = os.path.expanduser(args.codex_home)
    config.load_file()

    if args.model:
        config.model = args.model
    if args.cwd:
        config.cwd = os.path.abspath(args.cwd)
    config.live_fetch = args.live_fetch
    config.log_level = args.log_level
    return config
