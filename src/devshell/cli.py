"""Command line entry point.

Usage:
    python -m devshell [--config FILE] [--name NAME | --sname NAME]
                       [--script FILE] [--apps a,b,c] [--root DIR]
"""

import argparse
import sys

from . import config
from .bootstrap import bootstrap
from .errors import DevShellError
from .project import OPTION_KEYS, load_project, make_options
from .telemetry import configure_logging, get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devshell",
        description="Start a shell with project components and dependencies loaded.",
    )
    parser.add_argument(
        "--config",
        help="Path to the config file to use. Defaults to the shell config entry "
        "of the project file and then the release sys_config.",
    )
    parser.add_argument("--name", help="Gives a long name to the node.")
    parser.add_argument("--sname", help="Gives a short name to the node.")
    parser.add_argument(
        "--script",
        help="Path to a script to run before starting the project components. "
        f"Use '{config.SCRIPT_DISABLED}' to skip the project default.",
    )
    parser.add_argument(
        "--apps",
        help="Components to boot before starting the shell (e.g. --apps a,b,c). "
        "Defaults to the shell apps entry of the project file or the release apps.",
    )
    parser.add_argument("--root", default=".", help="Project root directory.")
    parser.add_argument("--log-level", default=None, help="Log level (default: DEVSHELL_LOG_LEVEL or INFO).")
    parser.add_argument("--no-shell", action="store_true", help="Bootstrap and exit without the interactive loop.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    options = make_options(**{key: getattr(args, key) for key in OPTION_KEYS})
    logger.debug(f"[CLI] Options: {dict(options)}")
    try:
        project = load_project(args.root)
        session = bootstrap(options, project)
    except DevShellError as e:
        print(f"===> {e}", file=sys.stderr)
        return 1

    if not args.no_shell:
        session.run()
    return 0
