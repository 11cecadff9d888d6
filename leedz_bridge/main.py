"""
Entry points for the Leedz MCP bridge daemons.

Usage:
    leedz-translator [--config PATH] [--log-level LEVEL]
    leedz-mailer [--config PATH] [--log-level LEVEL]
    leedz-bridge {translator,mailer} [--config PATH] [--log-level LEVEL]

Both daemons speak line-delimited JSON-RPC on stdin/stdout. Nothing but
JSON-RPC replies may be written to stdout; logs go to file and stderr.
"""

import argparse
import sys
import threading
from typing import List, Optional

from .__version__ import __version__
from .core.lifecycle import run_daemon
from .servers.mailer import create_mailer
from .servers.translator import create_translator
from .utils.config import load_config
from .utils.logger import setup_logger

DAEMONS = ("translator", "mailer")


def _build_parser(prog: str, with_daemon: bool = False) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Leedz MCP tool bridge (JSON-RPC over stdio)",
    )
    if with_daemon:
        parser.add_argument("daemon", choices=DAEMONS, help="Which tool server to run")
    parser.add_argument("--config", help="Path to the daemon's JSON config file")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured log level",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _configure(kind: str, args: argparse.Namespace) -> dict:
    config = load_config(kind, args.config)
    logging_cfg = config.get("logging", {})
    logger = setup_logger(
        log_file=logging_cfg.get("file"),
        level=args.log_level or logging_cfg.get("level", "INFO"),
    )
    logger.info(f"Leedz bridge {__version__} starting {kind}")
    return config


def run_translator(args: argparse.Namespace) -> int:
    config = _configure("translator", args)
    server, control_plane = create_translator(config)

    # Key lookup and health check may hit the network; keep stdio responsive
    threading.Thread(
        target=server.prepare_llm, name="llm-prepare", daemon=True
    ).start()

    return run_daemon(server, control_plane)


def run_mailer(args: argparse.Namespace) -> int:
    config = _configure("mailer", args)
    server, control_plane = create_mailer(config)
    return run_daemon(server, control_plane, cleanup=[server.token_store.shutdown])


_RUNNERS = {"translator": run_translator, "mailer": run_mailer}


def translator_main(argv: Optional[List[str]] = None) -> None:
    args = _build_parser("leedz-translator").parse_args(argv)
    sys.exit(run_translator(args))


def mailer_main(argv: Optional[List[str]] = None) -> None:
    args = _build_parser("leedz-mailer").parse_args(argv)
    sys.exit(run_mailer(args))


def main(argv: Optional[List[str]] = None) -> None:
    args = _build_parser("leedz-bridge", with_daemon=True).parse_args(argv)
    sys.exit(_RUNNERS[args.daemon](args))


if __name__ == "__main__":
    main()
