"""CLI entrypoint for the fileferry server."""
from __future__ import annotations
import argparse
import os
import pathlib
import uvicorn
from .core.config_loader import load_settings
from .core.errors import ConfigError


def build_parser():
    p = argparse.ArgumentParser(prog="fileferry", description="Background file copy/move service")
    sub = p.add_subparsers(dest="command")
    serve = sub.add_parser("serve", help="Start the HTTP front end")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8765)
    serve.add_argument("--config", help="Path to settings file (YAML)")
    serve.add_argument(
        "--idle-timeout",
        type=float,
        dest="idle_timeout_s",
        help="Seconds of inactivity before the background worker is stopped (default 30)",
    )
    serve.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="Mirror worker output to the log and disable idle auto-stop",
    )
    serve.add_argument(
        "--log-dir",
        help="Directory to write log file (fileferry.log). If not set, only stderr is used.",
    )
    return p


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command != "serve":
        parser.print_help()
        return 1
    # Setup log directory env before app creation (logging module reads env once)
    if args.log_dir:
        log_dir_path = pathlib.Path(args.log_dir)
        log_dir_path.mkdir(parents=True, exist_ok=True)
        os.environ.setdefault("FILEFERRY_LOG_DIR", str(log_dir_path.resolve()))
    try:
        settings = load_settings(
            args.config,
            overrides={"idle_timeout_s": args.idle_timeout_s, "debug": args.debug},
        )
    except ConfigError as e:
        parser.error(str(e))
    from .server import create_app

    app = create_app(settings)
    # add_reader needs the selector loop; uvloop also provides it
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":  # pragma: no cover
    main()
