"""Command line entry point: ``face-search``."""

from __future__ import annotations

import argparse


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="face-search",
        description="Run the face-search HTTP service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with a config file
  face-search --config config/face_search.yaml

  # Override the port, config taken from $FACE_SEARCH_CONFIG
  face-search --port 8080
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file (default: $FACE_SEARCH_CONFIG)",
    )

    parser.add_argument(
        "--host",
        type=str,
        help="Bind address (overrides config file setting)",
    )

    parser.add_argument(
        "--port",
        type=int,
        help="Port number (overrides config file setting)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level",
    )

    parser.add_argument(
        "--version",
        action="store_true",
        help="Print the version and exit",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.version:
        from . import __version__

        print(f"face-search {__version__}")
        return

    # Imported here so `--help` and `--version` stay fast
    from .server import serve, setup_logging

    setup_logging(args.log_level)
    serve(config_path=args.config, host_override=args.host, port_override=args.port)


if __name__ == "__main__":
    main()
