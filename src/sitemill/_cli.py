"""Sitemill CLI — sitemill build / sitemill dev.

Entry point for the ``sitemill`` command-line interface.
"""

from __future__ import annotations

import argparse
import sys

from sitemill._errors import SitemillError


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the sitemill CLI."""
    parser = argparse.ArgumentParser(
        prog="sitemill",
        description="Sitemap-driven static site builder.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # sitemill build
    build_parser = subparsers.add_parser(
        "build",
        help="Build the site into the build directory",
    )
    build_parser.add_argument("root", nargs="?", default=".", help="Site root directory")
    build_parser.add_argument("--build-dir", default=None, help="Output directory")
    build_parser.add_argument(
        "--glob", default=None, help="Only build destination paths matching this glob",
    )
    build_parser.add_argument(
        "--no-clean",
        dest="clean",
        action="store_false",
        default=None,
        help="Keep output files this build did not produce",
    )

    # sitemill dev
    dev_parser = subparsers.add_parser(
        "dev",
        help="Watch the source tree and keep the sitemap current",
    )
    dev_parser.add_argument("root", nargs="?", default=".", help="Site root directory")
    dev_parser.add_argument(
        "--force-polling",
        action="store_true",
        default=None,
        help="Poll for changes instead of using native file events",
    )
    dev_parser.add_argument(
        "--disable-watcher",
        dest="watcher_disable",
        action="store_true",
        default=None,
        help="Scan once and never listen for changes",
    )

    return parser


def _get_version() -> str:
    """Get the package version."""
    from sitemill import __version__

    return __version__


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from sitemill.app import build, dev

    try:
        if args.command == "build":
            ok = build(
                root=args.root,
                build_dir=args.build_dir,
                glob=args.glob,
                clean=args.clean,
            )
            sys.exit(0 if ok else 1)
        elif args.command == "dev":
            dev(
                root=args.root,
                force_polling=args.force_polling,
                watcher_disable=args.watcher_disable,
            )
    except SitemillError as exc:
        print(f"  Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
