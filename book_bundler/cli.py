from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional, Sequence

from book_bundler.assets import DEFAULT_TIMEOUT
from book_bundler.exporter import DEFAULT_STYLESHEET, ExportSettings, export_book
from book_bundler.metadata import BookSourceError, JsonBookProvider


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bundle a book source file into an HPub archive."
    )
    parser.add_argument(
        "source",
        type=Path,
        help="Path to the JSON book source (metadata, front matter, parts, back matter).",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("exports"),
        help="Directory the archive is written to.",
    )
    parser.add_argument(
        "--stylesheet",
        type=Path,
        default=DEFAULT_STYLESHEET,
        help="Stylesheet copied into the bundle (its images are pulled in too).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Seconds to wait for each remote image.",
    )
    parser.add_argument(
        "--site-url",
        default="",
        help="Public URL of the book; links to this host resolve to bundled pages.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only report the final result.",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.source.exists():
        parser.error(f"Book source {args.source} does not exist.")
    if args.timeout <= 0:
        parser.error("Timeout must be a positive number of seconds.")

    settings = ExportSettings(
        output_dir=args.output_dir,
        stylesheet=args.stylesheet,
        timeout=args.timeout,
        site_url=args.site_url,
        verbose=not args.quiet,
    )
    provider = JsonBookProvider(args.source)
    try:
        provider.get_metadata()
    except BookSourceError as exc:
        parser.error(str(exc))

    result = export_book(provider, settings)
    if not result.success:
        print(f"Export failed: {result.error}")
        return 1
    print(f"Wrote {result.output_path}.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
