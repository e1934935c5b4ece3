"""
Command-line interface.

Sanitizes a single PDF synchronously with the same isolated pipeline the
service uses:

    pdf-cdr input.pdf                  # writes regenerated_input.pdf
    pdf-cdr input.pdf -o clean.pdf --batch-size 10 --dpi 150
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pdf_cdr import __version__
from pdf_cdr.adapters.pdf import PyMuPDFEngine
from pdf_cdr.config.limits import JPEG_QUALITY, PAGE_BATCH_SIZE, RENDER_DPI
from pdf_cdr.core.exceptions import CoreError
from pdf_cdr.core.sanitization import IsolatedRenderer, PdfRegenerator, PipelineConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


def default_output_path(input_path: Path) -> Path:
    """`regenerated_<stem>.<ext>` next to the input."""
    return input_path.with_name(f"regenerated_{input_path.name}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pdf-cdr",
        description="Regenerate a PDF from page images, dropping all active content",
    )
    parser.add_argument("input", type=Path, help="PDF to sanitize")
    parser.add_argument("-o", "--output", type=Path, help="Output path (default: regenerated_<input>)")
    parser.add_argument("--batch-size", type=int, default=PAGE_BATCH_SIZE, help="Pages per chunk")
    parser.add_argument("--dpi", type=int, default=RENDER_DPI, help="Render resolution")
    parser.add_argument("--quality", type=int, default=JPEG_QUALITY, help="JPEG quality (1-100)")
    parser.add_argument(
        "--timeout", type=float, default=DEFAULT_TIMEOUT_SECONDS,
        help="Seconds allowed per isolated render task",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI; returns the process exit code."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    input_path: Path = args.input
    output_path: Path = args.output or default_output_path(input_path)
    if not input_path.is_file():
        print(f"Error: input file not found: {input_path}", file=sys.stderr)
        return 1

    try:
        config = PipelineConfig(batch_size=args.batch_size, dpi=args.dpi, jpeg_quality=args.quality)
        renderer = IsolatedRenderer(timeout=args.timeout, engine_factory=PyMuPDFEngine)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    regenerator = PdfRegenerator(renderer, config)
    try:
        result = regenerator.regenerate(str(input_path), str(output_path), label=input_path.stem)
    except CoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Wrote {result.page_count} pages to {output_path}")
    return 0


def server() -> None:
    """Entry point for `pdf-cdr-server`."""
    from pdf_cdr.api.sanitise_api import run_server

    run_server()


if __name__ == "__main__":
    sys.exit(main())
