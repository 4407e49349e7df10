#!/usr/bin/env python
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from search_pdf_context import DEFAULT_CONTEXT_SIZE
from search_pdf_documents import DocumentOpenError, open_documents
from search_pdf_output import JsonlEmitter, OrderedEmitter, TextEmitter
from search_pdf_pages import partition
from search_pdf_render import WRITERS
from search_pdf_worker import (
    DEFAULT_THREADS,
    SearchJob,
    SearchWorkerError,
    compile_pattern,
    search_document,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Search PDFs for a case-insensitive regex using several threads per document "
            "and print every match with surrounding context; optionally render matching pages."
        )
    )
    parser.add_argument("pdf", nargs="+", help="Path(s) to the PDF(s).")
    parser.add_argument("pattern", help="Search term or Python regex (case-insensitive).")
    parser.add_argument(
        "-c",
        "--context",
        type=int,
        default=DEFAULT_CONTEXT_SIZE,
        help=(
            "Characters of context before and after each match. "
            f"0 selects the default. Default: {DEFAULT_CONTEXT_SIZE}."
        ),
    )
    parser.add_argument(
        "-t",
        "--threads",
        type=int,
        default=DEFAULT_THREADS,
        help=f"Worker threads per document (clamped to the page count). Default: {DEFAULT_THREADS}.",
    )
    parser.add_argument(
        "-s",
        "--save-images",
        action="store_true",
        help="Render the page of every match to page_NNN.<format>.",
    )
    parser.add_argument(
        "-p",
        "--path",
        default=None,
        help="Directory for rendered pages (created if missing). Default: current directory.",
    )
    parser.add_argument(
        "--format",
        choices=sorted(WRITERS),
        default="png",
        help="Render format: 300 DPI PNG or a single-page PDF. Default: png.",
    )
    parser.add_argument("--json", action="store_true", help="Emit JSONL records instead of text.")
    parser.add_argument(
        "--ordered",
        action="store_true",
        help="Buffer matches and print them in page order once the search is done.",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Mark matches with >>> <<< instead of ANSI colours.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    if args.context < 0:
        print(f"ERROR: context size must be >= 0, got {args.context}", file=sys.stderr)
        return 2

    try:
        compile_pattern(args.pattern)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    job = SearchJob(
        pattern=args.pattern,
        context_size=args.context,
        save_images=args.save_images,
        output_dir=Path(args.path) if args.path else None,
        image_format=args.format,
    )

    try:
        documents = open_documents(args.pdf)
    except DocumentOpenError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if args.json:
        emitter = JsonlEmitter(sys.stdout, context_size=job.half_width)
    else:
        emitter = TextEmitter(sys.stdout, color=not args.no_color, show_document=len(documents) > 1)
    if args.ordered:
        emitter = OrderedEmitter(emitter)

    try:
        for order, document in enumerate(documents):
            workers = len(partition(document.page_count, args.threads))
            print(
                f'Searching pdf "{document.name}" for the term "{args.pattern}" using {workers} threads',
                file=sys.stderr,
            )
            print(f"Number of Pages: {document.page_count}", file=sys.stderr)
            search_document(document, job, emitter, threads=args.threads, document_order=order)
        emitter.flush()
    except SearchWorkerError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 3
    finally:
        for document in documents:
            document.close()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
