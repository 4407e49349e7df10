from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from search_pdf_context import (
    DEFAULT_CONTEXT_SIZE,
    ContextWindow,
    effective_context_size,
    extract_context,
    utf8_offsets,
)
from search_pdf_documents import Document, PageError, warn
from search_pdf_pages import PageRange, partition
from search_pdf_render import DEFAULT_GATE, RenderGate, page_output_path

DEFAULT_THREADS = 10


class SearchWorkerError(RuntimeError):
    pass


@dataclass(frozen=True)
class SearchJob:
    """Settings shared read-only by every worker of a search."""

    pattern: str
    context_size: int = DEFAULT_CONTEXT_SIZE
    save_images: bool = False
    output_dir: Path | None = None
    image_format: str = "png"

    @property
    def half_width(self) -> int:
        return effective_context_size(self.context_size)


@dataclass(frozen=True)
class Match:
    document: str
    page_index: int
    start: int
    end: int
    byte_start: int
    byte_end: int
    window: ContextWindow
    image_path: Path | None = None
    document_order: int = 0

    @property
    def page_number(self) -> int:
        return self.page_index + 1

    @property
    def text(self) -> str:
        return self.window.match


def compile_pattern(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        raise ValueError(f"invalid regex {pattern!r}: {exc}") from exc


def find_matches(regex: re.Pattern[str], text: str) -> Iterator[tuple[int, int]]:
    # finditer steps past empty matches, so zero-width patterns terminate.
    for m in regex.finditer(text):
        yield m.start(), m.end()


def search_page_range(
    document: Document,
    page_range: PageRange,
    job: SearchJob,
    regex: re.Pattern[str],
    emitter,
    gate: RenderGate,
    document_order: int = 0,
) -> int:
    """Search the pages of one range and emit every match; return the count."""
    found = 0
    for index in page_range:
        try:
            page = document.get_page(index)
            text = page.text()
        except PageError as exc:
            warn(f"could not get page {index + 1} of {document.name}: {exc}")
            continue

        for start, end in find_matches(regex, text):
            try:
                window = extract_context(text, start, end, job.half_width)
                byte_start, byte_end = utf8_offsets(text, start, end)
            except (ValueError, UnicodeError) as exc:
                warn(f"skipping match at {start} on page {index + 1}: {exc}")
                continue

            image_path = None
            if job.save_images:
                target = page_output_path(job.output_dir, index, job.image_format)
                if gate.render(page, target):
                    image_path = target

            emitter.emit(
                Match(
                    document=document.name,
                    page_index=index,
                    start=start,
                    end=end,
                    byte_start=byte_start,
                    byte_end=byte_end,
                    window=window,
                    image_path=image_path,
                    document_order=document_order,
                )
            )
            found += 1
    return found


def search_document(
    document: Document,
    job: SearchJob,
    emitter,
    *,
    threads: int = DEFAULT_THREADS,
    gate: RenderGate | None = None,
    document_order: int = 0,
) -> int:
    """Search every page of ``document`` with one worker per page range.

    Returns once all workers have finished. A worker that dies with an
    unexpected exception makes the whole search fail with SearchWorkerError.
    """
    regex = compile_pattern(job.pattern)
    gate = gate or DEFAULT_GATE
    ranges = partition(document.page_count, threads)
    if not ranges:
        return 0

    futures = []
    with ThreadPoolExecutor(max_workers=len(ranges), thread_name_prefix="search-pdf") as executor:
        for page_range in ranges:
            try:
                futures.append(
                    executor.submit(
                        search_page_range, document, page_range, job, regex, emitter, gate, document_order
                    )
                )
            except RuntimeError as exc:
                # Workers already started still run to completion before the raise.
                raise SearchWorkerError(
                    f"could not start worker for pages {page_range.start + 1}-{page_range.end}: {exc}"
                ) from exc

    total = 0
    for page_range, future in zip(ranges, futures):
        try:
            total += future.result()
        except Exception as exc:
            raise SearchWorkerError(
                f"worker for pages {page_range.start + 1}-{page_range.end} failed: {exc}"
            ) from exc
    return total
