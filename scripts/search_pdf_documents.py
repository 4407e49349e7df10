from __future__ import annotations

import os
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Sequence, Union

import fitz  # PyMuPDF

from search_pdf_pages import partition

Source = Union[str, Path, bytes]


class DocumentOpenError(Exception):
    pass


class PageError(Exception):
    pass


def warn(message: str) -> None:
    # One write per line so messages from concurrent workers stay whole.
    sys.stderr.write(f"WARNING: {message}\n")


@dataclass(frozen=True)
class Page:
    document: "Document"
    index: int
    width: float
    height: float

    def text(self) -> str:
        return self.document.page_text(self.index)


class Document:
    """An open PDF shared by all search workers.

    PyMuPDF must not be entered concurrently for the same document, so every
    engine call goes through ``engine()``, which holds the document lock.
    """

    def __init__(self, fz_doc: fitz.Document, name: str) -> None:
        self.name = name
        self._doc: fitz.Document | None = fz_doc
        self._lock = threading.Lock()
        self.page_count = fz_doc.page_count

    def __enter__(self) -> "Document":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else f"{self.page_count} pages"
        return f"<Document {self.name!r} {state}>"

    @property
    def closed(self) -> bool:
        return self._doc is None

    @contextmanager
    def engine(self) -> Iterator[fitz.Document]:
        with self._lock:
            if self._doc is None:
                raise PageError(f"document is closed: {self.name}")
            yield self._doc

    def get_page(self, index: int) -> Page:
        if not 0 <= index < self.page_count:
            raise PageError(f"page {index} out of range (0..{self.page_count - 1})")
        with self.engine() as fz_doc:
            try:
                rect = fz_doc.load_page(index).rect
            except Exception as exc:
                raise PageError(f"could not load page {index}: {exc}") from exc
        return Page(self, index, rect.width, rect.height)

    def page_text(self, index: int) -> str:
        if not 0 <= index < self.page_count:
            raise PageError(f"page {index} out of range (0..{self.page_count - 1})")
        with self.engine() as fz_doc:
            try:
                return fz_doc.load_page(index).get_text("text") or ""
            except Exception as exc:
                raise PageError(f"could not read text of page {index}: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            if self._doc is not None:
                self._doc.close()
                self._doc = None


def _source_name(source: Source) -> str:
    if isinstance(source, bytes):
        return "<bytes>"
    return str(source)


def open_document(source: Source, name: str | None = None) -> Document:
    """Open a PDF from a path or from its raw bytes."""
    name = name or _source_name(source)
    if isinstance(source, bytes):
        data = source
    else:
        try:
            data = Path(source).read_bytes()
        except (OSError, ValueError, TypeError) as exc:
            raise DocumentOpenError(f"could not read {name}: {exc}") from exc

    try:
        fz_doc = fitz.open(stream=data, filetype="pdf")
    except Exception as exc:
        raise DocumentOpenError(f"could not open {name}: {exc}") from exc
    return Document(fz_doc, name)


def open_documents(sources: Sequence[Source], max_workers: int | None = None) -> list[Document]:
    """Open every source concurrently; return all documents or none.

    The result follows the order of ``sources``. If any open fails, the
    documents that did open are closed and the first failure is raised.
    """
    if not sources:
        raise ValueError("no documents given")

    documents: list[Document] = []
    failures: list[Exception] = []
    with ThreadPoolExecutor(max_workers=max_workers or len(sources)) as executor:
        futures = [executor.submit(open_document, source) for source in sources]
        for future in futures:
            try:
                documents.append(future.result())
            except Exception as exc:
                failures.append(exc)

    if failures:
        for document in documents:
            document.close()
        raise failures[0]
    return documents


def read_pdf_text(source: Source, threads: int | None = None) -> list[str]:
    """Extract the text of every page in parallel, in page order.

    Pages that cannot be read come back as empty strings.
    """

    def read_range(document: Document, page_range) -> list[str]:
        texts: list[str] = []
        for index in page_range:
            try:
                texts.append(document.page_text(index))
            except PageError as exc:
                warn(str(exc))
                texts.append("")
        return texts

    with open_document(source) as document:
        ranges = partition(document.page_count, threads or os.cpu_count() or 1)
        if not ranges:
            return []
        with ThreadPoolExecutor(max_workers=len(ranges)) as executor:
            chunks = list(executor.map(lambda r: read_range(document, r), ranges))
    return [text for chunk in chunks for text in chunk]
