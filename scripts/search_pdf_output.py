from __future__ import annotations

import json
import sys
import threading
from typing import Protocol, TextIO

from search_pdf_worker import Match

HIGHLIGHT_ON = "\033[47;31m"
HIGHLIGHT_OFF = "\033[0m"
PLAIN_ON = ">>>"
PLAIN_OFF = "<<<"


class Emitter(Protocol):
    def emit(self, match: Match) -> None: ...

    def flush(self) -> None: ...


class _LockedWriter:
    """Writes each formatted block to the stream under one lock."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream if stream is not None else sys.stdout
        self._lock = threading.Lock()

    def _write(self, block: str) -> None:
        with self._lock:
            self.stream.write(block)

    def flush(self) -> None:
        with self._lock:
            self.stream.flush()


class TextEmitter(_LockedWriter):
    def __init__(
        self,
        stream: TextIO | None = None,
        *,
        color: bool = True,
        show_document: bool = False,
    ) -> None:
        super().__init__(stream)
        self.color = color
        self.show_document = show_document

    def format(self, match: Match) -> str:
        on, off = (HIGHLIGHT_ON, HIGHLIGHT_OFF) if self.color else (PLAIN_ON, PLAIN_OFF)
        window = match.window
        prefix = f"{match.document} " if self.show_document else ""
        return (
            f"_____________ {prefix}Page: {match.page_number} ___________________\n"
            f"{window.before}{on}{window.match}{off}{window.after}\n\n"
        )

    def emit(self, match: Match) -> None:
        self._write(self.format(match))


class JsonlEmitter(_LockedWriter):
    def __init__(self, stream: TextIO | None = None, *, context_size: int, tool: str = "search-pdf") -> None:
        super().__init__(stream)
        self.context_size = context_size
        self.tool = tool

    def record(self, match: Match) -> dict[str, object]:
        window = match.window
        return {
            "tool": self.tool,
            "mode": "search",
            "pdf_path": match.document,
            "page": match.page_number,
            "match": match.text,
            "match_start_char": match.start,
            "match_end_char": match.end,
            "match_start_byte": match.byte_start,
            "match_end_byte": match.byte_end,
            "context_size": self.context_size,
            "context": window.text,
            "highlight_start": window.highlight_start,
            "highlight_end": window.highlight_end,
            "image_path": str(match.image_path) if match.image_path else None,
        }

    def emit(self, match: Match) -> None:
        self._write(json.dumps(self.record(match), ensure_ascii=False) + "\n")


class OrderedEmitter:
    """Buffers matches and hands them to ``inner`` in page order on flush."""

    def __init__(self, inner: Emitter) -> None:
        self.inner = inner
        self._matches: list[Match] = []
        self._lock = threading.Lock()

    def emit(self, match: Match) -> None:
        with self._lock:
            self._matches.append(match)

    def flush(self) -> None:
        with self._lock:
            pending, self._matches = self._matches, []
        pending.sort(key=lambda m: (m.document_order, m.page_index, m.start))
        for match in pending:
            self.inner.emit(match)
        self.inner.flush()
