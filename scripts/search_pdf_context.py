from __future__ import annotations

from dataclasses import dataclass

# Characters of context on each side of a match when the caller gives none.
DEFAULT_CONTEXT_SIZE = 100


@dataclass(frozen=True)
class ContextWindow:
    text: str
    start: int
    end: int
    highlight_start: int
    highlight_end: int

    @property
    def before(self) -> str:
        return self.text[: self.highlight_start]

    @property
    def match(self) -> str:
        return self.text[self.highlight_start : self.highlight_end]

    @property
    def after(self) -> str:
        return self.text[self.highlight_end :]


def effective_context_size(context_size: int | None) -> int:
    if context_size is None or context_size <= 0:
        return DEFAULT_CONTEXT_SIZE
    return context_size


def extract_context(
    text: str,
    match_start: int,
    match_end: int,
    context_size: int | None = None,
) -> ContextWindow:
    """Return the window of text around [match_start, match_end).

    Offsets are codepoint offsets into ``text``; the window spans
    ``context_size`` characters on each side, clamped to the text bounds.
    The highlight offsets are relative to the window.
    """
    half_width = effective_context_size(context_size)
    length = len(text)

    match_start = min(max(match_start, 0), length)
    match_end = min(max(match_end, match_start), length)

    start = max(0, match_start - half_width)
    end = min(length, match_end + half_width)
    return ContextWindow(
        text=text[start:end],
        start=start,
        end=end,
        highlight_start=match_start - start,
        highlight_end=match_end - start,
    )


def utf8_offsets(text: str, start: int, end: int) -> tuple[int, int]:
    """Translate codepoint offsets into UTF-8 byte offsets."""
    byte_start = len(text[:start].encode("utf-8", errors="surrogatepass"))
    byte_end = byte_start + len(text[start:end].encode("utf-8", errors="surrogatepass"))
    return byte_start, byte_end
