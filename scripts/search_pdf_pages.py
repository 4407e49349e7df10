from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PageRange:
    """Half-open interval [start, end) of 0-based page indices."""

    start: int
    end: int

    def __len__(self) -> int:
        return max(0, self.end - self.start)

    def __iter__(self):
        return iter(range(self.start, self.end))


def partition(page_count: int, workers: int) -> list[PageRange]:
    """Split page_count pages into contiguous ranges, one per worker.

    The worker count is clamped to [1, page_count]. Every range but the last
    gets page_count // workers pages; the last one also takes the remainder.
    """
    if page_count <= 0:
        return []
    workers = min(max(workers, 1), page_count)

    base = page_count // workers
    ranges: list[PageRange] = []
    for i in range(workers):
        start = i * base
        end = page_count if i == workers - 1 else start + base
        ranges.append(PageRange(start, end))
    return ranges
