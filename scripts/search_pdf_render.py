from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import fitz  # PyMuPDF

from search_pdf_documents import Page, PageError, Source, open_document, warn

RENDER_DPI = 300
POINTS_PER_INCH = 72.0
Writer = Callable[[Page, Path], None]


class RenderError(RuntimeError):
    pass


@dataclass(frozen=True)
class RenderTask:
    page_index: int
    output_path: Path


def page_output_path(output_dir: str | Path | None, page_index: int, fmt: str = "png") -> Path:
    """Return ``<output_dir>/page_NNN.<fmt>`` for a 0-based page index."""
    name = f"page_{page_index:03d}.{fmt}"
    if output_dir is None or str(output_dir) == "":
        return Path(name)
    return Path(output_dir) / name


def _pixel_size(page: Page) -> tuple[int, int]:
    pixel_width = int(page.width * RENDER_DPI / POINTS_PER_INCH)
    pixel_height = int(page.height * RENDER_DPI / POINTS_PER_INCH)
    if pixel_width <= 0 or pixel_height <= 0:
        raise RenderError(f"page {page.index} has no drawable area ({page.width}x{page.height} pt)")
    return pixel_width, pixel_height


def write_png(page: Page, output_path: Path) -> None:
    pixel_width, pixel_height = _pixel_size(page)
    matrix = fitz.Matrix(pixel_width / page.width, pixel_height / page.height)

    with page.document.engine() as fz_doc:
        fz_page = fz_doc.load_page(page.index)
        # Crisp text at 300 DPI: no anti-aliasing while drawing this page.
        # The level is global engine state, so put back whatever was set.
        previous_aa_level = fitz.TOOLS.show_aa_level()["graphics"]
        fitz.TOOLS.set_aa_level(0)
        try:
            # alpha=False gives an opaque surface cleared to white.
            pixmap = fz_page.get_pixmap(matrix=matrix, alpha=False)
        except Exception as exc:
            raise RenderError(f"could not draw page {page.index}: {exc}") from exc
        finally:
            fitz.TOOLS.set_aa_level(previous_aa_level)

    try:
        pixmap.save(str(output_path), output="png")
    except Exception as exc:
        raise RenderError(f"could not write {output_path}: {exc}") from exc


def write_pdf(page: Page, output_path: Path) -> None:
    """Write the page as a single-page PDF scaled to the 300 DPI pixel size."""
    pixel_width, pixel_height = _pixel_size(page)

    out = fitz.open()
    try:
        try:
            target = out.new_page(width=pixel_width, height=pixel_height)
            target.draw_rect(target.rect, color=None, fill=(1, 1, 1))
        except Exception as exc:
            raise RenderError(f"could not create PDF surface: {exc}") from exc

        with page.document.engine() as fz_doc:
            try:
                target.show_pdf_page(target.rect, fz_doc, page.index)
            except Exception as exc:
                raise RenderError(f"could not draw page {page.index}: {exc}") from exc

        try:
            out.save(str(output_path))
        except Exception as exc:
            raise RenderError(f"could not write {output_path}: {exc}") from exc
    finally:
        out.close()


WRITERS: dict[str, Writer] = {
    "png": write_png,
    "pdf": write_pdf,
}


class RenderGate:
    """Serializes every call into the rendering backend.

    At most one render body runs at a time across all threads that share the
    gate. The writer is chosen from the output file's suffix.
    """

    def __init__(self, writers: dict[str, Writer] | None = None) -> None:
        self._lock = threading.Lock()
        self.writers = dict(WRITERS if writers is None else writers)

    def render(self, page: Page, output_path: str | Path) -> bool:
        output_path = Path(output_path)
        fmt = output_path.suffix.lstrip(".").lower() or "png"
        writer = self.writers.get(fmt)
        if writer is None:
            raise ValueError(f"Unknown render format: {fmt}")

        with self._lock:
            try:
                output_path.parent.mkdir(parents=True, exist_ok=True)
                writer(page, output_path)
            except Exception as exc:
                warn(f"could not render page {page.index + 1} to {output_path}: {exc}")
                return False
        return True

    def submit(self, task: RenderTask, document) -> bool:
        try:
            page = document.get_page(task.page_index)
        except PageError as exc:
            warn(str(exc))
            return False
        return self.render(page, task.output_path)


# Process-wide gate used when callers do not inject their own.
DEFAULT_GATE = RenderGate()


def render_page_from_document(
    source: Source,
    page_index: int,
    output_path: str | Path,
    gate: RenderGate | None = None,
) -> bool:
    """Open ``source``, render one page through the gate and close it again."""
    gate = gate or DEFAULT_GATE
    with open_document(source) as document:
        if not 0 <= page_index < document.page_count:
            warn(f"page {page_index} is out of range of {document.name} ({document.page_count} pages)")
            return False
        return gate.submit(RenderTask(page_index, Path(output_path)), document)
