from __future__ import annotations

from pathlib import Path

import fitz  # PyMuPDF
import pytest


def write_pdf(path: Path, pages: list[str]) -> Path:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=11)
    doc.save(str(path))
    doc.close()
    return path


@pytest.fixture
def make_pdf(tmp_path: Path):
    def _make(pages: list[str], name: str = "doc.pdf") -> Path:
        return write_pdf(tmp_path / name, pages)

    return _make
