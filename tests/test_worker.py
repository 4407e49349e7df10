from __future__ import annotations

import threading
from pathlib import Path

import pytest

import search_pdf_worker
from search_pdf_documents import PageError, open_document
from search_pdf_pages import PageRange
from search_pdf_worker import (
    SearchJob,
    SearchWorkerError,
    compile_pattern,
    find_matches,
    search_document,
    search_page_range,
)


class CollectingEmitter:
    def __init__(self) -> None:
        self.matches = []
        self._lock = threading.Lock()

    def emit(self, match) -> None:
        with self._lock:
            self.matches.append(match)

    def flush(self) -> None:
        pass


class RecordingGate:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.calls: list[tuple[int, Path]] = []

    def render(self, page, output_path) -> bool:
        self.calls.append((page.index, Path(output_path)))
        return self.ok


class FakePage:
    def __init__(self, index: int, text: str) -> None:
        self.index = index
        self._text = text
        self.width = 100.0
        self.height = 100.0

    def text(self) -> str:
        return self._text


class FakeDocument:
    def __init__(self, texts: list[str | None], name: str = "fake.pdf") -> None:
        self.name = name
        self.texts = texts
        self.page_count = len(texts)

    def get_page(self, index: int) -> FakePage:
        text = self.texts[index]
        if text is None:
            raise PageError(f"page {index} is corrupt")
        return FakePage(index, text)


def test_single_match_in_twenty_five_pages(make_pdf) -> None:
    pages = [f"filler text for page {i}" for i in range(25)]
    pages[12] = "the word foo appears here once"
    emitter = CollectingEmitter()

    with open_document(make_pdf(pages)) as document:
        found = search_document(document, SearchJob("foo", context_size=5), emitter, threads=10)

    assert found == 1
    [match] = emitter.matches
    assert match.page_index == 12
    assert match.page_number == 13
    assert match.text == "foo"
    assert match.window.text == "word foo appe"
    assert match.image_path is None


def test_matching_is_case_insensitive_and_left_to_right() -> None:
    document = FakeDocument(["Foo fOO bar FOO"])
    emitter = CollectingEmitter()
    search_document(document, SearchJob("foo"), emitter, gate=RecordingGate())
    assert [(m.start, m.end) for m in emitter.matches] == [(0, 3), (4, 7), (12, 15)]


def test_bad_page_is_skipped(capsys) -> None:
    document = FakeDocument(["foo", None, "foo"])
    emitter = CollectingEmitter()
    found = search_page_range(
        document, PageRange(0, 3), SearchJob("foo"), compile_pattern("foo"), emitter, RecordingGate()
    )
    assert found == 2
    assert sorted(m.page_index for m in emitter.matches) == [0, 2]
    assert "WARNING: could not get page 2" in capsys.readouterr().err


def test_empty_pattern_terminates() -> None:
    assert list(find_matches(compile_pattern(""), "abc")) == [(0, 0), (1, 1), (2, 2), (3, 3)]

    document = FakeDocument(["abc", ""])
    emitter = CollectingEmitter()
    assert search_document(document, SearchJob(""), emitter, threads=2, gate=RecordingGate()) == 5


def test_invalid_pattern() -> None:
    with pytest.raises(ValueError):
        compile_pattern("(unclosed")


def test_offsets_are_characters_with_byte_offsets_alongside() -> None:
    document = FakeDocument(["日本語のテキスト foo 終わり"])
    emitter = CollectingEmitter()
    search_document(document, SearchJob("foo", context_size=3), emitter, gate=RecordingGate())
    [match] = emitter.matches
    assert (match.start, match.end) == (9, 12)
    assert (match.byte_start, match.byte_end) == (25, 28)
    assert match.window.text == "スト foo 終わ"


def test_every_match_renders_its_page(tmp_path: Path) -> None:
    document = FakeDocument(["foo and foo", "nothing", "foo"])
    gate = RecordingGate()
    emitter = CollectingEmitter()
    job = SearchJob("foo", save_images=True, output_dir=tmp_path)

    assert search_document(document, job, emitter, threads=3, gate=gate) == 3
    assert sorted(gate.calls) == [
        (0, tmp_path / "page_000.png"),
        (0, tmp_path / "page_000.png"),
        (2, tmp_path / "page_002.png"),
    ]
    assert all(m.image_path == tmp_path / f"page_{m.page_index:03d}.png" for m in emitter.matches)


def test_failed_render_still_emits_the_match(tmp_path: Path) -> None:
    emitter = CollectingEmitter()
    job = SearchJob("foo", save_images=True, output_dir=tmp_path, image_format="pdf")
    search_document(FakeDocument(["foo"]), job, emitter, gate=RecordingGate(ok=False))
    [match] = emitter.matches
    assert match.image_path is None


def test_worker_crash_is_fatal() -> None:
    class ExplodingEmitter:
        def emit(self, match) -> None:
            raise RuntimeError("stream closed")

    with pytest.raises(SearchWorkerError):
        search_document(FakeDocument(["foo"] * 4), SearchJob("foo"), ExplodingEmitter(), threads=2)


def test_worker_that_cannot_start_is_fatal(monkeypatch) -> None:
    class ThreadLimitedExecutor(search_pdf_worker.ThreadPoolExecutor):
        started = 0

        def submit(self, *args, **kwargs):
            if ThreadLimitedExecutor.started >= 1:
                raise RuntimeError("can't start new thread")
            ThreadLimitedExecutor.started += 1
            return super().submit(*args, **kwargs)

    monkeypatch.setattr(search_pdf_worker, "ThreadPoolExecutor", ThreadLimitedExecutor)
    emitter = CollectingEmitter()
    with pytest.raises(SearchWorkerError, match="could not start worker for pages 3-4"):
        search_document(FakeDocument(["foo"] * 4), SearchJob("foo"), emitter, threads=2)



def test_empty_document_has_no_workers() -> None:
    emitter = CollectingEmitter()
    assert search_document(FakeDocument([]), SearchJob("foo"), emitter) == 0
    assert emitter.matches == []
