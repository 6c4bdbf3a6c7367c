"""Shared pytest fixtures for the notesummarizer test suite."""

import logging
from pathlib import Path
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

from notesummarizer.models import Document
from notesummarizer.resources import ResourceContext


# ---------------------------------------------------------------------------
# Logger isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_notesummarizer_logger():
    """Clear the notesummarizer logger between tests.

    ``setup_logging()`` attaches handlers and sets ``propagate=False``.
    Without this fixture the state leaks into subsequent tests and breaks
    ``caplog`` capture.
    """
    logger = logging.getLogger("notesummarizer")
    for h in logger.handlers[:]:
        try:
            h.close()
        except Exception:
            pass
        logger.removeHandler(h)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    yield
    for h in logger.handlers[:]:
        try:
            h.close()
        except Exception:
            pass
        logger.removeHandler(h)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def resources() -> ResourceContext:
    return ResourceContext.default()


# ---------------------------------------------------------------------------
# Minimal PDF builder
# ---------------------------------------------------------------------------


def pdf_from_objects(objects: list[bytes]) -> bytes:
    """Serialize object bodies (numbered from 1, object 1 is the catalog)."""
    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (
        len(objects) + 1,
        xref,
    )
    return bytes(out)


def stream(data: bytes, extra: bytes = b"") -> bytes:
    return b"<< /Length %d %s>>\nstream\n" % (len(data), extra) + data + b"\nendstream"


HELVETICA = b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>"


def text_content(lines: list[str]) -> bytes:
    """Content stream showing each line 14pt below the previous one."""
    ops = [b"BT /F1 12 Tf 72 720 Td"]
    for index, line in enumerate(lines):
        if index:
            ops.append(b"0 -14 Td")
        ops.append(b"(%s) Tj" % line.encode("latin-1"))
    ops.append(b"ET")
    return b"\n".join(ops)


def text_pdf(pages: list[list[str]]) -> bytes:
    """A PDF with one Helvetica text page per entry of ``pages``."""
    page_numbers = [4 + 2 * i for i in range(len(pages))]
    kids = b" ".join(b"%d 0 R" % n for n in page_numbers)
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [%s] /Count %d >>" % (kids, len(pages)),
        HELVETICA,
    ]
    for number, lines in zip(page_numbers, pages):
        objects.append(
            b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            b"/Resources << /Font << /F1 3 0 R >> >> /Contents %d 0 R >>" % (number + 1)
        )
        objects.append(stream(text_content(lines)))
    return pdf_from_objects(objects)


def single_page_pdf(content: bytes, page_resources: bytes, extra: list[bytes]) -> bytes:
    """One page whose resources refer to ``extra`` objects numbered from 5."""
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Resources " + page_resources + b" /Contents 4 0 R >>",
        stream(content),
        *extra,
    ]
    return pdf_from_objects(objects)


@pytest.fixture
def write_pdf(tmp_path) -> Callable[[bytes, str], Path]:
    def _write(data: bytes, name: str = "paper.pdf") -> Path:
        path = tmp_path / name
        path.write_bytes(data)
        return path

    return _write


# ---------------------------------------------------------------------------
# Fake host
# ---------------------------------------------------------------------------


class FakeHost:
    """In-memory stand-in for the reference-manager host."""

    def __init__(
        self,
        documents: list[Document] | None = None,
        preferences: dict[str, Any] | None = None,
        file_path: str = "",
    ) -> None:
        self.documents = list(documents or [])
        self.preferences = {"markdown": True, "ai-model": "llama3.1", "pageNum": "5"}
        self.preferences.update(preferences or {})
        self.file_path = file_path
        self.state: dict[str, Any] = {"processingState.general": "0"}
        self.updated: list[Document] = []
        self.log = MagicMock()
        self.registered_preferences: dict[str, dict] = {}
        self.command_handlers: dict[str, Callable] = {}
        self.external_commands: list[tuple[str, str, str]] = []
        self.menu_handlers: list[Callable] = []
        self.context_menus: dict[str, list[dict]] = {}

    # Host
    def selected_documents(self) -> list[Document]:
        return list(self.documents)

    def get_preference(self, key: str) -> Any:
        return self.preferences.get(key)

    def access_file(self, url: str) -> str:
        return self.file_path or url

    def update_document(self, document: Document) -> None:
        self.updated.append(document.model_copy())

    def get_state(self, key: str) -> Any:
        return self.state.get(key)

    def set_state(self, key: str, value: Any) -> None:
        self.state[key] = value

    # ExtensionHost
    def register_preferences(self, extension_id: str, defaults: dict) -> None:
        self.registered_preferences[extension_id] = defaults

    def unregister_preferences(self, extension_id: str) -> None:
        self.registered_preferences.pop(extension_id, None)

    def on_command(self, event: str, callback: Callable) -> Callable[[], None]:
        self.command_handlers[event] = callback
        return lambda: self.command_handlers.pop(event, None)

    def register_external_command(self, command_id: str, description: str, event: str):
        entry = (command_id, description, event)
        self.external_commands.append(entry)
        return lambda: self.external_commands.remove(entry)

    def on_context_menu(self, callback: Callable) -> Callable[[], None]:
        self.menu_handlers.append(callback)
        return lambda: self.menu_handlers.remove(callback)

    def register_context_menu(self, extension_id: str, items: list[dict]) -> None:
        self.context_menus[extension_id] = items

    def unregister_context_menu(self, extension_id: str) -> None:
        self.context_menus.pop(extension_id, None)


@pytest.fixture
def paper() -> Document:
    return Document(
        id="paper-1",
        title="Attention Is All You Need",
        main_url="file:///papers/attention.pdf",
    )


@pytest.fixture
def fake_host(paper) -> FakeHost:
    return FakeHost(documents=[paper])
