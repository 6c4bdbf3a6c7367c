"""PDF text extractor — linear text from the first N pages, built on pypdf.

pypdf parses the document structure and tokenizes each page's content stream;
this module interprets the text operators (``BT``/``ET``, ``Tf``, ``Tj``,
``TJ``, ``'``, ``"``, ``T*``, ``Td``, ``TD``, ``Tm``, ``TL``) and Form
XObjects, decoding strings with ``fonts.build_decoder``.

Only pages ``0 .. page_limit - 1`` have their content read.  The text of each
page ends with a newline, so the result for ``page_limit = n`` is always a
prefix of the result for ``n + 1``.

Failures never reach the caller: an unreadable file, an encrypted document or
a decoder error is logged and an empty string is returned.
"""

import io
import logging
from pathlib import Path
from typing import Any

from pypdf import PasswordType, PdfReader
from pypdf.generic import ContentStream, IndirectObject

from notesummarizer.fonts import FontDecoder, build_decoder
from notesummarizer.models import DEFAULT_PAGE_LIMIT, ExtractionError, parse_page_limit
from notesummarizer.resources import ResourceContext

logger = logging.getLogger(__name__)

_MAX_FORM_DEPTH = 8

# TJ adjustments below this (in 1/1000 em) are kerning, above it a word gap.
_TJ_SPACE_THRESHOLD = 200

# Horizontal gap, as a fraction of the font size, treated as a word break.
_WORD_GAP = 0.15

# Vertical move, as a fraction of the font size, treated as a line break.
_LINE_GAP = 0.5


def extract_text(
    file_path: str | Path,
    page_limit: int = DEFAULT_PAGE_LIMIT,
    resources: ResourceContext | None = None,
) -> str:
    """Return the text of the first ``page_limit`` pages of a PDF.

    Args:
        file_path:  Local path to the PDF.
        page_limit: Number of leading pages to read; must be a positive int.
        resources:  Bundled CMap/font resources; ``ResourceContext.default()``
                    when omitted.

    Returns:
        The concatenated text in content-stream order, or ``""`` when the file
        cannot be read or decoded.

    Raises:
        ConfigError: if ``page_limit`` is not a positive integer.  This is
            checked before the file is opened.
    """
    page_limit = parse_page_limit(page_limit)
    path = Path(file_path)
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.error("Failed to read PDF %s: %s", path, e)
        return ""

    try:
        return _extract(data, page_limit, resources or ResourceContext.default(), path.name)
    except Exception as e:
        logger.error("Failed to get PDF text from %s: %s", path.name, e)
        return ""


def _extract(data: bytes, page_limit: int, resources: ResourceContext, source: str) -> str:
    try:
        reader = PdfReader(io.BytesIO(data))
    except Exception as e:
        raise ExtractionError(f"Failed to open {source}: {e}") from e

    if reader.is_encrypted and reader.decrypt("") == PasswordType.NOT_DECRYPTED:
        raise ExtractionError(f"{source} is encrypted")

    total = len(reader.pages)
    count = min(page_limit, total)
    walker = _TextWalker(reader, resources)
    text = "".join(walker.page_text(reader.pages[index]) for index in range(count))
    logger.info(
        "Extracted %s chars from %d/%d pages of %s",
        f"{len(text):,}",
        count,
        total,
        source,
    )
    return text


# ---------------------------------------------------------------------------
# Content stream walk
# ---------------------------------------------------------------------------


class _TextSink:
    """Accumulates decoded text, collapsing redundant separators."""

    def __init__(self) -> None:
        self._parts: list[str] = []

    def _last(self) -> str:
        for part in reversed(self._parts):
            if part:
                return part[-1]
        return ""

    def write(self, text: str) -> None:
        if text:
            self._parts.append(text)

    def space(self) -> None:
        last = self._last()
        if last and not last.isspace():
            self._parts.append(" ")

    def newline(self) -> None:
        last = self._last()
        if last and last != "\n":
            self._parts.append("\n")

    def text(self) -> str:
        self.newline()
        return "".join(self._parts)


class _TextState:
    """Text position tracking, in user-space units along the baseline."""

    def __init__(self) -> None:
        self.decoder: FontDecoder | None = None
        self.size = 0.0
        self.leading = 0.0
        self.begin()
        self.last_x: float | None = None
        self.last_y: float | None = None

    def begin(self) -> None:
        self.scale_x = 1.0
        self.scale_y = 1.0
        self.line_x = 0.0
        self.line_y = 0.0
        self.pen_x = 0.0

    def move(self, tx: float, ty: float) -> None:
        self.line_x += tx * self.scale_x
        self.line_y += ty * self.scale_y
        self.pen_x = self.line_x

    def next_line(self) -> None:
        self.move(0.0, -self.leading)

    def set_matrix(self, a: float, d: float, e: float, f: float) -> None:
        self.scale_x = a or 1.0
        self.scale_y = d or 1.0
        self.line_x = e
        self.line_y = f
        self.pen_x = e

    def advance(self, thousandths: float) -> None:
        self.pen_x += thousandths / 1000 * self.size * self.scale_x


class _TextWalker:
    def __init__(self, reader: PdfReader, resources: ResourceContext) -> None:
        self.reader = reader
        self.resources = resources
        self._decoders: dict[Any, FontDecoder] = {}

    def page_text(self, page: Any) -> str:
        contents = page.get_contents()
        if contents is None:
            return ""
        sink = _TextSink()
        self._walk(contents.operations, _resolve(page.get("/Resources")), sink, 0)
        return sink.text()

    def _walk(self, operations: list, resources: Any, sink: _TextSink, depth: int) -> None:
        state = _TextState()
        for operands, operator in operations:
            if operator == b"BT":
                state.begin()
            elif operator == b"Tf" and len(operands) >= 2:
                state.decoder = self._decoder(resources, operands[0])
                state.size = abs(float(operands[1])) or 1.0
            elif operator == b"TL" and operands:
                state.leading = float(operands[0])
            elif operator == b"Td" and len(operands) >= 2:
                state.move(float(operands[0]), float(operands[1]))
            elif operator == b"TD" and len(operands) >= 2:
                state.leading = -float(operands[1])
                state.move(float(operands[0]), float(operands[1]))
            elif operator == b"Tm" and len(operands) >= 6:
                a, _, _, d, e, f = (float(x) for x in operands[:6])
                state.set_matrix(a, d, e, f)
            elif operator == b"T*":
                state.next_line()
            elif operator == b"Tj" and operands:
                self._show(state, sink, operands[0])
            elif operator == b"'" and operands:
                state.next_line()
                self._show(state, sink, operands[0])
            elif operator == b'"' and len(operands) >= 3:
                state.next_line()
                self._show(state, sink, operands[2])
            elif operator == b"TJ" and operands:
                self._show_array(state, sink, operands[0])
            elif operator == b"Do" and operands and depth < _MAX_FORM_DEPTH:
                self._form(resources, operands[0], sink, depth)

    def _show(self, state: _TextState, sink: _TextSink, operand: Any) -> None:
        if state.decoder is None:
            return
        size = state.size or 1.0
        if state.last_y is not None:
            if abs(state.line_y - state.last_y) > _LINE_GAP * size * abs(state.scale_y):
                sink.newline()
            elif state.pen_x - state.last_x > _WORD_GAP * size * abs(state.scale_x):
                sink.space()
        for text, width in state.decoder.decode(_raw_bytes(operand)):
            sink.write(text)
            state.advance(width)
        state.last_x = state.pen_x
        state.last_y = state.line_y

    def _show_array(self, state: _TextState, sink: _TextSink, array: Any) -> None:
        for item in array:
            if isinstance(item, (int, float)):
                adjustment = float(item)
                if -adjustment > _TJ_SPACE_THRESHOLD:
                    sink.space()
                state.advance(-adjustment)
                state.last_x = state.pen_x
            else:
                self._show(state, sink, item)

    def _form(self, resources: Any, name: Any, sink: _TextSink, depth: int) -> None:
        xobjects = _resolve(resources.get("/XObject")) if resources is not None else None
        xobject = _resolve(xobjects.get(name)) if xobjects is not None else None
        if xobject is None or _resolve(xobject.get("/Subtype")) != "/Form":
            return
        form_resources = _resolve(xobject.get("/Resources")) or resources
        sink.newline()
        self._walk(ContentStream(xobject, self.reader).operations, form_resources, sink, depth + 1)
        sink.newline()

    def _decoder(self, resources: Any, name: Any) -> FontDecoder | None:
        fonts = _resolve(resources.get("/Font")) if resources is not None else None
        if fonts is None or name not in fonts:
            logger.debug("Font %s not found in page resources", name)
            return None
        raw = fonts.raw_get(name)
        if isinstance(raw, IndirectObject):
            key: Any = (raw.idnum, raw.generation)
        else:
            key = id(raw)
        decoder = self._decoders.get(key)
        if decoder is None:
            decoder = build_decoder(_resolve(raw), self.resources)
            self._decoders[key] = decoder
        return decoder


def _raw_bytes(operand: Any) -> bytes:
    """Recover the undecoded bytes of a string operand.

    pypdf turns string literals into ``TextStringObject`` when they happen to
    decode; ``original_bytes`` gives back what was in the content stream.
    """
    original = getattr(operand, "original_bytes", None)
    if original is not None:
        return bytes(original)
    if isinstance(operand, bytes):
        return bytes(operand)
    return str(operand).encode("latin-1", "replace")


def _resolve(obj: Any) -> Any:
    if obj is None:
        return None
    return obj.get_object() if hasattr(obj, "get_object") else obj
