"""Per-font decoders turning PDF string operands into text.

``build_decoder`` inspects a font dictionary and picks the most reliable
source of Unicode it offers, in order:

1. the ``/ToUnicode`` CMap stream;
2. for composite (Type0) fonts, a ``UCS2``/``UTF16`` encoding CMap (codes are
   Unicode already) or the CID-to-Unicode table of the font's
   ``<Registry>-<Ordering>`` character collection;
3. for simple fonts, the ``/Encoding`` (named or with ``/Differences``) or the
   built-in encoding of the standard font.

Each decoded code also carries its advance width in 1/1000 em, which the
extractor uses to tell word gaps from glyph-by-glyph positioning.
"""

import logging
from typing import Any

from pypdf.generic import NameObject, NullObject

from notesummarizer.cmap import CMap, parse_cmap
from notesummarizer.models import ExtractionError
from notesummarizer.resources import ResourceContext, standard_font_file

logger = logging.getLogger(__name__)

_DEFAULT_SIMPLE_WIDTH = 500
_DEFAULT_CID_WIDTH = 1000
_MAX_USECMAP_DEPTH = 4

_CODECS = {
    "WinAnsiEncoding": "cp1252",
    "MacRomanEncoding": "mac_roman",
    "PDFDocEncoding": "latin-1",
}


class FontDecoder:
    """Decode byte strings shown with one font."""

    def __init__(
        self,
        name: str = "",
        *,
        composite: bool = False,
        to_unicode: CMap | None = None,
        encoding: CMap | None = None,
        cid_unicode: CMap | None = None,
        ucs2: bool = False,
        simple_table: dict[int, str] | None = None,
        widths: dict[int, float] | None = None,
        default_width: float = _DEFAULT_SIMPLE_WIDTH,
    ) -> None:
        self.name = name
        self.composite = composite
        self.to_unicode = to_unicode
        self.encoding = encoding
        self.cid_unicode = cid_unicode
        self.ucs2 = ucs2
        self.simple_table = simple_table or {}
        self.widths = widths or {}
        self.default_width = default_width

    def codes(self, data: bytes) -> list[bytes]:
        if not self.composite:
            return [data[i : i + 1] for i in range(len(data))]
        if self.encoding is not None:
            return list(self.encoding.split(data, 2))
        if self.to_unicode is not None and self.to_unicode.codespace:
            return list(self.to_unicode.split(data, 2))
        return [data[i : i + 2] for i in range(0, len(data), 2)]

    def decode(self, data: bytes) -> list[tuple[str, float]]:
        """Return ``(text, width)`` for every character code in ``data``."""
        return [(self._text(code), self._width(code)) for code in self.codes(data)]

    def text(self, data: bytes) -> str:
        return "".join(text for text, _ in self.decode(data))

    def _cid(self, code: bytes) -> int:
        if self.encoding is not None:
            cid = self.encoding.to_cid(code)
            if cid is not None:
                return cid
        return int.from_bytes(code, "big")

    def _text(self, code: bytes) -> str:
        if self.to_unicode is not None:
            mapped = self.to_unicode.to_unicode(code)
            if mapped is not None:
                return mapped
        if not self.composite:
            return self.simple_table.get(code[0], "") if code else ""
        if self.ucs2:
            return code.decode("utf-16-be", "ignore")
        if self.cid_unicode is not None:
            cid = self._cid(code)
            if cid > 0xFFFF:
                return ""
            return self.cid_unicode.to_unicode(cid.to_bytes(2, "big")) or ""
        return ""

    def _width(self, code: bytes) -> float:
        key = self._cid(code) if self.composite else (code[0] if code else 0)
        return self.widths.get(key, self.default_width)


def build_decoder(font: Any, resources: ResourceContext) -> FontDecoder:
    """Build a ``FontDecoder`` for a pypdf font dictionary.

    Raises:
        ExtractionError: if an embedded CMap refers to itself in a loop.
    """
    name = _plain(font.get("/BaseFont"))
    subtype = _plain(font.get("/Subtype"))
    to_unicode = _to_unicode(font, resources)
    if subtype == "Type0":
        return _composite_decoder(font, name, to_unicode, resources)
    return _simple_decoder(font, name, to_unicode, resources)


# ---------------------------------------------------------------------------
# Composite fonts
# ---------------------------------------------------------------------------


def _composite_decoder(font, name, to_unicode, resources) -> FontDecoder:
    encoding = _resolve(font.get("/Encoding"))
    encoding_cmap = None
    ucs2 = False
    if _is_name(encoding):
        cmap_name = str(encoding).lstrip("/")
        ucs2 = "UCS2" in cmap_name or "UTF16" in cmap_name
        if not ucs2:
            encoding_cmap = _bundled_cmap(cmap_name, resources)
    elif encoding is not None and hasattr(encoding, "get_data"):
        encoding_cmap = parse_cmap(encoding.get_data(), _usecmap_resolver(resources))
    if ucs2:
        # text comes from the code itself; the predefined table only supplies CIDs
        encoding_cmap = CMap(cmap_name)
        encoding_cmap.add_codespace(b"\x00\x00", b"\xff\xff")
        predefined = resources.cmaps.predefined(cmap_name)
        if predefined is not None:
            encoding_cmap.use(predefined)
            encoding_cmap.wmode = predefined.wmode

    descendants = _resolve(font.get("/DescendantFonts"))
    descendant = _resolve(descendants[0]) if descendants else None
    cid_unicode = None
    widths: dict[int, float] = {}
    default_width: float = _DEFAULT_CID_WIDTH
    if descendant is not None:
        info = _resolve(descendant.get("/CIDSystemInfo"))
        if info is not None and to_unicode is None and not ucs2:
            registry = _plain(info.get("/Registry"))
            ordering = _plain(info.get("/Ordering"))
            vertical = encoding_cmap is not None and encoding_cmap.wmode == 1
            cid_unicode = _bundled_cmap(
                f"{registry}-{ordering}-UCS2", resources
            ) or resources.cmaps.cid_to_unicode(f"{registry}-{ordering}", vertical)
        dw = _resolve(descendant.get("/DW"))
        if dw is not None:
            default_width = float(dw)
        widths = _cid_widths(_resolve(descendant.get("/W")))

    return FontDecoder(
        name,
        composite=True,
        to_unicode=to_unicode,
        encoding=encoding_cmap,
        cid_unicode=cid_unicode,
        ucs2=ucs2,
        widths=widths,
        default_width=default_width,
    )


def _cid_widths(array) -> dict[int, float]:
    """Parse a CIDFont ``/W`` array (``c [w1 w2 ...]`` and ``cfirst clast w``)."""
    widths: dict[int, float] = {}
    if array is None:
        return widths
    items = [_resolve(item) for item in array]
    i = 0
    while i + 1 < len(items):
        first = int(items[i])
        nxt = items[i + 1]
        if isinstance(nxt, list):
            for offset, width in enumerate(nxt):
                widths[first + offset] = float(_resolve(width))
            i += 2
        elif i + 2 < len(items):
            last = int(nxt)
            for cid in range(first, min(last, first + 0xFFFF) + 1):
                widths[cid] = float(items[i + 2])
            i += 3
        else:
            break
    return widths


# ---------------------------------------------------------------------------
# Simple fonts
# ---------------------------------------------------------------------------


def _simple_decoder(font, name, to_unicode, resources) -> FontDecoder:
    encoding = _resolve(font.get("/Encoding"))
    base_encoding = None
    differences = None
    if _is_name(encoding):
        base_encoding = str(encoding).lstrip("/")
    elif encoding is not None and hasattr(encoding, "get"):
        base = _resolve(encoding.get("/BaseEncoding"))
        base_encoding = str(base).lstrip("/") if base is not None else None
        differences = _resolve(encoding.get("/Differences"))

    table = _base_table(base_encoding, name, resources)
    if differences is not None:
        code = 0
        for item in differences:
            item = _resolve(item)
            if _is_name(item):
                table[code] = resources.glyph_to_unicode(str(item))
                code += 1
            else:
                code = int(item)

    widths: dict[int, float] = {}
    first_char = _resolve(font.get("/FirstChar"))
    width_array = _resolve(font.get("/Widths"))
    if first_char is not None and width_array is not None:
        for offset, width in enumerate(width_array):
            widths[int(first_char) + offset] = float(_resolve(width))
    default_width: float = _DEFAULT_SIMPLE_WIDTH
    descriptor = _resolve(font.get("/FontDescriptor"))
    if descriptor is not None and descriptor.get("/MissingWidth") is not None:
        default_width = float(_resolve(descriptor.get("/MissingWidth")))

    return FontDecoder(
        name,
        to_unicode=to_unicode,
        simple_table=table,
        widths=widths,
        default_width=default_width,
    )


def _base_table(encoding: str | None, base_font: str, resources) -> dict[int, str]:
    codec = _CODECS.get(encoding or "")
    if codec is not None:
        table = {}
        for code in range(32, 256):
            try:
                table[code] = bytes([code]).decode(codec)
            except UnicodeDecodeError:
                continue
        return table
    filename = "Standard.enc" if encoding == "StandardEncoding" else standard_font_file(base_font)
    return {
        code: resources.glyph_to_unicode(glyph)
        for code, glyph in resources.fonts.builtin_encoding(filename).items()
    }


# ---------------------------------------------------------------------------
# CMap helpers
# ---------------------------------------------------------------------------


def _to_unicode(font, resources) -> CMap | None:
    stream = _resolve(font.get("/ToUnicode"))
    if stream is None or not hasattr(stream, "get_data"):
        return None
    return parse_cmap(
        stream.get_data(),
        _usecmap_resolver(resources),
        resources.glyph_to_unicode,
    )


def _bundled_cmap(name: str, resources: ResourceContext, depth: int = 0) -> CMap | None:
    try:
        data = resources.cmaps.load(name)
    except FileNotFoundError:
        logger.debug("No bundled CMap named %s, trying predefined tables", name)
        return resources.cmaps.predefined(name)
    return parse_cmap(data, _usecmap_resolver(resources, depth + 1))


def _usecmap_resolver(resources: ResourceContext, depth: int = 0):
    def resolve(name: str) -> CMap:
        if depth >= _MAX_USECMAP_DEPTH:
            raise ExtractionError(f"usecmap nesting too deep at {name}")
        return _bundled_cmap(name, resources, depth) or CMap(name)

    return resolve


# ---------------------------------------------------------------------------
# pypdf object helpers
# ---------------------------------------------------------------------------


def _resolve(obj):
    if obj is None:
        return None
    obj = obj.get_object() if hasattr(obj, "get_object") else obj
    return None if isinstance(obj, NullObject) else obj


def _is_name(obj) -> bool:
    return isinstance(obj, NameObject)


def _plain(obj) -> str:
    obj = _resolve(obj)
    return "" if obj is None else str(obj).lstrip("/")
