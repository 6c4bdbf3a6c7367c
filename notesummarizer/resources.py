"""Bundled decoding resources for the PDF text extractor.

The ``resources/`` directory shipped inside the package holds:

* ``cmaps/``          CMap programs, plain (``<name>``) or gzip compressed
                      (``<name>.gz``);
* ``standard_fonts/`` built-in encodings of the standard 14 fonts, one
                      ``code glyphname`` pair per line;
* ``glyphlist.txt``   glyph name to Unicode table in Adobe Glyph List format.

A ``ResourceContext`` is created once per process (``ResourceContext.default()``)
and handed to the extractor explicitly.  CMaps are read on demand, only for the
names a document actually references.  The Adobe CJK predefined CMaps and
CID-to-Unicode tables come from the data files of pdfminer.six and are
converted to ``CMap`` objects on first use.  Standard-font data is cached in
memory for the lifetime of the context with no eviction: the set of files is
small and fixed by the bundled directory.
"""

import gzip
import logging
import re
import threading
from enum import Enum
from functools import cached_property
from importlib import resources as importlib_resources
from pathlib import Path

from pdfminer.cmapdb import CMapDB

from notesummarizer.cmap import CMap, cmap_from_cid2unicode, cmap_from_code2cid

logger = logging.getLogger(__name__)

_UNI_RE = re.compile(r"^uni((?:[0-9A-F]{4})+)$")
_U_RE = re.compile(r"^u([0-9A-F]{4,6})$")

#: Standard 14 font names (and common aliases) whose built-in encoding is not
#: StandardEncoding.
_SYMBOLIC_FONTS = {
    "Symbol": "Symbol.enc",
    "SymbolMT": "Symbol.enc",
}


class Compression(int, Enum):
    NONE = 0
    GZIP = 1


def default_resource_dir() -> Path:
    return Path(str(importlib_resources.files("notesummarizer") / "resources"))


class CMapResolver:
    """Resolve CMap names to bundled programs or predefined Adobe tables."""

    def __init__(self, cmap_dir: Path) -> None:
        self.cmap_dir = cmap_dir
        self._predefined: dict[str, CMap | None] = {}
        self._cid_unicode: dict[tuple[str, bool], CMap | None] = {}
        self._lock = threading.Lock()

    def fetch(self, name: str) -> tuple[bytes, Compression]:
        """Return ``(data, compression)`` for the CMap called ``name``.

        Raises:
            FileNotFoundError: if no such CMap is bundled.
        """
        name = _checked_name(name)
        compressed = self.cmap_dir / f"{name}.gz"
        if compressed.exists():
            return compressed.read_bytes(), Compression.GZIP
        plain = self.cmap_dir / name
        if plain.exists():
            return plain.read_bytes(), Compression.NONE
        raise FileNotFoundError(f"CMap not bundled: {name}")

    def load(self, name: str) -> bytes:
        """Fetch ``name`` and return its decompressed program."""
        data, compression = self.fetch(name)
        if compression is Compression.GZIP:
            data = gzip.decompress(data)
        logger.debug("Loaded CMap %s (%s bytes)", name, f"{len(data):,}")
        return data

    def predefined(self, name: str) -> CMap | None:
        """Return the Adobe predefined encoding CMap ``name`` (e.g. ``90ms-RKSJ-H``).

        Returns ``None`` when pdfminer.six has no table of that name.  The
        converted CMap is cached and shared, so callers must not modify it.
        """
        try:
            name = _checked_name(name)
        except FileNotFoundError:
            return None
        with self._lock:
            if name not in self._predefined:
                self._predefined[name] = _load_predefined(name)
            return self._predefined[name]

    def cid_to_unicode(self, collection: str, vertical: bool = False) -> CMap | None:
        """Return the CID-to-Unicode table of a character collection.

        ``collection`` is ``<Registry>-<Ordering>`` as found in a CIDFont's
        ``/CIDSystemInfo``, e.g. ``Adobe-Japan1``.  Codes of the returned CMap
        are 2-byte big-endian CIDs.
        """
        key = (collection, vertical)
        with self._lock:
            if key not in self._cid_unicode:
                self._cid_unicode[key] = _load_cid_unicode(collection, vertical)
            return self._cid_unicode[key]


def _checked_name(name: str) -> str:
    name = name.lstrip("/")
    if not name or "/" in name or "\\" in name or name.startswith("."):
        raise FileNotFoundError(f"Invalid CMap name: {name!r}")
    return name


def _load_predefined(name: str) -> CMap | None:
    try:
        source = CMapDB.get_cmap(name)
    except CMapDB.CMapNotFound:
        logger.debug("No predefined CMap named %s", name)
        return None
    code2cid = getattr(source, "code2cid", None)
    if code2cid is None:
        # Identity CMaps have no table; they are bundled as programs instead
        return None
    cmap = cmap_from_code2cid(name, code2cid, wmode=1 if source.is_vertical() else 0)
    logger.debug("Loaded predefined CMap %s (%s codes)", name, f"{len(cmap.cids):,}")
    return cmap


def _load_cid_unicode(collection: str, vertical: bool) -> CMap | None:
    try:
        source = CMapDB.get_unicode_map(collection, vertical)
    except CMapDB.CMapNotFound:
        logger.debug("No CID to Unicode table for %s", collection)
        return None
    return cmap_from_cid2unicode(f"{collection}-UCS2", source.cid2unichr)


class StandardFontResolver:
    """Read standard-font data files, caching each one after the first read."""

    def __init__(self, font_dir: Path) -> None:
        self.font_dir = font_dir
        self._cache: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def fetch(self, filename: str) -> bytes:
        """Return the contents of ``filename``.

        Raises:
            FileNotFoundError: if the file is not bundled.
        """
        with self._lock:
            cached = self._cache.get(filename)
            if cached is not None:
                return cached
            data = (self.font_dir / filename).read_bytes()
            self._cache[filename] = data
            return data

    def builtin_encoding(self, filename: str) -> dict[int, str]:
        """Parse an ``.enc`` file into a ``code -> glyph name`` table."""
        table: dict[int, str] = {}
        for line in self.fetch(filename).decode("ascii").splitlines():
            line = line.split("#", 1)[0].strip()
            if not line:
                continue
            code, glyph = line.split()
            table[int(code)] = glyph
        return table


def standard_font_file(base_font: str) -> str:
    """Map a ``/BaseFont`` name to the bundled file holding its encoding.

    Subset prefixes (``ABCDEF+Symbol``) and style suffixes are ignored.
    """
    name = base_font.lstrip("/")
    if "+" in name:
        name = name.split("+", 1)[1]
    family = name.split(",", 1)[0].split("-", 1)[0]
    return _SYMBOLIC_FONTS.get(family, "Standard.enc")


class ResourceContext:
    """Process-wide handle on the bundled resource directory."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.cmaps = CMapResolver(root / "cmaps")
        self.fonts = StandardFontResolver(root / "standard_fonts")

    @classmethod
    def default(cls) -> "ResourceContext":
        return cls(default_resource_dir())

    @cached_property
    def glyph_list(self) -> dict[str, str]:
        table: dict[str, str] = {}
        text = (self.root / "glyphlist.txt").read_text(encoding="ascii")
        for line in text.splitlines():
            if not line or line.startswith("#"):
                continue
            name, codes = line.split(";", 1)
            table[name] = "".join(chr(int(c, 16)) for c in codes.split())
        return table

    def glyph_to_unicode(self, glyph: str) -> str:
        """Resolve a glyph name to text, or ``""`` when it is unknown.

        Follows the Adobe Glyph List conventions: suffixes after ``.`` are
        dropped, ligature components are joined with ``_``, and ``uniXXXX`` /
        ``uXXXX`` names encode code points directly.
        """
        glyph = glyph.lstrip("/").split(".", 1)[0]
        if not glyph:
            return ""
        if "_" in glyph:
            return "".join(self.glyph_to_unicode(part) for part in glyph.split("_"))
        known = self.glyph_list.get(glyph)
        if known is not None:
            return known
        match = _UNI_RE.match(glyph)
        if match:
            hexes = match.group(1)
            return "".join(chr(int(hexes[i : i + 4], 16)) for i in range(0, len(hexes), 4))
        match = _U_RE.match(glyph)
        if match:
            value = int(match.group(1), 16)
            return chr(value) if value <= 0x10FFFF else ""
        if len(glyph) == 1:
            return glyph
        return ""
