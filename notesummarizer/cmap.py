"""CMap program parser.

Handles the subset of the PostScript CMap syntax found in ``/ToUnicode``
streams and in predefined CMap resources: ``codespacerange``, ``bfchar``,
``bfrange``, ``cidchar``, ``cidrange``, ``usecmap`` and the ``/CMapName`` and
``/WMode`` definitions.  Everything else in the program is skipped.
"""

import re
from typing import Callable, Iterator

_TOKEN_RE = re.compile(
    rb"""
      %[^\r\n]*                       # comment
    | <<|>>
    | <[0-9A-Fa-f\s]*>                # hex string
    | \((?:\\.|[^\\)])*\)             # literal string
    | [\[\]{}]
    | /[^\s/\[\]()<>{}%]*             # name
    | [^\s/\[\]()<>{}%]+              # number or keyword
    """,
    re.VERBOSE | re.DOTALL,
)

_SECTIONS = {
    b"begincodespacerange",
    b"beginbfchar",
    b"beginbfrange",
    b"begincidchar",
    b"begincidrange",
    b"beginnotdefchar",
    b"beginnotdefrange",
}

# Cap on the number of codes a single bfrange may expand to.
_MAX_RANGE = 0x10000


class CMap:
    """Mappings from character codes to Unicode text and/or CIDs.

    Codes are kept as raw byte strings so that ``<41>`` and ``<0041>`` stay
    distinct, as they do in the PDF.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.wmode = 0
        self.codespace: dict[int, list[tuple[int, int]]] = {}
        self.unicode: dict[bytes, str] = {}
        self.cids: dict[bytes, int] = {}
        self.cid_ranges: list[tuple[int, int, int, int]] = []
        # leading bytes of multi-byte codes in tables without a codespace
        self.prefixes: set[bytes] = set()

    def add_codespace(self, lo: bytes, hi: bytes) -> None:
        self.codespace.setdefault(len(lo), []).append(
            (int.from_bytes(lo, "big"), int.from_bytes(hi, "big"))
        )

    def use(self, parent: "CMap") -> None:
        """Inherit ``parent``'s mappings (``usecmap``)."""
        for nbytes, ranges in parent.codespace.items():
            self.codespace.setdefault(nbytes, []).extend(ranges)
        self.unicode.update(parent.unicode)
        self.cids.update(parent.cids)
        self.cid_ranges.extend(parent.cid_ranges)
        self.prefixes.update(parent.prefixes)

    def split(self, data: bytes, default_width: int = 1) -> Iterator[bytes]:
        """Yield the character codes contained in ``data``.

        Each code is the shortest byte prefix that falls inside a codespace
        range.  Tables loaded without a codespace follow their code prefixes
        instead.  Otherwise ``default_width`` bytes are consumed.
        """
        widths = sorted(self.codespace)
        i = 0
        while i < len(data):
            step = self._code_length(data, i, widths) or default_width
            yield data[i : i + step]
            i += step

    def _code_length(self, data: bytes, start: int, widths: list[int]) -> int | None:
        for nbytes in widths:
            chunk = data[start : start + nbytes]
            if len(chunk) != nbytes:
                break
            value = int.from_bytes(chunk, "big")
            if any(lo <= value <= hi for lo, hi in self.codespace[nbytes]):
                return nbytes
        if not self.prefixes:
            return None
        end = start + 1
        while end < len(data) and data[start:end] in self.prefixes:
            end += 1
        return end - start

    def to_unicode(self, code: bytes) -> str | None:
        return self.unicode.get(code)

    def to_cid(self, code: bytes) -> int | None:
        cid = self.cids.get(code)
        if cid is not None:
            return cid
        value = int.from_bytes(code, "big")
        for nbytes, lo, hi, start in self.cid_ranges:
            if nbytes == len(code) and lo <= value <= hi:
                return start + value - lo
        return None


def cmap_from_code2cid(name: str, code2cid: dict, wmode: int = 0) -> CMap:
    """Build a CMap from a nested ``byte -> (cid | dict)`` lookup table.

    This is the layout of the predefined CMaps shipped with pdfminer.six: each
    level is keyed by one byte of the code, and inner dicts continue a
    multi-byte code.
    """
    cmap = CMap(name)
    cmap.wmode = wmode
    pending: list[tuple[bytes, dict]] = [(b"", code2cid)]
    while pending:
        prefix, node = pending.pop()
        for byte, value in node.items():
            code = prefix + bytes([int(byte)])
            if isinstance(value, dict):
                cmap.prefixes.add(code)
                pending.append((code, value))
            else:
                cmap.cids[code] = int(value)
    return cmap


def cmap_from_cid2unicode(name: str, cid2unicode: dict[int, str]) -> CMap:
    """Build a CID-keyed CMap whose codes are 2-byte big-endian CIDs."""
    cmap = CMap(name)
    cmap.add_codespace(b"\x00\x00", b"\xff\xff")
    for cid, text in cid2unicode.items():
        if 0 <= int(cid) <= 0xFFFF:
            cmap.unicode[int(cid).to_bytes(2, "big")] = text
    return cmap


def parse_cmap(
    data: bytes,
    resolve: Callable[[str], CMap] | None = None,
    glyphs: Callable[[str], str] | None = None,
) -> CMap:
    """Parse a CMap program.

    Args:
        data:    The (decompressed) CMap program.
        resolve: Called with a CMap name for ``usecmap``; when ``None`` the
                 directive is ignored.
        glyphs:  Maps a glyph name destination in ``bfchar``/``bfrange`` to
                 text; names are dropped when ``None``.
    """
    cmap = CMap()
    stack: list = []
    section: bytes | None = None
    operands: list = []

    for token in _values(_tokenize(data)):
        if isinstance(token, _Keyword):
            if token in _SECTIONS:
                section = token[5:]
                operands = []
            elif section is not None and token == b"end" + section:
                _apply_section(cmap, section, operands, glyphs)
                section = None
            elif token == b"usecmap" and stack and resolve is not None:
                name = stack[-1]
                if isinstance(name, _Name):
                    cmap.use(resolve(str(name)))
            elif token == b"def" and len(stack) >= 2:
                key, value = stack[-2], stack[-1]
                if key == "CMapName" and isinstance(value, _Name):
                    cmap.name = str(value)
                elif key == "WMode" and isinstance(value, int):
                    cmap.wmode = value
            stack.clear()
        elif section is not None:
            operands.append(token)
        else:
            stack.append(token)
    return cmap


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


class _Keyword(bytes):
    pass


class _Name(str):
    pass


def _tokenize(data: bytes) -> Iterator[bytes]:
    for match in _TOKEN_RE.finditer(data):
        token = match.group(0)
        if not token.startswith(b"%"):
            yield token


def _values(tokens: Iterator[bytes]) -> Iterator:
    """Convert raw tokens to Python values, folding ``[...]`` into lists."""
    arrays: list[list] = []
    for token in tokens:
        if token == b"[":
            arrays.append([])
            continue
        if token == b"]":
            if not arrays:
                continue
            value = arrays.pop()
        else:
            value = _convert(token)
        if arrays:
            arrays[-1].append(value)
        else:
            yield value


def _convert(token: bytes):
    if token.startswith(b"<") and token not in (b"<<",):
        digits = re.sub(rb"\s", b"", token[1:-1])
        if len(digits) % 2:
            digits += b"0"
        return bytes.fromhex(digits.decode("ascii"))
    if token.startswith(b"/"):
        return _Name(token[1:].decode("latin-1"))
    if token.startswith(b"("):
        return token[1:-1]
    try:
        return int(token)
    except ValueError:
        pass
    try:
        return float(token)
    except ValueError:
        return _Keyword(token)


def _utf16(data: bytes) -> str:
    if len(data) % 2:
        return data.decode("latin-1")
    return data.decode("utf-16-be", "replace")


def _destination(value, glyphs: Callable[[str], str] | None) -> str:
    if isinstance(value, _Name):
        return glyphs(str(value)) if glyphs is not None else ""
    return _utf16(value)


def _apply_section(cmap: CMap, section: bytes, operands: list, glyphs) -> None:
    if section == b"codespacerange":
        for lo, hi in _groups(operands, 2):
            if isinstance(lo, bytes) and isinstance(hi, bytes):
                cmap.add_codespace(lo, hi)
    elif section == b"bfchar":
        for src, dst in _groups(operands, 2):
            if isinstance(src, bytes) and isinstance(dst, (bytes, _Name)):
                cmap.unicode[bytes(src)] = _destination(dst, glyphs)
    elif section == b"bfrange":
        for lo, hi, dst in _groups(operands, 3):
            if isinstance(lo, bytes) and isinstance(hi, bytes):
                _apply_bfrange(cmap, lo, hi, dst, glyphs)
    elif section == b"cidchar":
        for src, cid in _groups(operands, 2):
            if isinstance(src, bytes) and isinstance(cid, int):
                cmap.cids[bytes(src)] = cid
    elif section == b"cidrange":
        for lo, hi, start in _groups(operands, 3):
            if isinstance(lo, bytes) and isinstance(hi, bytes) and isinstance(start, int):
                cmap.cid_ranges.append(
                    (
                        len(lo),
                        int.from_bytes(lo, "big"),
                        int.from_bytes(hi, "big"),
                        start,
                    )
                )


def _apply_bfrange(cmap: CMap, lo: bytes, hi: bytes, dst, glyphs) -> None:
    start = int.from_bytes(lo, "big")
    end = int.from_bytes(hi, "big")
    if end < start or end - start >= _MAX_RANGE:
        return
    width = len(lo)
    if isinstance(dst, list):
        for offset, item in enumerate(dst[: end - start + 1]):
            if isinstance(item, (bytes, _Name)):
                code = (start + offset).to_bytes(width, "big")
                cmap.unicode[code] = _destination(item, glyphs)
        return
    if not isinstance(dst, bytes) or not dst:
        return
    base = int.from_bytes(dst, "big")
    for offset in range(end - start + 1):
        code = (start + offset).to_bytes(width, "big")
        value = base + offset
        nbytes = max(len(dst), (value.bit_length() + 7) // 8)
        cmap.unicode[code] = _utf16(value.to_bytes(nbytes, "big"))


def _groups(items: list, size: int) -> Iterator[tuple]:
    for i in range(0, len(items) - size + 1, size):
        yield tuple(items[i : i + size])
