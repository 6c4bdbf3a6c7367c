"""Tests for notesummarizer/fonts.py — font dictionaries to decoders."""

import pytest
from pypdf.generic import (
    ArrayObject,
    DecodedStreamObject,
    DictionaryObject,
    FloatObject,
    NameObject,
    NumberObject,
    TextStringObject,
)

from notesummarizer.cmap import parse_cmap
from notesummarizer.fonts import FontDecoder, build_decoder


def _font(**entries) -> DictionaryObject:
    font = DictionaryObject()
    for key, value in entries.items():
        font[NameObject(f"/{key}")] = value
    return font


def _names(*names: str) -> list:
    return [NameObject(f"/{name}") for name in names]


def _to_unicode_stream(body: bytes) -> DecodedStreamObject:
    stream = DecodedStreamObject()
    stream.set_data(
        b"begincmap\n1 begincodespacerange\n<00> <FF>\nendcodespacerange\n"
        + body
        + b"\nendcmap"
    )
    return stream


# ---------------------------------------------------------------------------
# Simple fonts
# ---------------------------------------------------------------------------


def test_winansi_font_decodes_cp1252(resources):
    font = _font(
        Subtype=NameObject("/Type1"),
        BaseFont=NameObject("/Helvetica"),
        Encoding=NameObject("/WinAnsiEncoding"),
    )
    decoder = build_decoder(font, resources)
    assert decoder.text(b"caf\xe9 \x93ok\x94") == "café “ok”"


def test_macroman_font(resources):
    font = _font(Subtype=NameObject("/TrueType"), Encoding=NameObject("/MacRomanEncoding"))
    assert build_decoder(font, resources).text(b"\x8e") == "é"


def test_simple_font_widths_from_first_char(resources):
    font = _font(
        Subtype=NameObject("/TrueType"),
        Encoding=NameObject("/WinAnsiEncoding"),
        FirstChar=NumberObject(65),
        Widths=ArrayObject([NumberObject(700), FloatObject(250.5)]),
    )
    decoder = build_decoder(font, resources)
    assert decoder.decode(b"ABC") == [("A", 700.0), ("B", 250.5), ("C", 500)]


def test_missing_width_from_font_descriptor(resources):
    font = _font(
        Subtype=NameObject("/Type1"),
        Encoding=NameObject("/WinAnsiEncoding"),
        FontDescriptor=_font(MissingWidth=NumberObject(333)),
    )
    assert build_decoder(font, resources).decode(b"x") == [("x", 333.0)]


def test_differences_override_base_encoding(resources):
    encoding = _font(
        BaseEncoding=NameObject("/WinAnsiEncoding"),
        Differences=ArrayObject([NumberObject(97), *_names("uni03A9", "bullet")]),
    )
    font = _font(Subtype=NameObject("/Type1"), BaseFont=NameObject("/Times-Roman"), Encoding=encoding)
    assert build_decoder(font, resources).text(b"abc") == "Ω•c"


def test_symbol_font_builtin_encoding(resources):
    font = _font(Subtype=NameObject("/Type1"), BaseFont=NameObject("/Symbol"))
    assert build_decoder(font, resources).text(b"p") == "π"


def test_to_unicode_wins_over_encoding(resources):
    font = _font(
        Subtype=NameObject("/Type1"),
        Encoding=NameObject("/WinAnsiEncoding"),
        ToUnicode=_to_unicode_stream(b"1 beginbfchar\n<41> <0058>\nendbfchar"),
    )
    assert build_decoder(font, resources).text(b"AB") == "XB"


# ---------------------------------------------------------------------------
# Composite fonts
# ---------------------------------------------------------------------------


def _descendant(registry="Adobe", ordering="Identity", **extra) -> DictionaryObject:
    info = _font(
        Registry=TextStringObject(registry),
        Ordering=TextStringObject(ordering),
        Supplement=NumberObject(0),
    )
    return _font(Subtype=NameObject("/CIDFontType2"), CIDSystemInfo=info, **extra)


def test_ucs2_encoding_decodes_code_units(resources):
    font = _font(
        Subtype=NameObject("/Type0"),
        Encoding=NameObject("/UniGB-UCS2-H"),
        DescendantFonts=ArrayObject([_descendant("Adobe", "GB1")]),
    )
    decoder = build_decoder(font, resources)
    assert decoder.ucs2
    assert decoder.text("中文".encode("utf-16-be")) == "中文"


def test_identity_font_without_to_unicode_yields_nothing(resources):
    font = _font(
        Subtype=NameObject("/Type0"),
        Encoding=NameObject("/Identity-H"),
        DescendantFonts=ArrayObject([_descendant()]),
    )
    decoder = build_decoder(font, resources)
    assert decoder.codes(b"\x00\x01\x00\x02") == [b"\x00\x01", b"\x00\x02"]
    assert decoder.text(b"\x00\x01") == ""


def test_cid_widths_from_w_array(resources):
    w = ArrayObject(
        [
            NumberObject(1),
            ArrayObject([NumberObject(600), NumberObject(400)]),
            NumberObject(10),
            NumberObject(12),
            NumberObject(250),
        ]
    )
    font = _font(
        Subtype=NameObject("/Type0"),
        Encoding=NameObject("/Identity-H"),
        DescendantFonts=ArrayObject([_descendant(DW=NumberObject(900), W=w)]),
    )
    decoder = build_decoder(font, resources)
    widths = [width for _, width in decoder.decode(b"\x00\x01\x00\x02\x00\x0b\x00\x20")]
    assert widths == [600.0, 400.0, 250.0, 900.0]


def test_unknown_encoding_cmap_falls_back_to_two_byte_codes(resources):
    font = _font(Subtype=NameObject("/Type0"), Encoding=NameObject("/Nonexistent-H"))
    decoder = build_decoder(font, resources)
    assert decoder.encoding is None
    assert decoder.codes(b"\x00\x41\x00\x42") == [b"\x00\x41", b"\x00\x42"]


# ---------------------------------------------------------------------------
# FontDecoder
# ---------------------------------------------------------------------------


def test_decoder_uses_cid_unicode_cmap():
    cid_unicode = parse_cmap(b"1 beginbfchar\n<0022> <0041>\nendbfchar")
    encoding = parse_cmap(
        b"1 begincodespacerange\n<0000> <FFFF>\nendcodespacerange\n"
        b"1 begincidrange\n<0100> <01FF> 34\nendcidrange"
    )
    decoder = FontDecoder(composite=True, encoding=encoding, cid_unicode=cid_unicode)
    assert decoder.text(b"\x01\x00") == "A"


@pytest.mark.parametrize("data", [b"", b"\x00"])
def test_composite_decoder_tolerates_short_input(data):
    decoder = FontDecoder(composite=True)
    assert decoder.text(data) == ""


# ---------------------------------------------------------------------------
# Predefined CJK CMaps
# ---------------------------------------------------------------------------


def test_identity_font_decodes_through_collection_table(resources):
    font = _font(
        Subtype=NameObject("/Type0"),
        Encoding=NameObject("/Identity-H"),
        DescendantFonts=ArrayObject([_descendant("Adobe", "Japan1")]),
    )
    decoder = build_decoder(font, resources)
    assert decoder.cid_unicode is not None
    assert decoder.text(b"\x03\x4b\x03\x4d") == "あい"


def test_vertical_identity_font_uses_vertical_table(resources):
    font = _font(
        Subtype=NameObject("/Type0"),
        Encoding=NameObject("/Identity-V"),
        DescendantFonts=ArrayObject([_descendant("Adobe", "Japan1")]),
    )
    decoder = build_decoder(font, resources)
    assert decoder.cid_unicode is resources.cmaps.cid_to_unicode("Adobe-Japan1", True)


def test_predefined_encoding_cmap_splits_mixed_width_codes(resources):
    font = _font(
        Subtype=NameObject("/Type0"),
        Encoding=NameObject("/90ms-RKSJ-H"),
        DescendantFonts=ArrayObject([_descendant("Adobe", "Japan1")]),
    )
    decoder = build_decoder(font, resources)
    assert decoder.codes(b"A\x82\xa0") == [b"A", b"\x82\xa0"]
    assert decoder.text(b"A\x82\xa0\x82\xa2") == "Aあい"


def test_ucs2_encoding_takes_widths_from_predefined_cids(resources):
    w = ArrayObject([NumberObject(843), ArrayObject([NumberObject(500)])])
    font = _font(
        Subtype=NameObject("/Type0"),
        Encoding=NameObject("/UniJIS-UCS2-H"),
        DescendantFonts=ArrayObject([_descendant("Adobe", "Japan1", W=w)]),
    )
    decoder = build_decoder(font, resources)
    assert decoder.decode("あ".encode("utf-16-be")) == [("あ", 500.0)]
