"""Merge a new summary into an existing note.

The merge is append-only: existing note text is never removed or reordered.
A structured (markdown) note is flagged by a leading ``<md>`` marker, which is
added once when missing and never duplicated.  No file I/O is performed here.
"""

from typing import Callable

from notesummarizer.models import Style

MARKER = "<md>\n"
HEADING = "## AI Summary \n\n"
PLAIN_LABEL = "AI Summary: "
SEPARATOR = "\n\n"


def merge_note(existing: str, summary: str, style: Style) -> str:
    """Return ``existing`` with ``summary`` appended in the given style.

    An empty ``summary`` leaves the note untouched.
    """
    if not summary:
        return existing
    return _MERGERS[style](existing, summary)


def has_marker(note: str) -> bool:
    return note.startswith(MARKER.rstrip("\n"))


def _merge_structured(existing: str, summary: str) -> str:
    if not existing:
        return MARKER + HEADING + summary
    if has_marker(existing):
        return existing + SEPARATOR + HEADING + summary
    return MARKER + existing + SEPARATOR + HEADING + summary


def _merge_plain(existing: str, summary: str) -> str:
    if not existing:
        return PLAIN_LABEL + summary
    return existing + SEPARATOR + PLAIN_LABEL + summary


_MERGERS: dict[Style, Callable[[str, str], str]] = {
    Style.STRUCTURED: _merge_structured,
    Style.PLAIN: _merge_plain,
}
