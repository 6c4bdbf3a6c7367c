"""Interfaces of the host application the summarizer runs inside.

The host owns documents, preferences, file access, persistence, the log sink
and the UI state store.  The pipeline only talks to it through the protocols
below, so any reference manager (or a test double) can provide them.

``InFlightCounter`` is the one piece of shared process state the pipeline
mutates: the host's busy counter.  It is created once per process and passed
to every pipeline explicitly.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Callable, Protocol, Sequence

from notesummarizer.models import Document

PROCESSING_STATE_KEY = "processingState.general"


class LogSink(Protocol):
    def info(self, message: str, source: str) -> None: ...

    def warn(self, message: str, source: str) -> None: ...

    def error(self, message: str, source: str) -> None: ...


class StateStore(Protocol):
    def get_state(self, key: str) -> Any: ...

    def set_state(self, key: str, value: Any) -> None: ...


class Host(StateStore, Protocol):
    """Collaborators used by one summarization run."""

    def selected_documents(self) -> Sequence[Document]: ...

    def get_preference(self, key: str) -> Any: ...

    def access_file(self, url: str) -> str:
        """Map a stored file reference to a readable local path."""
        ...

    def update_document(self, document: Document) -> None:
        """Persist one document (single, non-bulk, not debounced)."""
        ...


class ExtensionHost(Host, Protocol):
    """Registration surface used by ``SummarizerExtension``."""

    log: LogSink

    def register_preferences(self, extension_id: str, defaults: dict) -> None: ...

    def unregister_preferences(self, extension_id: str) -> None: ...

    def on_command(self, event: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Subscribe to a command event; returns a disposer."""
        ...

    def register_external_command(
        self, command_id: str, description: str, event: str
    ) -> Callable[[], None]: ...

    def on_context_menu(self, callback: Callable[[str, str], None]) -> Callable[[], None]:
        """Subscribe to extension context-menu clicks ``(ext_id, item_id)``."""
        ...

    def register_context_menu(self, extension_id: str, items: list[dict]) -> None: ...

    def unregister_context_menu(self, extension_id: str) -> None: ...


class InFlightCounter:
    """Atomic busy counter stored in the host UI state.

    The host store itself only offers get/set, so the read-modify-write is
    done under a process-wide lock shared by every pipeline using this
    counter.
    """

    def __init__(self, store: StateStore, key: str = PROCESSING_STATE_KEY) -> None:
        self.store = store
        self.key = key
        self._lock = threading.Lock()

    def value(self) -> int:
        with self._lock:
            return self._read()

    def add(self, delta: int) -> int:
        with self._lock:
            updated = self._read() + delta
            self.store.set_state(self.key, updated)
            return updated

    @contextmanager
    def busy(self) -> Iterator[None]:
        """Increment for the duration of the block; decrement on every exit."""
        self.add(1)
        try:
            yield
        finally:
            self.add(-1)

    def _read(self) -> int:
        raw = self.store.get_state(self.key)
        try:
            return int(raw)
        except (TypeError, ValueError):
            return 0
