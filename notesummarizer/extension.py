"""Host wiring: preferences, the summarize command and its context-menu entry.

``SummarizerExtension.initialize()`` registers everything with the host and
``dispose()`` removes it again.  Both the command event and the context-menu
item run the same ``SummaryPipeline``.
"""

import logging
from typing import Any, Callable

from notesummarizer.host import ExtensionHost, InFlightCounter
from notesummarizer.log import setup_logging
from notesummarizer.models import DEFAULT_ENDPOINT_URL, RunResult
from notesummarizer.pipeline import SummaryPipeline
from notesummarizer.resources import ResourceContext

logger = logging.getLogger(__name__)

EXTENSION_ID = "ollama-summarizer-paperlib-extension"
COMMAND_EVENT = "summarize_selected_paper"
MENU_ITEM_ID = "summarize"

DEFAULT_PREFERENCES: dict[str, dict[str, Any]] = {
    "markdown": {
        "type": "boolean",
        "name": "Markdown Style",
        "description": "Use markdown style for the summary note.",
        "value": True,
        "order": 0,
    },
    "ai-model": {
        "type": "options",
        "name": "LLM model",
        "description": "Ollama model to use",
        "options": {"llama3.1": "Llama 3.1", "era": "EtherealR"},
        "value": "llama3.1",
        "order": 1,
    },
    "pageNum": {
        "type": "string",
        "name": "Page Number",
        "description": "The number of pages to provide.",
        "value": "5",
        "order": 2,
    },
    "api-url": {
        "type": "string",
        "name": "API URL",
        "description": "Chat endpoint (Ollama /api/chat, or the /v1 base URL for OpenAI-compatible servers).",
        "value": DEFAULT_ENDPOINT_URL,
        "order": 3,
    },
    "backend": {
        "type": "options",
        "name": "Backend",
        "description": "API flavour spoken by the endpoint.",
        "options": {"ollama": "Ollama", "openai": "OpenAI-compatible"},
        "value": "ollama",
        "order": 4,
    },
}


class SummarizerExtension:
    """Registers the summarize command with the host and runs the pipeline.

    ``resources`` and ``counter`` default to fresh process-wide instances; pass
    them in to share them with other components.
    """

    id = EXTENSION_ID

    def __init__(
        self,
        host: ExtensionHost,
        resources: ResourceContext | None = None,
        counter: InFlightCounter | None = None,
    ) -> None:
        self.host = host
        self.resources = resources or ResourceContext.default()
        self.counter = counter or InFlightCounter(host)
        self.pipeline = SummaryPipeline(host, self.counter, self.resources)
        self.dispose_callbacks: list[Callable[[], None]] = []

    def initialize(self) -> None:
        setup_logging(sink=self.host.log, source=self.id)
        self.host.register_preferences(self.id, DEFAULT_PREFERENCES)

        self.dispose_callbacks.append(
            self.host.on_command(COMMAND_EVENT, lambda _value: self.summarize())
        )
        self.dispose_callbacks.append(
            self.host.register_external_command(
                "summarize",
                "Summarize the current selected paper with ollama.",
                COMMAND_EVENT,
            )
        )
        self.dispose_callbacks.append(self.host.on_context_menu(self._on_menu_click))
        self.host.register_context_menu(
            self.id, [{"id": MENU_ITEM_ID, "label": "Ollama Summary - summarize"}]
        )
        logger.info("Extension %s initialized", self.id)

    def dispose(self) -> None:
        self.host.unregister_preferences(self.id)
        self.host.unregister_context_menu(self.id)
        for callback in self.dispose_callbacks:
            callback()
        self.dispose_callbacks.clear()

    def summarize(self) -> RunResult:
        return self.pipeline.run()

    def _on_menu_click(self, ext_id: str, item_id: str) -> None:
        if ext_id == self.id and item_id == MENU_ITEM_ID:
            self.summarize()
