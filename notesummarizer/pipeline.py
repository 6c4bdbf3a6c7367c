"""Per-document orchestration — summarize the one selected paper into its note.

State machine::

    IDLE -> RUNNING -> (SUCCESS | SKIPPED_NO_SELECTION | FAILED) -> IDLE

A run never raises: every failure is logged with the paper title and reported
as ``RunState.FAILED`` in the returned ``RunResult``.
"""

import logging
from typing import Callable

from notesummarizer.host import Host, InFlightCounter
from notesummarizer.llm import ChatClient, create_client, summarize
from notesummarizer.merge import merge_note
from notesummarizer.models import Config, Document, RunResult, RunState
from notesummarizer.parser import extract_text
from notesummarizer.prompts import build_prompt, build_user_content
from notesummarizer.resources import ResourceContext

logger = logging.getLogger(__name__)


class SummaryPipeline:
    """Summarize the host's current selection.

    Args:
        host:           Host collaborators (selection, preferences, files,
                        persistence).
        counter:        Process-wide busy counter shared with other pipelines.
        resources:      Bundled PDF decoding resources, loaded once per process.
        client_factory: Builds the chat client from the run's ``Config``.
    """

    def __init__(
        self,
        host: Host,
        counter: InFlightCounter,
        resources: ResourceContext,
        client_factory: Callable[[Config], ChatClient] = create_client,
    ) -> None:
        self.host = host
        self.counter = counter
        self.resources = resources
        self.client_factory = client_factory
        self.state = RunState.IDLE

    def run(self) -> RunResult:
        """Run once for the current selection and return to ``IDLE``."""
        try:
            return self._run()
        except Exception as e:
            # host selection or the state store failed outside a document run
            logger.error("Failed to summarize the selected paper: %s", e, exc_info=True)
            return RunResult(state=RunState.FAILED, error=str(e))
        finally:
            self.state = RunState.IDLE

    def _run(self) -> RunResult:
        selected = list(self.host.selected_documents())
        if len(selected) != 1:
            logger.info("Skipping summary: %d papers selected, need exactly 1", len(selected))
            return RunResult(state=RunState.SKIPPED_NO_SELECTION)

        document = selected[0]
        with self.counter.busy():
            self.state = RunState.RUNNING
            try:
                result = self._summarize(document)
            except Exception as e:
                logger.error(
                    "Failed to summarize the selected paper %r: %s",
                    document.title,
                    e,
                    exc_info=True,
                )
                result = RunResult(
                    state=RunState.FAILED, document_id=document.id, error=str(e)
                )
            self.state = result.state
            return result

    def _summarize(self, document: Document) -> RunResult:
        logger.info("Start summary: %s", document.title)
        config = Config.from_preferences(self.host.get_preference)

        # Step 1: extract text; unreadable PDFs yield "" and the title is sent alone
        file_path = self.host.access_file(document.main_url)
        paper_text = extract_text(file_path, config.page_limit, self.resources)

        # Step 2: build prompt
        system_instruction, prefix = build_prompt(document.title, config.style)
        user_content = build_user_content(prefix, paper_text)

        # Step 3: single inference call
        client = self.client_factory(config)
        summary = summarize(client, system_instruction, user_content)
        logger.info("End summary: %s", document.title)

        if not summary:
            logger.warning("Summary is empty for %r; note left unchanged", document.title)
            return RunResult(state=RunState.SUCCESS, document_id=document.id)

        # Step 4: merge and persist; the caller's document changes only once saved
        merged = merge_note(document.note, summary, config.style)
        self.host.update_document(document.model_copy(update={"note": merged}))
        document.note = merged
        return RunResult(
            state=RunState.SUCCESS,
            document_id=document.id,
            summary=summary,
            note_written=True,
        )
