"""Pydantic models, dataclass Config, and exceptions for the note summarizer.

This module only defines the *schema* of the data that flows through the
pipeline: the host document, the chat request/response exchanged with the
inference endpoint, the per-run result, and runtime configuration read from
the host preference store.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Literal

from pydantic import BaseModel, ConfigDict

DEFAULT_ENDPOINT_URL = "http://127.0.0.1:11434/api/chat"
DEFAULT_MODEL = "llama3.1"
DEFAULT_PAGE_LIMIT = 5
DEFAULT_TIMEOUT_MS = 300_000

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SummarizerError(Exception):
    """Base class for every error raised by the summarizer package."""


class ConfigError(SummarizerError):
    """Raised when a preference value is invalid (e.g. a non-positive page count)."""


class ExtractionError(SummarizerError):
    """Raised when a PDF cannot be decoded (encrypted, malformed, etc.)."""


class InferenceError(SummarizerError):
    """Raised when the chat endpoint call fails or returns an unusable payload.

    Attributes:
        cause: The underlying exception, or ``None`` when the payload itself
               was the problem.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.cause = cause
        super().__init__(message if cause is None else f"{message}: {cause}")


# ---------------------------------------------------------------------------
# Style
# ---------------------------------------------------------------------------


class Style(str, Enum):
    """How the summary is written into the note."""

    STRUCTURED = "structured"
    PLAIN = "plain"

    @classmethod
    def from_markdown_flag(cls, markdown: Any) -> "Style":
        return cls.STRUCTURED if _as_bool(markdown) else cls.PLAIN


# ---------------------------------------------------------------------------
# Host document
# ---------------------------------------------------------------------------


class Document(BaseModel):
    """The subset of a host paper entity the pipeline reads and writes."""

    model_config = ConfigDict(validate_assignment=True)

    id: str
    title: str
    main_url: str
    note: str = ""


# ---------------------------------------------------------------------------
# Chat request / response
# ---------------------------------------------------------------------------


class ChatMessage(BaseModel):
    role: str = "assistant"
    content: str | None


class ChatResponse(BaseModel):
    """Canonical shape of an endpoint reply: ``{"message": {"content": ...}}``.

    Any other top-level fields (``model``, ``created_at``, ``done`` ...) are
    ignored.
    """

    model_config = ConfigDict(extra="ignore")

    message: ChatMessage


class SummaryRequest(BaseModel):
    """Everything needed to issue one non-streaming chat call."""

    system_instruction: str
    user_content: str
    model: str = DEFAULT_MODEL
    endpoint_url: str = DEFAULT_ENDPOINT_URL
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    stream: Literal[False] = False

    def messages(self) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": self.system_instruction},
            {"role": "user", "content": self.user_content},
        ]

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON body sent to the chat endpoint."""
        return {
            "model": self.model,
            "messages": self.messages(),
            "stream": self.stream,
        }


# ---------------------------------------------------------------------------
# Run result
# ---------------------------------------------------------------------------


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    SKIPPED_NO_SELECTION = "skipped_no_selection"
    FAILED = "failed"


class RunResult(BaseModel):
    """Outcome of one ``SummaryPipeline.run()`` invocation.

    ``note_written`` is False for every non-success state and for a success
    whose summary came back empty.
    """

    state: RunState
    document_id: str | None = None
    summary: str = ""
    note_written: bool = False
    error: str | None = None


# ---------------------------------------------------------------------------
# Config (plain dataclass of runtime settings)
# ---------------------------------------------------------------------------


@dataclass
class Config:
    """Runtime configuration for one summarization run.

    Built from the host preference store by ``Config.from_preferences``.

    Attributes:
        model:        Model identifier passed to the chat endpoint.
        endpoint_url: Full URL of the chat endpoint.  For the ``ollama``
                      backend this is the ``/api/chat`` route; for ``openai``
                      it is the API base URL (``.../v1``).
        page_limit:   Number of leading PDF pages scanned for text.
        style:        ``Style.STRUCTURED`` writes a markdown note section,
                      ``Style.PLAIN`` a single ``AI Summary:`` paragraph.
        timeout_ms:   Request timeout in milliseconds.  Generous by default
                      because local models can be slow on long inputs.
        backend:      ``ollama`` (native ``/api/chat``) or ``openai`` (any
                      OpenAI-compatible server).
        api_key:      Only used by the ``openai`` backend; never read from the
                      host preferences, so local servers get a placeholder.
    """

    model: str = DEFAULT_MODEL
    endpoint_url: str = DEFAULT_ENDPOINT_URL
    page_limit: int = DEFAULT_PAGE_LIMIT
    style: Style = Style.STRUCTURED
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    backend: Literal["ollama", "openai"] = "ollama"
    api_key: str | None = None

    def __post_init__(self) -> None:
        self.page_limit = parse_page_limit(self.page_limit)
        if self.backend not in ("ollama", "openai"):
            raise ConfigError(f"Unknown inference backend: {self.backend!r}")

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000

    @classmethod
    def from_preferences(cls, get: Callable[[str], Any]) -> "Config":
        """Build a Config from a host preference getter.

        ``get(key)`` returns the stored value or ``None`` when the key is
        unset; unset keys fall back to the dataclass defaults.

        Raises:
            ConfigError: if ``pageNum`` or ``backend`` holds an invalid value.
        """
        markdown = get("markdown")
        page_num = get("pageNum")
        return cls(
            model=get("ai-model") or DEFAULT_MODEL,
            endpoint_url=get("api-url") or DEFAULT_ENDPOINT_URL,
            page_limit=DEFAULT_PAGE_LIMIT if page_num is None else page_num,
            style=Style.STRUCTURED if markdown is None else Style.from_markdown_flag(markdown),
            backend=get("backend") or "ollama",
        )


def parse_page_limit(value: Any) -> int:
    """Validate a page-count preference and return it as a positive int.

    Preferences store the page count as a string, so ``"5"`` and ``" 5 "`` are
    accepted.  Booleans, floats, non-numeric strings and values below 1 are
    configuration errors; nothing is clamped.

    Raises:
        ConfigError: if ``value`` is not a positive integer.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Page limit must be a positive integer, got {value!r}")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError:
            raise ConfigError(
                f"Page limit must be a positive integer, got {value!r}"
            ) from None
    else:
        raise ConfigError(f"Page limit must be a positive integer, got {value!r}")
    if parsed < 1:
        raise ConfigError(f"Page limit must be >= 1, got {parsed}")
    return parsed


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)
