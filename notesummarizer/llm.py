"""Chat-completion clients and the single summary call.

Two backends share one contract, ``client.chat(request) -> ChatResponse``:

* ``OllamaChatClient`` posts to Ollama's native ``/api/chat`` route with
  ``requests`` (the default, local backend);
* ``OpenAIChatClient`` wraps the ``openai`` SDK for any OpenAI-compatible
  server (LM Studio, vLLM, a hosted API, or Ollama's own ``/v1`` route).

Responses are normalized at this boundary: whether the body arrives as a JSON
string, bytes, or an already-parsed mapping, callers only ever see a validated
``ChatResponse``.  Every failure is raised as ``InferenceError``; nothing is
retried.
"""

import json
import logging
import time
from collections.abc import Mapping
from typing import Any, Protocol

import openai as _openai
import requests
from pydantic import ValidationError

from notesummarizer.models import (
    DEFAULT_ENDPOINT_URL,
    DEFAULT_TIMEOUT_MS,
    ChatResponse,
    Config,
    InferenceError,
    SummaryRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_BASE_URL = "http://127.0.0.1:11434/v1"


class ChatClient(Protocol):
    model: str
    endpoint_url: str
    timeout_ms: int

    def chat(self, request: SummaryRequest) -> ChatResponse: ...


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


class OllamaChatClient:
    """Client for Ollama's native ``/api/chat`` endpoint.

    Attributes:
        model:        Model identifier sent with every request.
        endpoint_url: Full URL of the chat route.
        timeout_ms:   Request timeout; covers connect and read.
    """

    def __init__(
        self,
        model: str,
        endpoint_url: str = DEFAULT_ENDPOINT_URL,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.model = model
        self.endpoint_url = endpoint_url
        self.timeout_ms = timeout_ms

    def chat(self, request: SummaryRequest) -> ChatResponse:
        """POST one non-streaming chat request and return the parsed reply."""
        response = requests.post(
            request.endpoint_url,
            json=request.to_payload(),
            headers={"Content-Type": "application/json"},
            timeout=request.timeout_ms / 1000,
        )
        response.raise_for_status()
        return normalize_response(response.text)


class OpenAIChatClient:
    """Client for OpenAI-compatible ``/chat/completions`` backends.

    The SDK's own retry loop is disabled: one request per invocation.
    """

    def __init__(
        self,
        model: str,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        api_key: str = "ollama",
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.model = model
        self.endpoint_url = base_url
        self.timeout_ms = timeout_ms
        self._client = _openai.OpenAI(
            base_url=base_url,
            api_key=api_key,
            max_retries=0,
        )

    def chat(self, request: SummaryRequest) -> ChatResponse:
        completion = self._client.chat.completions.create(
            model=request.model,
            messages=request.messages(),
            stream=False,
            timeout=request.timeout_ms / 1000,
        )
        if not completion.choices:
            raise InferenceError("Chat completion returned no choices")
        message = completion.choices[0].message
        return normalize_response(
            {"message": {"role": message.role, "content": message.content}}
        )


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def create_client(config: Config) -> ChatClient:
    """Create the client selected by ``config.backend``.

    For the ``openai`` backend, an endpoint left at the Ollama default is
    swapped for Ollama's OpenAI-compatible base URL.
    """
    if config.backend == "openai":
        base_url = config.endpoint_url
        if base_url == DEFAULT_ENDPOINT_URL:
            base_url = DEFAULT_OPENAI_BASE_URL
        return OpenAIChatClient(
            model=config.model,
            base_url=base_url,
            api_key=config.api_key or "ollama",
            timeout_ms=config.timeout_ms,
        )
    return OllamaChatClient(
        model=config.model,
        endpoint_url=config.endpoint_url,
        timeout_ms=config.timeout_ms,
    )


def normalize_response(body: Any) -> ChatResponse:
    """Turn a chat response body into a ``ChatResponse``.

    Accepts a JSON string, UTF-8 bytes, or an already-decoded mapping.

    Raises:
        InferenceError: if the body is not valid JSON, is not an object, or
            lacks ``message.content``.
    """
    if isinstance(body, (bytes, bytearray)):
        body = bytes(body).decode("utf-8", "replace")
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError as e:
            raise InferenceError("Malformed JSON in chat response", e) from e
    if not isinstance(body, Mapping):
        raise InferenceError(
            f"Unexpected chat response body of type {type(body).__name__}"
        )
    try:
        return ChatResponse.model_validate(dict(body))
    except ValidationError as e:
        raise InferenceError("Chat response has no message content", e) from e


def summarize(client: ChatClient, system_instruction: str, user_content: str) -> str:
    """Send one system+user exchange and return the assistant's content.

    An empty or ``null`` content is returned as ``""``; deciding what to do
    with it is the caller's business.

    Raises:
        InferenceError: on connection failure, timeout, non-2xx status,
            malformed JSON or a missing content field.
    """
    request = SummaryRequest(
        system_instruction=system_instruction,
        user_content=user_content,
        model=client.model,
        endpoint_url=client.endpoint_url,
        timeout_ms=client.timeout_ms,
    )
    logger.info("Calling LLM  model=%s  endpoint=%s", client.model, client.endpoint_url)
    logger.debug(
        "Prompt size: %s chars (~%s tokens)",
        f"{len(user_content):,}",
        f"{len(user_content) // 4:,}",
    )
    t0 = time.monotonic()
    try:
        response = client.chat(request)
    except InferenceError:
        raise
    except Exception as e:
        raise InferenceError("LLM call failed", e) from e
    elapsed = time.monotonic() - t0

    content = response.message.content or ""
    logger.info("Response received (%.1fs, %s chars)", elapsed, f"{len(content):,}")
    return content
