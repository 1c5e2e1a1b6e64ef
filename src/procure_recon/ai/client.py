"""AI text-completion capability.

The extraction engine only depends on the CompletionClient protocol:
complete(prompt) returns the model's text or raises CompletionError.
OllamaCompletionClient is the concrete implementation against a local
or remote Ollama server.

Privacy constraint: prompts and document text are never logged above
DEBUG level, and then only by length.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import httpx

from ..errors import CompletionError

if TYPE_CHECKING:
    from ..config import Config, LLMConfig

logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
    """Black-box text completion capability."""

    def complete(self, prompt: str) -> str:
        """Return the completion text for a prompt, or raise CompletionError."""
        ...


class OllamaCompletionClient:
    """Ollama chat client returning strict-JSON completions.

    Supports localhost, LAN and remote servers, with an optional auth
    header for proxied deployments.
    """

    SYSTEM_PROMPT = "You extract structured data from procurement documents. Respond with JSON only."

    def __init__(self, llm_config: LLMConfig, transport: httpx.BaseTransport | None = None) -> None:
        """Initialize the client.

        Args:
            llm_config: LLM configuration.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self.llm_config = llm_config

        headers = {}
        if llm_config.auth_header:
            # Support formats: "Bearer token" or "Custom-Header: value"
            if ":" in llm_config.auth_header:
                key, value = llm_config.auth_header.split(":", 1)
                headers[key.strip()] = value.strip()
            else:
                headers["Authorization"] = llm_config.auth_header

        # - connect: 10 seconds for initial connection
        # - read: full timeout for waiting for the model
        # - write: 30 seconds for sending the request
        # - pool: 10 seconds for getting a connection from the pool
        self._client = httpx.Client(
            timeout=httpx.Timeout(
                connect=10.0,
                read=float(llm_config.timeout_seconds),
                write=30.0,
                pool=10.0,
            ),
            headers=headers,
            transport=transport,
        )

    @property
    def is_remote(self) -> bool:
        """Check if Ollama is configured for remote access."""
        return self.llm_config.is_remote()

    def complete(self, prompt: str) -> str:
        """Call Ollama /api/chat with JSON output and temperature 0.

        Raises:
            CompletionError: On timeout, transport or HTTP error, or empty content.
        """
        url = f"{self.llm_config.ollama_url.rstrip('/')}/api/chat"
        payload = {
            "model": self.llm_config.model,
            "messages": [
                {"role": "system", "content": self.SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "stream": False,
            "format": "json",
            "options": {"temperature": 0},
        }

        logger.debug(
            "Calling Ollama model %s at %s (prompt %d chars)",
            self.llm_config.model,
            self.llm_config.ollama_url,
            len(prompt),
        )

        try:
            response = self._client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("Ollama request timed out after %ds", self.llm_config.timeout_seconds)
            raise CompletionError(
                f"Ollama request timed out after {self.llm_config.timeout_seconds}s"
            ) from e
        except httpx.HTTPStatusError as e:
            logger.error(
                "Ollama API error %s for model '%s' at %s",
                e.response.status_code,
                self.llm_config.model,
                self.llm_config.ollama_url,
            )
            raise CompletionError(f"Ollama API error {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error("Ollama request failed: %s (URL: %s)", e, self.llm_config.ollama_url)
            raise CompletionError(f"Ollama request failed: {e}") from e
        except ValueError as e:
            raise CompletionError("Ollama returned a non-JSON envelope") from e

        content = (data.get("message") or {}).get("content") or ""
        if not content.strip():
            raise CompletionError("Ollama returned an empty response")

        logger.debug("Ollama %s returned %d chars", self.llm_config.model, len(content))
        return content

    def close(self) -> None:
        """Close HTTP client."""
        self._client.close()

    def __enter__(self) -> OllamaCompletionClient:
        """Enter context manager."""
        return self

    def __exit__(self, *args) -> None:
        """Exit context manager."""
        self.close()


def build_completion_client(config: Config) -> OllamaCompletionClient | None:
    """Build the completion client, or None when AI extraction is disabled."""
    if not config.llm.enabled:
        logger.info("LLM disabled; heuristic extraction will be used")
        return None
    return OllamaCompletionClient(config.llm)
