"""Client for OpenAI-compatible chat-completion gateways."""
from __future__ import annotations

import logging
from typing import AsyncIterator, Protocol, Sequence
from urllib.parse import urlparse

import httpx
import openai
from openai.types.chat import ChatCompletionChunk

from scriptforge.core.errors import GenerationError
from scriptforge.core.schema import ChatMessage

logger = logging.getLogger(__name__)


class CodeGenerator(Protocol):
    """Contract for code-generation backends."""

    def stream_chat(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        """Yield the script text in chunks as the backend produces it."""

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        """Return a short answer, used for classification prompts."""


class OpenAICompatibleClient:
    """Streaming chat client for gateways speaking the OpenAI wire format.

    One instance is shared by every session. The SDK client sits on a single
    ``httpx.AsyncClient`` that pools connections, so concurrent sessions are
    never serialised behind a lock.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        api_base: str = "https://llm-gateway.heurist.xyz",
        model: str = "qwen/qwen-2.5-coder-32b-instruct",
        classifier_model: str = "mistralai/mixtral-8x7b-instruct",
        max_tokens: int = 2048,
        temperature: float = 0.3,
        classifier_max_tokens: int = 32,
        classifier_temperature: float = 0.1,
        timeout: float = 120.0,
        max_retries: int = 2,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        parsed = urlparse(api_base)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("api_base must include scheme and host")

        self._model = model
        self._classifier_model = classifier_model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._classifier_max_tokens = classifier_max_tokens
        self._classifier_temperature = classifier_temperature
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        # an empty key sends no Authorization header
        self._client = openai.AsyncOpenAI(
            api_key=api_key or "",
            base_url=api_base,
            timeout=timeout,
            max_retries=max_retries,
            http_client=self._http,
        )

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _chunk_content(chunk: object) -> str | None:
        if not isinstance(chunk, ChatCompletionChunk):
            raise GenerationError(f"Stream error: malformed chunk {str(chunk)[:80]!r}")
        if not chunk.choices:
            return None
        delta = chunk.choices[0].delta
        return (delta.content if delta is not None else None) or None

    async def _stream(
        self,
        messages: Sequence[ChatMessage],
        *,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> AsyncIterator[str]:
        try:
            stream = await self._client.chat.completions.create(
                model=model,
                messages=[message.model_dump() for message in messages],
                max_tokens=max_tokens,
                temperature=temperature,
                stream=True,
            )
            async for chunk in stream:
                content = self._chunk_content(chunk)
                if content:
                    yield content
        except openai.APIStatusError as exc:
            raise GenerationError(
                f"Generation request failed with HTTP {exc.status_code}: {str(exc.message)[:500]}"
            ) from exc
        except openai.APIConnectionError as exc:
            detail = f"{exc.message} {exc.__cause__}" if exc.__cause__ else exc.message
            raise GenerationError(f"Stream error: {detail}") from exc
        except openai.OpenAIError as exc:
            raise GenerationError(f"Stream error: {exc}") from exc
        except ValueError as exc:
            # undecodable chunk payload
            raise GenerationError(f"Stream error: malformed chunk ({exc})") from exc

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def stream_chat(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        stream = self._stream(
            messages,
            model=self._model,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )
        async for content in stream:
            yield content

    async def complete(self, messages: Sequence[ChatMessage]) -> str:
        stream = self._stream(
            messages,
            model=self._classifier_model,
            max_tokens=self._classifier_max_tokens,
            temperature=self._classifier_temperature,
        )
        response = "".join([content async for content in stream])
        logger.debug("Classifier answered %r", response)
        return response

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.close()


__all__ = ["CodeGenerator", "OpenAICompatibleClient"]
