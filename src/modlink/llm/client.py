"""Completion client for OpenAI-compatible chat APIs.

The interaction engine only depends on the ``LLMClient`` protocol: one
awaitable ``complete`` call that takes a system and user prompt and returns
the raw text of the first choice. ``HttpLLMClient`` implements it over
``httpx`` against ``{base_url}/chat/completions``.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import TracebackType
from typing import Any, Protocol

import httpx
import structlog

from modlink.config.models import LLMConfig
from modlink.core.errors import LLMError

log = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CompletionRequest:
    """One chat completion: system + user prompt, deterministic by default."""

    model: str
    system_prompt: str
    user_prompt: str
    max_tokens: int
    temperature: float = 0.0


class LLMClient(Protocol):
    """Anything that can turn a CompletionRequest into response text."""

    async def complete(self, request: CompletionRequest) -> str: ...


class HttpLLMClient:
    """OpenAI-compatible client.

    Every transport problem and every non-2xx status is raised as
    ``LLMError.request_failed``; a 2xx body without ``choices[0].message``
    is ``LLMError.bad_response``. Callers decide whether to fall back.
    """

    def __init__(self, config: LLMConfig, *, transport: httpx.AsyncBaseTransport | None = None):
        if not config.api_key:
            raise LLMError.not_configured("llm.api_key")
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_sec,
            headers={"Authorization": f"Bearer {config.api_key}"},
            transport=transport,
        )

    @property
    def model(self) -> str:
        return self._config.model

    async def complete(self, request: CompletionRequest) -> str:
        payload: dict[str, Any] = {
            "model": request.model,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "stream": False,
        }

        if self._config.show_requests:
            log.info(
                "llm_request",
                model=request.model,
                system_prompt=request.system_prompt,
                user_prompt=request.user_prompt,
            )

        try:
            response = await self._client.post("/chat/completions", json=payload)
        except httpx.HTTPError as e:
            raise LLMError.request_failed(f"{type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            raise LLMError.request_failed(
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        text = _extract_content(response)

        if self._config.show_responses:
            log.info("llm_response", model=request.model, response=text)
        else:
            log.debug("llm_response", model=request.model, chars=len(text))
        return text

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpLLMClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


def _extract_content(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError as e:
        raise LLMError.bad_response("body is not JSON") from e

    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise LLMError.bad_response("missing choices[0].message.content") from e
    return content or ""
