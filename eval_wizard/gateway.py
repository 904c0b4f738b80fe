"""
Eval Wizard - Model Gateway

Uniform way to send role-tagged messages to a hosted language model and get
plain text back. Two providers are supported:
  - "anthropic": Anthropic Messages API (system prompt is a top-level field)
  - "openai":    OpenAI-compatible Chat Completions API (system prompt is
                 sent as the first message)

Every failure (transport, timeout, auth, rate limit, malformed response) is
raised as a GatewayError so callers only have one thing to catch.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from eval_wizard.errors import GatewayError

logger = logging.getLogger(__name__)

ANTHROPIC_BASE_URL = "https://api.anthropic.com"
OPENAI_BASE_URL = "https://api.openai.com"
ANTHROPIC_VERSION = "2023-06-01"

PROVIDERS = ("anthropic", "openai")


class ModelGateway(ABC):
    """A capability to complete a conversation with a hosted model."""

    @abstractmethod
    async def complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float = 0.0,
        system_prompt: Optional[str] = None,
    ) -> str:
        """
        Send messages and return the model's text reply.

        Args:
            messages: [{"role": "user"|"assistant", "content": str}, ...]
            model: Provider model identifier
            temperature: Sampling temperature
            system_prompt: Optional system instructions

        Raises:
            GatewayError: on any transport or response failure
        """


class HttpModelGateway(ModelGateway):
    """ModelGateway backed by a provider's HTTP API via httpx."""

    def __init__(
        self,
        provider: str,
        api_key: str = "",
        base_url: Optional[str] = None,
        timeout: float = 120,
        max_tokens: int = 2000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown model provider: {provider}. Supported: {', '.join(PROVIDERS)}")
        self.provider = provider
        self.api_key = api_key
        self.base_url = (base_url or (ANTHROPIC_BASE_URL if provider == "anthropic" else OPENAI_BASE_URL)).rstrip("/")
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        headers = {"content-type": "application/json"}
        if self.provider == "anthropic":
            headers["anthropic-version"] = ANTHROPIC_VERSION
            if self.api_key:
                headers["x-api-key"] = self.api_key
        elif self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _build_request(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float,
        system_prompt: Optional[str],
    ) -> tuple[str, Dict[str, Any]]:
        chat = [{"role": m["role"], "content": m["content"]} for m in messages]

        if self.provider == "anthropic":
            payload = {
                "model": model,
                "max_tokens": self.max_tokens,
                "temperature": temperature,
                "messages": chat,
                "stream": False,
            }
            if system_prompt:
                payload["system"] = system_prompt
            return f"{self.base_url}/v1/messages", payload

        if system_prompt:
            chat = [{"role": "system", "content": system_prompt}] + chat
        payload = {
            "model": model,
            "temperature": temperature,
            "max_tokens": self.max_tokens,
            "messages": chat,
        }
        return f"{self.base_url}/v1/chat/completions", payload

    def _extract_text(self, data: Any) -> str:
        try:
            if self.provider == "anthropic":
                blocks = data["content"]
                return "".join(b["text"] for b in blocks if b.get("type") == "text")
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise GatewayError(f"Malformed {self.provider} response: missing {e}") from e

    async def complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float = 0.0,
        system_prompt: Optional[str] = None,
    ) -> str:
        url, payload = self._build_request(messages, model, temperature, system_prompt)
        logger.debug(f"Calling {self.provider} ({model}) at {url} with {len(messages)} messages")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=self._get_headers())
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise GatewayError(f"{self.provider} API returned HTTP {status}", status_code=status) from e
        except httpx.TimeoutException as e:
            raise GatewayError(f"{self.provider} API request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise GatewayError(f"{self.provider} API request failed: {e}") from e
        except ValueError as e:
            raise GatewayError(f"{self.provider} API returned a non-JSON body") from e

        return self._extract_text(data)


@dataclass(frozen=True)
class ModelBackend:
    """A logical model role (subject, judge, generator): gateway + model + temperature."""
    gateway: ModelGateway
    model: str
    temperature: float = 0.0

    async def complete(
        self,
        messages: List[Dict[str, str]],
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        return await self.gateway.complete(
            messages,
            model=self.model,
            temperature=self.temperature if temperature is None else temperature,
            system_prompt=system_prompt,
        )
