from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Dict, Optional

import httpx

from .errors import EmptyResponse, GenerationTimeout, UpstreamError
from .prompt import build_chat_messages
from .text import strip_control_tokens
from .types import ConversationContext

logger = logging.getLogger(__name__)

HF_ROUTER_URL = "https://router.huggingface.co/v1/chat/completions"
DEFAULT_MODEL_ID = "meta-llama/Llama-3.1-70B-Instruct"


class GenerativeClient:
    """One-shot adapter to an OpenAI-compatible chat-completions endpoint.

    Every call opens its own ``httpx.AsyncClient`` and is bounded by
    ``timeout_sec``. There is no retry here; a failed call raises one of
    ``GenerationTimeout``, ``UpstreamError`` or ``EmptyResponse``.
    """

    def __init__(
        self,
        persona_prompt: str,
        api_key: Optional[str],
        base_url: str = HF_ROUTER_URL,
        model_id: str = DEFAULT_MODEL_ID,
        timeout_sec: float = 40.0,
        max_tokens: int = 800,
        temperature: float = 0.8,
        top_p: float = 0.9,
        max_context_turns: int = 6,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.persona_prompt = persona_prompt
        self.api_key = api_key
        self.base_url = base_url
        self.model_id = model_id
        self.timeout_sec = timeout_sec
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p
        self.max_context_turns = max_context_turns
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        persona_prompt: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "GenerativeClient":
        llm_cfg = config.get("llm", {})
        api_key = os.environ.get(llm_cfg.get("api_key_env", "HUGGINGFACE_API_KEY"), "").strip()
        return cls(
            persona_prompt=persona_prompt,
            api_key=api_key or None,
            base_url=llm_cfg.get("base_url", HF_ROUTER_URL),
            model_id=llm_cfg.get("model_id", DEFAULT_MODEL_ID),
            timeout_sec=float(llm_cfg.get("timeout_sec", 40.0)),
            max_tokens=int(llm_cfg.get("max_tokens", 800)),
            temperature=float(llm_cfg.get("temperature", 0.8)),
            top_p=float(llm_cfg.get("top_p", 0.9)),
            max_context_turns=int(llm_cfg.get("max_context_turns", 6)),
            transport=transport,
        )

    def build_payload(self, message: str, context: ConversationContext) -> Dict[str, Any]:
        return {
            "model": self.model_id,
            "messages": build_chat_messages(self.persona_prompt, message, context, self.max_context_turns),
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
        }

    async def generate(self, message: str, context: Optional[ConversationContext] = None) -> str:
        if not self.api_key:
            raise UpstreamError("No API key configured for the generative backend")

        payload = self.build_payload(message, context or ConversationContext())
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        logger.debug("Generative request: model=%s messages=%d", self.model_id, len(payload["messages"]))
        try:
            async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self._transport) as client:
                response = await asyncio.wait_for(
                    client.post(self.base_url, headers=headers, json=payload),
                    timeout=self.timeout_sec,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise GenerationTimeout(f"Generative call exceeded {self.timeout_sec:.1f}s") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Generative transport error: {exc}") from exc

        if response.status_code >= 400:
            raise UpstreamError(f"Generative backend returned HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError("Generative backend returned a non-JSON body") from exc
        return parse_completion(data)


def parse_completion(data: Any) -> str:
    if not isinstance(data, dict):
        raise EmptyResponse("Completion payload is not an object")
    if data.get("error"):
        raise UpstreamError(f"Generative backend error: {data['error']}")

    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise EmptyResponse("Completion payload has no choices")
    message = choices[0].get("message")
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str):
        raise EmptyResponse("Completion payload has no message content")

    text = strip_control_tokens(content)
    if not text:
        raise EmptyResponse("Completion text is empty after cleaning")
    return text
