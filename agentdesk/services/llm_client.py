"""
Completion Client - JSON-mode chat completions through LiteLLM

Every call waits for a turn on the shared provider rate limiter, and
provider SDK errors are translated to ProviderRateLimited/ProviderError
so callers never see SDK exception types.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import litellm
from langchain_litellm import ChatLiteLLM
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from openai import APIError, RateLimitError

from agentdesk.config import settings
from agentdesk.core.exceptions import ParseError, ProviderError, ProviderRateLimited
from agentdesk.services.rate_limiter import ProviderRateLimiter, get_rate_limiter

# Drop parameters a provider does not support (e.g. response_format)
litellm.drop_params = True

logger = logging.getLogger(__name__)

JSON_SYSTEM_PROMPT = "You are a precise analyst. Respond only with a valid JSON object."


def model_string() -> str:
    if settings.LLM_MODEL_STRING:
        return settings.LLM_MODEL_STRING
    return f"{settings.LLM_PROVIDER}/{settings.CHAT_MODEL}"


def parse_json_reply(raw: str) -> Dict[str, Any]:
    """
    Parse a model reply as a JSON object

    Tolerates a markdown code fence around the object.

    Raises:
        ParseError: Reply is not a JSON object
    """
    text = (raw or "").strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
        text = text.strip()

    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f"Reply is not valid JSON: {e}", raw=raw) from e

    if not isinstance(data, dict):
        raise ParseError("Reply JSON is not an object", raw=raw)
    return data


def to_langchain_messages(
    system_prompt: str,
    turns: List[Dict[str, str]],
) -> List[BaseMessage]:
    """System prompt followed by role-tagged turns in order"""
    messages: List[BaseMessage] = [SystemMessage(content=system_prompt)]
    for turn in turns:
        if turn["role"] == "assistant":
            messages.append(AIMessage(content=turn["content"]))
        else:
            messages.append(HumanMessage(content=turn["content"]))
    return messages


class CompletionClient:
    """Rate-limited JSON completions"""

    def __init__(self, rate_limiter: Optional[ProviderRateLimiter] = None):
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.model = model_string()

    def _create_llm(self, temperature: float, max_tokens: int) -> ChatLiteLLM:
        litellm_kwargs = {
            "model": self.model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "request_timeout": settings.LLM_TIMEOUT,
            "model_kwargs": {"response_format": {"type": "json_object"}},
        }

        if settings.LLM_PROVIDER.startswith("openai"):
            litellm_kwargs["api_key"] = settings.OPENAI_API_KEY

        if settings.LLM_API_BASE:
            litellm_kwargs["api_base"] = settings.LLM_API_BASE

        return ChatLiteLLM(**litellm_kwargs)

    async def complete(
        self,
        system_prompt: str,
        turns: List[Dict[str, str]],
        temperature: float = settings.CHAT_TEMPERATURE,
        max_tokens: int = settings.CHAT_MAX_TOKENS,
    ) -> str:
        """
        Run one completion and return the raw reply text

        Args:
            system_prompt: System instruction
            turns: Prior and current turns as {role, content}
            temperature: Sampling temperature
            max_tokens: Completion token cap

        Raises:
            ProviderRateLimited: Provider throttled the call
            ProviderError: Any other provider failure
        """
        llm = self._create_llm(temperature, max_tokens)
        messages = to_langchain_messages(system_prompt, turns)

        await self.rate_limiter.await_turn()

        try:
            response = await llm.ainvoke(messages)
        except RateLimitError as e:
            raise ProviderRateLimited(f"Completion rate limited: {e}") from e
        except (APIError, TimeoutError, ConnectionError) as e:
            raise ProviderError(f"Completion request failed: {e}") from e

        content = response.content
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in content
            )
        return content or ""

    async def complete_json(
        self,
        prompt: str,
        temperature: float,
        max_tokens: int = settings.CHAT_MAX_TOKENS,
    ) -> Dict[str, Any]:
        """
        Single-prompt completion parsed as a JSON object

        Raises:
            ProviderError: Provider failure
            ParseError: Reply was not a JSON object
        """
        raw = await self.complete(
            system_prompt=JSON_SYSTEM_PROMPT,
            turns=[{"role": "user", "content": prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return parse_json_reply(raw)
