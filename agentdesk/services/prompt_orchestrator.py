"""
Prompt Orchestrator - produces one grounded assistant turn

Builds the system prompt from retrieved knowledge and page context,
appends the recent conversation, calls the completion provider in JSON
mode and turns the reply into an AssistantTurn. A reply that is not
valid JSON is still delivered to the visitor as plain text.
"""

import logging
import re
from functools import lru_cache
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import tiktoken

from agentdesk.config import settings
from agentdesk.core.exceptions import ParseError
from agentdesk.prompts import PromptBuilder
from agentdesk.schemas.classification import AssistantTurn
from agentdesk.services.llm_client import CompletionClient, parse_json_reply

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")


def find_email(texts: List[str]) -> Optional[str]:
    """Last email address mentioned in ``texts``, if any"""
    found = None
    for text in texts:
        for match in EMAIL_PATTERN.findall(text or ""):
            found = match
    return found


@lru_cache(maxsize=4)
def _encoding_for(model: str):
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding("cl100k_base")


def count_tokens(text: str, model: str = "gpt-4o-mini") -> int:
    """
    Count tokens in text using tiktoken

    Falls back to a word-based estimate when the encoding cannot be loaded
    (tiktoken fetches encodings on first use).
    """
    try:
        encoding = _encoding_for(model)
    except Exception as e:
        logger.warning(f"tiktoken encoding unavailable, using word-based estimation: {e}")
        return int(len(text.split()) * 1.3)
    return len(encoding.encode(text))


@dataclass
class OrchestratedReply:
    """Parsed turn plus the bookkeeping stored on the assistant message"""
    turn: AssistantTurn
    prompt_tokens: int
    completion_tokens: int
    email_seen: Optional[str] = None


class PromptOrchestrator:
    """Grounded completion for the chat path"""

    def __init__(
        self,
        llm_client: Optional[CompletionClient] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        history_window: int = settings.CHAT_HISTORY_WINDOW,
    ):
        self.llm_client = llm_client or CompletionClient()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.history_window = history_window

    def build_turns(self, history: List[Dict[str, str]], message: str) -> List[Dict[str, str]]:
        """Last ``history_window`` prior turns in order, then the new user turn"""
        window = history[-self.history_window:] if self.history_window > 0 else []
        turns = [
            {"role": turn["role"], "content": turn["content"]}
            for turn in window
            if turn.get("content")
        ]
        turns.append({"role": "user", "content": message})
        return turns

    async def generate(
        self,
        agent_name: str,
        context_texts: List[str],
        message: str,
        history: Optional[List[Dict[str, str]]] = None,
        session_data: Optional[Dict[str, Any]] = None,
        platform_info: Optional[str] = None,
        website_url: Optional[str] = None,
    ) -> OrchestratedReply:
        """
        Produce the assistant turn for ``message``

        Raises:
            ProviderError: Completion call failed; parse failures do not raise
        """
        history = history or []
        session_data = session_data or {}

        email_seen = find_email([turn.get("content", "") for turn in history] + [message])

        system_prompt = self.prompt_builder.build_system_prompt(
            agent_name=agent_name,
            context_texts=context_texts,
            page_context=session_data.get("pageContext"),
            current_path=session_data.get("currentPath") or session_data.get("currentPage"),
            platform_info=platform_info,
            website_url=website_url,
            email_known=email_seen is not None,
        )
        turns = self.build_turns(history, message)

        raw = await self.llm_client.complete(
            system_prompt=system_prompt,
            turns=turns,
            temperature=settings.CHAT_TEMPERATURE,
            max_tokens=settings.CHAT_MAX_TOKENS,
        )

        turn = self.parse_reply(raw)
        if email_seen and turn.request_email:
            turn.request_email = False

        prompt_text = system_prompt + "".join(t["content"] for t in turns)
        return OrchestratedReply(
            turn=turn,
            prompt_tokens=count_tokens(prompt_text),
            completion_tokens=count_tokens(raw or ""),
            email_seen=email_seen,
        )

    @staticmethod
    def parse_reply(raw: str) -> AssistantTurn:
        """Structured turn, or the raw text as reply when parsing fails"""
        if not (raw or "").strip():
            logger.warning("Completion returned an empty reply")
            return AssistantTurn.fallback(settings.FALLBACK_REPLY, "empty reply")

        try:
            data = parse_json_reply(raw)
        except ParseError as e:
            logger.warning(f"Using raw completion text as reply: {e}")
            return AssistantTurn.fallback(raw, str(e))

        turn = AssistantTurn.from_llm(data)
        if not turn.reply:
            logger.warning("Structured reply had no reply text")
            turn.reply = settings.FALLBACK_REPLY
        return turn
