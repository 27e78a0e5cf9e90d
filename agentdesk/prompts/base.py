"""
Prompt Builder - renders the support, gap and analysis prompts from Jinja2 templates
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
from jinja2 import Environment, FileSystemLoader, select_autoescape

from agentdesk.config import settings


class PromptBuilder:
    """
    Builds prompts from Jinja2 templates

    Templates:
    - system_support: grounded system prompt with the JSON reply contract
    - gap_classification: match a question against existing knowledge gaps
    - conversation_analysis: summarize and score a transcript
    """

    def __init__(self):
        templates_dir = Path(__file__).parent / "templates"
        self.env = Environment(
            loader=FileSystemLoader(templates_dir),
            autoescape=select_autoescape(['html', 'xml']),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def build_system_prompt(
        self,
        agent_name: str,
        context_texts: List[str],
        page_context: Optional[Dict[str, Any]] = None,
        current_path: Optional[str] = None,
        platform_info: Optional[str] = None,
        website_url: Optional[str] = None,
        email_known: bool = False,
    ) -> str:
        """
        Build the grounded system prompt for one chat turn

        Args:
            agent_name: Name the assistant introduces itself with
            context_texts: Retrieved chunk texts, most relevant first
            page_context: Optional {url, title, headings} of the visitor's page
            current_path: Used only when no page context is available
            platform_info: Operator-provided product description
            website_url: Site the agent is embedded on
            email_known: An email already appeared in the conversation

        Returns:
            Complete system prompt string
        """
        template = self.env.get_template("system_support.jinja2")
        return template.render(
            agent_name=agent_name or "Support Assistant",
            knowledge="\n\n".join(text for text in context_texts if text),
            page_context=self._normalize_page_context(page_context),
            current_path=current_path,
            platform_info=platform_info,
            website_url=website_url,
            email_known=email_known,
        ).strip()

    def build_gap_classification_prompt(
        self,
        gaps: List[Any],
        question: str,
        original_message: Optional[str] = None,
    ) -> str:
        template = self.env.get_template("gap_classification.jinja2")
        return template.render(
            gaps=gaps,
            question=question,
            original_message=original_message,
            threshold=settings.GAP_MATCH_THRESHOLD_PERCENT,
        ).strip()

    def build_analysis_prompt(self, messages: List[Any]) -> str:
        template = self.env.get_template("conversation_analysis.jinja2")
        return template.render(messages=messages).strip()

    @staticmethod
    def _normalize_page_context(page_context: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if not page_context or not isinstance(page_context, dict):
            return None

        headings = page_context.get("headings") or []
        if isinstance(headings, str):
            headings = [headings]

        normalized = {
            "url": page_context.get("url"),
            "title": page_context.get("title"),
            "headings": [str(h) for h in headings][:10],
        }
        if not any(normalized.values()):
            return None
        return normalized
