"""
Prompt Templates
Jinja2-rendered system and classification prompts
"""

from agentdesk.prompts.base import PromptBuilder

__all__ = ["PromptBuilder"]
