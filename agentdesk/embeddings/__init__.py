"""
Embedding Generation System
OpenAI embeddings paced by the shared provider rate limiter
"""

from agentdesk.embeddings.openai_embedder import OpenAIEmbedder

__all__ = ["OpenAIEmbedder"]
