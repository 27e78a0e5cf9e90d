"""
Text Chunking System
Boundary-aware overlapping character windows
"""

from agentdesk.chunking.text_chunker import TextChunker

__all__ = ["TextChunker"]
