"""AgentDesk - retrieval-augmented support agents"""

__version__ = "0.1.0"
