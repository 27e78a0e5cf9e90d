"""
Celery Tasks
Asynchronous background processing tasks
"""

from agentdesk.tasks.train_agent import train_agent_task
from agentdesk.tasks.classify_knowledge_gap import classify_knowledge_gap_task

__all__ = ["train_agent_task", "classify_knowledge_gap_task"]
