"""
Analytics Service
Aggregates stored conversation analyses for the operator dashboard
"""

import logging
from collections import Counter
from datetime import timedelta
from typing import Any, Dict

from sqlalchemy.orm import Session

from agentdesk.core.exceptions import ValidationError
from agentdesk.database import utcnow
from agentdesk.models.conversation import Conversation

logger = logging.getLogger(__name__)

RANGES = {
    "daily": timedelta(days=1),
    "weekly": timedelta(days=7),
    "monthly": timedelta(days=30),
}

DEFAULT_SENTIMENT = 5.0
TOP_TOPICS = 10


class AnalyticsService:
    def __init__(self, db: Session):
        self.db = db

    def summarize(self, agent_id: str, range_name: str = "weekly") -> Dict[str, Any]:
        """
        Conversation analytics for conversations active within the range

        Args:
            agent_id: Agent to report on
            range_name: daily | weekly | monthly

        Returns:
            Dict matching AnalyticsSummary
        """
        window = RANGES.get(range_name)
        if window is None:
            raise ValidationError(f"Unknown analytics range: {range_name}")

        since = utcnow() - window
        conversations = self.db.query(Conversation).filter(
            Conversation.agent_id == agent_id,
            Conversation.last_message_at >= since,
        ).all()

        analyses = [c.analysis for c in conversations if c.analyzed and c.analysis]

        categories = Counter()
        sentiments = Counter()
        urgency = Counter()
        topics = Counter()
        resolved = 0
        sentiment_total = 0

        for analysis in analyses:
            categories[analysis.get("mainCategory") or "Other"] += 1

            score = analysis.get("sentimentScore")
            if isinstance(score, (int, float)) and 1 <= score <= 10:
                sentiments[int(score)] += 1
                sentiment_total += score

            urgency[analysis.get("urgency") or "unknown"] += 1

            for topic in analysis.get("keyTopics") or []:
                topics[str(topic).strip().lower()] += 1

            if analysis.get("resolved"):
                resolved += 1

        analyzed = len(analyses)
        scored = sum(sentiments.values())

        return {
            "range": range_name,
            "total_conversations": len(conversations),
            "analyzed_conversations": analyzed,
            "resolved": resolved,
            "unresolved": analyzed - resolved,
            "resolution_rate": round(resolved / analyzed * 100, 1) if analyzed else 0.0,
            "average_sentiment": round(sentiment_total / scored, 1) if scored else DEFAULT_SENTIMENT,
            "categories": {
                name: {
                    "count": count,
                    "percentage": round(count / analyzed * 100, 1),
                }
                for name, count in categories.most_common()
            },
            "sentiment_distribution": {score: sentiments.get(score, 0) for score in range(1, 11)},
            "urgency": dict(urgency),
            "top_topics": [
                {"topic": topic, "count": count}
                for topic, count in topics.most_common(TOP_TOPICS)
                if topic
            ],
        }
