"""
Analytics API endpoint
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agentdesk.api.agents import load_agent
from agentdesk.database import get_db
from agentdesk.schemas.operator import AnalyticsSummary
from agentdesk.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/agents/{agent_id}/analytics", tags=["analytics"])


@router.get("", response_model=AnalyticsSummary)
async def get_analytics(
    agent_id: str,
    range_name: str = Query("weekly", alias="range"),
    db: Session = Depends(get_db),
):
    """Conversation analytics for the daily, weekly or monthly window"""
    load_agent(agent_id, db)
    return AnalyticsService(db).summarize(agent_id, range_name)
