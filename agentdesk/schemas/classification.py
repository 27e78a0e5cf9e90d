"""
Structured LLM contracts

Each contract has a ``from_llm`` constructor that applies defaults for
missing or malformed fields, and a ``fallback`` variant used when the
model's output could not be parsed at all.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from enum import Enum


class AnalysisTrigger(str, Enum):
    """Whether a conversation is ready for analysis"""
    FALSE = "false"      # Greeting or small talk
    PENDING = "pending"  # Real issue, not enough detail yet
    TRUE = "true"        # Enough context, analyze now

    @classmethod
    def coerce(cls, value: Any) -> "AnalysisTrigger":
        if isinstance(value, bool):
            return cls.TRUE if value else cls.FALSE
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.FALSE


class MainCategory(str, Enum):
    """Conversation category (closed set with an Other fallback)"""
    FEEDBACK = "Feedback"
    QUESTION = "Question"
    SUPPORT_REQUEST = "Support Request"
    SALES_INQUIRY = "Sales Inquiry"
    BUG_REPORT = "Bug Report"
    GENERAL = "General"
    OTHER = "Other"

    @classmethod
    def coerce(cls, value: Any) -> "MainCategory":
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.OTHER


class Urgency(str, Enum):
    """Urgency level (closed set with an unknown fallback)"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"

    @classmethod
    def coerce(cls, value: Any) -> "Urgency":
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value) if isinstance(value, (int, float)) else False


def _as_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


class AssistantTurn(BaseModel):
    """Structured reply for one chat turn"""
    reply: str
    should_analyze: AnalysisTrigger = AnalysisTrigger.FALSE
    analysis_reason: str = ""
    knowledge_gap_detected: bool = False
    unanswered_question: Optional[str] = None
    request_email: bool = False
    parse_failed: bool = False

    @classmethod
    def from_llm(cls, data: Dict[str, Any]) -> "AssistantTurn":
        """Build from parsed JSON, applying defaults for any missing field"""
        reply = _as_text(data.get("reply")).strip()

        question = data.get("unansweredQuestion")
        question = question.strip() if isinstance(question, str) else None
        gap_detected = _as_bool(data.get("knowledgeGapDetected", False))
        # A gap without a specific question is not actionable
        if not question:
            gap_detected = False
            question = None

        return cls(
            reply=reply,
            should_analyze=AnalysisTrigger.coerce(data.get("shouldAnalyze", "false")),
            analysis_reason=_as_text(data.get("analysisReason")),
            knowledge_gap_detected=gap_detected,
            unanswered_question=question if gap_detected else None,
            request_email=_as_bool(data.get("requestEmail", False)),
        )

    @classmethod
    def fallback(cls, raw: str, reason: str) -> "AssistantTurn":
        """Raw model text used as the reply when JSON parsing failed"""
        return cls(
            reply=raw.strip(),
            should_analyze=AnalysisTrigger.FALSE,
            analysis_reason=f"Failed to parse structured response: {reason}",
            parse_failed=True,
        )


class GapClassification(BaseModel):
    """Knowledge-gap match decision"""
    matches_existing: bool = False
    existing_gap_id: Optional[str] = None
    category: str
    representative_question: str
    confidence: float = 0.0

    @classmethod
    def from_llm(cls, data: Dict[str, Any], question: str) -> "GapClassification":
        gap_id = data.get("existingGapId")
        gap_id = str(gap_id) if gap_id else None
        matches = _as_bool(data.get("matchesExisting", False)) and gap_id is not None

        try:
            confidence = float(data.get("confidence", 0.0))
        except (TypeError, ValueError):
            confidence = 0.0

        return cls(
            matches_existing=matches,
            existing_gap_id=gap_id if matches else None,
            category=_as_text(data.get("category")).strip() or "General",
            representative_question=_as_text(data.get("representativeQuestion")).strip() or question,
            confidence=max(0.0, min(1.0, confidence)),
        )

    @classmethod
    def fallback(cls, question: str) -> "GapClassification":
        return cls(category="General", representative_question=question)


class ConversationAnalysis(BaseModel):
    """Analysis of a completed or flagged conversation"""
    summary: str = ""
    main_category: MainCategory = MainCategory.OTHER
    sub_category: str = ""
    sentiment_score: int = Field(5, ge=1, le=10)
    intent: str = ""
    urgency: Urgency = Urgency.UNKNOWN
    key_topics: List[str] = Field(default_factory=list)
    resolved: bool = False

    @classmethod
    def from_llm(cls, data: Dict[str, Any]) -> "ConversationAnalysis":
        try:
            sentiment = int(round(float(data.get("sentimentScore", 5))))
        except (TypeError, ValueError):
            sentiment = 5

        topics = data.get("keyTopics") or []
        if not isinstance(topics, list):
            topics = [topics]

        return cls(
            summary=_as_text(data.get("summary")),
            main_category=MainCategory.coerce(data.get("mainCategory")),
            sub_category=_as_text(data.get("subCategory")),
            sentiment_score=max(1, min(10, sentiment)),
            intent=_as_text(data.get("intent")),
            urgency=Urgency.coerce(data.get("urgency")),
            key_topics=[_as_text(t).strip() for t in topics if _as_text(t).strip()],
            resolved=_as_bool(data.get("resolved", False)),
        )

    def to_record(self) -> Dict[str, Any]:
        """camelCase dict persisted on the conversation"""
        return {
            "summary": self.summary,
            "mainCategory": self.main_category.value,
            "subCategory": self.sub_category,
            "sentimentScore": self.sentiment_score,
            "intent": self.intent,
            "urgency": self.urgency.value,
            "keyTopics": self.key_topics,
            "resolved": self.resolved,
        }
