"""
Custom exceptions for AgentDesk

Every rejection a chat caller can branch on has its own type, so the
HTTP layer can map it to a status code without inspecting messages.
"""

from typing import Optional


class AgentDeskException(Exception):
    """Base exception for AgentDesk"""
    pass


class ValidationError(AgentDeskException):
    """Request is missing a required field"""
    pass


class NotFoundError(AgentDeskException):
    """Resource not found"""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class SecurityRejection(AgentDeskException):
    """Request failed an origin or signature check"""

    reason = "security_rejected"


class DomainRejected(SecurityRejection):
    """Request origin is not on the agent's allow-list"""

    reason = "domain_not_allowed"

    def __init__(self, origin: Optional[str]):
        self.origin = origin
        super().__init__(f"Origin not allowed: {origin or 'unknown'}")


class SignatureInvalid(SecurityRejection):
    """HMAC signature does not match the payload"""

    reason = "invalid_signature"


class TimestampExpired(SecurityRejection):
    """Signed timestamp is outside the replay window"""

    reason = "timestamp_expired"


class LimitReached(AgentDeskException):
    """Tenant has used every message its plan allows"""

    def __init__(self, messages_used: int, message_limit: int, plan: str):
        self.messages_used = messages_used
        self.message_limit = message_limit
        self.plan = plan
        super().__init__(
            f"Message limit reached: {messages_used}/{message_limit} on plan '{plan}'"
        )

    def to_dict(self) -> dict:
        return {
            "messagesUsed": self.messages_used,
            "messageLimit": self.message_limit,
            "plan": self.plan,
        }


class ProviderError(AgentDeskException):
    """Embedding or completion provider failed"""
    pass


class ProviderRateLimited(ProviderError):
    """Embedding or completion provider throttled the call"""
    pass


class ParseError(AgentDeskException):
    """LLM reply was not valid JSON for the expected contract"""

    def __init__(self, message: str, raw: str = ""):
        self.raw = raw
        super().__init__(message)
