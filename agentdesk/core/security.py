"""
Security gate for widget chat requests

Checks the request origin against the agent's allow-list and verifies the
widget's HMAC-SHA256 signature, including replay protection on the signed
timestamp.
"""

import hashlib
import hmac
import logging
import time
from typing import Callable, List, Optional
from urllib.parse import urlparse

from agentdesk.config import settings
from agentdesk.core.exceptions import DomainRejected, SignatureInvalid, TimestampExpired

logger = logging.getLogger(__name__)


def extract_hostname(origin: Optional[str]) -> str:
    """Return the lowercase hostname of an origin or referer URL"""
    if not origin:
        return ""
    parsed = urlparse(origin if "://" in origin else f"//{origin}")
    return (parsed.hostname or "").lower()


def is_domain_allowed(origin: Optional[str], allowed_domains: List[str]) -> bool:
    """
    Check an origin against an allow-list

    An empty allow-list admits every origin. Plain entries must equal the
    hostname; ``*.example.com`` admits example.com and any subdomain of it.
    """
    if not allowed_domains:
        return True

    hostname = extract_hostname(origin)
    if not hostname:
        return False

    for entry in allowed_domains:
        entry = entry.strip().lower()
        if not entry:
            continue
        if entry.startswith("*."):
            base = entry[2:]
            if hostname == base or hostname.endswith("." + base):
                return True
        elif hostname == extract_hostname(entry) or hostname == entry:
            return True

    return False


def compute_signature(secret: str, agent_id: str, message: str, timestamp: int) -> str:
    """Hex HMAC-SHA256 over ``{agentId}:{message}:{timestamp}``"""
    payload = f"{agent_id}:{message}:{timestamp}"
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


class SecurityGate:
    """
    Authorizes inbound chat requests

    Args:
        alert_sink: Optional callable receiving (alert_type, origin, message)
            whenever a domain rejection occurs
        clock: Returns current time in epoch milliseconds
    """

    def __init__(
        self,
        alert_sink: Optional[Callable[[str, Optional[str], str], None]] = None,
        clock: Optional[Callable[[], int]] = None,
        max_skew_seconds: Optional[int] = None,
    ):
        self.alert_sink = alert_sink
        self.clock = clock or (lambda: int(time.time() * 1000))
        self.max_skew_ms = (max_skew_seconds or settings.HMAC_MAX_SKEW_SECONDS) * 1000

    def authorize(
        self,
        agent_id: str,
        message: str,
        origin: Optional[str],
        allowed_domains: List[str],
        signature: Optional[str] = None,
        timestamp: Optional[int] = None,
        secret: Optional[str] = None,
        alert_sink: Optional[Callable[[str, Optional[str], str], None]] = None,
    ) -> None:
        """
        Run the domain and signature checks, raising on the first failure

        Raises:
            DomainRejected: Origin not on the allow-list
            SignatureInvalid: Signature mismatch or missing timestamp
            TimestampExpired: Signed timestamp outside the replay window
        """
        self.check_domain(origin, allowed_domains, message, alert_sink)

        if secret and signature:
            self.check_signature(agent_id, message, signature, timestamp, secret)

    def check_domain(
        self,
        origin: Optional[str],
        allowed_domains: List[str],
        message: str = "",
        alert_sink: Optional[Callable[[str, Optional[str], str], None]] = None,
    ) -> None:
        if is_domain_allowed(origin, allowed_domains):
            return

        sink = alert_sink or self.alert_sink

        logger.warning(f"Blocked chat request from unauthorized origin: {origin}")
        if sink is not None:
            try:
                sink(
                    "unauthorized_domain",
                    origin,
                    (message or "")[:settings.SECURITY_ALERT_MESSAGE_CHARS],
                )
            except Exception as e:
                logger.error(f"Failed to record security alert: {e}", exc_info=True)
        raise DomainRejected(origin)

    def check_signature(
        self,
        agent_id: str,
        message: str,
        signature: str,
        timestamp: Optional[int],
        secret: str,
    ) -> None:
        if timestamp is None:
            raise SignatureInvalid("Signed request is missing its timestamp")

        expected = compute_signature(secret, agent_id, message, timestamp)
        if not hmac.compare_digest(expected.encode(), signature.encode()):
            logger.warning(f"Invalid HMAC signature for agent {agent_id}")
            raise SignatureInvalid("Signature does not match request")

        if abs(self.clock() - int(timestamp)) > self.max_skew_ms:
            logger.warning(f"Expired signed request for agent {agent_id} (ts={timestamp})")
            raise TimestampExpired("Request timestamp is outside the allowed window")
