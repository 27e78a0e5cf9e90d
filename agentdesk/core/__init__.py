"""
Core Utilities

Modules:
    - security: Origin allow-list and HMAC request verification
    - exceptions: Typed rejections and provider failures
"""

from agentdesk.core import security, exceptions

__all__ = ["security", "exceptions"]
