"""
contact_mirror.auth - Authorization gate for contact store access
"""

from contact_mirror.auth.gate import (
    AuthorizationError,
    AuthorizationGate,
    AuthorizationStatus,
    FileAuthorizationGate,
    StaticAuthorizationGate,
)

__all__ = [
    "AuthorizationError",
    "AuthorizationGate",
    "AuthorizationStatus",
    "FileAuthorizationGate",
    "StaticAuthorizationGate",
]
