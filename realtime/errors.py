"""
Error taxonomy for the live event layer.

AuthError rejects a connection before admission. SendError and InvalidEvent are
reported to the originating connection only. PersistenceError wraps failures of
the storage collaborator.
"""


class RealtimeError(Exception):
    """Base class; `reason` is a stable machine-readable code."""

    reason = "error"
    default_message = "Realtime error"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class AuthError(RealtimeError):
    reason = "auth_error"
    default_message = "Authentication error"


class MissingToken(AuthError):
    reason = "missing_token"
    default_message = "Authentication error: no token provided"


class InvalidToken(AuthError):
    reason = "invalid_token"
    default_message = "Authentication error: invalid token"


class AuthTimeout(AuthError):
    reason = "auth_timeout"
    default_message = "Authentication error: timed out"


class SendError(RealtimeError):
    reason = "send_error"
    default_message = "Failed to send message"


class MissingChat(SendError):
    reason = "missing_chat"
    default_message = "Chat ID is required"


class EmptyMessage(SendError):
    reason = "empty_message"
    default_message = "Message content or file is required"


class AccessDenied(SendError):
    reason = "access_denied"
    default_message = "Access denied"


class MessageNotFound(SendError):
    reason = "message_not_found"
    default_message = "Message not found"


class InvalidEvent(RealtimeError):
    reason = "invalid_event"
    default_message = "Invalid event"


class PersistenceError(RealtimeError):
    reason = "persistence_error"
    default_message = "Storage operation failed"
