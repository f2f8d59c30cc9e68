from .session import SessionRecord, SessionPayload, SessionReadResponse, Ack, Readiness

__all__ = ["SessionRecord", "SessionPayload", "SessionReadResponse", "Ack", "Readiness"]
