from .session_dal import MongoSessionBackend, BREAK_AFTER, FAIL_AFTER

__all__ = ["MongoSessionBackend", "BREAK_AFTER", "FAIL_AFTER"]
