from __future__ import annotations

import os
import socket


def process_identity() -> str:
    """Owner token for locks taken by this process: ``<hostname>:<pid>``."""
    return f"{socket.gethostname()}:{os.getpid()}"
