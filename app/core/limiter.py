"""
Shared slowapi rate limiter.

One instance for the whole app so every route shares the same in-memory
counters; ``app.main`` attaches it to ``app.state.limiter``.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
