"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (to mount as middleware) and by the route modules
that apply per-route limits with @limiter.limit(): login, register and the
admin login.

@limiter.limit() goes directly below @router.post() so the endpoint FastAPI
registers is the rate-limited wrapper. Those route modules keep their
annotations runtime-evaluable (no postponed evaluation) because FastAPI
inspects the wrapper's signature.

A single shared instance means all routes share the same in-memory counter
store. Per-module instances would each keep their own counters.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
