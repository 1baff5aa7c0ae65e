"""
Per-client request limits for the routes that push files to the asset store.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from config import get_settings

_settings = get_settings()

limiter = Limiter(key_func=get_remote_address, enabled=_settings.rate_limit_enabled)

# register, avatar, cover image, publish and update video
upload_limit = limiter.limit(_settings.upload_rate_limit)
