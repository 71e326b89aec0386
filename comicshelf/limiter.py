from slowapi import Limiter
from slowapi.util import get_remote_address

from comicshelf import config

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[config.API_RATE_LIMIT],
    strategy="moving-window",
    enabled=config.RATE_LIMIT_ENABLED,
)
