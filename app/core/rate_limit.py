"""
Shared slowapi limiter.

Routes decorate with ``@limiter.limit(...)``; main.py registers the limiter on
app.state and installs the RateLimitExceeded handler.
"""
from slowapi import Limiter

from app.features.users.dependencies import get_authorization_header


limiter = Limiter(key_func=get_authorization_header)
