"""Rate limiter for endpoints that call external data sources."""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Shared across routers; registered on app.state in main
limiter = Limiter(key_func=get_remote_address)

WALLET_LINK_LIMIT = "10/minute"
