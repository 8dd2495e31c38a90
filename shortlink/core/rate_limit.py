"""
Rate Limiting

slowapi limiter shared by all endpoints. Clients are keyed by the same
proxy-aware IP the click tracking records, so a deployment behind a load
balancer does not put every visitor in one bucket.

Password verification gets the tightest limit to slow down guessing;
retention cleanup is an admin operation and barely needs more than one
call per run.
"""

from fastapi import Request
from slowapi import Limiter

from shortlink.services.request_context import get_client_ip


def rate_limit_key(request: Request) -> str:
    return get_client_ip(request)


limiter = Limiter(key_func=rate_limit_key)

# "count/period", per client
RATE_LIMITS = {
    "shorten": "10/minute",
    "redirect": "100/minute",
    "verify": "5/minute",
    "analytics": "30/minute",
    "maintenance": "2/minute",
}
