"""
Route middleware ``rate_limit``: fixed-window limiting per client IP and
endpoint category.

    Allowed (3 of 5 used):

        HTTP/1.1 200 OK
        X-RateLimit-Limit: 5
        X-RateLimit-Remaining: 2
        X-RateLimit-Reset: 1760000060

    Rejected (RateLimitError, answered by the router):

        HTTP/1.1 429 Too Many Requests
        Retry-After: 41
        X-RateLimit-Limit: 5
        X-RateLimit-Remaining: 0
        X-RateLimit-Reset: 1760000060

        {"error": true, "message": "Too many requests. Please try again later."}
"""

import logging

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..errors import RateLimitError
from ..http.response import HTTPResponse
from ..services.rate_limiter import RateLimiter, categorize, resolve_client_ip


logger = logging.getLogger(__name__)


class RateLimitMiddleware(Middleware):

    def __init__(self, limiter: RateLimiter):
        self.limiter = limiter

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        ip = request.context.client_ip or resolve_client_ip(
            request.headers, request.client_address[0]
        )
        request.context.client_ip = ip
        category = categorize(request.method, request.path)

        decision = self.limiter.hit(ip, category)

        if not decision.allowed:
            logger.warning(
                f"Rate limit exceeded: ip={ip} category={category} "
                f"count={decision.count} limit={decision.limit} "
                f"user_agent={request.user_agent or '-'}"
            )
            raise RateLimitError(decision.retry_after, headers=decision.headers())

        response = next(request)
        for name, value in decision.headers().items():
            response.headers.setdefault(name, value)
        return response
