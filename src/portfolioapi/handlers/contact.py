"""
Contact form intake: ``POST /api/contact/submit``.

    validate (400 + errors) → spam check → store → 200 {"message_id": 12}

Spam gets the same 200 and message as a real submission, with
``data: null``, and is not stored.
"""

import logging

from ..data.repositories import PortfolioRepository
from ..errors import ValidationError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, success
from ..services.spam import SpamFilter
from ..services.validation import CONTACT_RULES, Validator, sanitize


logger = logging.getLogger(__name__)


THANK_YOU = "Thank you for your message. We will get back to you soon."

FIELDS = ("name", "email", "subject", "message")


class ContactHandler:

    def __init__(self, repository: PortfolioRepository, validator: Validator, spam_filter: SpamFilter):
        self.repository = repository
        self.validator = validator
        self.spam_filter = spam_filter

    def submit(self, request: HTTPRequest) -> HTTPResponse:
        raw = request.data
        data = {
            key: value.strip() if isinstance(value, str) else value
            for key, value in raw.items()
        }

        errors = self.validator.validate(data, CONTACT_RULES)
        if errors:
            raise ValidationError("Validation failed", errors=errors)

        ip = request.context.client_ip or request.client_address[0]

        reason = self.spam_filter.reason(data)
        if reason:
            logger.warning(f"Spam contact submission from {ip} ({reason}), not stored")
            return success(None, THANK_YOU)

        clean = {name: sanitize(data[name]) for name in FIELDS}
        message_id = self.repository.save_contact_message({
            **clean,
            "ip_address": ip,
            "user_agent": request.user_agent[:500],
        })
        logger.info(f"Contact message {message_id} received from {ip}")
        return success({"message_id": message_id}, THANK_YOU)
