"""
Heuristic spam detection for contact form submissions.

A submission is spam when any of these hold:

    - subject or message contains a known spam phrase
    - subject + message carry more than 2 links
    - more than half of the message's letters are uppercase (10+ letters)
    - the hidden ``website`` field (honeypot) was filled in

Spam is answered like a normal submission but never stored, so bots get
no signal that they were caught.
"""

import re
from typing import Any, Iterable, Mapping, Optional


SPAM_PHRASES = (
    "viagra",
    "cialis",
    "lottery",
    "winner",
    "congratulations",
    "click here",
    "make money",
    "work from home",
    "guaranteed",
    "free money",
    "investment opportunity",
    "bitcoin",
    "crypto",
)

LINK_RE = re.compile(r"https?://|www\.", re.IGNORECASE)

MAX_LINKS = 2
MAX_UPPERCASE_RATIO = 0.5
MIN_LETTERS_FOR_RATIO = 10


class SpamFilter:

    def __init__(self, phrases: Optional[Iterable[str]] = None, honeypot_field: str = "website"):
        self.phrases = tuple(p.lower() for p in (phrases or SPAM_PHRASES))
        self.honeypot_field = honeypot_field

    def reason(self, data: Mapping[str, Any]) -> Optional[str]:
        """Why ``data`` looks like spam, or None when it looks legitimate."""
        if str(data.get(self.honeypot_field) or "").strip():
            return "honeypot"

        message = str(data.get("message") or "")
        text = f"{message} {data.get('subject') or ''}"
        lowered = text.lower()

        for phrase in self.phrases:
            if phrase in lowered:
                return f"phrase:{phrase}"

        if len(LINK_RE.findall(text)) > MAX_LINKS:
            return "links"

        letters = [ch for ch in message if ch.isalpha()]
        if len(letters) >= MIN_LETTERS_FOR_RATIO:
            upper = sum(1 for ch in letters if ch.isupper())
            if upper / len(letters) > MAX_UPPERCASE_RATIO:
                return "uppercase"

        return None

    def is_spam(self, data: Mapping[str, Any]) -> bool:
        return self.reason(data) is not None
