"""Stateless content classifiers: link allow-list and banned content."""

from __future__ import annotations

import re
from typing import Iterable, Optional
from urllib.parse import urlsplit

URL_PATTERN = re.compile(r"https?://[^\s<]+", re.IGNORECASE)
HOSTNAME_PATTERN = re.compile(r"^[a-z0-9-]+(?:\.[a-z0-9-]+)*$")


def extract_hostname(url: str) -> Optional[str]:
    """Return the lower-cased hostname of ``url``, or None if it is unusable."""
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return None
    if not hostname or not HOSTNAME_PATTERN.match(hostname):
        return None
    return hostname


class LinkPolicy:
    """Flags messages containing links outside the allowed domains.

    A hostname is allowed when it equals an allow-list entry or is a
    subdomain of one (``app.lumist.ai`` under ``lumist.ai``).
    """

    def __init__(self, allowed_domains: Iterable[str]) -> None:
        self.allowed_domains = tuple(domain.lower().strip() for domain in allowed_domains if domain.strip())

    def is_allowed_host(self, hostname: str) -> bool:
        return any(
            hostname == domain or hostname.endswith("." + domain)
            for domain in self.allowed_domains
        )

    def has_disallowed_link(self, text: str) -> bool:
        for url in URL_PATTERN.findall(text):
            hostname = extract_hostname(url)
            if hostname is None or not self.is_allowed_host(hostname):
                return True
        return False


class BannedContentPolicy:
    def __init__(self, words: Iterable[str] = (), patterns: Iterable[str] = ()) -> None:
        self.words = tuple(word.lower() for word in words if word)
        self.patterns = tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)

    def is_banned(self, text: str) -> bool:
        content = text.lower()
        if any(word in content for word in self.words):
            return True
        return any(pattern.search(content) for pattern in self.patterns)
