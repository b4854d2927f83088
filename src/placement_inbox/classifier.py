"""Keyword-based relevance, category and company classification."""

from __future__ import annotations

import re
from dataclasses import dataclass

from .constants import CATEGORY_PATTERNS, GENERIC_MAIL_DOMAINS, KNOWN_COMPANIES, PLACEMENT_KEYWORDS
from .models import Category, NormalizedEmail

_DOMAIN_RE = re.compile(r"@([a-zA-Z0-9]+)\.")


@dataclass(frozen=True)
class ClassifierConfig:
    """Keyword lists used by KeywordClassifier.

    ``category_patterns`` is an ordered sequence of (category, terms) pairs;
    the first pair with a matching term decides the category.
    """

    placement_keywords: tuple[str, ...]
    category_patterns: tuple[tuple[Category, tuple[str, ...]], ...]
    known_companies: tuple[str, ...]
    generic_mail_domains: tuple[str, ...]


DEFAULT_CLASSIFIER_CONFIG = ClassifierConfig(
    placement_keywords=PLACEMENT_KEYWORDS,
    category_patterns=tuple((Category(name), terms) for name, terms in CATEGORY_PATTERNS),
    known_companies=KNOWN_COMPANIES,
    generic_mail_domains=GENERIC_MAIL_DOMAINS,
)


def _contains_any(text: str, terms: tuple[str, ...]) -> bool:
    return any(term.lower() in text for term in terms)


class KeywordClassifier:
    """Case-insensitive substring matcher over subject, snippet and sender."""

    def __init__(self, config: ClassifierConfig = DEFAULT_CLASSIFIER_CONFIG) -> None:
        self.config = config

    def is_relevant(self, email: NormalizedEmail) -> bool:
        """Return True when the email mentions any placement keyword."""
        content = f"{email.subject} {email.snippet} {email.sender}".lower()
        return _contains_any(content, self.config.placement_keywords)

    def categorize(self, email: NormalizedEmail) -> Category:
        """Return the first category whose terms appear in subject or snippet."""
        content = f"{email.subject} {email.snippet}".lower()
        for category, terms in self.config.category_patterns:
            if _contains_any(content, terms):
                return category
        return Category.OTHER

    def extract_company(self, email: NormalizedEmail) -> str | None:
        """Guess the company an email is about.

        Known company names are tried first, in list order, against the
        subject and sender.  Failing that, the first label of the sender's
        domain is used unless it belongs to a generic mail provider.
        """
        content = f"{email.subject} {email.sender}".lower()
        for company in self.config.known_companies:
            if company.lower() in content:
                return company

        m = _DOMAIN_RE.search(email.sender)
        if m:
            domain = m.group(1)
            if domain.lower() not in self.config.generic_mail_domains:
                return domain[0].upper() + domain[1:]

        return None
