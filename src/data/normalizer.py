"""
Review Normalizer
=================

Maps heterogeneous provider payloads onto the canonical Review record and
computes its identity key.

Field aliases accepted (first non-empty wins):
    id:        id, review_id, reviewId, external_review_id
    author:    author, author_name, userId, user
    rating:    rating, ratingScore, stars, score
    title:     title, reviewTitle, headline
    body:      content, body, text, reviewDescription
    date:      date, date_published, publishedDate, created_at, review_date
    verified:  verified_purchase, verifiedPurchase, isVerified, verified

When a payload carries no id, one is synthesized from a SHA-256 digest of
author, published date, body (or title) and rating, so that re-fetching the
same upstream review always lands on the same identity key.
"""

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from .data_models import RawReviewPayload, Review

logger = logging.getLogger(__name__)


ID_FIELDS = ("id", "review_id", "reviewId", "external_review_id")
AUTHOR_FIELDS = ("author", "author_name", "userId", "user")
RATING_FIELDS = ("rating", "ratingScore", "stars", "score")
TITLE_FIELDS = ("title", "reviewTitle", "headline")
BODY_FIELDS = ("content", "body", "text", "reviewDescription")
DATE_FIELDS = ("date", "date_published", "publishedDate", "created_at", "review_date")
VERIFIED_FIELDS = ("verified_purchase", "verifiedPurchase", "isVerified", "verified")

# Width of the synthesized id digest (hex chars)
SYNTHETIC_ID_DIGEST_LENGTH = 16

# Column widths of reviews.author and reviews.title
AUTHOR_MAX_LENGTH = 100
TITLE_MAX_LENGTH = 255

MIN_RATING = 1
MAX_RATING = 5

DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%B %d, %Y",
    "%b %d, %Y",
)


def _first(payload: RawReviewPayload, keys: Iterable[str]) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None and value != "":
            return value
    return None


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _truncate(text: Optional[str], max_length: int) -> Optional[str]:
    if text is None or len(text) <= max_length:
        return text
    return text[:max_length].rstrip()


def parse_rating(value: Any, default: int = MIN_RATING) -> int:
    """
    Parse a provider rating into an integer in [1, 5].

    Fractional ratings are truncated ("4.7" -> 4). Missing or unparseable
    values fall back to `default`; out-of-range values are clamped.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        rating = int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return default
    return max(MIN_RATING, min(MAX_RATING, rating))


def parse_date(value: Any) -> Optional[datetime]:
    """Parse a provider date into an aware UTC datetime. Returns None when unparseable."""
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # Epoch seconds, or milliseconds when implausibly large
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        text = str(value).strip()
        parsed = None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            for fmt in DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is None:
            logger.debug(f"Failed to parse date '{text}'")
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "y")
    return bool(value)


def synthesize_review_id(
    source: str,
    author: Optional[str],
    published: Any,
    body_or_title: Optional[str],
    rating: Any,
) -> str:
    """
    Stable id for payloads without one.

    Author is case-folded so that providers that re-case display names
    between fetches still produce the same key.
    """
    base = "|".join([
        (author or "anonymous").strip().casefold(),
        "" if published is None else str(published).strip(),
        (body_or_title or "").strip(),
        "" if rating is None else str(rating).strip(),
    ])
    digest = hashlib.sha256(base.encode("utf-8")).hexdigest()[:SYNTHETIC_ID_DIGEST_LENGTH]
    return f"{source}-{digest}"


class ReviewNormalizer:
    """
    Turns provider payloads into Review records.

    Usage:
        normalizer = ReviewNormalizer()
        now = datetime.now(timezone.utc)
        reviews = normalizer.normalize_batch(payloads, "42", "amazon", now=now)
    """

    def __init__(self, default_rating: int = MIN_RATING):
        if not MIN_RATING <= default_rating <= MAX_RATING:
            raise ValueError("default_rating must be between 1 and 5")
        self.default_rating = default_rating

    def normalize(
        self,
        payload: RawReviewPayload,
        product_id: str,
        source: str,
        now: Optional[datetime] = None,
    ) -> Review:
        """
        Normalize one payload.

        Args:
            payload: Raw provider payload
            product_id: Catalog product id the payload belongs to
            source: Source name the payload came from
            now: Reference time used when the payload has no authored date.
                Pass the same value for a whole batch.
        """
        now = now or datetime.now(timezone.utc)

        author = _clean_text(_first(payload, AUTHOR_FIELDS))
        raw_rating = _first(payload, RATING_FIELDS)
        title = _clean_text(_first(payload, TITLE_FIELDS))
        body = _clean_text(_first(payload, BODY_FIELDS))
        raw_date = _first(payload, DATE_FIELDS)

        external_id = _clean_text(_first(payload, ID_FIELDS))
        if external_id is None:
            external_id = synthesize_review_id(source, author, raw_date, body or title, raw_rating)

        return Review(
            product_id=str(product_id),
            source=source,
            external_review_id=external_id,
            rating=parse_rating(raw_rating, self.default_rating),
            author=_truncate(author, AUTHOR_MAX_LENGTH),
            title=_truncate(title, TITLE_MAX_LENGTH),
            body=body,
            authored_at=parse_date(raw_date) or now,
            verified_purchase=parse_bool(_first(payload, VERIFIED_FIELDS)),
        )

    def normalize_batch(
        self,
        payloads: Iterable[RawReviewPayload],
        product_id: str,
        source: str,
        now: Optional[datetime] = None,
    ) -> List[Review]:
        """Normalize a provider's payloads against a single reference time."""
        now = now or datetime.now(timezone.utc)
        return [self.normalize(payload, product_id, source, now=now) for payload in payloads]
