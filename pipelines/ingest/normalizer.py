"""Map scraped listings into canonical tournament drafts."""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from datetime import date

from pydantic import ValidationError

from app.models.tournament import (
    RawListing,
    TournamentCategory,
    TournamentDraft,
    TournamentStatus,
)
from app.services.ingest.errors import NormalizationError
from pipelines.ingest.centroids import FIDE_TO_ISO

logger = logging.getLogger("pipelines.ingest.normalizer")

RANGE_PATTERN = re.compile(r"(?<![\d.])(\d{4}[/.-]\d{1,2}[/.-]\d{1,2})\s*(?:to|-|–|bis|au)\s*(\d{4}[/.-]\d{1,2}[/.-]\d{1,2})")
YMD_PATTERN = re.compile(r"(?<![\d.])(\d{4})[/.-](\d{1,2})[/.-](\d{1,2})(?!\d)")
DMY_PATTERN = re.compile(r"\b(\d{1,2})\.(\d{1,2})\.(\d{4})\b")
FEDERATION_CODE_PATTERN = re.compile(r"\(\s*([A-Z]{2,3})\s*\)")
ROUNDS_PATTERN = re.compile(r"\d+")

# Checked in order; the first synonym found decides the category.
CATEGORY_SYNONYMS: tuple[tuple[TournamentCategory, tuple[str, ...]], ...] = (
    (TournamentCategory.BLITZ, ("blitz", "bullet", "lightning", "speed chess")),
    (
        TournamentCategory.CLASSICAL,
        ("classical", "standard", "long play", "klassisch", "classique", "clásico", "classico"),
    ),
    (
        TournamentCategory.RAPID,
        ("semi-rapid", "semirapid", "rapid", "schnell", "rapide", "rápido", "active"),
    ),
)
DEFAULT_CATEGORY = TournamentCategory.RAPID

UNRATED_SYNONYMS = (
    "unrated",
    "not rated",
    "non-rated",
    "non rated",
    "not fide rated",
    "non-fide",
    "non fide",
)
RATED_SYNONYMS = ("fide rated", "fide-rated", "elo", "rated")

# Whether a source's listings are rated unless the text says otherwise.
SOURCE_RATED_DEFAULTS = {"chess-results": True, "organizer": False}


@dataclass(frozen=True)
class NormalizationContext:
    source: str
    region: str
    as_of: date


def parse_date_range(text: str | None) -> tuple[date, date | None]:
    """Parse a listing date string into (start, end)."""
    if not text or not text.strip():
        raise NormalizationError("Listing has no date.", code="E_NORMALIZE_DATE_MISSING")
    cleaned = text.strip()

    range_match = RANGE_PATTERN.search(cleaned)
    if range_match:
        start = _parse_ymd(range_match.group(1))
        end = _parse_ymd(range_match.group(2))
        if start and end:
            if end < start:
                raise NormalizationError(
                    f"Date range ends before it starts: {cleaned!r}",
                    code="E_NORMALIZE_DATE_RANGE",
                )
            return start, end

    ymd_dates = [_parse_ymd(match.group(0)) for match in YMD_PATTERN.finditer(cleaned)]
    dmy_dates = [
        _safe_date(int(year), int(month), int(day))
        for day, month, year in DMY_PATTERN.findall(cleaned)
    ]
    found = [value for value in ymd_dates + dmy_dates if value is not None]
    if not found:
        raise NormalizationError(f"Unparseable date: {cleaned!r}", code="E_NORMALIZE_DATE")
    if len(found) == 1:
        return found[0], found[0]
    start, end = found[0], found[1]
    if end < start:
        raise NormalizationError(
            f"Date range ends before it starts: {cleaned!r}", code="E_NORMALIZE_DATE_RANGE"
        )
    return start, end


def _parse_ymd(value: str) -> date | None:
    match = YMD_PATTERN.fullmatch(value.strip())
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    return _safe_date(year, month, day)


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def classify_category(*texts: str | None) -> TournamentCategory:
    haystack = " ".join(text for text in texts if text).casefold()
    for category, synonyms in CATEGORY_SYNONYMS:
        if any(synonym in haystack for synonym in synonyms):
            return category
    return DEFAULT_CATEGORY


def classify_rated(source: str, *texts: str | None) -> bool:
    haystack = " ".join(text for text in texts if text).casefold()
    if any(synonym in haystack for synonym in UNRATED_SYNONYMS):
        return False
    if any(re.search(rf"\b{re.escape(synonym)}\b", haystack) for synonym in RATED_SYNONYMS):
        return True
    return SOURCE_RATED_DEFAULTS.get(source, False)


def parse_federation(federation: str | None, region: str) -> tuple[str | None, str]:
    """Return (country name, ISO code) from text such as 'India (IND)'."""
    if not federation or not federation.strip():
        return None, region.upper()
    name = FEDERATION_CODE_PATTERN.sub("", federation).strip() or None
    match = FEDERATION_CODE_PATTERN.search(federation)
    if not match:
        return name, region.upper()
    code = match.group(1)
    if len(code) == 2:
        return name, code
    if code not in FIDE_TO_ISO:
        logger.debug(
            "normalizer.federation_unknown",
            extra={"federation": code, "region": region},
        )
        return name, region.upper()
    return name, FIDE_TO_ISO[code]


def external_ref_for(listing: RawListing) -> str:
    """Source listing id when present, else a stable hash of the canonical source URL."""
    if listing.listing_id and listing.listing_id.strip():
        return listing.listing_id.strip()
    canonical_url = listing.source_url.strip().rstrip("/").lower()
    if not canonical_url:
        raise NormalizationError("Listing has neither an id nor a source URL.", code="E_NORMALIZE_REF")
    return hashlib.sha256(canonical_url.encode("utf-8")).hexdigest()[:16]


def _parse_rounds(text: str | None) -> int | None:
    if not text:
        return None
    match = ROUNDS_PATTERN.search(text)
    return int(match.group(0)) if match else None


def _derive_status(
    listing: RawListing, start: date, end: date | None, as_of: date
) -> TournamentStatus:
    if str(listing.extra.get("status", "")).lower() == TournamentStatus.DRAFT.value:
        return TournamentStatus.DRAFT
    if (end or start) < as_of:
        return TournamentStatus.COMPLETED
    return TournamentStatus.PUBLISHED


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    collapsed = " ".join(value.split())
    return collapsed or None


def normalize_listing(listing: RawListing, context: NormalizationContext) -> TournamentDraft:
    """Map one RawListing into a TournamentDraft or raise NormalizationError."""
    name = _clean(listing.name)
    if not name:
        raise NormalizationError("Listing has no name.", code="E_NORMALIZE_NAME_MISSING")
    if not listing.source_url:
        raise NormalizationError("Listing has no source URL.", code="E_NORMALIZE_URL_MISSING")

    start, end = parse_date_range(listing.date_text)
    country, country_code = parse_federation(listing.federation, context.region)
    location_text = listing.location_text or ""
    city = _clean(location_text.split(",")[0]) if location_text.strip() else None
    state = _clean(listing.extra.get("state")) if listing.extra.get("state") else None
    time_control = _clean(listing.time_control)

    try:
        return TournamentDraft(
            source=context.source,
            external_ref=external_ref_for(listing),
            name=name,
            start_date=start,
            end_date=end,
            location_text=location_text,
            city=city or country,
            state=state,
            country=country,
            country_code=country_code,
            venue_address=_clean(listing.venue_address),
            category=classify_category(name, time_control),
            rated=classify_rated(context.source, name, time_control),
            time_control=time_control,
            rounds=_parse_rounds(listing.rounds_text),
            organizer=_clean(listing.organizer),
            source_url=listing.source_url.split("&turdet")[0],
            external_link=listing.external_link,
            status=_derive_status(listing, start, end, context.as_of),
        )
    except ValidationError as exc:
        raise NormalizationError(
            f"Listing failed validation: {exc.errors()[0].get('msg', exc)}",
            code="E_NORMALIZE_INVALID",
        ) from exc

