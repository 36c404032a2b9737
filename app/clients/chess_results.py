"""Client for scraping tournament listings from chess-results.com."""

from __future__ import annotations

import re
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from app.clients.http import RETRYABLE_STATUSES, build_http_client
from app.models.tournament import RawListing

TOURNAMENT_ID_PATTERN = re.compile(r"tnr(\d+)", flags=re.IGNORECASE)
DETAIL_LABELS = {
    "federation": "federation",
    "date": "date_text",
    "location": "location_text",
    "organizer(s)": "organizer",
    "organizer": "organizer",
    "number of rounds": "rounds_text",
}
HOMEPAGE_LINK_HINTS = ("official homepage", "organizer")


class ChessResultsError(RuntimeError):
    """Base error for chess-results.com failures."""

    def __init__(self, message: str, code: str = "CHESS_RESULTS_ERROR") -> None:
        super().__init__(message)
        self.code = code
        self.retryable = False


class ChessResultsRetryableError(ChessResultsError):
    """Raised for timeouts, throttling, and 5xx responses that may succeed on retry."""

    def __init__(self, message: str, code: str = "CHESS_RESULTS_RETRYABLE") -> None:
        super().__init__(message, code=code)
        self.retryable = True


class ChessResultsSchemaError(ChessResultsError):
    """Raised when a page does not look like a tournament listing."""

    def __init__(self, message: str = "Unexpected chess-results page layout") -> None:
        super().__init__(message, code="CHESS_RESULTS_SCHEMA_ERR")


class ChessResultsClient:
    """Fetches federation indexes and tournament detail pages."""

    def __init__(
        self,
        *,
        base_url: str = "https://chess-results.com",
        user_agent: str = "Mozilla/5.0",
        timeout: float = 15.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") + "/"
        self._owns_http_client = http_client is None
        self._http = http_client or build_http_client(
            base_url=base_url,
            timeout_seconds=timeout,
            user_agent=user_agent,
        )

    def close(self) -> None:
        if self._owns_http_client:
            self._http.close()

    def list_tournament_urls(self, federation: str) -> list[str]:
        """Return unique tournament URLs listed on a federation index page."""
        html = self._get_html(f"fed.aspx?lan=1&fed={federation.upper()}")
        soup = BeautifulSoup(html, "html.parser")
        urls: list[str] = []
        seen: set[str] = set()
        for anchor in soup.select('a[href*="tnr"]'):
            href = (anchor.get("href") or "").strip()
            if not TOURNAMENT_ID_PATTERN.search(href):
                continue
            absolute = urljoin(self._base_url, href.lstrip("/"))
            if "lan=" not in absolute:
                absolute += "&lan=1" if "?" in absolute else "?lan=1"
            if absolute not in seen:
                seen.add(absolute)
                urls.append(absolute)
        return urls

    def fetch_tournament(self, url: str) -> RawListing:
        """Fetch and parse one tournament detail page."""
        detail_url = url if "turdet=" in url else f"{url}&turdet=YES"
        html = self._get_html(detail_url)
        return parse_tournament_page(html, source_url=url.split("&turdet")[0])

    def _get_html(self, path_or_url: str) -> str:
        try:
            response = self._http.get(path_or_url)
        except httpx.TimeoutException as exc:
            raise ChessResultsRetryableError(
                f"Timed out fetching {path_or_url}", code="CHESS_RESULTS_TIMEOUT"
            ) from exc
        except httpx.HTTPError as exc:
            raise ChessResultsRetryableError(f"HTTP error fetching {path_or_url}: {exc}") from exc

        if response.status_code in RETRYABLE_STATUSES:
            raise ChessResultsRetryableError(
                f"chess-results returned {response.status_code} for {path_or_url}",
                code=f"CHESS_RESULTS_{response.status_code}",
            )
        if response.status_code >= 400:
            raise ChessResultsError(
                f"chess-results returned {response.status_code} for {path_or_url}",
                code=f"CHESS_RESULTS_{response.status_code}",
            )
        return response.text

    def __enter__(self) -> ChessResultsClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def parse_tournament_page(html: str, *, source_url: str) -> RawListing:
    """Extract the labelled detail table of a chess-results tournament page."""
    soup = BeautifulSoup(html, "html.parser")
    name = None
    for heading in soup.find_all("h2"):
        text = heading.get_text(" ", strip=True)
        if len(text) > 3 and "Chess-Results" not in text:
            name = text
            break

    fields: dict[str, str] = {}
    cells = soup.find_all("td")
    for index, cell in enumerate(cells[:-1]):
        label = cell.get_text(" ", strip=True).lower()
        value = cells[index + 1].get_text(" ", strip=True)
        target = DETAIL_LABELS.get(label)
        if target is None and "time control" in label:
            target = "time_control"
        if target and target not in fields and value:
            fields[target] = value

    if name is None and not fields:
        raise ChessResultsSchemaError(f"No tournament details found at {source_url}")

    external_link = None
    for anchor in soup.find_all("a"):
        href = (anchor.get("href") or "").strip()
        text = anchor.get_text(" ", strip=True).lower()
        if (
            href.startswith("http")
            and "chess-results" not in href
            and any(hint in text for hint in HOMEPAGE_LINK_HINTS)
        ):
            external_link = href

    id_match = TOURNAMENT_ID_PATTERN.search(source_url)
    return RawListing(
        source_url=source_url,
        name=name,
        listing_id=id_match.group(1) if id_match else None,
        external_link=external_link,
        **fields,
    )
