"""Best-effort HTML scraper over public company profile pages."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from urllib.parse import quote_plus

import httpx
from bs4 import BeautifulSoup, Tag

from findata.clients.base import BROWSER_HEADERS, SourceResult, usable, with_timeout
from findata.clients.errors import SourceTimeoutError
from findata.models.financial import MAX_INVESTORS, FinancialRecord
from findata.services.extraction.text_patterns import (
    MAX_TEXT_LENGTH,
    extract_amount,
    extract_count,
    extract_financial_data,
    extract_year,
    normalize_text,
    pick_description,
)

logger = logging.getLogger(__name__)

SOURCE_NAME = "Web Scraping"

ValueParser = Callable[[str], "str | None"]


def _plain_text(value: str) -> str | None:
    text = normalize_text(value)
    return text or None


FIELD_PARSERS: Mapping[str, ValueParser] = {
    "total_funding": extract_amount,
    "revenue": extract_amount,
    "valuation": extract_amount,
    "employee_count": extract_count,
    "founded_year": extract_year,
    "industry": _plain_text,
    "headquarters": _plain_text,
    "description": lambda value: pick_description([value]),
}


@dataclass(frozen=True)
class ScrapeTarget:
    """One guessed page plus the selectors worth trying on it."""

    label: str
    url: str
    timeout: float
    selectors: Mapping[str, Sequence[str]] = field(default_factory=dict)
    investor_selectors: Sequence[str] = ()
    mine_body_text: bool = True


CRUNCHBASE_SELECTORS: Mapping[str, Sequence[str]] = {
    "total_funding": (
        '[data-testid="funding-rounds-total"]',
        ".funding-total",
        '[class*="funding"]',
        'span:-soup-contains("Total Funding")',
        'div:-soup-contains("Funding Rounds")',
    ),
    "employee_count": (
        '[data-testid="employee-count"]',
        ".employee-count",
        'span:-soup-contains("Employees")',
        'div:-soup-contains("Company Size")',
    ),
    "founded_year": (
        '[data-testid="founded-date"]',
        ".founded-date",
        'span:-soup-contains("Founded")',
        'div:-soup-contains("Founded")',
    ),
    "description": (
        '[data-testid="company-description"]',
        ".company-description",
        'meta[name="description"]',
    ),
}

CRUNCHBASE_INVESTOR_SELECTORS: Sequence[str] = (
    '[data-testid="investor-name"]',
    ".investor-name",
    'a[href*="/organization/"]:-soup-contains("Capital")',
    'a[href*="/organization/"]:-soup-contains("Ventures")',
)

WEBSITE_SELECTORS: Mapping[str, Sequence[str]] = {
    "description": ('meta[name="description"]', 'meta[property="og:description"]'),
}

LINKEDIN_SELECTORS: Mapping[str, Sequence[str]] = {
    "employee_count": (
        '[data-test-id="company-employees-count"]',
        ".company-employees-count",
        ".t-black--light",
    ),
    "industry": (
        '[data-test-id="company-industry"]',
        ".company-industries",
        ".industry",
    ),
}


def company_slug(company_name: str) -> str:
    """Guess a profile slug the way funding databases usually build them."""
    return re.sub(r"[^a-z0-9]", "-", company_name.strip().lower())


def hyphenated_name(company_name: str) -> str:
    return re.sub(r"\s+", "-", company_name.strip().lower())


class WebScrapingClient:
    """Scrapes funding-database, company, and professional-network pages in order."""

    name = SOURCE_NAME

    def __init__(
        self,
        *,
        timeout: float = 15.0,
        secondary_timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._timeout = timeout
        self._secondary_timeout = secondary_timeout
        self._headers = {**BROWSER_HEADERS, **(headers or {})}
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._owns_http_client:
            await self._http.aclose()

    def build_targets(self, company_name: str, domain: str | None = None) -> list[ScrapeTarget]:
        """Ordered pages to try for a company."""
        targets = [
            ScrapeTarget(
                label="Crunchbase",
                url=f"https://www.crunchbase.com/organization/{company_slug(company_name)}",
                timeout=self._timeout,
                selectors=CRUNCHBASE_SELECTORS,
                investor_selectors=CRUNCHBASE_INVESTOR_SELECTORS,
            )
        ]
        if domain:
            targets.append(
                ScrapeTarget(
                    label="Company Website",
                    url=f"https://{domain}",
                    timeout=self._secondary_timeout,
                    selectors=WEBSITE_SELECTORS,
                )
            )
        targets.append(
            ScrapeTarget(
                label="LinkedIn",
                url=(
                    "https://www.linkedin.com/search/results/companies/"
                    f"?keywords={quote_plus(f'{company_name} company')}"
                ),
                timeout=self._secondary_timeout,
                selectors=LINKEDIN_SELECTORS,
                mine_body_text=False,
            )
        )
        targets.append(
            ScrapeTarget(
                label="PitchBook",
                url=f"https://pitchbook.com/profiles/company/{hyphenated_name(company_name)}",
                timeout=self._secondary_timeout,
            )
        )
        return targets

    async def fetch_financial_data(
        self, company_name: str, domain: str | None = None
    ) -> SourceResult | None:
        """Return the first target page that yields a non-empty record."""
        for target in self.build_targets(company_name, domain):
            html = await self._download(target)
            if html is None:
                continue
            try:
                record = parse_page(html, target)
            except Exception:
                logger.warning(
                    "web_scrape.parse_failed",
                    extra={"target": target.label, "url": target.url},
                    exc_info=True,
                )
                continue
            result = usable(record, target.label)
            if result:
                logger.info(
                    "web_scrape.target_hit",
                    extra={"target": target.label, "fields": record.filled_fields()},
                )
                return result
            logger.info("web_scrape.target_empty", extra={"target": target.label})
        return None

    async def _download(self, target: ScrapeTarget) -> str | None:
        try:
            response = await with_timeout(
                self._http.get(target.url, headers=self._headers),
                target.timeout,
                source=target.label,
            )
        except SourceTimeoutError as exc:
            logger.warning("web_scrape.timeout", extra={"target": target.label, "error": str(exc)})
            return None
        except httpx.HTTPError as exc:
            logger.warning(
                "web_scrape.request_error",
                extra={"target": target.label, "url": target.url, "error": type(exc).__name__},
            )
            return None

        if not response.is_success:
            logger.info(
                "web_scrape.not_found",
                extra={"target": target.label, "status": response.status_code},
            )
            return None
        return response.text


def parse_page(html: str, target: ScrapeTarget) -> FinancialRecord:
    """Structured selector lookups first, then free-text mining of the page body."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()

    values: dict[str, object] = {}
    for field_name, selectors in target.selectors.items():
        parser = FIELD_PARSERS[field_name]
        value = _first_selector_value(soup, selectors, parser)
        if value:
            values[field_name] = value

    if target.investor_selectors:
        investors = _collect_investors(soup, target.investor_selectors)
        if investors:
            values["investors"] = investors

    record = FinancialRecord(**values)
    if not target.mine_body_text:
        return record

    container = soup.body or soup
    body_text = container.get_text(" ", strip=True)[:MAX_TEXT_LENGTH]
    return record.merge(extract_financial_data(body_text))


def _element_text(element: Tag) -> str:
    if element.name == "meta":
        return str(element.get("content") or "")
    return element.get_text(" ", strip=True)


def _first_selector_value(
    soup: BeautifulSoup, selectors: Sequence[str], parser: ValueParser
) -> str | None:
    for selector in selectors:
        for element in soup.select(selector):
            value = parser(_element_text(element))
            if value:
                return value
    return None


def _collect_investors(soup: BeautifulSoup, selectors: Sequence[str]) -> list[str]:
    names: list[str] = []
    for selector in selectors:
        for element in soup.select(selector):
            text = normalize_text(element.get_text(" ", strip=True))
            if text:
                names.append(text)
    return FinancialRecord(investors=names).investors[:MAX_INVESTORS]
