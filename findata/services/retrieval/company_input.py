"""Turn a caller-supplied company name or URL into a (name, domain) pair."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlsplit

_SCHEME = re.compile(r"^https?://", re.IGNORECASE)
_HOSTNAME = re.compile(r"^(?=.{1,253}$)(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$")
_LEADING_NOISE = re.compile(r"^(https?://)?(www\.)?", re.IGNORECASE)


@dataclass(frozen=True)
class CompanyTarget:
    company_name: str
    domain: str = ""
    is_url: bool = False


def _with_scheme(value: str) -> str:
    return value if _SCHEME.match(value) else f"https://{value}"


def is_url(value: str) -> bool:
    """True for inputs with an http(s) scheme or that look like a bare hostname."""
    candidate = (value or "").strip()
    if not candidate or any(ch.isspace() for ch in candidate):
        return False
    try:
        host = urlsplit(_with_scheme(candidate)).hostname or ""
    except ValueError:
        return False
    if _SCHEME.match(candidate):
        return bool(host)
    return bool(_HOSTNAME.match(host))


def extract_domain(url: str) -> str:
    """Lower-cased host without scheme or leading ``www.``; never raises."""
    value = (url or "").strip()
    if not value:
        return ""
    try:
        host = urlsplit(_with_scheme(value)).hostname
    except ValueError:
        host = None
    if not host:
        return _LEADING_NOISE.sub("", value).split("/")[0]
    return host.lower().removeprefix("www.")


def company_name_from_domain(domain: str) -> str:
    first_label = extract_domain(domain).split(".")[0]
    return re.sub(r"[-_]", " ", first_label)


def classify_input(company_or_url: str) -> CompanyTarget:
    value = (company_or_url or "").strip()
    if is_url(value):
        return CompanyTarget(
            company_name=company_name_from_domain(value),
            domain=extract_domain(value),
            is_url=True,
        )
    return CompanyTarget(company_name=value)
