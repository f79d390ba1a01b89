"""
Company registration anniversaries.

Pure functions: occurrences are derived from company records for a date window
and never persisted directly. The logical id encodes company, event kind and
year, so re-running the generator for the same window is idempotent.
"""

import re
from collections.abc import Iterable
from datetime import date

from calendar_reconcile.models import AnniversaryOccurrence
from calendar_reconcile.models import Company

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """'Acme Ltd.' -> 'acme-ltd'"""
    return _SLUG_STRIP_RE.sub("-", name.lower()).strip("-")


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def logical_id_for(company: Company, year: int) -> str:
    return f"{slugify(company.trading_name)}-anniv-{year}"


def format_title(company: Company, years_old: int) -> str:
    return f"{company.trading_name} — {ordinal(years_old)} Anniversary"


def format_description(company: Company, years_old: int) -> str:
    registered = company.registration_date.strftime("%d %B %Y")
    plural = "year" if years_old == 1 else "years"
    return (
        f"{company.trading_name} was registered on {registered}. "
        f"Celebrating {years_old} {plural} in business."
    )


def _is_leap(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def anniversary_in_year(registration: date, year: int) -> date:
    """The registration date moved to ``year``; 29 Feb falls on 28 Feb in common years."""
    if registration.month == 2 and registration.day == 29 and not _is_leap(year):
        return date(year, 2, 28)
    return registration.replace(year=year)


def _eligible(company: Company) -> bool:
    return company.registration_date is not None and company.status == "Active"


def generate(
    companies: Iterable[Company], window_start: date, window_end: date
) -> list[AnniversaryOccurrence]:
    """Anniversary occurrences dated within the half-open window [start, end).

    Only anniversaries of one year or more are produced. Companies without a
    registration date or that are not active are skipped. The result is
    sorted by date, then logical id.
    """
    occurrences = []
    if window_end <= window_start:
        return occurrences

    for company in companies:
        if not _eligible(company):
            continue
        registered = company.registration_date
        for year in range(window_start.year, window_end.year + 1):
            years_old = year - registered.year
            if years_old < 1:
                continue
            day = anniversary_in_year(registered, year)
            if not (window_start <= day < window_end):
                continue
            occurrences.append(
                AnniversaryOccurrence(
                    logical_id=logical_id_for(company, year),
                    title=format_title(company, years_old),
                    date=day,
                    description=format_description(company, years_old),
                    company_id=company.id,
                    company_name=company.trading_name,
                    years_old=years_old,
                )
            )

    occurrences.sort(key=lambda occ: (occ.date, occ.logical_id))
    return occurrences


def is_anniversary_date(company: Company, day: date) -> bool:
    """True when ``day`` is one of the company's (1st or later) anniversaries."""
    if not _eligible(company):
        return False
    registered = company.registration_date
    if day.year - registered.year < 1:
        return False
    return anniversary_in_year(registered, day.year) == day


def companies_with_anniversaries_on(companies: Iterable[Company], day: date) -> list[Company]:
    return [c for c in companies if is_anniversary_date(c, day)]
