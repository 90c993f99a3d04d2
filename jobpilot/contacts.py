"""Best-effort recruiter / HR contact extraction from a job page."""
from __future__ import annotations

import re
from typing import Callable

from bs4 import BeautifulSoup

from jobpilot.log import get_logger
from jobpilot.models import HRContact

log = get_logger(__name__)

EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)*\.[a-zA-Z]{2,}")
PHONE_RE = re.compile(r"\+?\d[\d\s().-]{8,}\d")
_PHONE_HINT = re.compile(r"\b(?:phone|call|mobile|tel|whatsapp)\b", re.IGNORECASE)
_ASSET_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp")
_IGNORED_EMAIL_DOMAINS = ("example.com", "sentry.io", "linkedin.com")

HR_TITLES: list[str] = [
    "hr manager", "human resources", "recruiter", "talent acquisition",
    "hiring manager", "people operations", "hr business partner",
    "talent manager", "recruitment specialist", "hr coordinator",
    "people manager", "hr generalist", "staffing coordinator",
]

POSTER_SELECTORS: list[str] = [
    ".hiring-insights__poster",
    ".hirer-card__hirer-information",
    ".message-the-recruiter",
    ".job-poster-info",
    "[data-testid='job-poster']",
]


def company_page_url(company: str) -> str:
    slug = re.sub(r"[^a-z0-9-]", "", re.sub(r"\s+", "-", company.strip().lower()))
    return f"https://www.linkedin.com/company/{slug}/people/"


def extract_emails(text: str) -> list[str]:
    found: list[str] = []
    for email in EMAIL_RE.findall(text or ""):
        low = email.lower().rstrip(".")
        if low.endswith(_ASSET_SUFFIXES) or low.split("@", 1)[1] in _IGNORED_EMAIL_DOMAINS:
            continue
        if low not in found:
            found.append(low)
    return found


def extract_phones(text: str) -> list[str]:
    phones: list[str] = []
    for line in (text or "").splitlines():
        if not _PHONE_HINT.search(line):
            continue
        for m in PHONE_RE.findall(line):
            digits = re.sub(r"\D", "", m)
            if 10 <= len(digits) <= 15 and m.strip() not in phones:
                phones.append(m.strip())
    return phones


def deduplicate(contacts: list[HRContact]) -> list[HRContact]:
    seen: set[str] = set()
    unique: list[HRContact] = []
    for c in contacts:
        key = c.dedup_key
        if key and key.lower() not in seen:
            seen.add(key.lower())
            unique.append(c)
    return unique


class ContactExtractor:
    def extract(
        self,
        html: str,
        company: str,
        *,
        fetch_company_page: Callable[[str], str] | None = None,
    ) -> list[HRContact]:
        """Contacts found on the job page (and the company page when a fetcher
        is given). Never raises; zero contacts is a normal result."""
        contacts: list[HRContact] = []
        try:
            contacts.extend(self.from_job_page(html, company))
        except Exception as exc:
            log.debug("Contact extraction from job page failed: %s", exc)
        if fetch_company_page is not None and company:
            try:
                contacts.extend(self.from_company_page(fetch_company_page(company_page_url(company)), company))
            except Exception as exc:
                log.debug("Contact extraction from company page failed: %s", exc)
        unique = deduplicate(contacts)
        log.info("Found %d HR contact(s) for %s", len(unique), company or "unknown company")
        return unique

    def from_job_page(self, html: str, company: str) -> list[HRContact]:
        if not html:
            return []
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        text = soup.get_text("\n", strip=True)

        contacts: list[HRContact] = []
        phones = extract_phones(text)
        for i, email in enumerate(extract_emails(text)):
            contacts.append(HRContact(
                email=email,
                company=company or None,
                phone=phones[i] if i < len(phones) else None,
            ))

        for sel in POSTER_SELECTORS:
            for block in soup.select(sel):
                for link in block.select("a[href*='/in/']"):
                    name_el = block.select_one(
                        ".hiring-insights__poster-name, .jobs-poster__name, strong, .t-bold"
                    )
                    title_el = block.select_one(".hirer-card__job-poster, .t-14")
                    contacts.append(HRContact(
                        name=(name_el or link).get_text(" ", strip=True) or None,
                        title=title_el.get_text(" ", strip=True) if title_el else "Hiring Team",
                        company=company or None,
                        linkedin_profile=link.get("href", "").split("?")[0] or None,
                    ))
        return contacts

    def from_company_page(self, html: str, company: str) -> list[HRContact]:
        soup = BeautifulSoup(html or "", "html.parser")
        contacts: list[HRContact] = []
        for card in soup.select(".org-people-profile-card"):
            name_el = card.select_one(".org-people-profile-card__profile-title")
            title_el = card.select_one(".org-people-profile-card__profile-info .t-14, .artdeco-entity-lockup__subtitle")
            link = card.select_one("a[href*='/in/']")
            title = title_el.get_text(" ", strip=True) if title_el else ""
            if not any(hr in title.lower() for hr in HR_TITLES):
                continue
            contacts.append(HRContact(
                name=name_el.get_text(" ", strip=True) if name_el else None,
                title=title,
                company=company,
                linkedin_profile=link.get("href", "").split("?")[0] if link else None,
            ))
        info = soup.select_one(".org-page-details__definition-text, .company-info")
        if info is not None:
            for email in extract_emails(info.get_text(" ", strip=True)):
                contacts.append(HRContact(email=email, company=company, title="Company Contact"))
        return contacts
