"""Apollo prospect search and contact reveal."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Tuple

import httpx
from pydantic import BaseModel, Field

from ..constants import APOLLO_API_BASE, DEFAULT_SEARCH_PAGE_SIZE, NOT_AVAILABLE
from ..contracts import Prospect
from ..errors import PortalflowError

logger = logging.getLogger(__name__)

# Company size phrases understood by the search form, mapped to Apollo ranges.
EMPLOYEE_RANGES: Dict[str, str] = {
    "1-50 employees": "1,50",
    "50-200 employees": "51,200",
    "200-500 employees": "201,500",
    "500+ employees": "501,100000",
}


class ApolloError(PortalflowError):
    """Apollo rejected a request."""


class RevealField(str, Enum):
    EMAIL = "email"
    PHONE = "phone"


class SearchCriteria(BaseModel):
    """Structured prospect-search filters."""

    titles: List[str] = Field(default_factory=list)
    companies: List[str] = Field(default_factory=list)
    industries: List[str] = Field(default_factory=list)
    locations: List[str] = Field(default_factory=list)
    company_size: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(
            [
                self.titles,
                self.companies,
                self.industries,
                self.locations,
                self.company_size,
                self.technologies,
                self.keywords,
            ]
        )

    def describe(self) -> List[str]:
        lines = []
        if self.titles:
            lines.append(f"**Titles:** {', '.join(self.titles)}")
        if self.companies:
            lines.append(f"**Companies:** {', '.join(self.companies)}")
        if self.industries:
            lines.append(f"**Industries:** {', '.join(self.industries)}")
        if self.locations:
            lines.append(f"**Locations:** {', '.join(self.locations)}")
        if self.company_size:
            lines.append(f"**Company Size:** {self.company_size}")
        if self.technologies:
            lines.append(f"**Technologies:** {', '.join(self.technologies)}")
        if self.keywords:
            lines.append(f"**Keywords:** {', '.join(self.keywords)}")
        return lines

    def to_apollo(self, page: int = 1, per_page: int = DEFAULT_SEARCH_PAGE_SIZE) -> Dict[str, Any]:
        """Build a ``mixed_people/search`` body, omitting empty filters."""
        body: Dict[str, Any] = {"page": page, "per_page": per_page}
        if self.titles:
            body["person_titles"] = self.titles
        if self.locations:
            body["person_locations"] = self.locations
        if self.industries:
            body["q_organization_keyword_tags"] = self.industries
        if self.companies:
            body["q_organization_name"] = self.companies[0]
        keywords = " ".join(self.keywords + self.technologies).strip()
        if keywords:
            body["q_keywords"] = keywords
        if self.company_size and self.company_size in EMPLOYEE_RANGES:
            body["organization_num_employees_ranges"] = [EMPLOYEE_RANGES[self.company_size]]
        return body


def prospect_from_apollo(person: Dict[str, Any]) -> Prospect:
    organization = person.get("organization") or {}
    first = person.get("first_name") or ""
    last = person.get("last_name") or ""
    location = ", ".join(
        part for part in (person.get("city"), person.get("state"), person.get("country")) if part
    )
    email = person.get("email")
    return Prospect(
        id=str(person.get("id") or f"{first}-{last}".lower()),
        name=person.get("name") or f"{first} {last}".strip(),
        first_name=first or None,
        last_name=last or None,
        title=person.get("title"),
        company=organization.get("name") or person.get("organization_name"),
        location=location or None,
        industry=organization.get("industry"),
        company_size=(
            str(organization["estimated_num_employees"])
            if organization.get("estimated_num_employees")
            else None
        ),
        email=None if is_placeholder_email(email) else email,
        phone=extract_phone(person),
        linkedin_url=person.get("linkedin_url"),
    )


def is_placeholder_email(email: Optional[str]) -> bool:
    return (
        not email
        or "email_not_unlocked" in email
        or "@domain.com" in email
    )


def extract_email(person: Dict[str, Any]) -> Optional[str]:
    if not is_placeholder_email(person.get("email")):
        return person["email"]
    for email in person.get("personal_emails") or []:
        if not is_placeholder_email(email):
            return email
    for key in ("work_email", "contact_email"):
        if not is_placeholder_email(person.get(key)):
            return person[key]
    return None


def extract_phone(person: Dict[str, Any]) -> Optional[str]:
    numbers = person.get("phone_numbers") or []
    if numbers and numbers[0]:
        phone = numbers[0].get("sanitized_number") or numbers[0].get("raw_number")
        if phone:
            return phone
    for key in ("mobile_phone", "corporate_phone", "direct_phone", "phone", "sanitized_phone"):
        if person.get(key):
            return person[key]
    return None


_EXTRACTORS = {RevealField.EMAIL: extract_email, RevealField.PHONE: extract_phone}


class ProspectSearch(Protocol):
    """Collaborator that finds prospects and reveals their contact details."""

    async def search(self, criteria: SearchCriteria, page: int = 1) -> List[Prospect]:
        ...

    async def reveal(self, prospect: Prospect, field: RevealField) -> Optional[str]:
        """Return the revealed value, or ``None`` when it is not available."""
        ...


class ApolloClient:
    """Minimal async client for the Apollo REST API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = APOLLO_API_BASE,
        per_page: int = DEFAULT_SEARCH_PAGE_SIZE,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        if not api_key:
            raise ApolloError("Apollo API key is required")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.per_page = per_page
        self._client = client
        self._timeout = timeout

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
            "X-Api-Key": self.api_key,
        }

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    async def _post(self, path: str, body: Dict[str, Any]) -> Tuple[httpx.Response, Dict[str, Any]]:
        async with self._session() as client:
            response = await client.post(f"{self.base_url}/{path}", json=body, headers=self.headers)
        try:
            data = response.json()
        except ValueError:
            data = {}
        return response, data if isinstance(data, dict) else {}

    async def test_connection(self) -> bool:
        try:
            response, data = await self._post("mixed_people/search", {"page": 1, "per_page": 1})
        except httpx.HTTPError as e:
            logger.warning(f"Apollo connection test failed: {e}")
            return False
        return response.is_success or "people" in data

    async def search(self, criteria: SearchCriteria, page: int = 1) -> List[Prospect]:
        body = criteria.to_apollo(page=page, per_page=self.per_page)
        response, data = await self._post("mixed_people/search", body)
        if not response.is_success or "people" not in data:
            raise ApolloError(data.get("error") or data.get("message") or "Search failed")
        people = data.get("people") or []
        logger.info(f"Apollo search returned {len(people)} people")
        return [prospect_from_apollo(person) for person in people]

    async def reveal(self, prospect: Prospect, field: RevealField) -> Optional[str]:
        """Look up one contact detail.

        Saved contacts are searched first since they cost no credits. The
        enrich and match endpoints follow, then a LinkedIn-only match.
        """
        field = RevealField(field)
        extract = _EXTRACTORS[field]
        first, last = prospect.first_name, prospect.last_name
        reveal_flags = {"reveal_personal_emails": True, "reveal_phone_number": True}

        if first and last:
            try:
                value = await self._from_saved_contacts(first, last, extract)
            except httpx.HTTPError as e:
                logger.debug(f"Apollo contacts search failed, trying enrichment: {e}")
                value = None
            if value:
                return value

        if first and last and prospect.company:
            body = {
                "first_name": first,
                "last_name": last,
                "organization_name": prospect.company,
                **reveal_flags,
            }
            if prospect.linkedin_url:
                body["linkedin_url"] = prospect.linkedin_url
            for path in ("people/enrich", "people/match"):
                response, data = await self._post(path, body)
                if response.is_success and data.get("person"):
                    logger.info(f"Apollo {path} answered {field.value} reveal for {prospect.id}")
                    return extract(data["person"])

        if prospect.linkedin_url:
            response, data = await self._post(
                "people/match", {"linkedin_url": prospect.linkedin_url, **reveal_flags}
            )
            if response.is_success and data.get("person"):
                return extract(data["person"])

        return None

    async def _from_saved_contacts(self, first: str, last: str, extract) -> Optional[str]:
        response, data = await self._post(
            "contacts/search", {"q_keywords": f"{first} {last}", "per_page": 25}
        )
        if not response.is_success:
            return None
        for contact in data.get("contacts") or []:
            if (
                (contact.get("first_name") or "").lower().strip() == first.lower().strip()
                and (contact.get("last_name") or "").lower().strip() == last.lower().strip()
            ):
                return extract(contact)
        return None


class RevealCache:
    """Per-session memo of reveal answers, including "Not available".

    A prospect field is looked up at most once: first on the prospect
    itself, then on saved contact lists, and only then through the paid
    reveal call. Failed lookups are not cached.
    """

    def __init__(self, search: ProspectSearch, repository: Any = None) -> None:
        self._search = search
        self._repository = repository
        self._answers: Dict[Tuple[str, RevealField], str] = {}
        self.paid_calls = 0

    def cached(self, prospect_id: str, field: RevealField | str) -> Optional[str]:
        return self._answers.get((prospect_id, RevealField(field)))

    async def reveal(self, prospect: Prospect, field: RevealField | str) -> str:
        field = RevealField(field)
        key = (prospect.id, field)
        if key in self._answers:
            return self._answers[key]

        known = getattr(prospect, field.value)
        if known:
            self._answers[key] = known
            return known

        if self._repository is not None:
            saved = await self._repository.find_contact(prospect.id)
            value = getattr(saved, field.value, None) if saved else None
            if value:
                logger.debug(f"Reveal of {field.value} for {prospect.id} served from saved lists")
                self._answers[key] = value
                return value

        self.paid_calls += 1
        value = await self._search.reveal(prospect, field)
        answer = value or NOT_AVAILABLE
        self._answers[key] = answer
        return answer
