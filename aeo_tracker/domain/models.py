"""
Domain models for the AEO Tracker.

Defines projects (what to track) and check records (one observation of brand
presence for an engine and keyword at a point in time), plus the validated
payloads used to create and update projects. Models are frozen; lifecycle
changes produce new instances.
"""
from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, get_args
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from aeo_tracker.domain.errors import InvalidTransitionError

Engine = Literal["chatgpt", "gemini", "claude", "perplexity", "copilot"]
CheckStatus = Literal["pending", "completed", "failed"]
KeywordCategory = Literal["primary", "secondary", "long-tail"]
CheckFrequency = Literal["daily", "weekly", "monthly"]

ENGINES: tuple[str, ...] = get_args(Engine)
DEFAULT_PROJECT_ENGINES: tuple[str, ...] = ("chatgpt", "gemini")

_HOSTNAME_PATTERN = re.compile(
    r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?(\.[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?)+$"
)

_FROZEN = {"frozen": True, "populate_by_name": True, "str_strip_whitespace": True}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def normalize_keyword(value: Any) -> Any:
    """Lowercase and trim a keyword; non-strings are left for validation to reject."""
    if isinstance(value, str):
        return value.strip().lower()
    return value


def normalize_domain(value: Any) -> Any:
    """
    Reduce a domain or URL to its lowercased host name.

    Accepts "Example.com", "https://example.com/path" or "example.com/path".
    """
    if not isinstance(value, str):
        return value
    candidate = value.strip().lower()
    if "://" in candidate:
        candidate = urlparse(candidate).hostname or ""
    else:
        candidate = candidate.split("/", 1)[0]
    if not _HOSTNAME_PATTERN.match(candidate):
        raise ValueError(f"'{value}' is not a valid domain")
    return candidate


def _aware(value: datetime) -> datetime:
    # Naive timestamps are treated as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ObservedUrl(BaseModel):
    """A source URL cited in an engine answer, ranked by order of appearance."""

    url: str = Field(..., min_length=1)
    domain: str = Field(..., description="Lowercased host of the URL.")
    position: int = Field(..., ge=1)

    model_config = _FROZEN

    @field_validator("domain", mode="before")
    @classmethod
    def _lower_domain(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class CheckMetadata(BaseModel):
    query_time_ms: int = Field(0, ge=0)
    response_size_bytes: int = Field(0, ge=0)
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None

    model_config = _FROZEN


class EngineResponse(BaseModel):
    """
    What an engine client reports for a single (brand, keyword) query.
    """

    presence: bool
    position: Optional[int] = Field(None, ge=0)
    citations_count: int = Field(0, ge=0)
    observed_urls: List[ObservedUrl] = Field(default_factory=list)
    answer_snippet: Optional[str] = Field(None, max_length=2000)
    metadata: CheckMetadata = Field(default_factory=CheckMetadata)

    model_config = _FROZEN


class CheckRecord(BaseModel):
    """
    One observation of brand presence for an engine and keyword.
    """

    id: str = Field(default_factory=new_id)
    project_id: str = Field(..., min_length=1)
    engine: Engine
    keyword: str = Field(..., min_length=1)
    presence: bool = False
    position: Optional[int] = Field(0, ge=0, description="Rank when present, 0 otherwise.")
    citations_count: int = Field(0, ge=0)
    observed_urls: List[ObservedUrl] = Field(default_factory=list)
    answer_snippet: Optional[str] = Field(None, max_length=2000)
    metadata: CheckMetadata = Field(default_factory=CheckMetadata)
    status: CheckStatus = "pending"
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = _FROZEN

    @field_validator("keyword", mode="before")
    @classmethod
    def _normalize_keyword(cls, value: Any) -> Any:
        return normalize_keyword(value)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        return _aware(value)

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"

    def _transition(self, update: Dict[str, Any]) -> "CheckRecord":
        if not self.is_pending:
            raise InvalidTransitionError(self.id, self.status)
        return CheckRecord.model_validate({**self.model_dump(), **update})

    def completed(self, response: EngineResponse, at: Optional[datetime] = None) -> "CheckRecord":
        """
        Return the completed form of this pending check.

        An absent brand carries no rank, citations or URLs regardless of what the
        engine client reported.
        """
        if response.presence:
            fields: Dict[str, Any] = {
                "presence": True,
                "position": response.position,
                "citations_count": response.citations_count,
                "observed_urls": [url.model_dump() for url in response.observed_urls],
                "answer_snippet": response.answer_snippet,
            }
        else:
            fields = {
                "presence": False,
                "position": 0,
                "citations_count": 0,
                "observed_urls": [],
                "answer_snippet": None,
            }
        fields.update(
            metadata=response.metadata.model_dump(),
            status="completed",
            error_message=None,
            updated_at=at or utcnow(),
        )
        return self._transition(fields)

    def failed(self, message: str, at: Optional[datetime] = None) -> "CheckRecord":
        """Return the failed form of this pending check."""
        return self._transition(
            {"status": "failed", "error_message": message, "updated_at": at or utcnow()}
        )


class Competitor(BaseModel):
    name: str = Field(..., min_length=1)
    domain: str = Field(..., min_length=1)

    model_config = _FROZEN

    @field_validator("domain", mode="before")
    @classmethod
    def _lower_domain(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class TrackedKeyword(BaseModel):
    keyword: str = Field(..., min_length=1)
    category: KeywordCategory = "primary"
    target_position: Optional[int] = Field(None, ge=1, le=10)

    model_config = _FROZEN

    @field_validator("keyword", mode="before")
    @classmethod
    def _normalize_keyword(cls, value: Any) -> Any:
        return normalize_keyword(value)


class ProjectSettings(BaseModel):
    check_frequency: CheckFrequency = "daily"
    engines: List[Engine] = Field(default_factory=lambda: list(DEFAULT_PROJECT_ENGINES))

    model_config = _FROZEN

    @field_validator("engines")
    @classmethod
    def _dedupe_engines(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))


def coerce_keywords(value: Any) -> Any:
    """Accept bare strings as primary keywords and drop duplicates, keeping the first."""
    if not isinstance(value, list):
        return value
    seen: set[str] = set()
    keywords: List[Any] = []
    for item in value:
        if isinstance(item, str):
            item = {"keyword": item}
        if isinstance(item, TrackedKeyword):
            key = item.keyword
        elif isinstance(item, dict):
            key = normalize_keyword(item.get("keyword"))
        else:
            key = None
        if isinstance(key, str):
            if key in seen:
                continue
            seen.add(key)
        keywords.append(item)
    return keywords


class Project(BaseModel):
    """
    A named tracking configuration owned by a single user.
    """

    id: str = Field(default_factory=new_id)
    owner_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    domain: str
    brand: str = Field(..., min_length=1, max_length=100)
    competitors: List[Competitor] = Field(default_factory=list)
    keywords: List[TrackedKeyword] = Field(default_factory=list)
    settings: ProjectSettings = Field(default_factory=ProjectSettings)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = _FROZEN

    @field_validator("domain", mode="before")
    @classmethod
    def _normalize_domain(cls, value: Any) -> Any:
        return normalize_domain(value)

    @field_validator("keywords", mode="before")
    @classmethod
    def _coerce_keywords(cls, value: Any) -> Any:
        return coerce_keywords(value)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        return _aware(value)

    @property
    def keyword_names(self) -> List[str]:
        return [k.keyword for k in self.keywords]


class ProjectCreate(BaseModel):
    """Validated payload for creating a project."""

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    domain: str
    brand: str = Field(..., min_length=1, max_length=100)
    competitors: List[Competitor] = Field(default_factory=list)
    keywords: List[TrackedKeyword] = Field(..., min_length=1)
    settings: Optional[ProjectSettings] = None

    model_config = _FROZEN

    @field_validator("domain", mode="before")
    @classmethod
    def _normalize_domain(cls, value: Any) -> Any:
        return normalize_domain(value)

    @field_validator("keywords", mode="before")
    @classmethod
    def _coerce_keywords(cls, value: Any) -> Any:
        return coerce_keywords(value)


class ProjectUpdate(BaseModel):
    """Partial update; only fields that were provided are applied."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    domain: Optional[str] = None
    brand: Optional[str] = Field(None, min_length=1, max_length=100)
    competitors: Optional[List[Competitor]] = None
    keywords: Optional[List[TrackedKeyword]] = Field(None, min_length=1)
    settings: Optional[ProjectSettings] = None

    model_config = _FROZEN

    @field_validator("domain", mode="before")
    @classmethod
    def _normalize_domain(cls, value: Any) -> Any:
        return normalize_domain(value) if value is not None else value

    @field_validator("keywords", mode="before")
    @classmethod
    def _coerce_keywords(cls, value: Any) -> Any:
        return coerce_keywords(value)


__all__ = [
    "Engine",
    "CheckStatus",
    "KeywordCategory",
    "CheckFrequency",
    "ENGINES",
    "DEFAULT_PROJECT_ENGINES",
    "ObservedUrl",
    "CheckMetadata",
    "EngineResponse",
    "CheckRecord",
    "Competitor",
    "TrackedKeyword",
    "ProjectSettings",
    "Project",
    "ProjectCreate",
    "ProjectUpdate",
    "normalize_keyword",
    "normalize_domain",
    "utcnow",
    "new_id",
]
