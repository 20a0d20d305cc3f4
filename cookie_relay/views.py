from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel


# Cookie Models
class SameSite(str, Enum):
	STRICT = 'Strict'
	LAX = 'Lax'
	NONE = 'None'


def normalize_same_site(value: Any) -> Optional[str]:
	if value is None:
		return None
	s = str(value).lower()
	if s == 'lax':
		return 'Lax'
	if s == 'strict':
		return 'Strict'
	if s in ('none', 'no_restriction'):
		return 'None'
	return None  # unspecified / unknown


class CookieEntry(BaseModel):
	"""A single browser cookie. Fields outside this set are dropped on input."""

	model_config = ConfigDict(extra='ignore', frozen=True)

	name: str
	value: str = ''
	domain: str
	path: str = '/'
	expires: Optional[float] = None  # expiresAt, seconds since epoch; None for session cookies
	httpOnly: bool = False
	secure: bool = False
	sameSite: Optional[SameSite] = None

	@model_validator(mode='before')
	@classmethod
	def _accept_extension_names(cls, data: Any) -> Any:
		# chrome.cookies reports the expiry as expirationDate
		if isinstance(data, dict) and data.get('expires') is None and data.get('expirationDate') is not None:
			data = {**data, 'expires': data['expirationDate']}
		return data

	@field_validator('sameSite', mode='before')
	@classmethod
	def _normalize_same_site(cls, v: Any) -> Optional[str]:
		return normalize_same_site(v)


class CookieRecord(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

	id: str
	user_id: str
	domain: str
	cookies: List[CookieEntry] = Field(default_factory=list)
	saved_at: datetime
	updated_at: datetime

	@computed_field(alias='cookieCount')
	@property
	def cookie_count(self) -> int:
		return len(self.cookies)

	def to_row(self) -> Dict[str, Any]:
		"""Column-named, JSON-safe representation for the document store."""
		return self.model_dump(mode='json')


class DomainSummary(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

	domain: str
	cookie_count: int
	saved_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None


class UserStats(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

	total_domains: int = 0
	total_cookies: int = 0
	per_domain_summary: List[DomainSummary] = Field(default_factory=list)


class IndexRepairReport(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

	added: List[str] = Field(default_factory=list)
	removed: List[str] = Field(default_factory=list)

	@property
	def changed(self) -> bool:
		return bool(self.added or self.removed)


# Sync Models
class SyncOutcome(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

	domain: str
	success: bool
	saved_count: Optional[int] = None
	error_detail: Optional[str] = None


class SyncReport(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

	synced_count: int = 0
	total_domains: int = 0
	per_domain_outcomes: List[SyncOutcome] = Field(default_factory=list)

	@property
	def failed(self) -> List[SyncOutcome]:
		return [o for o in self.per_domain_outcomes if not o.success]


# Auth Models
class AuthResult(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

	uid: str
	email: Optional[str] = None
	display_name: Optional[str] = None
	token: Optional[str] = None
	refresh_token: Optional[str] = None


# Request Models
class SignInRequest(BaseModel):
	email: Optional[str] = None
	password: Optional[str] = None


class SignUpRequest(BaseModel):
	email: Optional[str] = None
	password: Optional[str] = None
	displayName: str = ''


class PasswordResetRequest(BaseModel):
	email: Optional[str] = None


class SaveCookiesRequest(BaseModel):
	domain: Optional[str] = None
	cookies: Optional[List[Any]] = None


class SyncRequest(BaseModel):
	# chrome.storage.local contents: domain -> JSON string (or object) with a "cookies" array,
	# alongside the extension's own preference keys
	snapshot: Dict[str, Any] = Field(default_factory=dict)


# Response Models
class ApiResponse(BaseModel):
	success: bool
	message: str
	data: Optional[Any] = None
	error: Optional[str] = None
