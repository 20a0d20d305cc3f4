from typing import Any, List, Sequence

from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .views import CookieEntry


def normalize_domain(domain: Any) -> str:
    """Canonical form of a domain used in storage keys: trimmed, no edge dots, lower-case."""
    if not isinstance(domain, str):
        raise ValidationError('Domain must be a string')
    normalized = domain.strip().strip('.').lower()
    if not normalized:
        raise ValidationError('Domain is required')
    return normalized


def record_id(user_id: str, domain: str) -> str:
    return f"{user_id}_{domain}"


def normalize_cookies(cookies: Any) -> List[CookieEntry]:
    """Validate cookie-shaped input, keeping order and dropping unrecognized fields."""
    if isinstance(cookies, (str, bytes)) or not isinstance(cookies, Sequence):
        raise ValidationError('Cookies must be an array')

    entries: List[CookieEntry] = []
    for i, c in enumerate(cookies):
        if isinstance(c, CookieEntry):
            entries.append(c)
            continue
        if not isinstance(c, dict):
            raise ValidationError(f'Cookie at index {i} is not an object')
        try:
            entries.append(CookieEntry.model_validate(c))
        except PydanticValidationError as e:
            fields = ', '.join(str(err['loc'][0]) for err in e.errors() if err.get('loc'))
            raise ValidationError(f'Cookie at index {i} is malformed', detail=fields or str(e)) from e
    return entries
