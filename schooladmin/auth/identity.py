"""
Seam to the hosted identity provider.

The provider signs the bearer tokens we receive and owns a per-subject private
metadata document (used for impersonation claims). Both are reached only
through this module so the provider can be swapped or faked.
"""

import abc
from copy import deepcopy
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from schooladmin.auth.schemas import IdentityClaims
from schooladmin.core.config import settings
from schooladmin.core.exceptions import ErrorKind, ServiceError


def verify_identity_token(token: str) -> IdentityClaims:
    """Verify a provider-issued token and return its subject."""
    try:
        payload = jwt.decode(
            token,
            settings.identity_jwt_secret,
            algorithms=[settings.identity_jwt_algorithm],
            audience=settings.identity_audience,
            issuer=settings.identity_issuer,
            options={"verify_aud": settings.identity_audience is not None},
        )
    except JWTError:
        raise ServiceError(ErrorKind.AUTHENTICATION, "Could not validate credentials")

    subject = payload.get("sub")
    if not subject:
        raise ServiceError(ErrorKind.AUTHENTICATION, "Could not validate credentials")
    return IdentityClaims(subject=subject, email=payload.get("email"))


class IdentityMetadataStore(abc.ABC):
    """Provider-owned private metadata, keyed by subject id."""

    @abc.abstractmethod
    async def get_private_metadata(self, subject: str) -> Dict[str, Any]:
        ...

    @abc.abstractmethod
    async def update_private_metadata(self, subject: str, values: Dict[str, Any]) -> None:
        """Merge values into the subject's metadata; a None value removes the key."""


class InMemoryIdentityMetadataStore(IdentityMetadataStore):
    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, Any]] = {}

    async def get_private_metadata(self, subject: str) -> Dict[str, Any]:
        return deepcopy(self._data.get(subject, {}))

    async def update_private_metadata(self, subject: str, values: Dict[str, Any]) -> None:
        current = self._data.setdefault(subject, {})
        for key, value in values.items():
            if value is None:
                current.pop(key, None)
            else:
                current[key] = deepcopy(value)


IMPERSONATION_KEY = "impersonation"


async def get_impersonation_claim(
    store: IdentityMetadataStore, subject: str
) -> Optional[Dict[str, Any]]:
    metadata = await store.get_private_metadata(subject)
    claim = metadata.get(IMPERSONATION_KEY)
    if not claim or not claim.get("is_impersonating"):
        return None
    return claim


async def set_impersonation_claim(
    store: IdentityMetadataStore, subject: str, claim: Optional[Dict[str, Any]]
) -> None:
    await store.update_private_metadata(subject, {IMPERSONATION_KEY: claim})
