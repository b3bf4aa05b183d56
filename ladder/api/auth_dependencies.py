"""
Identity and storage dependencies for FastAPI routes.

Identity verification happens upstream: the identity provider (or the
gateway in front of this service) sets the X-Account-* headers on every
request and this service trusts them as verified claims.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from ladder.models.records import Identity
from ladder.services.role_service import RoleStore, StorageRoleStore
from ladder.storage.base import Storage
from ladder.storage.factory import build_storage

_storage: Optional[Storage] = None


def get_storage() -> Storage:
    """Process-wide storage backend, built on first use."""
    global _storage
    if _storage is None:
        _storage = build_storage()
    return _storage


def get_role_store(storage: Storage = Depends(get_storage)) -> RoleStore:
    return StorageRoleStore(storage)


async def get_current_identity(
    x_account_id: Optional[str] = Header(None),
    x_account_name: Optional[str] = Header(None),
    x_account_email: Optional[str] = Header(None),
    x_account_picture: Optional[str] = Header(None),
) -> Identity:
    """
    Dependency to get the verified identity of the caller.

    Raises:
        HTTPException: 401 if no account id was supplied
    """
    if not x_account_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    email = x_account_email or ""
    return Identity(
        account_id=x_account_id,
        display_name=x_account_name or email or "Anonymous",
        email=email,
        picture=x_account_picture or "",
    )


async def require_admin(
    identity: Identity = Depends(get_current_identity),
    roles: RoleStore = Depends(get_role_store),
) -> Identity:
    """Require an authenticated administrator."""
    if not await roles.is_admin(identity.account_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return identity
