"""
SQLAlchemy implementations of the permission check collaborators.

Query errors are reported as Failure so the evaluator can deny instead of
propagating database exceptions.
"""
from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.users.models import User
from app.features.permissions.models import Permission, Role  # noqa: F401
from app.features.accounts.models import AccountUser
from app.features.permissions.evaluator import (
    Failure,
    LookupResult,
    MembershipFlags,
    Ok,
    UserGrants,
)
from app.utils import get_logger


log = get_logger(__name__)


class SqlUserDirectory:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_active_user_with_role_permissions(
        self, user_id: str
    ) -> LookupResult[Optional[UserGrants]]:
        """Load an active, non-deleted user with their role's permission names."""
        stmt = select(User).where(
            User.id == user_id,
            User.is_active.is_(True),
            User.deleted_at.is_(None),
        )
        try:
            result = await self.db.execute(stmt)
            user = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            log.error(f"User lookup failed for {user_id}: {e}")
            return Failure(str(e))

        if user is None:
            return Ok(None)

        if user.role is None:
            log.error(f"User {user_id} references missing role {user.role_id}")
            return Failure("User has no role")

        # role and role.permissions are loaded eagerly (lazy="selectin")
        return Ok(UserGrants(
            user_id=user.id,
            role_name=user.role.name,
            permissions=frozenset(permission.name for permission in user.role.permissions),
        ))


class SqlAccountMembershipStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_membership(
        self, account_id: str, user_id: str
    ) -> LookupResult[Optional[MembershipFlags]]:
        stmt = select(AccountUser).where(
            AccountUser.account_id == account_id,
            AccountUser.user_id == user_id,
        )
        try:
            result = await self.db.execute(stmt)
            membership = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            log.error(f"Membership lookup failed for account {account_id}, user {user_id}: {e}")
            return Failure(str(e))

        if membership is None:
            return Ok(None)

        return Ok(MembershipFlags(
            can_create=membership.can_create,
            can_edit=membership.can_edit,
            can_delete=membership.can_delete,
            can_publish=membership.can_publish,
            can_respond=membership.can_respond,
            can_analyze=membership.can_analyze,
        ))
