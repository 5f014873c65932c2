"""
Permission checking dependencies.

Implements:
- Evaluator construction per request session
- FastAPI dependency for protecting account-scoped routes
"""
from typing import Annotated
from fastapi import Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.dependencies import get_current_user_id
from app.features.permissions.evaluator import (
    AccountPermission,
    PermissionDecision,
    PermissionEvaluator,
)
from app.features.permissions.repositories import SqlAccountMembershipStore, SqlUserDirectory
from app.utils import get_logger


log = get_logger(__name__)


def get_permission_evaluator(
    db: Annotated[AsyncSession, Depends(get_db)]
) -> PermissionEvaluator:
    return PermissionEvaluator(SqlUserDirectory(db), SqlAccountMembershipStore(db))


def require_account_permission(system_permission: str, account_permission: AccountPermission):
    """
    FastAPI dependency to require a system permission AND an account capability.

    The account is taken from the `account_id` path parameter.

    Usage:
        @router.post("/accounts/{account_id}/posts/{post_id}/publish")
        async def publish_post(
            account_id: str,
            post_id: str,
            decision: PermissionDecision = Depends(
                require_account_permission("publish_content", AccountPermission.CAN_PUBLISH)
            ),
        ):
            # User may publish on this account
            pass

    Raises:
        HTTPException: 403 if either layer denies
    """
    async def permission_dependency(
        account_id: Annotated[str, Path()],
        user_id: Annotated[str, Depends(get_current_user_id)],
        evaluator: Annotated[PermissionEvaluator, Depends(get_permission_evaluator)],
    ) -> PermissionDecision:
        decision = await evaluator.evaluate(user_id, account_id, system_permission, account_permission)

        if not decision.granted:
            log.info(
                "Denied %s/%s for user %s on account %s: %s",
                system_permission, account_permission.value, user_id, account_id, decision.reason
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permission denied"
            )

        return decision

    return permission_dependency
