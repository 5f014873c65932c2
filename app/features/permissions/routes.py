"""
Permission API routes.

Provides the permission catalog and a diagnostic combined permission check.
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.dependencies import get_current_user_id
from app.features.permissions.models import Permission
from app.features.permissions.schemas import (
    PermissionResponse,
    PermissionCheckRequest,
    PermissionCheckResponse,
)
from app.features.permissions.dependencies import get_permission_evaluator
from app.features.permissions.evaluator import PermissionEvaluator
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


@router.get("", response_model=List[PermissionResponse])
async def list_permissions(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """List the system permission catalog."""
    stmt = select(Permission).order_by(Permission.name).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.post("/check", response_model=PermissionCheckResponse)
async def check_permission(
    check_request: PermissionCheckRequest,
    user_id: str = Depends(get_current_user_id),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator)
):
    """
    Check if the current user holds both a system permission and an account capability.

    Always answers 200; has_permission carries the outcome.
    """
    decision = await evaluator.evaluate(
        user_id,
        check_request.account_id,
        check_request.system_permission,
        check_request.account_permission,
    )
    log.debug(f"Permission check for user {user_id} on account {check_request.account_id}: {decision.reason}")

    return PermissionCheckResponse(
        has_permission=decision.granted,
        reason=decision.reason,
    )
