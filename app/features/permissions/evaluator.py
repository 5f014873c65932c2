"""
Combined permission check.

A user may act on an account only when:
1. the user exists, is active and is not soft-deleted,
2. the user's role grants the required system permission, and
3. the user's membership of the account carries the required capability flag.

The evaluator reads through two collaborators (UserDirectory and
AccountMembershipStore) which report their outcome as a LookupResult instead
of raising. Every path ends in a PermissionDecision, and every failure denies.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, Protocol, TypeVar, Union

from app.utils import get_logger


log = get_logger(__name__)

T = TypeVar("T")


# ============================================================================
# Lookup results
# ============================================================================

@dataclass(frozen=True)
class Ok(Generic[T]):
    """Lookup completed. value is None when the record does not exist."""
    value: T


@dataclass(frozen=True)
class Failure:
    """Lookup could not be completed (connectivity, query error, ...)."""
    message: str


LookupResult = Union[Ok[T], Failure]


# ============================================================================
# Domain records
# ============================================================================

class AccountPermission(str, Enum):
    """Account-scoped capabilities, one per flag on a membership."""
    CAN_CREATE = "can_create"
    CAN_EDIT = "can_edit"
    CAN_DELETE = "can_delete"
    CAN_PUBLISH = "can_publish"
    CAN_RESPOND = "can_respond"
    CAN_ANALYZE = "can_analyze"


@dataclass(frozen=True)
class UserGrants:
    """An eligible user together with the permission names granted by their role."""
    user_id: str
    role_name: str
    permissions: frozenset[str]

    def has_permission(self, name: str) -> bool:
        # exact match, no wildcards or hierarchy
        return isinstance(name, str) and name in self.permissions


@dataclass(frozen=True)
class MembershipFlags:
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_publish: bool = False
    can_respond: bool = False
    can_analyze: bool = False

    def allows(self, permission: AccountPermission) -> bool:
        # every AccountPermission value names a field of this class
        return getattr(self, permission.value)


class DenialKind(str, Enum):
    NOT_FOUND_OR_INACTIVE = "not_found_or_inactive"
    SYSTEM_PERMISSION_DENIED = "system_permission_denied"
    NO_ACCOUNT_MEMBERSHIP = "no_account_membership"
    ACCOUNT_PERMISSION_DENIED = "account_permission_denied"
    INFRASTRUCTURE_FAILURE = "infrastructure_failure"


@dataclass(frozen=True)
class PermissionDecision:
    granted: bool
    reason: str
    kind: Optional[DenialKind] = None

    @classmethod
    def allow(cls) -> "PermissionDecision":
        return cls(granted=True, reason="User has both system and account permissions")

    @classmethod
    def deny(cls, kind: DenialKind, reason: str) -> "PermissionDecision":
        return cls(granted=False, reason=reason, kind=kind)


# ============================================================================
# Collaborator contracts
# ============================================================================

class UserDirectory(Protocol):
    async def get_active_user_with_role_permissions(
        self, user_id: str
    ) -> LookupResult[Optional[UserGrants]]: ...


class AccountMembershipStore(Protocol):
    async def get_membership(
        self, account_id: str, user_id: str
    ) -> LookupResult[Optional[MembershipFlags]]: ...


def parse_account_permission(key: Union[AccountPermission, str]) -> Optional[AccountPermission]:
    """Return the matching AccountPermission, or None for an unrecognised key."""
    if isinstance(key, AccountPermission):
        return key
    try:
        return AccountPermission(key)
    except ValueError:
        return None


def _failed(failure: Failure) -> PermissionDecision:
    return PermissionDecision.deny(
        DenialKind.INFRASTRUCTURE_FAILURE,
        f"Permission check failed: {failure.message}",
    )


# ============================================================================
# Evaluator
# ============================================================================

class PermissionEvaluator:
    """
    Decide system-AND-account authorization for one action.

    Holds no state between calls; safe to share between concurrent requests
    as long as the collaborators are.
    """

    def __init__(self, users: UserDirectory, memberships: AccountMembershipStore):
        self.users = users
        self.memberships = memberships

    async def evaluate(
        self,
        user_id: str,
        account_id: str,
        system_permission: str,
        account_permission: Union[AccountPermission, str],
    ) -> PermissionDecision:
        """
        Check both permission layers, stopping at the first denial.

        Never raises: lookup failures, including exceptions escaping a
        collaborator, become a denied decision.
        """
        key = account_permission.value if isinstance(account_permission, AccountPermission) else account_permission

        user_lookup = await self._lookup_user(user_id)
        if isinstance(user_lookup, Failure):
            return _failed(user_lookup)
        grants = user_lookup.value
        if grants is None:
            return PermissionDecision.deny(DenialKind.NOT_FOUND_OR_INACTIVE, "User not found or inactive")

        if not grants.has_permission(system_permission):
            log.debug("User %s (role %s) lacks system permission %s", user_id, grants.role_name, system_permission)
            return PermissionDecision.deny(
                DenialKind.SYSTEM_PERMISSION_DENIED,
                f"User lacks system permission: {system_permission}",
            )

        membership_lookup = await self._lookup_membership(account_id, user_id)
        if isinstance(membership_lookup, Failure):
            return _failed(membership_lookup)
        flags = membership_lookup.value
        if flags is None:
            return PermissionDecision.deny(
                DenialKind.NO_ACCOUNT_MEMBERSHIP,
                "User not associated with this account",
            )

        permission = parse_account_permission(account_permission)
        if permission is None:
            log.warning("Unknown account permission %r requested for account %s", key, account_id)
        if permission is None or not flags.allows(permission):
            return PermissionDecision.deny(
                DenialKind.ACCOUNT_PERMISSION_DENIED,
                f"User lacks account permission: {key}",
            )

        return PermissionDecision.allow()

    async def _lookup_user(self, user_id: str) -> LookupResult[Optional[UserGrants]]:
        try:
            return await self.users.get_active_user_with_role_permissions(user_id)
        except Exception as e:
            log.error("Error checking combined permission: %s", e, exc_info=True)
            return Failure(str(e))

    async def _lookup_membership(self, account_id: str, user_id: str) -> LookupResult[Optional[MembershipFlags]]:
        try:
            return await self.memberships.get_membership(account_id, user_id)
        except Exception as e:
            log.error("Error checking combined permission: %s", e, exc_info=True)
            return Failure(str(e))
