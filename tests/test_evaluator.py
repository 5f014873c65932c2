import asyncio

import pytest

from app.features.permissions.evaluator import (
    AccountPermission,
    DenialKind,
    Failure,
    MembershipFlags,
    Ok,
    PermissionDecision,
    PermissionEvaluator,
    UserGrants,
    parse_account_permission,
)


class DummyUsers:
    def __init__(self, users=None, error=None, result=None):
        self.users = users or {}
        self.error = error
        self.result = result
        self.calls = []

    async def get_active_user_with_role_permissions(self, user_id: str):
        # simulate async
        await asyncio.sleep(0)
        self.calls.append(user_id)
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        return Ok(self.users.get(user_id))


class DummyMemberships:
    def __init__(self, memberships=None, error=None, result=None):
        self.memberships = memberships or {}
        self.error = error
        self.result = result
        self.calls = []

    async def get_membership(self, account_id: str, user_id: str):
        await asyncio.sleep(0)
        self.calls.append((account_id, user_id))
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        return Ok(self.memberships.get((account_id, user_id)))


def grants(user_id="u1", *permissions):
    return UserGrants(user_id=user_id, role_name="manager", permissions=frozenset(permissions))


def build(users=None, memberships=None):
    users = users if users is not None else DummyUsers()
    memberships = memberships if memberships is not None else DummyMemberships()
    return PermissionEvaluator(users, memberships), users, memberships


@pytest.mark.asyncio
async def test_inactive_or_missing_user_is_denied():
    evaluator, _, memberships = build()

    decision = await evaluator.evaluate("u1", "42", "manage_billing", "can_publish")

    assert decision == PermissionDecision(
        granted=False,
        reason="User not found or inactive",
        kind=DenialKind.NOT_FOUND_OR_INACTIVE,
    )
    # short-circuits before the membership lookup
    assert memberships.calls == []


@pytest.mark.asyncio
async def test_role_without_system_permission_is_denied():
    users = DummyUsers({"u1": grants("u1", "publish_content")})
    evaluator, _, memberships = build(users)

    decision = await evaluator.evaluate("u1", "42", "manage_billing", "can_publish")

    assert decision.granted is False
    assert decision.reason == "User lacks system permission: manage_billing"
    assert decision.kind is DenialKind.SYSTEM_PERMISSION_DENIED
    assert memberships.calls == []


@pytest.mark.asyncio
async def test_system_permission_match_is_exact():
    users = DummyUsers({"u1": grants("u1", "manage_billing")})
    memberships = DummyMemberships({("42", "u1"): MembershipFlags(can_publish=True)})
    evaluator, _, _ = build(users, memberships)

    for name in ("MANAGE_BILLING", "manage", "manage_billing ", "*"):
        decision = await evaluator.evaluate("u1", "42", name, "can_publish")
        assert decision.reason == f"User lacks system permission: {name}"


@pytest.mark.asyncio
async def test_missing_membership_is_denied():
    users = DummyUsers({"u1": grants("u1", "manage_billing")})
    evaluator, _, memberships = build(users)

    decision = await evaluator.evaluate("u1", "42", "manage_billing", "can_publish")

    assert decision.granted is False
    assert decision.reason == "User not associated with this account"
    assert decision.kind is DenialKind.NO_ACCOUNT_MEMBERSHIP
    assert memberships.calls == [("42", "u1")]


@pytest.mark.asyncio
async def test_membership_flag_false_is_denied():
    users = DummyUsers({"u1": grants("u1", "manage_billing")})
    memberships = DummyMemberships({("42", "u1"): MembershipFlags(can_publish=False, can_analyze=True)})
    evaluator, _, _ = build(users, memberships)

    decision = await evaluator.evaluate("u1", "42", "manage_billing", "can_publish")

    assert decision == PermissionDecision(
        granted=False,
        reason="User lacks account permission: can_publish",
        kind=DenialKind.ACCOUNT_PERMISSION_DENIED,
    )


@pytest.mark.asyncio
async def test_both_layers_granted():
    users = DummyUsers({"u1": grants("u1", "manage_billing")})
    memberships = DummyMemberships({("42", "u1"): MembershipFlags(can_publish=True)})
    evaluator, _, _ = build(users, memberships)

    decision = await evaluator.evaluate("u1", "42", "manage_billing", AccountPermission.CAN_PUBLISH)

    assert decision == PermissionDecision(granted=True, reason="User has both system and account permissions")
    assert decision.kind is None


@pytest.mark.asyncio
@pytest.mark.parametrize("permission", list(AccountPermission))
async def test_each_account_permission_maps_to_its_own_flag(permission):
    users = DummyUsers({"u1": grants("u1", "manage_billing")})
    only_this = MembershipFlags(**{permission.value: True})
    memberships = DummyMemberships({("42", "u1"): only_this})
    evaluator, _, _ = build(users, memberships)

    granted = await evaluator.evaluate("u1", "42", "manage_billing", permission)
    assert granted.granted is True

    for other in AccountPermission:
        if other is permission:
            continue
        denied = await evaluator.evaluate("u1", "42", "manage_billing", other.value)
        assert denied.reason == f"User lacks account permission: {other.value}"


@pytest.mark.asyncio
@pytest.mark.parametrize("key", ["can_fly", "", "CAN_PUBLISH", "canPublish"])
async def test_unknown_account_permission_denies_without_raising(key):
    users = DummyUsers({"u1": grants("u1", "manage_billing")})
    every_flag = MembershipFlags(*([True] * 6))
    memberships = DummyMemberships({("42", "u1"): every_flag})
    evaluator, _, _ = build(users, memberships)

    decision = await evaluator.evaluate("u1", "42", "manage_billing", key)

    assert decision.granted is False
    assert decision.reason == f"User lacks account permission: {key}"


@pytest.mark.asyncio
async def test_unknown_key_still_reports_missing_membership_first():
    users = DummyUsers({"u1": grants("u1", "manage_billing")})
    evaluator, _, _ = build(users)

    decision = await evaluator.evaluate("u1", "42", "manage_billing", "can_fly")

    assert decision.reason == "User not associated with this account"


@pytest.mark.asyncio
async def test_user_lookup_failure_result_denies():
    users = DummyUsers(result=Failure("connection refused"))
    evaluator, _, memberships = build(users)

    decision = await evaluator.evaluate("u1", "42", "manage_billing", "can_publish")

    assert decision == PermissionDecision(
        granted=False,
        reason="Permission check failed: connection refused",
        kind=DenialKind.INFRASTRUCTURE_FAILURE,
    )
    assert memberships.calls == []


@pytest.mark.asyncio
async def test_membership_lookup_failure_result_denies():
    users = DummyUsers({"u1": grants("u1", "manage_billing")})
    memberships = DummyMemberships(result=Failure("query timed out"))
    evaluator, _, _ = build(users, memberships)

    decision = await evaluator.evaluate("u1", "42", "manage_billing", "can_publish")

    assert decision.granted is False
    assert decision.reason == "Permission check failed: query timed out"


@pytest.mark.asyncio
async def test_exception_from_collaborator_is_converted_to_denial():
    users = DummyUsers(error=ConnectionError("database unreachable"))
    evaluator, _, _ = build(users)

    decision = await evaluator.evaluate("u1", "42", "manage_billing", "can_publish")

    assert decision.granted is False
    assert decision.reason == "Permission check failed: database unreachable"
    assert decision.kind is DenialKind.INFRASTRUCTURE_FAILURE

    users = DummyUsers({"u1": grants("u1", "manage_billing")})
    memberships = DummyMemberships(error=RuntimeError("boom"))
    evaluator, _, _ = build(users, memberships)

    decision = await evaluator.evaluate("u1", "42", "manage_billing", "can_publish")

    assert decision.reason == "Permission check failed: boom"


@pytest.mark.asyncio
async def test_repeated_calls_give_identical_decisions():
    users = DummyUsers({"u1": grants("u1", "manage_billing")})
    memberships = DummyMemberships({("42", "u1"): MembershipFlags(can_publish=True)})
    evaluator, _, _ = build(users, memberships)

    first = await evaluator.evaluate("u1", "42", "manage_billing", "can_publish")
    second = await evaluator.evaluate("u1", "42", "manage_billing", "can_publish")

    assert first == second


@pytest.mark.asyncio
async def test_concurrent_calls_are_independent():
    users = DummyUsers({
        "u1": grants("u1", "manage_billing"),
        "u2": grants("u2", "view_analytics"),
    })
    memberships = DummyMemberships({
        ("42", "u1"): MembershipFlags(can_publish=True),
        ("42", "u2"): MembershipFlags(can_analyze=True),
    })
    evaluator, _, _ = build(users, memberships)

    results = await asyncio.gather(
        evaluator.evaluate("u1", "42", "manage_billing", "can_publish"),
        evaluator.evaluate("u2", "42", "manage_billing", "can_publish"),
        evaluator.evaluate("u2", "42", "view_analytics", "can_analyze"),
        evaluator.evaluate("u1", "42", "manage_billing", "can_analyze"),
    )

    assert [r.granted for r in results] == [True, False, True, False]


def test_parse_account_permission():
    assert parse_account_permission("can_edit") is AccountPermission.CAN_EDIT
    assert parse_account_permission(AccountPermission.CAN_DELETE) is AccountPermission.CAN_DELETE
    assert parse_account_permission("can_fly") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("name", [["manage_billing"], {"manage_billing": True}, None, 42])
async def test_non_string_system_permission_denies_without_raising(name):
    users = DummyUsers({"u1": grants("u1", "manage_billing")})
    memberships = DummyMemberships({("42", "u1"): MembershipFlags(can_publish=True)})
    evaluator, _, _ = build(users, memberships)

    decision = await evaluator.evaluate("u1", "42", name, "can_publish")

    assert decision.granted is False
    assert decision.kind is DenialKind.SYSTEM_PERMISSION_DENIED
    assert decision.reason == f"User lacks system permission: {name}"
