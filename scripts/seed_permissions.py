"""
Seed script to populate default permissions and roles.

Run this script to create:
- Database tables
- Default system permissions
- Default system roles
- Initial role-permission assignments

Usage:
    python -m scripts.seed_permissions
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import Database
from app.features.users.models import User  # noqa: F401
from app.features.permissions.models import Permission, Role
from app.utils import get_logger


log = get_logger(__name__)


DEFAULT_PERMISSIONS = [
    # Content
    ("create_content", "Draft new posts"),
    ("edit_content", "Edit drafts and scheduled posts"),
    ("delete_content", "Delete posts"),
    ("publish_content", "Publish or schedule posts"),

    # Engagement
    ("respond_messages", "Reply to comments and direct messages"),

    # Analytics
    ("view_analytics", "View account analytics"),
    ("export_reports", "Export analytics reports"),

    # Accounts and platforms
    ("manage_accounts", "Connect and disconnect social accounts"),
    ("manage_platforms", "Configure supported social platforms"),

    # Administration
    ("manage_users", "Create, update and deactivate users"),
    ("manage_roles", "Assign roles and permissions"),
    ("manage_billing", "Manage subscription and billing"),
]


DEFAULT_ROLES = {
    "super_admin": {
        "description": "Platform administrator with all permissions",
        "permissions": "ALL"  # Special case - gets all permissions
    },
    "admin": {
        "description": "Workspace administrator",
        "permissions": [
            "create_content", "edit_content", "delete_content", "publish_content",
            "respond_messages",
            "view_analytics", "export_reports",
            "manage_accounts", "manage_users", "manage_billing",
        ]
    },
    "manager": {
        "description": "Social media manager",
        "permissions": [
            "create_content", "edit_content", "delete_content", "publish_content",
            "respond_messages",
            "view_analytics", "export_reports",
            "manage_accounts",
        ]
    },
    "editor": {
        "description": "Content creator who prepares and publishes posts",
        "permissions": [
            "create_content", "edit_content", "publish_content",
            "respond_messages",
        ]
    },
    "analyst": {
        "description": "Read-only access to analytics",
        "permissions": [
            "view_analytics", "export_reports",
        ]
    },
    "viewer": {
        "description": "Read-only access",
        "permissions": [
            "view_analytics",
        ]
    },
}


async def seed_permissions(db: AsyncSession) -> dict[str, Permission]:
    """
    Create default permissions.

    Returns:
        Dictionary mapping permission names to Permission objects
    """
    log.info("Creating default permissions...")
    permissions_map = {}

    for name, description in DEFAULT_PERMISSIONS:
        stmt = select(Permission).where(Permission.name == name)
        result = await db.execute(stmt)
        existing = result.scalars().first()

        if existing:
            log.debug(f"Permission '{name}' already exists, skipping")
            permissions_map[name] = existing
            continue

        permission = Permission(name=name, description=description)
        db.add(permission)
        permissions_map[name] = permission
        log.info(f"Created permission: {name}")

    await db.flush()

    log.info(f"Seeded {len(permissions_map)} permissions")
    return permissions_map


async def seed_roles(db: AsyncSession, permissions_map: dict[str, Permission]) -> dict[str, Role]:
    """
    Create default roles and assign permissions.

    Args:
        db: Database session
        permissions_map: Dictionary of permission name -> Permission object
    """
    log.info("Creating default roles...")
    roles_map = {}

    for role_name, role_config in DEFAULT_ROLES.items():
        stmt = select(Role).where(Role.name == role_name)
        result = await db.execute(stmt)
        existing = result.scalars().first()

        if existing:
            log.debug(f"Role '{role_name}' already exists, skipping")
            roles_map[role_name] = existing
            continue

        role = Role(name=role_name, description=role_config["description"])

        if role_config["permissions"] == "ALL":
            role.permissions = list(permissions_map.values())
            log.info(f"Created role '{role_name}' with ALL permissions")
        else:
            role_permissions = []
            for perm_name in role_config["permissions"]:
                if perm_name in permissions_map:
                    role_permissions.append(permissions_map[perm_name])
                else:
                    log.warning(f"Permission '{perm_name}' not found for role '{role_name}'")

            role.permissions = role_permissions
            log.info(f"Created role '{role_name}' with {len(role_permissions)} permissions")

        db.add(role)
        roles_map[role_name] = role

    await db.flush()
    log.info("Default roles created successfully")
    return roles_map


async def main(database_url: str = config.SQLALCHEMY_DATABASE_URL):
    """Create tables, then seed permissions and roles."""
    log.info("Starting permission seeding...")
    database = Database(database_url)

    try:
        await database.create_all()

        async with database.session() as db:
            permissions_map = await seed_permissions(db)
            await seed_roles(db, permissions_map)

        log.info("Permission seeding completed successfully!")
        log.info("Default roles:")
        for role_name, role_config in DEFAULT_ROLES.items():
            log.info(f"  - {role_name}: {role_config['description']}")
    except Exception as e:
        log.error(f"Error seeding permissions: {e}", exc_info=True)
        raise
    finally:
        await database.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
