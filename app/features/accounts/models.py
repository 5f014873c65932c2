"""
Social account models.

An Account is one connected social media profile (a page, a channel, a
handle) managed by the platform. Users reach an account only through an
AccountUser membership row, which carries the account-scoped capability flags.
"""
from sqlalchemy import String, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Account(Base, TimestampMixin):
    """Connected social media account (tenant context for account permissions)."""
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # e.g. "facebook", "instagram", "x", "linkedin"
    platform: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    handle: Mapped[str | None] = mapped_column(String(255), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    members: Mapped[list["AccountUser"]] = relationship(
        "AccountUser",
        back_populates="account",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, platform={self.platform}, name={self.name!r})>"


class AccountUser(Base, TimestampMixin):
    """
    Membership of a user in an account.

    At most one row per (account_id, user_id).
    """
    __tablename__ = "account_users"
    __table_args__ = (
        UniqueConstraint("account_id", "user_id", name="uq_account_users_account_user"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    account_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Account-scoped capabilities
    can_create: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_edit: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_delete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_publish: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_respond: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_analyze: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    account: Mapped["Account"] = relationship(
        "Account",
        back_populates="members",
        lazy="raise"
    )

    def __repr__(self) -> str:
        return f"<AccountUser(account_id={self.account_id}, user_id={self.user_id})>"
