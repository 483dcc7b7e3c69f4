"""User model."""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.wallet import Wallet


class User(Base, UUIDMixin, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    is_admin: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="Inactive users are excluded from announcement fan-out",
    )

    # Public profile
    full_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone: Mapped[str | None] = mapped_column(
        String(15),
        nullable=True,
        comment="10-digit mobile number",
    )
    gaming_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    wallet: Mapped["Wallet | None"] = relationship(
        "Wallet",
        back_populates="user",
        uselist=False,
        lazy="selectin",
    )

    @property
    def wallet_balance(self) -> int:
        """Total balance in paise, read through the wallet.

        The wallet row is the only stored balance; this is a projection for
        callers that want a single number.
        """
        if self.wallet is None:
            return 0
        return self.wallet.total_balance

    def __repr__(self) -> str:
        return f"<User {self.id[:8]}... {self.username}>"
