# comedy_connect/infrastructure/db/models.py

from sqlalchemy import (
    String,
    Integer,
    Boolean,
    DateTime,
    Enum,
    Numeric,
    Text,
    Index,
    UniqueConstraint,
    CheckConstraint,
    ForeignKey,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from comedy_connect.infrastructure.db.session import Base
from comedy_connect.domain.roles import UserRole
from comedy_connect.domain.state_machine import BookingStatus


def _uuid() -> str:
    return str(uuid4())


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored as UTC.
    SQLite drops tzinfo on the way out, so naive values read back are UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role"),
        nullable=False,
        default=UserRole.AUDIENCE,
    )
    # Account-wide platform fee for a creator; a show override still wins.
    custom_platform_fee: Mapped[Decimal | None] = mapped_column(
        Numeric(5, 4),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "custom_platform_fee IS NULL OR "
            "(custom_platform_fee >= 0 AND custom_platform_fee <= 1)",
            name="ck_user_custom_fee_range",
        ),
    )


class UserSession(Base):
    """
    Session rows written by the identity provider.
    This service only reads them.
    """

    __tablename__ = "user_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    session_token: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    expires: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    user: Mapped[User] = relationship()


class Comedian(Base):
    __tablename__ = "comedians"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_by: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=True,
    )


class Show(Base):
    __tablename__ = "shows"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    venue: Mapped[str] = mapped_column(String(200), nullable=False)
    ticket_price: Mapped[int] = mapped_column(Integer, nullable=False)
    total_tickets: Mapped[int] = mapped_column(Integer, nullable=False)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_disbursed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    custom_platform_fee: Mapped[Decimal | None] = mapped_column(
        Numeric(5, 4),
        nullable=True,
    )
    created_by: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    creator: Mapped[User] = relationship()
    show_comedians: Mapped[list["ShowComedian"]] = relationship(
        order_by="ShowComedian.order",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("ticket_price >= 0", name="ck_show_price_nonnegative"),
        CheckConstraint("total_tickets >= 0", name="ck_show_total_tickets_nonnegative"),
        CheckConstraint(
            "custom_platform_fee IS NULL OR "
            "(custom_platform_fee >= 0 AND custom_platform_fee <= 1)",
            name="ck_show_custom_fee_range",
        ),
    )


class ShowComedian(Base):
    __tablename__ = "show_comedians"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    show_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("shows.id", ondelete="CASCADE"),
        nullable=False,
    )
    comedian_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("comedians.id"),
        nullable=False,
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("show_id", "comedian_id", name="uq_show_comedian"),
    )


class TicketInventory(Base):
    __tablename__ = "ticket_inventory"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    show_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("shows.id"),
        nullable=False,
        unique=True,
    )
    available: Mapped[int] = mapped_column(Integer, nullable=False)
    locked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("available >= 0", name="ck_inventory_available_nonnegative"),
        CheckConstraint("locked >= 0", name="ck_inventory_locked_nonnegative"),
    )


class Booking(Base):
    """
    Booking table reflecting domain state.
    Domain controls transitions.
    DB stores current state safely.
    """

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    show_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("shows.id"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    booking_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    platform_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reserved_until: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    show: Mapped[Show] = relationship()

    __table_args__ = (
        UniqueConstraint("order_id", name="uq_booking_order_id"),
        UniqueConstraint("payment_id", name="uq_booking_payment_id"),
        CheckConstraint("quantity > 0", name="ck_booking_quantity_positive"),
        CheckConstraint("total_amount >= 0", name="ck_booking_total_nonnegative"),
        # One booking awaiting payment per user and show.
        Index(
            "uq_booking_active_user_show",
            "user_id",
            "show_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
        Index("ix_booking_status_reserved_until", "status", "reserved_until"),
    )


class PlatformConfig(Base):
    """
    Versioned fee configuration. Slabs live in their own table and are
    replaced as a whole under a row lock on this record.
    """

    __tablename__ = "platform_config"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    platform_fee_percent: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    booking_fee_percent: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    slabs: Mapped[list["FeeSlabRecord"]] = relationship(
        order_by="FeeSlabRecord.position",
        cascade="all, delete-orphan",
    )


class FeeSlabRecord(Base):
    __tablename__ = "fee_slabs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    config_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("platform_config.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    min_price: Mapped[int] = mapped_column(Integer, nullable=False)
    max_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    fee_percent: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)

    __table_args__ = (
        UniqueConstraint("config_id", "position", name="uq_fee_slab_position"),
    )


class PaymentWebhookEvent(Base):
    __tablename__ = "payment_webhook_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payment_id: Mapped[str] = mapped_column(String(128), nullable=False)
    order_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    outcome: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "provider",
            "event_type",
            "payment_id",
            name="uq_webhook_provider_event_payment",
        ),
    )
