from __future__ import annotations

from datetime import date, datetime, time
from enum import StrEnum
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, Date, DateTime, Integer, SmallInteger, String, Text, Time


class Base(DeclarativeBase):
    pass


# SQLite only autoincrements INTEGER PRIMARY KEY columns.
PrimaryKey = BigInteger().with_variant(Integer, "sqlite")


class BookingStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ARRIVED = "arrived"
    SEATED = "seated"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    CANCELLED_BY_GUEST = "cancelled_by_guest"
    CANCELLED_BY_VENUE = "cancelled_by_venue"


class BookingSource(StrEnum):
    ONLINE = "online"
    STAFF = "staff"
    WALK_IN = "walk_in"
    PHONE = "phone"


# Bookings in these states no longer hold their table or game copy.
INACTIVE_BOOKING_STATUSES: frozenset[BookingStatus] = frozenset(
    {
        BookingStatus.CANCELLED_BY_GUEST,
        BookingStatus.CANCELLED_BY_VENUE,
        BookingStatus.NO_SHOW,
    }
)


def _enum_column(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
    )


class Venue(Base):
    __tablename__ = "venues"
    __table_args__ = (UniqueConstraint("slug", name="uq_venues_slug"),)

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    booking_settings: Mapped[Optional["VenueBookingSettings"]] = relationship(back_populates="venue")
    tables: Mapped[list["VenueTable"]] = relationship(back_populates="venue")


class VenueBookingSettings(Base):
    __tablename__ = "venue_booking_settings"
    __table_args__ = (
        UniqueConstraint("venue_id", name="uq_booking_settings_venue"),
        CheckConstraint("default_duration_minutes >= 1", name="chk_settings_duration"),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id"), nullable=False)
    bookings_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    require_phone: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    require_email: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    min_booking_notice_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_advance_booking_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    default_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=120)
    no_show_grace_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=15)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="America/Los_Angeles")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    venue: Mapped["Venue"] = relationship(back_populates="booking_settings")


class VenueOperatingHours(Base):
    __tablename__ = "venue_operating_hours"
    __table_args__ = (
        UniqueConstraint("venue_id", "day_of_week", name="uq_operating_hours_day"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="chk_operating_hours_day"),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id"), nullable=False)
    # 0 == Sunday
    day_of_week: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    open_time: Mapped[time] = mapped_column(Time, nullable=False)
    close_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class VenueTable(Base):
    __tablename__ = "venue_tables"
    __table_args__ = (
        CheckConstraint("capacity IS NULL OR capacity >= 1", name="chk_tables_capacity"),
        Index("idx_tables_venue", "venue_id"),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id"), nullable=False)
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    venue: Mapped["Venue"] = relationship(back_populates="tables")


class Game(Base):
    __tablename__ = "games"
    __table_args__ = (
        CheckConstraint("copies_in_rotation >= 0", name="chk_games_copies"),
        Index("idx_games_venue", "venue_id"),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    cover_image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    copies_in_rotation: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="chk_bookings_time"),
        CheckConstraint("party_size >= 1", name="chk_bookings_party_size"),
        UniqueConstraint("confirmation_code", name="uq_bookings_confirmation_code"),
        Index("idx_bookings_table_date", "table_id", "booking_date"),
        Index("idx_bookings_game_date", "game_id", "booking_date"),
        Index("idx_bookings_venue_date", "venue_id", "booking_date"),
    )

    id: Mapped[int] = mapped_column(PrimaryKey, primary_key=True, autoincrement=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id"), nullable=False)
    table_id: Mapped[int] = mapped_column(ForeignKey("venue_tables.id"), nullable=False)
    game_id: Mapped[Optional[int]] = mapped_column(ForeignKey("games.id"), nullable=True)
    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    party_size: Mapped[int] = mapped_column(Integer, nullable=False)
    guest_name: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    guest_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    status: Mapped[BookingStatus] = mapped_column(
        _enum_column(BookingStatus),
        nullable=False,
        default=BookingStatus.CONFIRMED,
    )
    source: Mapped[BookingSource] = mapped_column(
        _enum_column(BookingSource),
        nullable=False,
        default=BookingSource.ONLINE,
    )
    confirmation_code: Mapped[str] = mapped_column(String(6), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    internal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    arrived_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    seated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    no_show_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    table: Mapped["VenueTable"] = relationship()
    game: Mapped[Optional["Game"]] = relationship()

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_BOOKING_STATUSES
