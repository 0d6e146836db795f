from typing import Any

from sqlalchemy import Boolean, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from realty.core.ids import gen_id
from realty.models.base import Base, AuditMixin
from realty.models.user import User

PROPERTY_TYPES = ("House", "Apartment", "Townhouse", "Land")
ACTIONS = ("Sell", "Rent")
STATUSES = (
    "In market",
    "Deposit taken",
    "Under offer",
    "Contact agent",
    "Sold",
    "Rented",
    "Off market",
)


class Listing(AuditMixin, Base):
    __tablename__ = "listings"
    __table_args__ = (
        Index("ix_listings_geo", "latitude", "longitude"),
        Index("ix_listings_action_created", "action", "created_at"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("lst"))
    slug: Mapped[str] = mapped_column(String(512), nullable=False, unique=True, index=True)

    owner_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False, index=True)
    owner: Mapped[User] = relationship(lazy="raise")

    address: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    formatted_address: Mapped[str | None] = mapped_column(String(512), nullable=True)

    # WGS84, stored separately so the proximity query stays plain SQL
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)

    # raw geocoder answer; never part of a read projection
    geocode: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    property_type: Mapped[str] = mapped_column(String(30), nullable=False, default="Apartment")
    action: Mapped[str] = mapped_column(String(10), nullable=False, default="Sell")
    price: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    bedrooms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bathrooms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    carpark: Mapped[int | None] = mapped_column(Integer, nullable=True)
    landsize: Mapped[float | None] = mapped_column(Float, nullable=True)
    landsize_type: Mapped[str | None] = mapped_column(String(30), nullable=True)

    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    features: Mapped[Any] = mapped_column(JSONB, nullable=True)
    nearby: Mapped[Any] = mapped_column(JSONB, nullable=True)
    inspection_time: Mapped[str | None] = mapped_column(String(255), nullable=True)

    photos: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)

    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="In market")
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
