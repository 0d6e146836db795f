from __future__ import annotations

import logging
from typing import Any, Protocol

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from realty.core.errors import ConflictError, NotFoundError
from realty.models.listing import Listing
from realty.models.user import User
from realty.services.geocoder import GeoPoint

log = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000
METERS_PER_DEGREE_LAT = 111_320

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


class ListingRepository(Protocol):
    async def create(self, fields: dict[str, Any]) -> Listing:
        """
        Insert and commit. Raises ConflictError when the slug is taken and
        NotFoundError when the owner has no user row.
        """
        ...

    async def get_by_slug(self, slug: str) -> Listing | None:
        ...

    async def increment_views(self, listing_id: str) -> None:
        ...

    async def find_nearby(
        self,
        *,
        point: GeoPoint,
        action: str,
        property_type: str,
        exclude_id: str,
        radius_m: int,
        limit: int,
    ) -> list[Listing]:
        """Published listings near point with the same action and type, nearest first."""
        ...

    async def page_by_action(self, *, action: str, page: int, page_size: int) -> tuple[list[Listing], int]:
        ...


class UserRepository(Protocol):
    async def add_role(self, user_id: str, role: str) -> None:
        """Set-add: adding a role the user already has is a no-op."""
        ...


def _violation(e: IntegrityError) -> tuple[str | None, str | None]:
    """(sqlstate, constraint name) of the driver error behind an IntegrityError."""
    orig = e.orig
    cause = getattr(orig, "__cause__", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(cause, "sqlstate", None)
    constraint = getattr(orig, "constraint_name", None) or getattr(cause, "constraint_name", None)
    return sqlstate, constraint


def _distance_m(point: GeoPoint):
    # haversine, evaluated in SQL
    dlat = func.radians(Listing.latitude - point.latitude)
    dlon = func.radians(Listing.longitude - point.longitude)
    a = func.power(func.sin(dlat / 2), 2) + (
        func.cos(func.radians(point.latitude))
        * func.cos(func.radians(Listing.latitude))
        * func.power(func.sin(dlon / 2), 2)
    )
    return 2 * EARTH_RADIUS_M * func.asin(func.sqrt(a))


class SqlListingRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, fields: dict[str, Any]) -> Listing:
        listing = Listing(**fields)
        self.db.add(listing)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            log.warning("listing insert rejected: %s", e.orig)
            sqlstate, constraint = _violation(e)
            if sqlstate == UNIQUE_VIOLATION and "slug" in (constraint or "slug"):
                raise ConflictError("This property already exists", context={"slug": fields.get("slug")}) from e
            if sqlstate == FOREIGN_KEY_VIOLATION:
                raise NotFoundError("User not found", context={"user_id": fields.get("owner_id")}) from e
            raise
        return listing

    async def get_by_slug(self, slug: str) -> Listing | None:
        stmt = select(Listing).where(Listing.slug == slug).options(selectinload(Listing.owner))
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def increment_views(self, listing_id: str) -> None:
        # leave the already-loaded row untouched; callers show the count they read
        stmt = (
            update(Listing)
            .where(Listing.id == listing_id)
            .values(views=Listing.views + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)
        await self.db.commit()

    async def find_nearby(
        self,
        *,
        point: GeoPoint,
        action: str,
        property_type: str,
        exclude_id: str,
        radius_m: int,
        limit: int,
    ) -> list[Listing]:
        distance = _distance_m(point)
        lat_span = radius_m / METERS_PER_DEGREE_LAT
        stmt = (
            select(Listing)
            .where(
                Listing.id != exclude_id,
                Listing.published.is_(True),
                Listing.action == action,
                Listing.property_type == property_type,
                Listing.latitude.between(point.latitude - lat_span, point.latitude + lat_span),
                distance <= radius_m,
            )
            .options(selectinload(Listing.owner))
            .order_by(distance.asc())
            .limit(limit)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def page_by_action(self, *, action: str, page: int, page_size: int) -> tuple[list[Listing], int]:
        total = (
            await self.db.execute(select(func.count()).select_from(Listing).where(Listing.action == action))
        ).scalar_one()
        stmt = (
            select(Listing)
            .where(Listing.action == action)
            .options(selectinload(Listing.owner))
            .order_by(Listing.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        rows = (await self.db.execute(stmt)).scalars().all()
        return list(rows), total


class SqlUserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_role(self, user_id: str, role: str) -> None:
        exists = (await self.db.execute(select(User.id).where(User.id == user_id))).scalar_one_or_none()
        if exists is None:
            raise NotFoundError("User not found", context={"user_id": user_id})

        # guarded append keeps roles a set even under concurrent calls
        await self.db.execute(
            update(User)
            .where(User.id == user_id, ~User.roles.contains([role]))
            .values(roles=func.array_append(User.roles, role))
        )
        await self.db.commit()
