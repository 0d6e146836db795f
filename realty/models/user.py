from sqlalchemy import String
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from realty.core.ids import gen_id
from realty.models.base import Base, AuditMixin


class User(AuditMixin, Base):
    """
    Account record. Owned by the account service; listing creation only
    ever appends to `roles`.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("usr"))

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    username: Mapped[str | None] = mapped_column(String(120), nullable=True, unique=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(60), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    photo: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    logo: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    # "Buyer" | "Seller" | "Admin"; treated as a set
    roles: Mapped[list[str]] = mapped_column(ARRAY(String(30)), nullable=False, default=lambda: ["Buyer"])
