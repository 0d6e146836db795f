from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_users_and_listings"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=120), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=60), nullable=True),
        sa.Column("company", sa.String(length=255), nullable=True),
        sa.Column("photo", sa.String(length=1024), nullable=True),
        sa.Column("logo", sa.String(length=1024), nullable=True),
        sa.Column(
            "roles",
            postgresql.ARRAY(sa.String(length=30)),
            nullable=False,
            server_default=sa.text("ARRAY['Buyer']::varchar[]"),
        ),

        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),

        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )

    op.create_table(
        "listings",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("slug", sa.String(length=512), nullable=False),
        sa.Column("owner_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),

        sa.Column("address", sa.String(length=255), nullable=False),
        sa.Column("formatted_address", sa.String(length=512), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("geocode", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),

        sa.Column("property_type", sa.String(length=30), nullable=False, server_default="Apartment"),
        sa.Column("action", sa.String(length=10), nullable=False, server_default="Sell"),
        sa.Column("price", sa.String(length=255), nullable=False),

        sa.Column("bedrooms", sa.Integer(), nullable=True),
        sa.Column("bathrooms", sa.Integer(), nullable=True),
        sa.Column("carpark", sa.Integer(), nullable=True),
        sa.Column("landsize", sa.Float(), nullable=True),
        sa.Column("landsize_type", sa.String(length=30), nullable=True),

        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("features", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("nearby", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("inspection_time", sa.String(length=255), nullable=True),
        sa.Column("photos", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),

        sa.Column("published", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="In market"),
        sa.Column("views", sa.Integer(), nullable=False, server_default="0"),

        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),

        sa.CheckConstraint(
            "status IN ('In market','Deposit taken','Under offer','Contact agent','Sold','Rented','Off market')",
            name="ck_listings_status",
        ),
        sa.CheckConstraint("action IN ('Sell','Rent')", name="ck_listings_action"),
    )

    op.create_index("ix_listings_slug", "listings", ["slug"], unique=True)
    op.create_index("ix_listings_owner_id", "listings", ["owner_id"])
    op.create_index("ix_listings_address", "listings", ["address"])
    op.create_index("ix_listings_price", "listings", ["price"])
    op.create_index("ix_listings_geo", "listings", ["latitude", "longitude"])
    op.create_index("ix_listings_action_created", "listings", ["action", "created_at"])


def downgrade():
    op.drop_index("ix_listings_action_created", table_name="listings")
    op.drop_index("ix_listings_geo", table_name="listings")
    op.drop_index("ix_listings_price", table_name="listings")
    op.drop_index("ix_listings_address", table_name="listings")
    op.drop_index("ix_listings_owner_id", table_name="listings")
    op.drop_index("ix_listings_slug", table_name="listings")
    op.drop_table("listings")
    op.drop_table("users")
