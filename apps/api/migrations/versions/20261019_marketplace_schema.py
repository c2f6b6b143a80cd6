"""Marketplace schema: users with admin hierarchy, listings, admin links, audit

Revision ID: 20261019_marketplace_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_marketplace_schema"
down_revision = None
branch_labels = None
depends_on = None


def _listing_columns():
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("quality", sa.String(length=255), nullable=True),
        sa.Column("condition", sa.String(length=20), nullable=True),
        sa.Column("category", sa.String(length=20), nullable=False, server_default="other"),
        sa.Column("target_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=False),
        sa.Column("state", sa.String(length=100), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("contact_requests", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def upgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("username", sa.String(length=50), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("first_name", sa.String(length=100), nullable=True),
            sa.Column("last_name", sa.String(length=100), nullable=True),
            sa.Column("mobile_number", sa.String(length=15), nullable=False),
            sa.Column("location", sa.String(length=255), nullable=True),
            sa.Column("profile_picture", sa.String(length=255), nullable=True),
            sa.Column("latitude", sa.Float(), nullable=True),
            sa.Column("longitude", sa.Float(), nullable=True),
            sa.Column("roles", sa.JSON(), nullable=False),
            sa.Column("admin_type", sa.String(length=20), nullable=False, server_default="none"),
            sa.Column("admin_status", sa.String(length=20), nullable=False, server_default="none"),
            sa.Column("approved_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("requested_admin_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("admin_request_date", sa.DateTime(), nullable=True),
            sa.Column("admin_approval_date", sa.DateTime(), nullable=True),
            sa.Column("admin_rejection_reason", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.CheckConstraint(
                "admin_type IN ('none', 'local_admin', 'super_admin', 'master_admin')",
                name="ck_users_admin_type",
            ),
            sa.CheckConstraint(
                "admin_status IN ('none', 'registered', 'pending', 'approved', 'rejected')",
                name="ck_users_admin_status",
            ),
            sa.CheckConstraint(
                "admin_type != 'none' OR admin_status = 'none'",
                name="ck_users_admin_status_requires_type",
            ),
        )
        op.create_index("idx_users_admin", "users", ["admin_type", "admin_status"])
        op.create_index("idx_users_requested_admin", "users", ["requested_admin_id"])
        op.create_index("idx_users_approved_by", "users", ["approved_by"])

    if not inspector.has_table("products"):
        op.create_table(
            "products",
            *_listing_columns(),
            sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("image", sa.String(length=255), nullable=True),
            sa.Column("availability_date", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        )
        op.create_index("idx_products_seller", "products", ["seller_id"])
        op.create_index("idx_products_active_created", "products", ["active", "created_at"])

    if not inspector.has_table("buyer_requests"):
        op.create_table(
            "buyer_requests",
            *_listing_columns(),
            sa.Column("buyer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
        )
        op.create_index("idx_buyer_requests_buyer", "buyer_requests", ["buyer_id"])
        op.create_index("idx_buyer_requests_active_created", "buyer_requests", ["active", "created_at"])

    if not inspector.has_table("product_admins"):
        op.create_table(
            "product_admins",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
            sa.Column("admin_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.UniqueConstraint("product_id", "admin_id", name="uq_product_admin"),
        )
        op.create_index("idx_product_admins_product", "product_admins", ["product_id"])
        op.create_index("idx_product_admins_admin", "product_admins", ["admin_id"])

    if not inspector.has_table("buyer_request_admins"):
        op.create_table(
            "buyer_request_admins",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "buyer_request_id", sa.Integer(),
                sa.ForeignKey("buyer_requests.id", ondelete="CASCADE"), nullable=False,
            ),
            sa.Column("admin_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.UniqueConstraint("buyer_request_id", "admin_id", name="uq_buyer_request_admin"),
        )
        op.create_index("idx_buyer_request_admins_request", "buyer_request_admins", ["buyer_request_id"])
        op.create_index("idx_buyer_request_admins_admin", "buyer_request_admins", ["admin_id"])

    if not inspector.has_table("user_admin_tags"):
        op.create_table(
            "user_admin_tags",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("admin_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.UniqueConstraint("user_id", "admin_id", name="uq_user_admin_tag"),
        )
        op.create_index("idx_user_admin_tags_user", "user_admin_tags", ["user_id"])
        op.create_index("idx_user_admin_tags_admin", "user_admin_tags", ["admin_id"])

    if not inspector.has_table("admin_audit_logs"):
        op.create_table(
            "admin_audit_logs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("actor_username", sa.String(length=50), nullable=False),
            sa.Column("action", sa.String(length=100), nullable=False),
            sa.Column("target_user_id", sa.Integer(), nullable=True),
            sa.Column("ip_address", sa.String(length=45), nullable=True),
            sa.Column("user_agent", sa.Text(), nullable=True),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        )
        op.create_index("idx_admin_audit_actor", "admin_audit_logs", ["actor_id"])
        op.create_index("idx_admin_audit_action", "admin_audit_logs", ["action"])
        op.create_index("idx_admin_audit_created", "admin_audit_logs", ["created_at"])
        op.create_index("idx_admin_audit_target", "admin_audit_logs", ["target_user_id"])

    if not inspector.has_table("token_blacklist"):
        op.create_table(
            "token_blacklist",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("jti", sa.String(length=36), nullable=False, unique=True),
            sa.Column("token_type", sa.String(length=10), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=True),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.Column("revoked_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        )
        op.create_index("idx_token_blacklist_expires", "token_blacklist", ["expires_at"])


def downgrade():
    op.execute("DROP TABLE IF EXISTS token_blacklist")
    op.execute("DROP TABLE IF EXISTS admin_audit_logs")
    op.execute("DROP TABLE IF EXISTS user_admin_tags")
    op.execute("DROP TABLE IF EXISTS buyer_request_admins")
    op.execute("DROP TABLE IF EXISTS product_admins")
    op.execute("DROP TABLE IF EXISTS buyer_requests")
    op.execute("DROP TABLE IF EXISTS products")
    op.execute("DROP TABLE IF EXISTS users")
