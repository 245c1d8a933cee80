"""coupon platform foundation tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""
from alembic import op
import sqlalchemy as sa


revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _tenant_fk(table: str) -> sa.Column:
    return sa.Column(
        "tenant_id",
        sa.String(length=36),
        sa.ForeignKey("tenants.id", ondelete="CASCADE", name=op.f(f"fk_{table}_tenant_id_tenants")),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("slug", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email_from_name", sa.String(length=255), nullable=True),
        sa.Column("mailgun_domain", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tenants")),
        sa.UniqueConstraint("slug", name=op.f("uq_tenants_slug")),
    )

    op.create_table(
        "auth_users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column(
            "tenant_id",
            sa.String(length=36),
            sa.ForeignKey("tenants.id", ondelete="CASCADE", name=op.f("fk_auth_users_tenant_id_tenants")),
            nullable=True,
        ),
        sa.Column("username", sa.String(length=150), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("user_type", sa.String(length=20), nullable=False, server_default="admin"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_auth_users")),
        sa.UniqueConstraint("username", name=op.f("uq_auth_users_username")),
        sa.CheckConstraint(
            "user_type IN ('superadmin', 'admin', 'store')",
            name=op.f("ck_auth_users_user_type_allowed"),
        ),
    )
    op.create_index(op.f("ix_auth_users_tenant_id"), "auth_users", ["tenant_id"])

    op.create_table(
        "products",
        sa.Column("id", sa.String(length=36), nullable=False),
        _tenant_fk("products"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("value", sa.Float(), nullable=False, server_default="0"),
        sa.Column("margin_price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("sku", sa.String(length=120), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_products")),
        sa.UniqueConstraint("tenant_id", "sku", name="uq_products_tenant_sku"),
    )
    op.create_index(op.f("ix_products_tenant_id"), "products", ["tenant_id"])

    op.create_table(
        "campaigns",
        sa.Column("id", sa.String(length=36), nullable=False),
        _tenant_fk("campaigns"),
        sa.Column("campaign_code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_type", sa.String(length=20), nullable=False, server_default="percent"),
        sa.Column("discount_value", sa.String(length=255), nullable=False),
        sa.Column("form_config", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("coupon_expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_campaigns")),
        sa.UniqueConstraint("tenant_id", "campaign_code", name="uq_campaigns_tenant_code"),
    )
    op.create_index(op.f("ix_campaigns_tenant_id"), "campaigns", ["tenant_id"])
    op.create_index(op.f("ix_campaigns_is_active"), "campaigns", ["is_active"])
    op.create_index(op.f("ix_campaigns_created_at"), "campaigns", ["created_at"])

    op.create_table(
        "campaign_products",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column(
            "campaign_id",
            sa.String(length=36),
            sa.ForeignKey("campaigns.id", ondelete="CASCADE", name=op.f("fk_campaign_products_campaign_id_campaigns")),
            nullable=False,
        ),
        sa.Column(
            "product_id",
            sa.String(length=36),
            sa.ForeignKey("products.id", ondelete="CASCADE", name=op.f("fk_campaign_products_product_id_products")),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_campaign_products")),
        sa.UniqueConstraint("campaign_id", "product_id", name="uq_campaign_products_pair"),
    )
    op.create_index(op.f("ix_campaign_products_campaign_id"), "campaign_products", ["campaign_id"])
    op.create_index(op.f("ix_campaign_products_product_id"), "campaign_products", ["product_id"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        _tenant_fk("users"),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("first_name", sa.String(length=120), nullable=True),
        sa.Column("last_name", sa.String(length=120), nullable=True),
        sa.Column("phone", sa.String(length=60), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("allergies", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
        sa.UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
    )
    op.create_index(op.f("ix_users_tenant_id"), "users", ["tenant_id"])
    op.create_index(op.f("ix_users_last_name"), "users", ["last_name"])

    op.create_table(
        "user_custom_data",
        sa.Column("id", sa.String(length=36), nullable=False),
        _tenant_fk("user_custom_data"),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE", name=op.f("fk_user_custom_data_user_id_users")),
            nullable=False,
        ),
        sa.Column("field_name", sa.String(length=120), nullable=False),
        sa.Column("field_value", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_user_custom_data")),
    )
    op.create_index(op.f("ix_user_custom_data_tenant_id"), "user_custom_data", ["tenant_id"])
    op.create_index(op.f("ix_user_custom_data_user_id"), "user_custom_data", ["user_id"])

    op.create_table(
        "coupons",
        sa.Column("id", sa.String(length=36), nullable=False),
        _tenant_fk("coupons"),
        sa.Column(
            "campaign_id",
            sa.String(length=36),
            sa.ForeignKey("campaigns.id", ondelete="CASCADE", name=op.f("fk_coupons_campaign_id_campaigns")),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE", name=op.f("fk_coupons_user_id_users")),
            nullable=False,
        ),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("discount_type", sa.String(length=20), nullable=False),
        sa.Column("discount_value", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_coupons")),
        sa.UniqueConstraint("code", name=op.f("uq_coupons_code")),
        sa.CheckConstraint(
            "status IN ('active', 'redeemed', 'expired')",
            name=op.f("ck_coupons_status_allowed"),
        ),
    )
    op.create_index(op.f("ix_coupons_tenant_id"), "coupons", ["tenant_id"])
    op.create_index(op.f("ix_coupons_campaign_id"), "coupons", ["campaign_id"])
    op.create_index(op.f("ix_coupons_user_id"), "coupons", ["user_id"])
    op.create_index(op.f("ix_coupons_status"), "coupons", ["status"])
    op.create_index(op.f("ix_coupons_issued_at"), "coupons", ["issued_at"])

    op.create_table(
        "form_links",
        sa.Column("id", sa.String(length=36), nullable=False),
        _tenant_fk("form_links"),
        sa.Column(
            "campaign_id",
            sa.String(length=36),
            sa.ForeignKey("campaigns.id", ondelete="CASCADE", name=op.f("fk_form_links_campaign_id_campaigns")),
            nullable=False,
        ),
        sa.Column("token", sa.String(length=32), nullable=False),
        sa.Column("coupon_id", sa.String(length=36), nullable=True),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_form_links")),
        sa.UniqueConstraint("token", name=op.f("uq_form_links_token")),
        sa.UniqueConstraint("coupon_id", name=op.f("uq_form_links_coupon_id")),
        sa.CheckConstraint(
            "(used_at IS NULL AND coupon_id IS NULL) OR (used_at IS NOT NULL AND coupon_id IS NOT NULL)",
            name=op.f("ck_form_links_consumption_paired"),
        ),
    )
    op.create_index(op.f("ix_form_links_tenant_id"), "form_links", ["tenant_id"])
    op.create_index(op.f("ix_form_links_campaign_id"), "form_links", ["campaign_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("actor_user_id", sa.String(length=36), nullable=True),
        sa.Column("event_type", sa.String(length=120), nullable=False),
        sa.Column("level", sa.String(length=20), server_default="info", nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=True),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_audit_logs")),
    )
    for column in ("tenant_id", "actor_user_id", "event_type", "level", "subject_id", "created_at"):
        op.create_index(op.f(f"ix_audit_logs_{column}"), "audit_logs", [column])


def downgrade() -> None:
    for column in ("created_at", "subject_id", "event_type", "actor_user_id", "tenant_id"):
        op.drop_index(op.f(f"ix_audit_logs_{column}"), table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index(op.f("ix_form_links_campaign_id"), table_name="form_links")
    op.drop_index(op.f("ix_form_links_tenant_id"), table_name="form_links")
    op.drop_table("form_links")
    for column in ("issued_at", "status", "user_id", "campaign_id", "tenant_id"):
        op.drop_index(op.f(f"ix_coupons_{column}"), table_name="coupons")
    op.drop_table("coupons")
    op.drop_index(op.f("ix_user_custom_data_user_id"), table_name="user_custom_data")
    op.drop_index(op.f("ix_user_custom_data_tenant_id"), table_name="user_custom_data")
    op.drop_table("user_custom_data")
    op.drop_index(op.f("ix_users_last_name"), table_name="users")
    op.drop_index(op.f("ix_users_tenant_id"), table_name="users")
    op.drop_table("users")
    op.drop_index(op.f("ix_campaign_products_product_id"), table_name="campaign_products")
    op.drop_index(op.f("ix_campaign_products_campaign_id"), table_name="campaign_products")
    op.drop_table("campaign_products")
    op.drop_index(op.f("ix_campaigns_created_at"), table_name="campaigns")
    op.drop_index(op.f("ix_campaigns_is_active"), table_name="campaigns")
    op.drop_index(op.f("ix_campaigns_tenant_id"), table_name="campaigns")
    op.drop_table("campaigns")
    op.drop_index(op.f("ix_products_tenant_id"), table_name="products")
    op.drop_table("products")
    op.drop_index(op.f("ix_auth_users_tenant_id"), table_name="auth_users")
    op.drop_table("auth_users")
    op.drop_table("tenants")
