"""coupons, coupon usage, partner commissions

Revision ID: 0002_coupons
Revises: 0001_initial
Create Date: 2026-10-13

"""

from alembic import op
import sqlalchemy as sa


revision = "0002_coupons"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # User: one coupon per lifetime
    op.add_column(
        "users",
        sa.Column("has_used_coupon", sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    op.create_table(
        "coupons",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("partner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("discount_percentage", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "discount_percentage >= 1 AND discount_percentage <= 100",
            name="ck_coupons_discount_percentage",
        ),
    )
    op.create_index("ix_coupons_code", "coupons", ["code"], unique=True)
    op.create_index("ix_coupons_partner_id", "coupons", ["partner_id"], unique=False)

    op.create_table(
        "coupon_usage",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("coupon_id", sa.Integer(), sa.ForeignKey("coupons.id"), nullable=False, index=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("appointment_id", sa.Integer(), sa.ForeignKey("appointments.id"), nullable=False, index=True),
        sa.Column("discount_amount", sa.Integer(), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("coupon_id", "customer_id", name="uq_coupon_usage_coupon_customer"),
    )

    op.create_table(
        "partner_commissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("partner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("appointment_id", sa.Integer(), sa.ForeignKey("appointments.id"), nullable=False),
        sa.Column("coupon_id", sa.Integer(), sa.ForeignKey("coupons.id"), nullable=True, index=True),
        sa.Column("original_service_price", sa.Integer(), nullable=False),
        sa.Column("commission_amount", sa.Integer(), nullable=False),
        sa.Column("commission_percentage", sa.Integer(), nullable=False, server_default="20"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending", index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("appointment_id", name="uq_partner_commissions_appointment"),
    )

    # Appointment: pricing snapshot written at settlement
    with op.batch_alter_table("appointments") as batch:
        batch.add_column(sa.Column("final_price", sa.Integer(), nullable=True))
        batch.add_column(sa.Column("discount_amount", sa.Integer(), nullable=False, server_default="0"))
        batch.add_column(sa.Column("down_payment_amount", sa.Integer(), nullable=True))
        batch.add_column(sa.Column("coupon_id", sa.Integer(), nullable=True))
        batch.create_foreign_key("fk_appointments_coupon_id", "coupons", ["coupon_id"], ["id"])
        batch.create_index("ix_appointments_coupon_id", ["coupon_id"], unique=False)


def downgrade() -> None:
    with op.batch_alter_table("appointments") as batch:
        batch.drop_index("ix_appointments_coupon_id")
        batch.drop_constraint("fk_appointments_coupon_id", type_="foreignkey")
        batch.drop_column("coupon_id")
        batch.drop_column("down_payment_amount")
        batch.drop_column("discount_amount")
        batch.drop_column("final_price")

    op.drop_table("partner_commissions")
    op.drop_table("coupon_usage")
    op.drop_index("ix_coupons_partner_id", table_name="coupons")
    op.drop_index("ix_coupons_code", table_name="coupons")
    op.drop_table("coupons")
    op.drop_column("users", "has_used_coupon")
