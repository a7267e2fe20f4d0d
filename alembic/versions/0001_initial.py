"""initial schema

Revision ID: 0001
Revises:
Create Date: 2025-01-06 09:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    roles = op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
    )
    op.create_index("ix_roles_id", "roles", ["id"])
    op.create_index("ix_roles_name", "roles", ["name"], unique=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("dept", sa.String(100), nullable=True),
        sa.Column("position", sa.String(100), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "it_job_orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("work_order_no", sa.String(20), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("type", sa.String(100), nullable=True),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column("department", sa.String(100), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("asset_id", sa.String(100), nullable=True),
        sa.Column("tags", sa.String(500), nullable=True),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("held_from_status", sa.String(30), nullable=True),
        sa.Column("estimated_hours", sa.Float(), nullable=True),
        sa.Column("actual_hours", sa.Float(), nullable=True),
        sa.Column("action_taken", sa.Text(), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("due_date", sa.DateTime(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
        sa.Column("requester_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("tech_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("closed_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
    )
    op.create_index("ix_it_job_orders_id", "it_job_orders", ["id"])
    op.create_index("ix_it_job_orders_work_order_no", "it_job_orders", ["work_order_no"], unique=True)
    op.create_index("ix_it_job_orders_department", "it_job_orders", ["department"])
    op.create_index("ix_it_job_orders_status", "it_job_orders", ["status"])
    op.create_index("ix_it_job_orders_requester_id", "it_job_orders", ["requester_id"])
    op.create_index("ix_it_job_orders_tech_id", "it_job_orders", ["tech_id"])

    op.create_table(
        "it_job_order_attachments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("job_order_id", sa.Integer(), sa.ForeignKey("it_job_orders.id"), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_path", sa.String(500), nullable=False),
        sa.Column("file_url", sa.String(500), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("mime_type", sa.String(100), nullable=True),
        sa.Column("uploaded_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_it_job_order_attachments_id", "it_job_order_attachments", ["id"])
    op.create_index("ix_it_job_order_attachments_job_order_id", "it_job_order_attachments", ["job_order_id"])

    op.create_table(
        "it_job_order_comments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("job_order_id", sa.Integer(), sa.ForeignKey("it_job_orders.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("is_internal", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_it_job_order_comments_id", "it_job_order_comments", ["id"])
    op.create_index("ix_it_job_order_comments_job_order_id", "it_job_order_comments", ["job_order_id"])

    op.create_table(
        "it_job_order_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("job_order_id", sa.Integer(), sa.ForeignKey("it_job_orders.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("field_changed", sa.String(100), nullable=True),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_it_job_order_history_id", "it_job_order_history", ["id"])
    op.create_index("ix_it_job_order_history_job_order_id", "it_job_order_history", ["job_order_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("department", sa.String(100), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(255), nullable=True),
        sa.Column("reference_id", sa.Integer(), nullable=True),
        sa.Column("reference_type", sa.String(50), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_department", "notifications", ["department"])
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "facilities",
        sa.Column("code", sa.String(10), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("city", sa.String(50), nullable=True),
        sa.Column("province", sa.String(50), nullable=True),
    )

    op.create_table(
        "cars",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("case_no", sa.String(25), nullable=False),
        sa.Column("date_endorsed", sa.DateTime(), nullable=False),
        sa.Column("endorsed_by", sa.String(25), nullable=True),
        sa.Column("facility_code", sa.String(10), nullable=False),
        sa.Column("facility_name", sa.String(100), nullable=True),
        sa.Column("city", sa.String(50), nullable=True),
        sa.Column("province", sa.String(50), nullable=True),
        sa.Column("labno", sa.String(100), nullable=True),
        sa.Column("repeat_field", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("number_sample", sa.Integer(), nullable=True),
        sa.Column("case_code", sa.String(10), nullable=True),
        sa.Column("sub_code1", sa.String(25), nullable=True),
        sa.Column("sub_code2", sa.String(25), nullable=True),
        sa.Column("sub_code3", sa.String(25), nullable=True),
        sa.Column("sub_code4", sa.String(25), nullable=True),
        sa.Column("remarks", sa.String(255), nullable=True),
        sa.Column("frc", sa.String(10), nullable=True),
        sa.Column("wrc", sa.String(10), nullable=True),
        sa.Column("prepared_by", sa.String(50), nullable=True),
        sa.Column("followup_on", sa.Date(), nullable=True),
        sa.Column("reviewed_on", sa.Date(), nullable=True),
        sa.Column("closed_on", sa.DateTime(), nullable=True),
        sa.Column("attachment_path", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_cars_id", "cars", ["id"])
    op.create_index("ix_cars_case_no", "cars", ["case_no"], unique=True)
    op.create_index("ix_cars_date_endorsed", "cars", ["date_endorsed"])
    op.create_index("ix_cars_facility_code", "cars", ["facility_code"])
    op.create_index("ix_cars_province", "cars", ["province"])
    op.create_index("ix_cars_status", "cars", ["status"])
    op.create_index("ix_cars_sub_code1", "cars", ["sub_code1"])

    op.bulk_insert(
        roles,
        [
            {"id": 1, "name": "admin", "description": "Administrator"},
            {"id": 2, "name": "super-user", "description": "Super user"},
            {"id": 3, "name": "user", "description": "Regular user"},
        ],
    )


def downgrade():
    op.drop_table("cars")
    op.drop_table("facilities")
    op.drop_table("notifications")
    op.drop_table("it_job_order_history")
    op.drop_table("it_job_order_comments")
    op.drop_table("it_job_order_attachments")
    op.drop_table("it_job_orders")
    op.drop_table("users")
    op.drop_table("roles")
