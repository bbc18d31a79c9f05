"""Create advance, distribution, and reconciliation tables.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    op.create_table(
        "advance_cheques",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("grower_id", sa.String(36), nullable=False),
        sa.Column("cheque_number", sa.String(50)),
        # Amounts
        sa.Column("advance_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("current_advance_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("advance_date", sa.Date()),
        sa.Column("reason", sa.Text()),
        # Status
        sa.Column("status", sa.String(20), server_default="generated"),
        # Metadata
        sa.Column("created_by", sa.String(50)),
        sa.Column("is_deleted", sa.Boolean(), server_default="false"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_advance_cheques_grower_id", "advance_cheques", ["grower_id"])
    op.create_index("ix_advance_cheques_status", "advance_cheques", ["status"])

    op.create_table(
        "payment_distributions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("distribution_number", sa.String(50), nullable=False, unique=True),
        sa.Column("distribution_date", sa.Date(), nullable=False),
        sa.Column("payment_method", sa.String(20), server_default="cheque"),
        # Totals
        sa.Column("currency", sa.String(3), server_default="CAD"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_growers", sa.Integer(), server_default="0"),
        # Status
        sa.Column("status", sa.String(20), server_default="draft"),
        sa.Column("completed_by", sa.String(50)),
        sa.Column("completed_at", sa.DateTime()),
        # Metadata
        sa.Column("created_by", sa.String(50)),
        sa.Column("is_deleted", sa.Boolean(), server_default="false"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_payment_distributions_distribution_number",
        "payment_distributions", ["distribution_number"],
    )
    op.create_index("ix_payment_distributions_status", "payment_distributions", ["status"])

    op.create_table(
        "payment_distribution_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "payment_distribution_id", sa.String(36),
            sa.ForeignKey("payment_distributions.id"), nullable=False,
        ),
        sa.Column("grower_id", sa.String(36)),
        sa.Column("grower_name", sa.String(255), nullable=False),
        sa.Column("grower_number", sa.String(20), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("advance_deduction_amount", sa.Numeric(12, 2), server_default="0"),
        sa.Column("payment_method", sa.String(20), server_default="cheque"),
        sa.Column("payment_reference", sa.String(50)),
        sa.Column("paid_amount", sa.Numeric(12, 2)),
        sa.Column("is_deleted", sa.Boolean(), server_default="false"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_payment_distribution_items_distribution_id",
        "payment_distribution_items", ["payment_distribution_id"],
    )
    op.create_index(
        "ix_payment_distribution_items_payment_reference",
        "payment_distribution_items", ["payment_reference"],
    )

    op.create_table(
        "reconciliation_reports",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "payment_distribution_id", sa.String(36),
            sa.ForeignKey("payment_distributions.id"), nullable=False,
        ),
        sa.Column("expected_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("actual_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("difference", sa.Numeric(12, 2), nullable=False),
        sa.Column("expected_payments", sa.Integer(), server_default="0"),
        sa.Column("actual_payments", sa.Integer(), server_default="0"),
        sa.Column("missing_payments", sa.Integer(), server_default="0"),
        sa.Column("duplicate_payments", sa.Integer(), server_default="0"),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("generated_by", sa.String(50), nullable=False),
        sa.Column("generated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_reconciliation_reports_distribution_id",
        "reconciliation_reports", ["payment_distribution_id"],
    )

    op.create_table(
        "payment_exceptions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "payment_distribution_id", sa.String(36),
            sa.ForeignKey("payment_distributions.id"), nullable=False,
        ),
        sa.Column("report_id", sa.String(36), sa.ForeignKey("reconciliation_reports.id")),
        sa.Column("item_id", sa.String(36)),
        sa.Column("exception_type", sa.String(30), nullable=False),
        sa.Column("severity", sa.String(10), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        # Status
        sa.Column("status", sa.String(20), server_default="open"),
        sa.Column("resolution", sa.Text()),
        sa.Column("resolved_by", sa.String(50)),
        sa.Column("resolved_at", sa.DateTime()),
        sa.Column("created_by", sa.String(50)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_payment_exceptions_distribution_id",
        "payment_exceptions", ["payment_distribution_id"],
    )
    op.create_index("ix_payment_exceptions_report_id", "payment_exceptions", ["report_id"])
    op.create_index("ix_payment_exceptions_type", "payment_exceptions", ["exception_type"])
    op.create_index("ix_payment_exceptions_status", "payment_exceptions", ["status"])


def downgrade() -> None:
    op.drop_table("payment_exceptions")
    op.drop_table("reconciliation_reports")
    op.drop_table("payment_distribution_items")
    op.drop_table("payment_distributions")
    op.drop_table("advance_cheques")
