"""create accounts and payment_records tables

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18 00:00:01.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261018_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint("credits >= 0", name="ck_accounts_credits_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_accounts_email", "accounts", ["email"], unique=False)

    op.create_table(
        "payment_records",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("payment_id", sa.String(), nullable=False),
        sa.Column("account_id", sa.String(), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(), nullable=True),
        sa.Column("product", sa.String(), nullable=True),
        sa.Column("credits_granted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_payment_records_order_id", "payment_records", ["order_id"], unique=False)
    op.create_index("ix_payment_records_payment_id", "payment_records", ["payment_id"], unique=False)
    op.create_index("ix_payment_records_account_id", "payment_records", ["account_id"], unique=False)
    op.create_index("ix_payment_records_created_at", "payment_records", ["created_at"], unique=False)
    op.create_index(
        "uq_payment_records_success_payment_id",
        "payment_records",
        ["payment_id"],
        unique=True,
        postgresql_where=sa.text("status = 'success'"),
        sqlite_where=sa.text("status = 'success'"),
    )
    op.create_index(
        "uq_payment_records_success_order_id",
        "payment_records",
        ["order_id"],
        unique=True,
        postgresql_where=sa.text("status = 'success'"),
        sqlite_where=sa.text("status = 'success'"),
    )


def downgrade() -> None:
    op.drop_index("uq_payment_records_success_order_id", table_name="payment_records")
    op.drop_index("uq_payment_records_success_payment_id", table_name="payment_records")
    op.drop_index("ix_payment_records_created_at", table_name="payment_records")
    op.drop_index("ix_payment_records_account_id", table_name="payment_records")
    op.drop_index("ix_payment_records_payment_id", table_name="payment_records")
    op.drop_index("ix_payment_records_order_id", table_name="payment_records")
    op.drop_table("payment_records")
    op.drop_index("ix_accounts_email", table_name="accounts")
    op.drop_table("accounts")
