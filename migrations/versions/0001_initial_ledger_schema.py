"""initial ledger schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


document_type = sa.Enum("WITHDRAWAL", "RETURN", "TRANSFER", name="documenttype")
document_status = sa.Enum("PENDING", "APPROVED", "CANCELED", name="documentstatus")
ledger_reason = sa.Enum("WITHDRAWAL", "RETURN", "TRANSFER", "INITIAL_BALANCE", name="ledgerreason")
ledger_direction = sa.Enum("IN", "OUT", name="ledgerdirection")


def _timestamps():
    return [
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "cost_centers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=False),
        sa.Column("description", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_cost_centers_code", "cost_centers", ["code"], unique=True)

    op.create_table(
        "materials",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=False),
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column("unit_of_measure", sqlmodel.sql.sqltypes.AutoString(length=20), nullable=False),
        sa.Column("unit_value", sa.Numeric(18, 2), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("cost_center_id", sa.Integer(), sa.ForeignKey("cost_centers.id"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity >= 0", name="ck_materials_quantity_non_negative"),
    )
    op.create_index("ix_materials_code", "materials", ["code"], unique=True)

    op.create_table(
        "movement_documents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("number", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=False),
        sa.Column("doc_type", document_type, nullable=False),
        sa.Column("status", document_status, nullable=False),
        sa.Column("origin_document_id", sa.Integer(), sa.ForeignKey("movement_documents.id"), nullable=True),
        sa.Column("origin_cost_center_id", sa.Integer(), sa.ForeignKey("cost_centers.id"), nullable=True),
        sa.Column("destination_cost_center_id", sa.Integer(), sa.ForeignKey("cost_centers.id"), nullable=True),
        sa.Column("employee_id", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True),
        sa.Column("responsible_name", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True),
        sa.Column("document_date", sa.Date(), nullable=False),
        sa.Column("notes", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("created_by", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column("approved_by", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True),
        sa.Column("approved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("canceled_by", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True),
        sa.Column("canceled_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "employee_id IS NULL OR responsible_name IS NULL",
            name="ck_movement_documents_single_responsible",
        ),
    )
    op.create_index("ix_movement_documents_number", "movement_documents", ["number"], unique=True)
    op.create_index("ix_movement_documents_status", "movement_documents", ["status"])
    op.create_index("ix_movement_documents_origin_document_id", "movement_documents", ["origin_document_id"])

    op.create_table(
        "movement_line_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("document_id", sa.Integer(), sa.ForeignKey("movement_documents.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("material_id", sa.Integer(), sa.ForeignKey("materials.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_value", sa.Numeric(18, 2), nullable=True),
        sa.Column("serial_number", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True),
        sa.Column("asset_tag", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True),
        sa.Column("notes", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("original_quantity", sa.Integer(), nullable=True),
        sa.CheckConstraint("quantity > 0", name="ck_movement_line_items_quantity_positive"),
    )
    op.create_index("ix_movement_line_items_document_id", "movement_line_items", ["document_id"])

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("material_id", sa.Integer(), sa.ForeignKey("materials.id"), nullable=False),
        sa.Column("quantity_delta", sa.Integer(), nullable=False),
        sa.Column("quantity_before", sa.Integer(), nullable=False),
        sa.Column("quantity_after", sa.Integer(), nullable=False),
        sa.Column("reason", ledger_reason, nullable=False),
        sa.Column("direction", ledger_direction, nullable=False),
        sa.Column("document_id", sa.Integer(), sa.ForeignKey("movement_documents.id"), nullable=True),
        sa.Column("actor_id", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column("notes", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint("quantity_after = quantity_before + quantity_delta", name="ck_ledger_entries_chain"),
        sa.CheckConstraint("quantity_after >= 0", name="ck_ledger_entries_after_non_negative"),
    )
    op.create_index("ix_ledger_entries_material_id", "ledger_entries", ["material_id"])
    op.create_index("ix_ledger_entries_document_id", "ledger_entries", ["document_id"])


def downgrade() -> None:
    op.drop_index("ix_ledger_entries_document_id", table_name="ledger_entries")
    op.drop_index("ix_ledger_entries_material_id", table_name="ledger_entries")
    op.drop_table("ledger_entries")
    op.drop_index("ix_movement_line_items_document_id", table_name="movement_line_items")
    op.drop_table("movement_line_items")
    op.drop_index("ix_movement_documents_origin_document_id", table_name="movement_documents")
    op.drop_index("ix_movement_documents_status", table_name="movement_documents")
    op.drop_index("ix_movement_documents_number", table_name="movement_documents")
    op.drop_table("movement_documents")
    op.drop_index("ix_materials_code", table_name="materials")
    op.drop_table("materials")
    op.drop_index("ix_cost_centers_code", table_name="cost_centers")
    op.drop_table("cost_centers")
    bind = op.get_bind()
    for enum_type in (ledger_direction, ledger_reason, document_status, document_type):
        enum_type.drop(bind, checkfirst=True)
