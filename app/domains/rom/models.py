# app/domains/rom/models.py

"""
'rom' 도메인 (자재 이동 전표)의 데이터베이스 ORM 모델을 정의하는 모듈입니다.
"""

from enum import Enum
from typing import Optional, List
from datetime import datetime, date, UTC
from decimal import Decimal
from sqlmodel import Field, Relationship, SQLModel, Column
from sqlalchemy import CheckConstraint, Numeric
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP


# =============================================================================
# 0. 전표 유형/상태 Enum
# =============================================================================
class DocumentType(str, Enum):
    WITHDRAWAL = "withdrawal"   # 출고: 재고 차감 + 원가 센터 재지정
    RETURN = "return"           # 반납: 출고 전표를 참조하여 재고 복원
    TRANSFER = "transfer"       # 이관: 원가 센터 간 이동


class DocumentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    CANCELED = "canceled"


# =============================================================================
# 1. movement_documents 테이블 모델
# =============================================================================
class MovementDocument(SQLModel, table=True):
    """
    자재 이동 전표 (romaneio).
    상태는 pending -> approved, pending -> canceled 로만 전이하며 두 종료 상태는 되돌릴 수 없습니다.
    """
    __tablename__ = "movement_documents"
    __table_args__ = (
        CheckConstraint(
            "employee_id IS NULL OR responsible_name IS NULL",
            name="ck_movement_documents_single_responsible",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    number: str = Field(max_length=50, unique=True, index=True, description="전표 번호 (예: ROM-AL-CC01-0001)")
    doc_type: DocumentType
    status: DocumentStatus = Field(default=DocumentStatus.PENDING, index=True)

    # 반납 전표에서만 사용: 참조하는 출고 전표
    origin_document_id: Optional[int] = Field(default=None, foreign_key="movement_documents.id", index=True)
    origin_cost_center_id: Optional[int] = Field(default=None, foreign_key="cost_centers.id")
    destination_cost_center_id: Optional[int] = Field(default=None, foreign_key="cost_centers.id")

    # 책임자: 사원 ID 또는 이름 중 하나만
    employee_id: Optional[str] = Field(default=None, max_length=100)
    responsible_name: Optional[str] = Field(default=None, max_length=100)

    document_date: date = Field(default_factory=date.today)
    notes: Optional[str] = Field(default=None)

    created_by: str = Field(max_length=100)
    approved_by: Optional[str] = Field(default=None, max_length=100)
    approved_at: Optional[datetime] = Field(default=None, sa_column=Column(TIMESTAMP(timezone=True)))
    canceled_by: Optional[str] = Field(default=None, max_length=100)
    canceled_at: Optional[datetime] = Field(default=None, sa_column=Column(TIMESTAMP(timezone=True)))

    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()),
        description="레코드 마지막 업데이트 일시"
    )

    items: List["MovementLineItem"] = Relationship(
        back_populates="document",
        sa_relationship_kwargs={"order_by": "MovementLineItem.position"},
    )


# =============================================================================
# 2. movement_line_items 테이블 모델
# =============================================================================
class MovementLineItem(SQLModel, table=True):
    __tablename__ = "movement_line_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_movement_line_items_quantity_positive"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    document_id: int = Field(foreign_key="movement_documents.id", index=True)
    position: int = Field(default=0, description="처리 순서 (전표 내 고정)")
    material_id: int = Field(foreign_key="materials.id")
    quantity: int
    unit_value: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(18, 2)))
    serial_number: Optional[str] = Field(default=None, max_length=100)
    asset_tag: Optional[str] = Field(default=None, max_length=100, description="자산 관리 번호")
    notes: Optional[str] = Field(default=None)
    # 반납 품목 전용: 원 출고 수량 (표시/검증용)
    original_quantity: Optional[int] = Field(default=None)

    document: Optional[MovementDocument] = Relationship(back_populates="items")
