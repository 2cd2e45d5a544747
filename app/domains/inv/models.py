# app/domains/inv/models.py

"""
'inv' 도메인 (재고 원장)의 데이터베이스 ORM 모델을 정의하는 모듈입니다.

- CostCenter: 자재가 귀속되는 원가 센터(조직/회계 단위).
- Material: 자재 품목과 현재 재고 수량.
- LedgerEntry: 재고 수량 변경 1건에 대한 불변 감사 기록.

Material.quantity 와 Material.cost_center_id 는 재고 반영기(MovementApplier)만 변경합니다.
"""

from enum import Enum
from typing import Optional, List
from datetime import datetime, UTC
from decimal import Decimal
from sqlmodel import Field, Relationship, SQLModel, Column
from sqlalchemy import CheckConstraint, Numeric
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP


# =============================================================================
# 0. 원장 사유/방향 Enum (닫힌 집합)
# =============================================================================
class LedgerReason(str, Enum):
    """원장 기록 사유. 문자열 후보를 추측하지 않고 이 집합만 허용합니다."""
    WITHDRAWAL = "withdrawal"
    RETURN = "return"
    TRANSFER = "transfer"
    INITIAL_BALANCE = "initial_balance"


class LedgerDirection(str, Enum):
    """수량 변화 방향. delta 의 부호에서 결정됩니다."""
    IN = "in"
    OUT = "out"

    @classmethod
    def from_delta(cls, delta: int) -> "LedgerDirection":
        return cls.OUT if delta < 0 else cls.IN


# =============================================================================
# 1. cost_centers 테이블 모델
# =============================================================================
class CostCenterBase(SQLModel):
    code: str = Field(max_length=50, unique=True, index=True, description="원가 센터 코드 (전표 번호에 사용)")
    description: str = Field(max_length=255)
    active: bool = Field(default=True)


class CostCenter(CostCenterBase, table=True):
    __tablename__ = "cost_centers"

    id: Optional[int] = Field(default=None, primary_key=True)
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

    materials: List["Material"] = Relationship(back_populates="cost_center")


# =============================================================================
# 2. materials 테이블 모델
# =============================================================================
class MaterialBase(SQLModel):
    code: str = Field(max_length=50, unique=True, index=True, description="자재 코드 (사람이 식별하는 용도)")
    name: str = Field(max_length=100)
    unit_of_measure: str = Field(default="EA", max_length=20, description="EA, L, KG 등")
    unit_value: Optional[Decimal] = Field(default=None, sa_column=Column(Numeric(18, 2)))
    active: bool = Field(default=True)


class Material(MaterialBase, table=True):
    __tablename__ = "materials"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_materials_quantity_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    # 아래 두 필드는 MovementApplier 를 통해서만 변경됩니다.
    quantity: int = Field(default=0, description="현재 재고 수량 (0 이상)")
    cost_center_id: Optional[int] = Field(default=None, foreign_key="cost_centers.id")

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

    cost_center: Optional[CostCenter] = Relationship(back_populates="materials")
    ledger_entries: List["LedgerEntry"] = Relationship(back_populates="material")


# =============================================================================
# 3. ledger_entries 테이블 모델 (불변)
# =============================================================================
class LedgerEntry(SQLModel, table=True):
    """
    재고 수량 변경 1건의 감사 기록입니다.
    quantity_after == quantity_before + quantity_delta 이며, 생성 후 수정/삭제하지 않습니다.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        CheckConstraint("quantity_after = quantity_before + quantity_delta", name="ck_ledger_entries_chain"),
        CheckConstraint("quantity_after >= 0", name="ck_ledger_entries_after_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    material_id: int = Field(foreign_key="materials.id", index=True)
    quantity_delta: int = Field(description="부호 있는 수량 변화")
    quantity_before: int
    quantity_after: int
    reason: LedgerReason
    direction: LedgerDirection
    document_id: Optional[int] = Field(default=None, foreign_key="movement_documents.id", index=True)
    actor_id: str = Field(max_length=100, description="변경을 수행한 사용자 식별자")
    notes: Optional[str] = Field(default=None)
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )

    material: Optional[Material] = Relationship(back_populates="ledger_entries")
