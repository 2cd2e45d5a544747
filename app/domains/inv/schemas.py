# app/domains/inv/schemas.py

"""
'inv' 도메인 (재고 원장)의 Pydantic 스키마를 정의하는 모듈입니다.
"""

from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import Field
from sqlmodel import SQLModel

from app.domains.inv.models import LedgerDirection, LedgerReason


# =============================================================================
# 1. cost_centers 스키마
# =============================================================================
class CostCenterBase(SQLModel):
    code: str = Field(..., min_length=1, max_length=50, description="원가 센터 코드")
    description: str = Field(..., max_length=255, description="원가 센터 설명")
    active: bool = Field(True, description="사용 여부")


class CostCenterCreate(CostCenterBase):
    pass


class CostCenterResponse(CostCenterBase):
    id: int = Field(..., description="원가 센터 고유 ID")
    created_at: Optional[datetime] = Field(None, description="레코드 생성 일시")
    updated_at: Optional[datetime] = Field(None, description="레코드 마지막 업데이트 일시")

    class Config:
        from_attributes = True


# =============================================================================
# 2. materials 스키마
# =============================================================================
class MaterialBase(SQLModel):
    code: str = Field(..., min_length=1, max_length=50, description="자재 코드")
    name: str = Field(..., max_length=100, description="자재 명칭")
    unit_of_measure: str = Field("EA", max_length=20, description="단위 (EA, L, KG 등)")
    unit_value: Optional[Decimal] = Field(None, ge=0, description="단가")
    active: bool = Field(True, description="사용 여부")


class MaterialCreate(MaterialBase):
    # 기초 재고는 원장(initial_balance)을 통해 반영됩니다.
    initial_quantity: int = Field(0, ge=0, description="기초 재고 수량")
    cost_center_id: Optional[int] = Field(None, description="최초 귀속 원가 센터 ID")


class MaterialUpdate(SQLModel):
    """카탈로그 정보만 수정합니다. 수량과 원가 센터는 전표 승인으로만 변경됩니다."""
    name: Optional[str] = Field(None, max_length=100)
    unit_of_measure: Optional[str] = Field(None, max_length=20)
    unit_value: Optional[Decimal] = Field(None, ge=0)
    active: Optional[bool] = None


class MaterialResponse(MaterialBase):
    id: int = Field(..., description="자재 고유 ID")
    quantity: int = Field(..., description="현재 재고 수량")
    cost_center_id: Optional[int] = Field(None, description="현재 귀속 원가 센터 ID")
    created_at: Optional[datetime] = Field(None, description="레코드 생성 일시")
    updated_at: Optional[datetime] = Field(None, description="레코드 마지막 업데이트 일시")

    class Config:
        from_attributes = True


# =============================================================================
# 3. ledger_entries 스키마 (읽기 전용)
# =============================================================================
class LedgerEntryResponse(SQLModel):
    id: int
    material_id: int
    quantity_delta: int
    quantity_before: int
    quantity_after: int
    reason: LedgerReason
    direction: LedgerDirection
    document_id: Optional[int] = None
    actor_id: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LedgerChainReport(SQLModel):
    """원장 체인을 0부터 재생하여 현재 수량과 일치하는지 확인한 결과입니다."""
    material_id: int
    entry_count: int
    replayed_quantity: int
    stored_quantity: int
    consistent: bool
    broken_entry_ids: List[int] = Field(default_factory=list, description="before/after 가 직전 기록과 이어지지 않는 기록 ID")


# =============================================================================
# 4. 재고 검증 스키마
# =============================================================================
class StockRequestItem(SQLModel):
    material_id: int = Field(..., description="자재 ID")
    quantity: int = Field(..., description="요청 수량 (양수)")


class StockValidationRequest(SQLModel):
    items: List[StockRequestItem] = Field(..., min_length=1)


class StockFailure(SQLModel):
    material_id: int
    material_name: Optional[str] = None
    requested: int
    available: int
    shortfall: int
    kind: str = Field(..., description="'insufficient' 또는 'not_found'")


class StockValidationResult(SQLModel):
    valid: bool
    message: Optional[str] = Field(None, description="부족 품목을 모두 나열한 사람이 읽는 메시지")
    available: dict[int, int] = Field(default_factory=dict, description="자재 ID별 현재 재고")
    failures: List[StockFailure] = Field(default_factory=list)
