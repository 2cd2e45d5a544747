# app/domains/rom/schemas.py

"""
'rom' 도메인 (자재 이동 전표)의 Pydantic 스키마를 정의하는 모듈입니다.
"""

from enum import Enum
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
from pydantic import Field, model_validator
from sqlmodel import SQLModel

from app.domains.rom.models import DocumentStatus, DocumentType


# =============================================================================
# 1. movement_line_items 스키마
# =============================================================================
class LineItemCreate(SQLModel):
    material_id: int = Field(..., description="자재 ID")
    quantity: int = Field(..., gt=0, description="수량 (양의 정수)")
    unit_value: Optional[Decimal] = Field(None, ge=0, description="단가")
    serial_number: Optional[str] = Field(None, max_length=100)
    asset_tag: Optional[str] = Field(None, max_length=100, description="자산 관리 번호")
    notes: Optional[str] = None


class LineItemResponse(SQLModel):
    id: int
    position: int
    material_id: int
    quantity: int
    unit_value: Optional[Decimal] = None
    serial_number: Optional[str] = None
    asset_tag: Optional[str] = None
    notes: Optional[str] = None
    original_quantity: Optional[int] = None

    class Config:
        from_attributes = True


# =============================================================================
# 2. movement_documents 스키마
# =============================================================================
class DocumentCreate(SQLModel):
    doc_type: DocumentType = Field(..., description="withdrawal, return, transfer")
    origin_document_id: Optional[int] = Field(None, description="반납 전표가 참조하는 출고 전표 ID")
    origin_cost_center_id: Optional[int] = Field(None, description="출발 원가 센터 ID")
    destination_cost_center_id: Optional[int] = Field(None, description="도착 원가 센터 ID")
    employee_id: Optional[str] = Field(None, max_length=100, description="책임 사원 ID")
    responsible_name: Optional[str] = Field(None, max_length=100, description="책임자 이름 (사원 ID 대신)")
    document_date: Optional[date] = Field(None, description="전표 일자 (기본: 오늘)")
    notes: Optional[str] = None
    items: List[LineItemCreate] = Field(..., min_length=1, description="전표 품목 (1개 이상)")

    @model_validator(mode="after")
    def check_responsible_party(self) -> "DocumentCreate":
        if self.employee_id and self.responsible_name:
            raise ValueError("employee_id and responsible_name are mutually exclusive.")
        return self


class DocumentResponse(SQLModel):
    id: int
    number: str
    doc_type: DocumentType
    status: DocumentStatus
    origin_document_id: Optional[int] = None
    origin_cost_center_id: Optional[int] = None
    destination_cost_center_id: Optional[int] = None
    employee_id: Optional[str] = None
    responsible_name: Optional[str] = None
    document_date: date
    notes: Optional[str] = None
    created_by: str
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    canceled_by: Optional[str] = None
    canceled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[LineItemResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True


# =============================================================================
# 3. 반납 현황 (파생 값, 저장하지 않음)
# =============================================================================
class ReturnState(str, Enum):
    NOT_RETURNED = "not_returned"
    PARTIALLY_RETURNED = "partially_returned"
    FULLY_RETURNED = "fully_returned"


class ReturnStatusItem(SQLModel):
    material_id: int
    material_name: Optional[str] = None
    original_quantity: int
    returned_quantity: int
    percentage: float = Field(..., description="품목별 반납률 (최대 100)")


class ReturnStatus(SQLModel):
    withdrawal_id: int
    status: ReturnState
    percentage_returned: float = Field(..., description="전체 반납률 (최대 100)")
    original_quantity: int
    returned_quantity: int
    items: List[ReturnStatusItem] = Field(default_factory=list)


class ReturnableWithdrawal(SQLModel):
    """반납 전표를 작성할 수 있는 출고 전표와 현재 반납 현황."""
    document: DocumentResponse
    return_status: ReturnStatus
