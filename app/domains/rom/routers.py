# app/domains/rom/routers.py

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core import dependencies as deps
from app.core.exceptions import DocumentNotFoundError
from app.domains.rom import crud as rom_crud, schemas as rom_schemas
from app.domains.rom.models import DocumentStatus, DocumentType
from app.services.document_service import DocumentService
from app.services.return_service import ReturnService

router = APIRouter(
    tags=["Romaneio Documents (자재 이동 전표)"],
    responses={404: {"description": "Not found"}},
)


# =============================================================================
# 1. 전표 작성/조회 엔드포인트
# =============================================================================
@router.post(
    "/documents",
    response_model=rom_schemas.DocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_document(
    document_create: rom_schemas.DocumentCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    actor_id: str = Depends(deps.get_acting_user_id),
):
    """새로운 전표를 pending 상태로 작성합니다. 전표 번호는 자동 발번됩니다."""
    return await DocumentService(db).create_document(document_create, actor_id)


@router.get("/documents", response_model=List[rom_schemas.DocumentResponse])
async def read_documents(
    doc_type: Optional[DocumentType] = None,
    doc_status: Optional[DocumentStatus] = Query(None, alias="status"),
    origin_document_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """전표 목록을 최신순으로 조회합니다. 유형/상태/원본 전표로 필터링할 수 있습니다."""
    return await rom_crud.movement_document.list_with_items(
        db,
        doc_type=doc_type,
        status=doc_status,
        origin_document_id=origin_document_id,
        skip=skip,
        limit=limit,
    )


@router.get("/documents/{document_id}", response_model=rom_schemas.DocumentResponse)
async def read_document(document_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    db_document = await rom_crud.movement_document.get_with_items(db, document_id)
    if db_document is None:
        raise DocumentNotFoundError(document_id)
    return db_document


# =============================================================================
# 2. 상태 전이 엔드포인트
# =============================================================================
@router.post("/documents/{document_id}/approve", response_model=rom_schemas.DocumentResponse)
async def approve_document(
    document_id: int,
    db: AsyncSession = Depends(deps.get_db_session),
    actor_id: str = Depends(deps.get_acting_user_id),
):
    """
    전표를 승인하고 재고를 반영합니다.
    이미 승인/취소된 전표는 409 를 반환하며, 실패 시 재고와 전표 상태는 변경되지 않습니다.
    """
    return await DocumentService(db).approve(document_id, actor_id)


@router.post("/documents/{document_id}/cancel", response_model=rom_schemas.DocumentResponse)
async def cancel_document(
    document_id: int,
    db: AsyncSession = Depends(deps.get_db_session),
    actor_id: str = Depends(deps.get_acting_user_id),
):
    """pending 전표를 취소합니다. 원장 기록은 생성되지 않습니다."""
    return await DocumentService(db).cancel(document_id, actor_id)


# =============================================================================
# 3. 반납 현황 엔드포인트
# =============================================================================
@router.get("/documents/{document_id}/return_status", response_model=rom_schemas.ReturnStatus)
async def read_return_status(document_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    """승인된 출고 전표의 반납 현황을 계산합니다 (저장하지 않음)."""
    return await ReturnService(db).compute_return_status(document_id)


@router.get("/returnable_withdrawals", response_model=List[rom_schemas.ReturnableWithdrawal])
async def read_returnable_withdrawals(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """대기 중인 반납이 없고 전량 반납되지 않은 승인 출고 전표 목록을 조회합니다."""
    return await ReturnService(db).list_returnable_withdrawals(skip=skip, limit=limit)
