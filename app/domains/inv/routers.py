# app/domains/inv/routers.py

from typing import List, Optional
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core import dependencies as deps
from app.core.exceptions import MaterialNotFoundError
from app.domains.inv import crud as inv_crud, schemas as inv_schemas
from app.domains.inv import services as inv_services

router = APIRouter(
    tags=["Inventory Ledger (재고 원장)"],
    responses={404: {"description": "Not found"}},
)


# =============================================================================
# 1. cost_centers 엔드포인트
# =============================================================================
@router.post(
    "/cost_centers",
    response_model=inv_schemas.CostCenterResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_cost_center(
    cost_center_create: inv_schemas.CostCenterCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    actor_id: str = Depends(deps.get_acting_user_id),
):
    """새로운 원가 센터를 생성합니다."""
    if await inv_crud.cost_center.get_by_code(db, code=cost_center_create.code):
        raise HTTPException(status_code=400, detail="Cost center with this code already exists.")
    return await inv_crud.cost_center.create(db=db, obj_in=cost_center_create)


@router.get("/cost_centers", response_model=List[inv_schemas.CostCenterResponse])
async def read_cost_centers(
    skip: int = 0,
    limit: int = 100,
    active: Optional[bool] = None,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """원가 센터 목록을 조회합니다."""
    return await inv_crud.cost_center.get_multi(db, skip=skip, limit=limit, active=active)


@router.get("/cost_centers/{cost_center_id}", response_model=inv_schemas.CostCenterResponse)
async def read_cost_center(cost_center_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    db_cost_center = await inv_crud.cost_center.get(db, cost_center_id)
    if db_cost_center is None:
        raise HTTPException(status_code=404, detail="Cost center not found.")
    return db_cost_center


# =============================================================================
# 2. materials 엔드포인트
# =============================================================================
@router.post(
    "/materials",
    response_model=inv_schemas.MaterialResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_material(
    material_create: inv_schemas.MaterialCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    actor_id: str = Depends(deps.get_acting_user_id),
):
    """새로운 자재를 등록합니다. 기초 재고는 원장(initial_balance)으로 기록됩니다."""
    return await inv_services.create_material(db, obj_in=material_create, actor_id=actor_id)


@router.get("/materials", response_model=List[inv_schemas.MaterialResponse])
async def read_materials(
    skip: int = 0,
    limit: int = 100,
    cost_center_id: Optional[int] = None,
    active: Optional[bool] = None,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """자재 목록을 조회합니다. 원가 센터/사용 여부로 필터링할 수 있습니다."""
    return await inv_crud.material.get_multi(
        db, skip=skip, limit=limit, cost_center_id=cost_center_id, active=active
    )


@router.get("/materials/{material_id}", response_model=inv_schemas.MaterialResponse)
async def read_material(material_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    db_material = await inv_crud.material.get(db, material_id)
    if db_material is None:
        raise MaterialNotFoundError(material_id)
    return db_material


@router.put("/materials/{material_id}", response_model=inv_schemas.MaterialResponse)
async def update_material(
    material_id: int,
    material_update: inv_schemas.MaterialUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    actor_id: str = Depends(deps.get_acting_user_id),
):
    """자재의 카탈로그 정보를 수정합니다. 재고 수량과 원가 센터는 변경할 수 없습니다."""
    db_material = await inv_crud.material.get(db, material_id)
    if db_material is None:
        raise MaterialNotFoundError(material_id)
    return await inv_crud.material.update(db=db, db_obj=db_material, obj_in=material_update)


# =============================================================================
# 3. 원장 조회 엔드포인트
# =============================================================================
@router.get("/materials/{material_id}/ledger", response_model=List[inv_schemas.LedgerEntryResponse])
async def read_material_ledger(
    material_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """특정 자재의 원장 이력을 최신순으로 조회합니다."""
    if await inv_crud.material.get(db, material_id) is None:
        raise MaterialNotFoundError(material_id)
    return await inv_crud.ledger_entry.get_history(
        db, material_id=material_id, start_date=start_date, end_date=end_date, skip=skip, limit=limit
    )


@router.get("/materials/{material_id}/ledger/verify", response_model=inv_schemas.LedgerChainReport)
async def verify_material_ledger(material_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    """원장 체인이 현재 재고 수량을 재현하는지 점검합니다."""
    return await inv_services.verify_ledger_chain(db, material_id=material_id)


@router.get("/ledger_entries", response_model=List[inv_schemas.LedgerEntryResponse])
async def read_ledger_entries(
    material_id: Optional[int] = None,
    document_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """자재 및/또는 전표 기준으로 원장 이력을 조회합니다."""
    return await inv_crud.ledger_entry.get_history(
        db,
        material_id=material_id,
        document_id=document_id,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit,
    )


# =============================================================================
# 4. 재고 검증 엔드포인트
# =============================================================================
@router.post("/stock/validate", response_model=inv_schemas.StockValidationResult)
async def validate_stock(
    request: inv_schemas.StockValidationRequest,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """요청 수량을 현재 재고와 비교합니다 (DB 변경 없음). 부족 품목은 모두 반환됩니다."""
    return await inv_services.validate_stock(db, [(item.material_id, item.quantity) for item in request.items])
