# app/domains/inv/crud.py

"""
'inv' 도메인의 CRUD 작업을 위한 함수들을 정의하는 모듈입니다.
SQLModel과 SQLAlchemy를 사용하여 데이터베이스와 상호작용합니다.

재고 수량은 읽기-수정-쓰기(read-modify-write)로 갱신하지 않습니다.
MaterialCRUD.compare_and_set 은 '읽은 수량이 그대로일 때만' 갱신하는 조건부 UPDATE 이며,
갱신된 행 수로 동시 갱신 충돌 여부를 판단합니다.
"""

import logging
from typing import List, Optional
from datetime import date

from sqlalchemy import func, update
from sqlalchemy.future import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.crud_base import CRUDBase
from app.domains.inv import models as inv_models
from app.domains.inv import schemas as inv_schemas

logger = logging.getLogger(__name__)

_UNSET = object()


class CostCenterCRUD(
    CRUDBase[
        inv_models.CostCenter,
        inv_schemas.CostCenterCreate,
        inv_schemas.CostCenterCreate,
    ]
):
    """CostCenter 모델에 특화된 CRUD 작업을 처리합니다."""

    async def get_by_code(self, db: AsyncSession, *, code: str) -> inv_models.CostCenter | None:
        query = select(self.model).where(self.model.code == code)
        result = await db.execute(query)
        return result.scalar_one_or_none()


class MaterialCRUD(
    CRUDBase[
        inv_models.Material,
        inv_schemas.MaterialCreate,
        inv_schemas.MaterialUpdate,
    ]
):
    """
    Material 모델에 특화된 CRUD 작업을 처리합니다.
    quantity / cost_center_id 는 compare_and_set 으로만 변경합니다.
    """

    async def get_by_code(self, db: AsyncSession, *, code: str) -> inv_models.Material | None:
        query = select(self.model).where(self.model.code == code)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_many(self, db: AsyncSession, *, ids: List[int]) -> dict[int, inv_models.Material]:
        """ID 목록에 해당하는 자재를 {id: Material} 형태로 조회합니다."""
        if not ids:
            return {}
        result = await db.execute(select(self.model).where(self.model.id.in_(set(ids))))
        return {m.id: m for m in result.scalars().all()}

    async def read_stock(self, db: AsyncSession, *, material_id: int) -> Optional[int]:
        """
        현재 재고 수량을 DB에서 직접 읽습니다 (세션 캐시를 사용하지 않음).
        자재가 없으면 None 을 반환합니다.
        """
        result = await db.execute(select(self.model.quantity).where(self.model.id == material_id))
        return result.scalar_one_or_none()

    async def compare_and_set(
        self,
        db: AsyncSession,
        *,
        material_id: int,
        expected_quantity: int,
        new_quantity: int,
        cost_center_id: object = _UNSET,
    ) -> bool:
        """
        수량이 expected_quantity 일 때만 new_quantity 로 갱신합니다.
        cost_center_id 가 전달되면 같은 UPDATE 에서 원가 센터도 재지정합니다.
        갱신된 행이 정확히 1개이면 True, 다른 트랜잭션이 먼저 갱신했으면 False.
        """
        values = {"quantity": new_quantity}
        if cost_center_id is not _UNSET:
            values["cost_center_id"] = cost_center_id

        statement = (
            update(self.model)
            .where(self.model.id == material_id, self.model.quantity == expected_quantity)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(statement)
        return result.rowcount == 1

    async def create_catalog_entry(
        self, db: AsyncSession, *, obj_in: inv_schemas.MaterialCreate
    ) -> inv_models.Material:
        """
        수량 0 인 자재 레코드를 추가하고 flush 합니다 (커밋하지 않음).
        최초 원가 센터는 여기서 지정하고, 기초 재고는 MovementApplier 가 원장과 함께 반영합니다.
        """
        db_obj = inv_models.Material.model_validate(
            obj_in.model_dump(exclude={"initial_quantity"})
        )
        db.add(db_obj)
        await db.flush()
        return db_obj


class LedgerEntryCRUD(
    CRUDBase[
        inv_models.LedgerEntry,
        inv_schemas.LedgerEntryResponse,
        inv_schemas.LedgerEntryResponse,
    ]
):
    """
    LedgerEntry 는 추가(append)와 조회만 지원합니다.
    기본 클래스의 create/update 는 원장에 사용하지 않습니다.
    """

    async def append(self, db: AsyncSession, *, entry: inv_models.LedgerEntry) -> inv_models.LedgerEntry:
        """원장 기록을 추가하고 flush 합니다. 커밋은 호출자(트랜잭션 소유자)가 수행합니다."""
        db.add(entry)
        await db.flush()
        return entry

    async def get_history(
        self,
        db: AsyncSession,
        *,
        material_id: Optional[int] = None,
        document_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[inv_models.LedgerEntry]:
        """자재/전표 기준 원장 이력을 최신순으로 조회합니다."""
        return await self.get_filtered(
            db,
            filters={"material_id": material_id, "document_id": document_id},
            date_range_field="created_at",
            start_date=start_date,
            end_date=end_date,
            order_by_field="id",
            order_desc=True,
            skip=skip,
            limit=limit,
        )

    async def get_chain(self, db: AsyncSession, *, material_id: int) -> List[inv_models.LedgerEntry]:
        """자재의 전체 원장을 기록 순서(id 오름차순)로 조회합니다."""
        query = select(self.model).where(self.model.material_id == material_id).order_by(self.model.id)
        result = await db.execute(query)
        return result.scalars().all()

    async def count_for_document(self, db: AsyncSession, *, document_id: int) -> int:
        query = select(func.count()).select_from(self.model).where(self.model.document_id == document_id)
        result = await db.execute(query)
        return result.scalar_one()


cost_center = CostCenterCRUD(inv_models.CostCenter)
material = MaterialCRUD(inv_models.Material)
ledger_entry = LedgerEntryCRUD(inv_models.LedgerEntry)
