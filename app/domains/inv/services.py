# app/domains/inv/services.py

"""
'inv' 도메인의 재고 검증 및 재고 반영 로직을 담당하는 서비스 모듈입니다.

- StockValidator: 요청 수량과 현재 재고를 비교합니다 (읽기 전용, 부족 품목을 모두 수집).
- MovementApplier: 부호 있는 수량(delta)을 자재별로 조건부 갱신하고 원장을 1건씩 기록합니다.
  여러 delta 는 하나의 DB 트랜잭션 안에서 순서대로 반영되며,
  하나라도 실패하면 트랜잭션 롤백으로 배치 전체가 취소됩니다.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    CostCenterNotFoundError,
    InsufficientStockError,
    InvalidRequestError,
    InventoryError,
    MaterialNotFoundError,
    PersistenceFailureError,
    StockConflictError,
)
from app.domains.inv import crud as inv_crud
from app.domains.inv import models as inv_models
from app.domains.inv import schemas as inv_schemas

logger = logging.getLogger(__name__)

INSUFFICIENT = "insufficient"
NOT_FOUND = "not_found"


@dataclass(frozen=True)
class StockDelta:
    """
    재고 반영 1건.
    quantity 는 부호 있는 정수이며, reassign_cost_center_id 가 있으면 같은 갱신에서 원가 센터를 재지정합니다.
    """
    material_id: int
    quantity: int
    reason: inv_models.LedgerReason
    document_id: Optional[int] = None
    notes: Optional[str] = None
    reassign_cost_center_id: Optional[int] = None


# =============================================================================
# 1. 재고 검증기
# =============================================================================
class StockValidator:
    """요청 품목별 수량을 현재 재고와 비교합니다. DB 를 변경하지 않습니다."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def validate(self, items: Iterable[Tuple[int, int]]) -> inv_schemas.StockValidationResult:
        requested = _sum_by_material(items)

        materials = await inv_crud.material.get_many(self.db, ids=list(requested.keys()))
        available: dict[int, int] = {}
        failures: List[inv_schemas.StockFailure] = []

        for material_id, quantity in requested.items():
            db_material = materials.get(material_id)
            if db_material is None:
                failures.append(
                    inv_schemas.StockFailure(
                        material_id=material_id,
                        requested=quantity,
                        available=0,
                        shortfall=quantity,
                        kind=NOT_FOUND,
                    )
                )
                continue

            current = await inv_crud.material.read_stock(self.db, material_id=material_id)
            available[material_id] = current
            if quantity > current:
                failures.append(
                    inv_schemas.StockFailure(
                        material_id=material_id,
                        material_name=db_material.name,
                        requested=quantity,
                        available=current,
                        shortfall=quantity - current,
                        kind=INSUFFICIENT,
                    )
                )

        if not failures:
            return inv_schemas.StockValidationResult(valid=True, available=available)

        return inv_schemas.StockValidationResult(
            valid=False,
            message=format_shortfall_message(failures),
            available=available,
            failures=failures,
        )


def _sum_by_material(items: Iterable[Tuple[int, int]]) -> "OrderedDict[int, int]":
    """같은 자재가 여러 번 요청되면 합산합니다. 수량이 0 이하이면 호출자 오류입니다."""
    requested: "OrderedDict[int, int]" = OrderedDict()
    for material_id, quantity in items:
        if quantity is None or quantity <= 0:
            raise InvalidRequestError(f"Requested quantity for material {material_id} must be positive, got {quantity}.")
        requested[material_id] = requested.get(material_id, 0) + quantity
    return requested


def format_shortfall_message(failures: Sequence[inv_schemas.StockFailure]) -> str:
    """부족 품목을 한 줄씩 나열한 메시지를 만듭니다."""
    lines = ["Insufficient stock for the following items:"]
    for failure in failures:
        if failure.kind == NOT_FOUND:
            lines.append(f"Material {failure.material_id}: not found.")
        else:
            label = failure.material_name or f"Material {failure.material_id}"
            lines.append(
                f"{label}: Insufficient stock. Available: {failure.available}, Requested: {failure.requested}"
            )
    return "\n".join(lines)


# =============================================================================
# 2. 재고 반영기
# =============================================================================
class MovementApplier:
    """
    delta 를 조건부 갱신(compare-and-set)으로 반영하고 원장을 기록합니다.
    동시 갱신으로 조건이 맞지 않으면 STOCK_UPDATE_MAX_RETRIES 회까지 다시 읽고 재시도합니다.
    """

    def __init__(self, db: AsyncSession, max_retries: Optional[int] = None):
        self.db = db
        self.max_retries = settings.STOCK_UPDATE_MAX_RETRIES if max_retries is None else max_retries

    async def apply(self, delta: StockDelta, actor_id: str) -> inv_models.LedgerEntry:
        """delta 1건을 반영합니다. 커밋하지 않습니다."""
        for attempt in range(1, self.max_retries + 1):
            current = await inv_crud.material.read_stock(self.db, material_id=delta.material_id)
            if current is None:
                raise MaterialNotFoundError(delta.material_id)

            new_quantity = current + delta.quantity
            if new_quantity < 0:
                raise InsufficientStockError(
                    f"Insufficient stock for material {delta.material_id}. "
                    f"Available: {current}, Requested: {-delta.quantity}",
                    shortfalls=[{
                        "material_id": delta.material_id,
                        "requested": -delta.quantity,
                        "available": current,
                        "shortfall": -new_quantity,
                    }],
                )

            cas_kwargs = {}
            if delta.reassign_cost_center_id is not None:
                cas_kwargs["cost_center_id"] = delta.reassign_cost_center_id

            updated = await inv_crud.material.compare_and_set(
                self.db,
                material_id=delta.material_id,
                expected_quantity=current,
                new_quantity=new_quantity,
                **cas_kwargs,
            )
            if updated:
                entry = inv_models.LedgerEntry(
                    material_id=delta.material_id,
                    quantity_delta=delta.quantity,
                    quantity_before=current,
                    quantity_after=new_quantity,
                    reason=delta.reason,
                    direction=inv_models.LedgerDirection.from_delta(delta.quantity),
                    document_id=delta.document_id,
                    actor_id=actor_id,
                    notes=delta.notes,
                )
                return await inv_crud.ledger_entry.append(self.db, entry=entry)

            logger.warning(
                "Stock of material %s changed concurrently (attempt %d/%d), retrying.",
                delta.material_id, attempt, self.max_retries,
            )

        raise StockConflictError(delta.material_id, self.max_retries)

    async def apply_all(
        self, deltas: Sequence[StockDelta], actor_id: str, *, commit: bool = True
    ) -> List[inv_models.LedgerEntry]:
        """
        delta 들을 순서대로 반영합니다.
        commit=True 이면 이 메서드가 트랜잭션을 소유하여 성공 시 커밋, 실패 시 롤백합니다.
        commit=False 이면 호출자가 트랜잭션을 소유하며, 실패 시 예외만 전파합니다.
        """
        entries: List[inv_models.LedgerEntry] = []
        try:
            for delta in deltas:
                entries.append(await self.apply(delta, actor_id))
            if commit:
                await self.db.commit()
        except SQLAlchemyError as exc:
            logger.error("Stock batch failed after %d of %d deltas: %s", len(entries), len(deltas), exc)
            if commit:
                await self.db.rollback()
            raise PersistenceFailureError(f"Failed to persist stock movement: {exc}") from exc
        except InventoryError as exc:
            logger.info("Stock batch aborted after %d of %d deltas: %s", len(entries), len(deltas), exc.message)
            if commit:
                await self.db.rollback()
            raise
        return entries


# =============================================================================
# 3. 자재 등록 및 원장 점검
# =============================================================================
async def create_material(
    db: AsyncSession, *, obj_in: inv_schemas.MaterialCreate, actor_id: str
) -> inv_models.Material:
    """
    자재를 등록합니다. 기초 재고는 initial_balance 원장으로 반영되므로
    원장 체인은 항상 0 에서 시작합니다.
    """
    if await inv_crud.material.get_by_code(db, code=obj_in.code):
        raise InvalidRequestError("Material with this code already exists.")
    if obj_in.cost_center_id is not None and await inv_crud.cost_center.get(db, obj_in.cost_center_id) is None:
        raise CostCenterNotFoundError(obj_in.cost_center_id)

    try:
        db_material = await inv_crud.material.create_catalog_entry(db, obj_in=obj_in)
        material_id = db_material.id
        deltas = []
        if obj_in.initial_quantity > 0:
            deltas.append(
                StockDelta(
                    material_id=material_id,
                    quantity=obj_in.initial_quantity,
                    reason=inv_models.LedgerReason.INITIAL_BALANCE,
                    notes="Initial balance",
                )
            )
        await MovementApplier(db).apply_all(deltas, actor_id, commit=False)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise PersistenceFailureError(f"Failed to create material: {exc}") from exc
    except InventoryError:
        await db.rollback()
        raise

    await db.refresh(db_material)
    logger.info("Material %s (%s) created with initial quantity %d.", material_id, obj_in.code, obj_in.initial_quantity)
    return db_material


async def verify_ledger_chain(db: AsyncSession, *, material_id: int) -> inv_schemas.LedgerChainReport:
    """원장을 0 부터 재생하여 저장된 재고 수량과 일치하는지 확인합니다."""
    stored = await inv_crud.material.read_stock(db, material_id=material_id)
    if stored is None:
        raise MaterialNotFoundError(material_id)

    entries = await inv_crud.ledger_entry.get_chain(db, material_id=material_id)
    running = 0
    broken: List[int] = []
    for entry in entries:
        if entry.quantity_before != running or entry.quantity_after != entry.quantity_before + entry.quantity_delta:
            broken.append(entry.id)
        running += entry.quantity_delta

    return inv_schemas.LedgerChainReport(
        material_id=material_id,
        entry_count=len(entries),
        replayed_quantity=running,
        stored_quantity=stored,
        consistent=not broken and running == stored,
        broken_entry_ids=broken,
    )


async def validate_stock(db: AsyncSession, items: Iterable[Tuple[int, int]]) -> inv_schemas.StockValidationResult:
    return await StockValidator(db).validate(items)
