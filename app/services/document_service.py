# app/services/document_service.py

"""
전표(romaneio) 작성 및 승인 상태 머신을 담당하는 서비스 모듈입니다.

'rom' 도메인(전표)과 'inv' 도메인(재고/원장)에 걸친 흐름을 조정합니다.

상태 전이:
    pending --approve--> approved   (종료)
    pending --cancel---> canceled   (종료)

승인은 하나의 DB 트랜잭션 안에서
    1) 전표 유형별 검증과 delta 계산
    2) 조건부 상태 전이 (WHERE status = 'pending')
    3) MovementApplier 로 재고 반영 및 원장 기록
을 수행하고 한 번에 커밋합니다. 어느 단계에서든 실패하면 롤백하므로
전표는 pending 으로 남고 재고는 변하지 않습니다.
"""

import logging
from datetime import datetime, date, UTC
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AlreadyFinalizedError,
    CostCenterNotFoundError,
    DocumentNotFoundError,
    InsufficientStockError,
    InvalidRequestError,
    InvalidTransitionError,
    InventoryError,
    MaterialNotFoundError,
    PersistenceFailureError,
)
from app.domains.inv import crud as inv_crud
from app.domains.inv.models import LedgerReason
from app.domains.inv.services import NOT_FOUND, MovementApplier, StockDelta, StockValidator
from app.domains.rom import crud as rom_crud
from app.domains.rom import numbering
from app.domains.rom import schemas as rom_schemas
from app.domains.rom.models import DocumentStatus, DocumentType, MovementDocument, MovementLineItem
from app.services.return_service import ReturnService

logger = logging.getLogger(__name__)

_REASON_BY_TYPE = {
    DocumentType.WITHDRAWAL: LedgerReason.WITHDRAWAL,
    DocumentType.RETURN: LedgerReason.RETURN,
    DocumentType.TRANSFER: LedgerReason.TRANSFER,
}

_REASON_LABEL = {
    DocumentType.WITHDRAWAL: "Withdrawal",
    DocumentType.RETURN: "Return",
    DocumentType.TRANSFER: "Transfer",
}


class DocumentService:
    """전표 작성, 승인, 취소를 처리하는 서비스 클래스입니다."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.returns = ReturnService(db)
        # 전표 유형별 승인 처리기 (유형별 분기는 이 테이블 한 곳에서만 결정됩니다)
        self._approval_handlers: Dict[DocumentType, Callable[[MovementDocument], Awaitable[List[StockDelta]]]] = {
            DocumentType.WITHDRAWAL: self._prepare_withdrawal,
            DocumentType.RETURN: self._prepare_return,
            DocumentType.TRANSFER: self._prepare_transfer,
        }

    # =========================================================================
    # 1. 전표 작성
    # =========================================================================
    async def create_document(self, obj_in: rom_schemas.DocumentCreate, actor_id: str) -> MovementDocument:
        """
        pending 상태의 전표를 작성합니다.
        반납 전표가 출고 전표를 참조하면 품목별 원 출고 수량(original_quantity)을 채웁니다.
        """
        if obj_in.origin_document_id is not None and obj_in.doc_type != DocumentType.RETURN:
            raise InvalidRequestError("origin_document_id is only allowed on return documents.")

        for cost_center_id in (obj_in.origin_cost_center_id, obj_in.destination_cost_center_id):
            if cost_center_id is not None and await inv_crud.cost_center.get(self.db, cost_center_id) is None:
                raise CostCenterNotFoundError(cost_center_id)

        materials = await inv_crud.material.get_many(self.db, ids=[item.material_id for item in obj_in.items])
        for item in obj_in.items:
            if item.material_id not in materials:
                raise MaterialNotFoundError(item.material_id)

        original_quantities: Dict[int, int] = {}
        if obj_in.origin_document_id is not None:
            original_quantities = await self._check_return_origin(obj_in)

        number_cost_center_id = (
            obj_in.origin_cost_center_id if obj_in.doc_type == DocumentType.RETURN
            else obj_in.destination_cost_center_id
        )
        if number_cost_center_id is None:
            side = "origin" if obj_in.doc_type == DocumentType.RETURN else "destination"
            raise InvalidRequestError(f"A {side} cost center is required to number a {obj_in.doc_type.value} document.")
        number_cost_center = await inv_crud.cost_center.get(self.db, number_cost_center_id)
        stem = numbering.number_stem(obj_in.doc_type, number_cost_center.code)

        last_error: Optional[Exception] = None
        for attempt in range(1, settings.DOCUMENT_NUMBER_MAX_RETRIES + 1):
            existing = await rom_crud.movement_document.get_numbers_with_stem(self.db, stem=stem)
            number = f"{stem}{numbering.next_sequence(existing, stem):0{numbering.SEQUENCE_WIDTH}d}"
            document = MovementDocument(
                number=number,
                doc_type=obj_in.doc_type,
                status=DocumentStatus.PENDING,
                origin_document_id=obj_in.origin_document_id,
                origin_cost_center_id=obj_in.origin_cost_center_id,
                destination_cost_center_id=obj_in.destination_cost_center_id,
                employee_id=obj_in.employee_id,
                responsible_name=obj_in.responsible_name,
                document_date=obj_in.document_date or date.today(),
                notes=obj_in.notes,
                created_by=actor_id,
            )
            items = [
                MovementLineItem(
                    material_id=item.material_id,
                    quantity=item.quantity,
                    unit_value=item.unit_value,
                    serial_number=item.serial_number,
                    asset_tag=item.asset_tag,
                    notes=item.notes,
                    original_quantity=original_quantities.get(item.material_id),
                )
                for item in obj_in.items
            ]
            try:
                await rom_crud.movement_document.add_with_items(self.db, document=document, items=items)
                document_id = document.id
                await self.db.commit()
            except IntegrityError as exc:
                # 동시에 같은 번호가 발번된 경우 다시 발번합니다.
                await self.db.rollback()
                last_error = exc
                logger.warning("Document number %s collided (attempt %d), renumbering.", number, attempt)
                continue
            except SQLAlchemyError as exc:
                await self.db.rollback()
                raise PersistenceFailureError(f"Failed to create document: {exc}") from exc

            logger.info("Document %s (%s) created by %s.", number, obj_in.doc_type.value, actor_id)
            return await rom_crud.movement_document.get_with_items(self.db, document_id)

        raise PersistenceFailureError(f"Could not allocate a unique document number: {last_error}")

    async def _check_return_origin(self, obj_in: rom_schemas.DocumentCreate) -> Dict[int, int]:
        """반납 전표가 참조할 수 있는 출고 전표인지 확인하고, 자재별 원 출고 수량을 반환합니다."""
        origin_id = obj_in.origin_document_id
        origin = await rom_crud.movement_document.get_with_items(self.db, origin_id)
        if origin is None:
            raise DocumentNotFoundError(origin_id)
        if origin.doc_type != DocumentType.WITHDRAWAL or origin.status != DocumentStatus.APPROVED:
            raise InvalidRequestError(f"Document {origin_id} is not an approved withdrawal.")
        if await self.returns.has_pending_returns(origin_id):
            raise InvalidRequestError(f"Withdrawal {origin_id} already has a pending return.")

        status = await self.returns.status_of(origin)
        if status.status == rom_schemas.ReturnState.FULLY_RETURNED:
            raise AlreadyFinalizedError(f"Withdrawal {origin_id} is already fully returned.")

        original_quantities: Dict[int, int] = {}
        for item in origin.items:
            original_quantities[item.material_id] = original_quantities.get(item.material_id, 0) + item.quantity
        for item in obj_in.items:
            if item.material_id not in original_quantities:
                raise InvalidRequestError(
                    f"Material {item.material_id} was not part of withdrawal {origin_id}."
                )
        _check_outstanding(status, obj_in.items, origin_id)
        return original_quantities

    # =========================================================================
    # 2. 승인 상태 머신
    # =========================================================================
    async def approve(self, document_id: int, actor_id: str) -> MovementDocument:
        """
        pending 전표를 승인합니다.
        이미 승인/취소된 전표는 InvalidTransitionError 로 거부하며 재처리하지 않습니다.
        """
        document = await rom_crud.movement_document.get_with_items(self.db, document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        if document.status != DocumentStatus.PENDING:
            raise InvalidTransitionError(document_id, document.status, DocumentStatus.APPROVED)

        number = document.number
        doc_type = document.doc_type
        handler = self._approval_handlers[doc_type]

        try:
            deltas = await handler(document)
            claimed = await rom_crud.movement_document.transition_status(
                self.db,
                document_id=document_id,
                from_status=DocumentStatus.PENDING,
                to_status=DocumentStatus.APPROVED,
                approved_by=actor_id,
                approved_at=datetime.now(UTC),
            )
            if not claimed:
                raise InvalidTransitionError(document_id, "not pending", DocumentStatus.APPROVED)
            await MovementApplier(self.db).apply_all(deltas, actor_id, commit=False)
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Approval of document %s rolled back: %s", number, exc)
            raise PersistenceFailureError(f"Failed to approve document {number}: {exc}") from exc
        except InventoryError as exc:
            await self.db.rollback()
            logger.info("Approval of document %s rejected: %s", number, exc.message)
            raise

        logger.info("Document %s (%s) approved by %s with %d stock movements.", number, doc_type.value, actor_id, len(deltas))
        return await rom_crud.movement_document.get_with_items(self.db, document_id)

    async def cancel(self, document_id: int, actor_id: Optional[str] = None) -> MovementDocument:
        """pending 전표를 취소합니다. 재고와 원장은 변경하지 않습니다."""
        document = await rom_crud.movement_document.get_with_items(self.db, document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        if document.status != DocumentStatus.PENDING:
            raise InvalidTransitionError(document_id, document.status, DocumentStatus.CANCELED)

        number = document.number
        try:
            claimed = await rom_crud.movement_document.transition_status(
                self.db,
                document_id=document_id,
                from_status=DocumentStatus.PENDING,
                to_status=DocumentStatus.CANCELED,
                canceled_by=actor_id,
                canceled_at=datetime.now(UTC),
            )
            if not claimed:
                raise InvalidTransitionError(document_id, "not pending", DocumentStatus.CANCELED)
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise PersistenceFailureError(f"Failed to cancel document {number}: {exc}") from exc
        except InventoryError:
            await self.db.rollback()
            raise

        logger.info("Document %s canceled by %s.", number, actor_id or "unknown")
        return await rom_crud.movement_document.get_with_items(self.db, document_id)

    # =========================================================================
    # 3. 유형별 승인 처리기
    # =========================================================================
    def _deltas(self, document: MovementDocument, sign: int) -> List[StockDelta]:
        reason = _REASON_BY_TYPE[document.doc_type]
        notes = f"{_REASON_LABEL[document.doc_type]} - Document {document.number}"
        return [
            StockDelta(
                material_id=item.material_id,
                quantity=sign * item.quantity,
                reason=reason,
                document_id=document.id,
                notes=notes,
                reassign_cost_center_id=document.destination_cost_center_id,
            )
            for item in document.items
        ]

    async def _prepare_withdrawal(self, document: MovementDocument) -> List[StockDelta]:
        result = await StockValidator(self.db).validate(
            [(item.material_id, item.quantity) for item in document.items]
        )
        if not result.valid:
            missing = [failure for failure in result.failures if failure.kind == NOT_FOUND]
            if missing:
                raise MaterialNotFoundError(missing[0].material_id)
            raise InsufficientStockError(
                result.message,
                shortfalls=[failure.model_dump() for failure in result.failures],
            )
        return self._deltas(document, -1)

    async def _prepare_return(self, document: MovementDocument) -> List[StockDelta]:
        # 같은 반납 전표가 이미 원장에 반영되었다면 중복 제출입니다.
        if await inv_crud.ledger_entry.count_for_document(self.db, document_id=document.id) > 0:
            raise AlreadyFinalizedError(f"Return document {document.number} has already been processed.")

        if document.origin_document_id is not None:
            origin = await rom_crud.movement_document.get_with_items(self.db, document.origin_document_id)
            if origin is None:
                raise DocumentNotFoundError(document.origin_document_id)
            if origin.doc_type != DocumentType.WITHDRAWAL or origin.status != DocumentStatus.APPROVED:
                raise InvalidRequestError(f"Document {origin.id} is not an approved withdrawal.")
            status = await self.returns.status_of(origin)
            if status.status == rom_schemas.ReturnState.FULLY_RETURNED:
                raise AlreadyFinalizedError(f"Withdrawal {origin.number} is already fully returned.")
            _check_outstanding(status, document.items, origin.number)
        return self._deltas(document, 1)

    async def _prepare_transfer(self, document: MovementDocument) -> List[StockDelta]:
        # 이관은 원가 센터 이동만 나타내는 단일 입고 기록으로 처리합니다.
        return self._deltas(document, 1)


def _check_outstanding(
    status: rom_schemas.ReturnStatus, items: Iterable, withdrawal_label: object
) -> None:
    """반납 수량이 자재별 미반납 수량(원 출고 - 승인된 반납)을 넘으면 거부합니다."""
    outstanding = {
        item.material_id: max(0, item.original_quantity - item.returned_quantity) for item in status.items
    }
    requested: Dict[int, int] = {}
    for item in items:
        requested[item.material_id] = requested.get(item.material_id, 0) + item.quantity
    for material_id, quantity in requested.items():
        remaining = outstanding.get(material_id, 0)
        if quantity > remaining:
            raise InvalidRequestError(
                f"Return of {quantity} for material {material_id} exceeds the {remaining} "
                f"still outstanding on withdrawal {withdrawal_label}."
            )


async def approve_document(db: AsyncSession, document_id: int, actor_id: str) -> MovementDocument:
    return await DocumentService(db).approve(document_id, actor_id)


async def cancel_document(db: AsyncSession, document_id: int, actor_id: Optional[str] = None) -> MovementDocument:
    return await DocumentService(db).cancel(document_id, actor_id)
