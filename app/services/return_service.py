# app/services/return_service.py

"""
출고 전표의 반납 현황을 계산하는 서비스 모듈입니다.

반납 현황은 저장하지 않는 파생 값입니다.
호출할 때마다 출고 전표와 승인된 반납 전표들로부터 다시 계산하므로
오래된(stale) 집계가 남지 않습니다.
"""

import logging
from collections import OrderedDict
from typing import Iterable, List, Mapping, Optional

from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.exceptions import DocumentNotFoundError, InvalidRequestError
from app.domains.inv import crud as inv_crud
from app.domains.rom import crud as rom_crud
from app.domains.rom import models as rom_models
from app.domains.rom import schemas as rom_schemas
from app.domains.rom.models import DocumentStatus, DocumentType

logger = logging.getLogger(__name__)


def _percentage(returned: int, original: int) -> float:
    if original <= 0:
        return 0.0
    return min(100.0, returned * 100.0 / original)


def aggregate_return_status(
    withdrawal: rom_models.MovementDocument,
    returns: Iterable[rom_models.MovementDocument],
    material_names: Optional[Mapping[int, str]] = None,
) -> rom_schemas.ReturnStatus:
    """
    출고 전표 품목(자재별 합산)과 승인된 반납 전표 품목을 비교합니다.
    출고 전표에 없는 자재의 반납 수량은 집계하지 않습니다.
    """
    material_names = material_names or {}

    original: "OrderedDict[int, int]" = OrderedDict()
    for item in withdrawal.items:
        original[item.material_id] = original.get(item.material_id, 0) + item.quantity

    returned = {material_id: 0 for material_id in original}
    for document in returns:
        if document.status != DocumentStatus.APPROVED:
            continue
        for item in document.items:
            if item.material_id in returned:
                returned[item.material_id] += item.quantity

    items = [
        rom_schemas.ReturnStatusItem(
            material_id=material_id,
            material_name=material_names.get(material_id),
            original_quantity=quantity,
            returned_quantity=returned[material_id],
            percentage=_percentage(returned[material_id], quantity),
        )
        for material_id, quantity in original.items()
    ]

    total_original = sum(original.values())
    total_returned = sum(returned.values())
    if total_returned == 0:
        state = rom_schemas.ReturnState.NOT_RETURNED
    elif total_returned >= total_original:
        state = rom_schemas.ReturnState.FULLY_RETURNED
    else:
        state = rom_schemas.ReturnState.PARTIALLY_RETURNED

    return rom_schemas.ReturnStatus(
        withdrawal_id=withdrawal.id,
        status=state,
        percentage_returned=_percentage(total_returned, total_original),
        original_quantity=total_original,
        returned_quantity=total_returned,
        items=items,
    )


class ReturnService:
    """반납 현황 조회와 반납 가능 출고 전표 목록을 제공합니다."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load_withdrawal(self, withdrawal_id: int) -> rom_models.MovementDocument:
        withdrawal = await rom_crud.movement_document.get_with_items(self.db, withdrawal_id)
        if withdrawal is None:
            raise DocumentNotFoundError(withdrawal_id)
        if withdrawal.doc_type != DocumentType.WITHDRAWAL:
            raise InvalidRequestError(f"Document {withdrawal_id} is not a withdrawal.")
        if withdrawal.status != DocumentStatus.APPROVED:
            raise InvalidRequestError(f"Withdrawal {withdrawal_id} is not approved.")
        return withdrawal

    async def status_of(self, withdrawal: rom_models.MovementDocument) -> rom_schemas.ReturnStatus:
        returns = await rom_crud.movement_document.list_return_documents_by_origin(
            self.db, origin_document_id=withdrawal.id, status=DocumentStatus.APPROVED
        )
        materials = await inv_crud.material.get_many(
            self.db, ids=[item.material_id for item in withdrawal.items]
        )
        return aggregate_return_status(
            withdrawal, returns, {material_id: m.name for material_id, m in materials.items()}
        )

    async def compute_return_status(self, withdrawal_id: int) -> rom_schemas.ReturnStatus:
        withdrawal = await self._load_withdrawal(withdrawal_id)
        return await self.status_of(withdrawal)

    async def has_pending_returns(self, withdrawal_id: int) -> bool:
        pending = await rom_crud.movement_document.list_return_documents_by_origin(
            self.db, origin_document_id=withdrawal_id, status=DocumentStatus.PENDING
        )
        return len(pending) > 0

    async def list_returnable_withdrawals(self, *, skip: int = 0, limit: int = 100) -> List[rom_schemas.ReturnableWithdrawal]:
        """
        반납 전표를 새로 작성할 수 있는 출고 전표 목록.
        승인된 출고 전표 중 대기 중인 반납이 없고 아직 전량 반납되지 않은 것만 포함합니다.
        """
        withdrawals = await rom_crud.movement_document.list_with_items(
            self.db, doc_type=DocumentType.WITHDRAWAL, status=DocumentStatus.APPROVED, skip=skip, limit=limit
        )
        returnable: List[rom_schemas.ReturnableWithdrawal] = []
        for withdrawal in withdrawals:
            if await self.has_pending_returns(withdrawal.id):
                continue
            status = await self.status_of(withdrawal)
            if status.status == rom_schemas.ReturnState.FULLY_RETURNED:
                continue
            returnable.append(
                rom_schemas.ReturnableWithdrawal(
                    document=rom_schemas.DocumentResponse.model_validate(withdrawal, from_attributes=True),
                    return_status=status,
                )
            )
        return returnable


async def get_return_status(db: AsyncSession, withdrawal_id: int) -> rom_schemas.ReturnStatus:
    return await ReturnService(db).compute_return_status(withdrawal_id)
