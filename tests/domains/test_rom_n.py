# tests/domains/test_rom_n.py

"""
'rom' 도메인 (자재 이동 전표)과 전표 승인/반납 현황 서비스에 대한 통합 테스트 모듈입니다.

- 전표 번호 발번 규칙
- 승인 상태 머신: 출고/반납/이관 승인, 취소, 중복 승인 거부, 실패 시 롤백
- 반납 현황 집계와 반납 전표 작성 제약
- 동시 승인
- /api/v1/rom 엔드포인트
"""

import asyncio
from types import SimpleNamespace

import pytest
from httpx import AsyncClient
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.exceptions import (
    AlreadyFinalizedError,
    DocumentNotFoundError,
    InsufficientStockError,
    InvalidRequestError,
    InvalidTransitionError,
    PersistenceFailureError,
    StockConflictError,
)
from app.domains.inv import crud as inv_crud
from app.domains.inv import models as inv_models
from app.domains.inv.services import MovementApplier, StockDelta
from app.domains.rom import crud as rom_crud
from app.domains.rom import models as rom_models
from app.domains.rom import numbering
from app.domains.rom import schemas as rom_schemas
from app.domains.rom.models import DocumentStatus, DocumentType
from app.services.document_service import DocumentService, approve_document, cancel_document
from app.services.return_service import ReturnService, aggregate_return_status, get_return_status

from tests.conftest import TEST_ACTOR

APPROVER = "approver@example.com"


async def _stock(db: AsyncSession, material_id: int) -> int:
    return await inv_crud.material.read_stock(db, material_id=material_id)


async def _approved_withdrawal(db_session, material_factory, document_factory, quantity=10, stock=10):
    """출고 전표를 작성/승인하고 (자재 ID, 출고 전표 ID) 를 반환합니다."""
    material = await material_factory("MAT-001", stock)
    material_id = material.id
    withdrawal = await document_factory(DocumentType.WITHDRAWAL, [(material_id, quantity)])
    withdrawal_id = withdrawal.id
    await approve_document(db_session, withdrawal_id, APPROVER)
    return material_id, withdrawal_id


async def _approved_return(db_session, document_factory, material_id, withdrawal_id, quantity):
    document = await document_factory(DocumentType.RETURN, [(material_id, quantity)], origin_document_id=withdrawal_id)
    return await approve_document(db_session, document.id, APPROVER)


# =================================================================================
# 1. 전표 번호 발번 테스트
# =================================================================================
def test_next_sequence_uses_highest_matching_number():
    """(성공) 같은 stem 의 최대 일련번호 + 1, 다른 stem 은 무시"""
    existing = ["ROM-AL-CC01-0001", "ROM-AL-CC01-0007", "ROM-AL-CC01X-0099", "RDV-AL-CC01-0050"]
    assert numbering.next_sequence(existing, "ROM-AL-CC01-") == 8
    assert numbering.next_sequence([], "ROM-AL-CC01-") == 1


def test_format_and_parse_document_number():
    """(성공) 번호 형식화와 파싱 (원가 센터 코드에 '-' 포함 가능)"""
    number = numbering.format_document_number(DocumentType.RETURN, "OBRA-7", 3)
    assert number == "RDV-AL-OBRA-7-0003"

    parsed = numbering.parse_document_number(number)
    assert parsed.prefix == "RDV"
    assert parsed.warehouse == "AL"
    assert parsed.cost_center_code == "OBRA-7"
    assert parsed.sequence == 3

    assert numbering.prefix_for(DocumentType.TRANSFER) == "ROM"
    assert numbering.is_valid_document_number("ROM-AL-CC01-0001") is True
    assert numbering.is_valid_document_number("ROM-XX-CC01-0001") is False
    assert numbering.is_valid_document_number("ROM-AL-CC01-1") is False
    assert numbering.parse_document_number("garbage") is None


@pytest.mark.asyncio
async def test_document_numbers_are_sequential(db_session: AsyncSession, material_factory, document_factory):
    """(성공) 출고는 도착 원가 센터, 반납은 출발 원가 센터 코드로 순차 발번"""
    material = await material_factory("MAT-001", 10)
    material_id = material.id

    first = await document_factory(DocumentType.WITHDRAWAL, [(material_id, 1)])
    second = await document_factory(DocumentType.WITHDRAWAL, [(material_id, 1)])
    transfer = await document_factory(DocumentType.TRANSFER, [(material_id, 1)])
    return_doc = await document_factory(DocumentType.RETURN, [(material_id, 1)])

    assert first.number == "ROM-AL-OBRA-7-0001"
    assert second.number == "ROM-AL-OBRA-7-0002"
    assert transfer.number == "ROM-AL-OBRA-7-0003"
    assert return_doc.number == "RDV-AL-OBRA-7-0001"
    assert first.status == DocumentStatus.PENDING
    assert first.created_by == TEST_ACTOR
    assert [item.position for item in first.items] == [0]


# =================================================================================
# 2. 승인 상태 머신 테스트
# =================================================================================
@pytest.mark.asyncio
async def test_approve_withdrawal(db_session: AsyncSession, material_factory, document_factory, cost_center_b):
    """(성공) 재고 10 에서 4 출고 승인: 재고 6, 원장 -4 1건, 원가 센터는 도착지로 재지정"""
    cost_center_b_id = cost_center_b.id
    material = await material_factory("MAT-001", 10)
    material_id = material.id
    document = await document_factory(DocumentType.WITHDRAWAL, [(material_id, 4)])

    approved = await DocumentService(db_session).approve(document.id, APPROVER)

    assert approved.status == DocumentStatus.APPROVED
    assert approved.approved_by == APPROVER
    assert approved.approved_at is not None
    assert await _stock(db_session, material_id) == 6

    entries = await inv_crud.ledger_entry.get_history(db_session, document_id=approved.id)
    assert len(entries) == 1
    assert entries[0].quantity_delta == -4
    assert entries[0].quantity_before == 10
    assert entries[0].quantity_after == 6
    assert entries[0].reason == inv_models.LedgerReason.WITHDRAWAL
    assert entries[0].actor_id == APPROVER
    assert entries[0].notes == f"Withdrawal - Document {approved.number}"

    db_material = await inv_crud.material.get(db_session, material_id)
    await db_session.refresh(db_material)
    assert db_material.cost_center_id == cost_center_b_id


@pytest.mark.asyncio
async def test_approve_withdrawal_reports_every_shortfall(db_session: AsyncSession, material_factory, document_factory):
    """(실패) 여러 품목이 부족하면 모두 보고하고, 전표는 pending, 재고는 그대로"""
    m1 = await material_factory("MAT-001", 2, name="Capacete")
    m2 = await material_factory("MAT-002", 1, name="Bota")
    m3 = await material_factory("MAT-003", 50, name="Luva")
    ids = [m1.id, m2.id, m3.id]
    document = await document_factory(DocumentType.WITHDRAWAL, [(ids[0], 3), (ids[1], 4), (ids[2], 5)])
    document_id = document.id

    with pytest.raises(InsufficientStockError) as exc_info:
        await DocumentService(db_session).approve(document_id, APPROVER)

    error = exc_info.value
    assert error.status_code == 409
    assert {s["material_id"] for s in error.shortfalls} == {ids[0], ids[1]}
    assert "Capacete: Insufficient stock. Available: 2, Requested: 3" in error.message
    assert "Bota: Insufficient stock. Available: 1, Requested: 4" in error.message

    reloaded = await rom_crud.movement_document.get_with_items(db_session, document_id)
    assert reloaded.status == DocumentStatus.PENDING
    assert [await _stock(db_session, mid) for mid in ids] == [2, 1, 50]
    assert await inv_crud.ledger_entry.count_for_document(db_session, document_id=document_id) == 0


@pytest.mark.asyncio
async def test_approve_twice_is_rejected(db_session: AsyncSession, material_factory, document_factory):
    """(실패) 이미 승인된 전표를 다시 승인하면 InvalidTransitionError, 원장 추가 없음"""
    material = await material_factory("MAT-001", 10)
    material_id = material.id
    document = await document_factory(DocumentType.WITHDRAWAL, [(material_id, 4)])
    document_id = document.id
    await approve_document(db_session, document_id, APPROVER)

    with pytest.raises(InvalidTransitionError) as exc_info:
        await approve_document(db_session, document_id, APPROVER)

    assert exc_info.value.status_code == 409
    assert await _stock(db_session, material_id) == 6
    assert await inv_crud.ledger_entry.count_for_document(db_session, document_id=document_id) == 1


@pytest.mark.asyncio
async def test_approve_rolls_back_on_ledger_failure(
    db_session: AsyncSession, material_factory, document_factory, monkeypatch
):
    """(실패) 두 번째 품목의 원장 기록이 실패하면 전표는 pending, 모든 재고는 원래대로"""
    m1 = await material_factory("MAT-001", 10)
    m2 = await material_factory("MAT-002", 10)
    m1_id, m2_id = m1.id, m2.id
    document = await document_factory(DocumentType.WITHDRAWAL, [(m1_id, 3), (m2_id, 3)])
    document_id = document.id

    original_append = inv_crud.LedgerEntryCRUD.append
    calls = {"n": 0}

    async def flaky_append(db, *, entry):
        calls["n"] += 1
        if calls["n"] == 2:
            raise SQLAlchemyError("connection lost")
        return await original_append(inv_crud.ledger_entry, db, entry=entry)

    monkeypatch.setattr(inv_crud.ledger_entry, "append", flaky_append)
    with pytest.raises(PersistenceFailureError):
        await DocumentService(db_session).approve(document_id, APPROVER)
    monkeypatch.undo()

    reloaded = await rom_crud.movement_document.get_with_items(db_session, document_id)
    assert reloaded.status == DocumentStatus.PENDING
    assert reloaded.approved_by is None
    assert await _stock(db_session, m1_id) == 10
    assert await _stock(db_session, m2_id) == 10

    # 원인이 해소되면 같은 전표를 다시 승인할 수 있습니다.
    approved = await DocumentService(db_session).approve(document_id, APPROVER)
    assert approved.status == DocumentStatus.APPROVED
    assert await _stock(db_session, m1_id) == 7


@pytest.mark.asyncio
async def test_approve_missing_document(db_session: AsyncSession):
    """(실패) 존재하지 않는 전표 승인/취소 시 DocumentNotFoundError"""
    with pytest.raises(DocumentNotFoundError):
        await DocumentService(db_session).approve(999, APPROVER)
    with pytest.raises(DocumentNotFoundError):
        await DocumentService(db_session).cancel(999, APPROVER)


@pytest.mark.asyncio
async def test_cancel_pending_document(db_session: AsyncSession, material_factory, document_factory):
    """(성공) pending 전표 취소: 상태만 바뀌고 재고/원장은 그대로, 이후 전이는 거부"""
    material = await material_factory("MAT-001", 10)
    material_id = material.id
    document = await document_factory(DocumentType.WITHDRAWAL, [(material_id, 4)])
    document_id = document.id

    canceled = await cancel_document(db_session, document_id, APPROVER)

    assert canceled.status == DocumentStatus.CANCELED
    assert canceled.canceled_by == APPROVER
    assert canceled.canceled_at is not None
    assert await _stock(db_session, material_id) == 10
    assert await inv_crud.ledger_entry.count_for_document(db_session, document_id=document_id) == 0

    with pytest.raises(InvalidTransitionError):
        await cancel_document(db_session, document_id, APPROVER)
    with pytest.raises(InvalidTransitionError):
        await approve_document(db_session, document_id, APPROVER)


@pytest.mark.asyncio
async def test_cancel_approved_document_is_rejected(db_session: AsyncSession, material_factory, document_factory):
    """(실패) 승인된 전표는 취소할 수 없음"""
    material = await material_factory("MAT-001", 10)
    document = await document_factory(DocumentType.WITHDRAWAL, [(material.id, 4)])
    document_id = document.id
    await approve_document(db_session, document_id, APPROVER)

    with pytest.raises(InvalidTransitionError):
        await cancel_document(db_session, document_id, APPROVER)


@pytest.mark.asyncio
async def test_approve_transfer_adds_stock_and_reassigns(
    db_session: AsyncSession, material_factory, document_factory, cost_center_b
):
    """(성공) 이관 승인: 단일 입고 기록과 도착 원가 센터 재지정"""
    cost_center_b_id = cost_center_b.id
    material = await material_factory("MAT-001", 5)
    material_id = material.id
    document = await document_factory(DocumentType.TRANSFER, [(material_id, 2)])

    approved = await approve_document(db_session, document.id, APPROVER)

    assert await _stock(db_session, material_id) == 7
    entries = await inv_crud.ledger_entry.get_history(db_session, document_id=approved.id)
    assert len(entries) == 1
    assert entries[0].reason == inv_models.LedgerReason.TRANSFER
    assert entries[0].direction == inv_models.LedgerDirection.IN

    db_material = await inv_crud.material.get(db_session, material_id)
    await db_session.refresh(db_material)
    assert db_material.cost_center_id == cost_center_b_id


@pytest.mark.asyncio
async def test_approve_return_without_origin(db_session: AsyncSession, material_factory, document_factory):
    """(성공) 원본 출고가 없는 반납 전표도 재고를 더함"""
    material = await material_factory("MAT-001", 1)
    material_id = material.id
    document = await document_factory(DocumentType.RETURN, [(material_id, 3)])

    approved = await approve_document(db_session, document.id, APPROVER)

    assert approved.status == DocumentStatus.APPROVED
    assert await _stock(db_session, material_id) == 4


# =================================================================================
# 3. 반납 현황 및 반납 전표 제약 테스트
# =================================================================================
@pytest.mark.asyncio
async def test_return_status_partial_then_full(db_session: AsyncSession, material_factory, document_factory):
    """(성공) 10 출고 후 4+4 반납은 80% partially_returned, 추가 2 반납은 100% fully_returned"""
    material_id, withdrawal_id = await _approved_withdrawal(db_session, material_factory, document_factory)
    assert await _stock(db_session, material_id) == 0

    status = await get_return_status(db_session, withdrawal_id)
    assert status.status == rom_schemas.ReturnState.NOT_RETURNED
    assert status.percentage_returned == 0

    await _approved_return(db_session, document_factory, material_id, withdrawal_id, 4)
    await _approved_return(db_session, document_factory, material_id, withdrawal_id, 4)

    status = await get_return_status(db_session, withdrawal_id)
    assert status.returned_quantity == 8
    assert status.original_quantity == 10
    assert status.percentage_returned == 80
    assert status.status == rom_schemas.ReturnState.PARTIALLY_RETURNED
    assert status.items[0].material_name == "자재 MAT-001"

    await _approved_return(db_session, document_factory, material_id, withdrawal_id, 2)

    status = await get_return_status(db_session, withdrawal_id)
    assert status.returned_quantity == 10
    assert status.percentage_returned == 100
    assert status.status == rom_schemas.ReturnState.FULLY_RETURNED
    assert await _stock(db_session, material_id) == 10


@pytest.mark.asyncio
async def test_return_status_requires_approved_withdrawal(
    db_session: AsyncSession, material_factory, document_factory
):
    """(실패) 없는 전표는 404, 승인되지 않았거나 출고가 아닌 전표는 400"""
    material = await material_factory("MAT-001", 10)
    pending = await document_factory(DocumentType.WITHDRAWAL, [(material.id, 1)])
    transfer = await document_factory(DocumentType.TRANSFER, [(material.id, 1)])
    pending_id, transfer_id = pending.id, transfer.id

    service = ReturnService(db_session)
    with pytest.raises(DocumentNotFoundError):
        await service.compute_return_status(999)
    with pytest.raises(InvalidRequestError):
        await service.compute_return_status(pending_id)
    with pytest.raises(InvalidRequestError):
        await service.compute_return_status(transfer_id)


@pytest.mark.asyncio
async def test_create_return_fills_original_quantity(db_session: AsyncSession, material_factory, document_factory):
    """(성공) 출고를 참조하는 반납 전표는 품목별 원 출고 수량을 기록"""
    material_id, withdrawal_id = await _approved_withdrawal(db_session, material_factory, document_factory)

    return_doc = await document_factory(DocumentType.RETURN, [(material_id, 3)], origin_document_id=withdrawal_id)

    assert return_doc.origin_document_id == withdrawal_id
    assert return_doc.items[0].original_quantity == 10


@pytest.mark.asyncio
async def test_create_return_guards(db_session: AsyncSession, material_factory, document_factory):
    """(실패) 반납 전표 작성 제약: 원본 유형/상태, 대기 중 반납, 출고에 없는 자재, 없는 원본"""
    material_id, withdrawal_id = await _approved_withdrawal(db_session, material_factory, document_factory)
    other = await material_factory("MAT-002", 5)
    other_id = other.id
    pending_withdrawal = await document_factory(DocumentType.WITHDRAWAL, [(material_id, 1)])
    pending_withdrawal_id = pending_withdrawal.id

    with pytest.raises(InvalidRequestError):
        await document_factory(DocumentType.WITHDRAWAL, [(material_id, 1)], origin_document_id=withdrawal_id)
    with pytest.raises(InvalidRequestError):
        await document_factory(DocumentType.RETURN, [(material_id, 1)], origin_document_id=pending_withdrawal_id)
    with pytest.raises(InvalidRequestError):
        await document_factory(DocumentType.RETURN, [(other_id, 1)], origin_document_id=withdrawal_id)
    with pytest.raises(DocumentNotFoundError):
        await document_factory(DocumentType.RETURN, [(material_id, 1)], origin_document_id=999)

    await document_factory(DocumentType.RETURN, [(material_id, 2)], origin_document_id=withdrawal_id)
    with pytest.raises(InvalidRequestError):
        await document_factory(DocumentType.RETURN, [(material_id, 2)], origin_document_id=withdrawal_id)


@pytest.mark.asyncio
async def test_create_return_for_fully_returned_withdrawal(
    db_session: AsyncSession, material_factory, document_factory
):
    """(실패) 전량 반납된 출고에 대한 반납 전표 작성은 AlreadyFinalizedError"""
    material_id, withdrawal_id = await _approved_withdrawal(db_session, material_factory, document_factory)
    await _approved_return(db_session, document_factory, material_id, withdrawal_id, 10)

    with pytest.raises(AlreadyFinalizedError) as exc_info:
        await document_factory(DocumentType.RETURN, [(material_id, 1)], origin_document_id=withdrawal_id)
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_approve_return_after_origin_fully_returned(
    db_session: AsyncSession, material_factory, document_factory, cost_center_a, cost_center_b
):
    """(실패) 작성 후 원본 출고가 전량 반납되었다면 남은 반납 전표 승인은 AlreadyFinalizedError"""
    a_id, b_id = cost_center_a.id, cost_center_b.id
    material_id, withdrawal_id = await _approved_withdrawal(db_session, material_factory, document_factory)
    first = await document_factory(DocumentType.RETURN, [(material_id, 10)], origin_document_id=withdrawal_id)
    first_id = first.id

    # 작성 단계의 '대기 중 반납' 제약을 거치지 않고 두 번째 반납 전표를 직접 추가합니다.
    late = rom_models.MovementDocument(
        number="RDV-AL-OBRA-7-0099",
        doc_type=DocumentType.RETURN,
        status=DocumentStatus.PENDING,
        origin_document_id=withdrawal_id,
        origin_cost_center_id=b_id,
        destination_cost_center_id=a_id,
        created_by=TEST_ACTOR,
    )
    await rom_crud.movement_document.add_with_items(
        db_session, document=late, items=[rom_models.MovementLineItem(material_id=material_id, quantity=5)]
    )
    late_id = late.id
    await db_session.commit()

    await approve_document(db_session, first_id, APPROVER)
    with pytest.raises(AlreadyFinalizedError):
        await approve_document(db_session, late_id, APPROVER)

    reloaded = await rom_crud.movement_document.get_with_items(db_session, late_id)
    assert reloaded.status == DocumentStatus.PENDING
    assert await _stock(db_session, material_id) == 10


@pytest.mark.asyncio
async def test_create_return_exceeding_outstanding(db_session: AsyncSession, material_factory, document_factory):
    """(실패) 미반납 수량(원 출고 - 승인된 반납)을 넘는 반납 전표 작성은 InvalidRequestError"""
    material_id, withdrawal_id = await _approved_withdrawal(db_session, material_factory, document_factory)
    assert await _stock(db_session, material_id) == 0

    with pytest.raises(InvalidRequestError):
        await document_factory(DocumentType.RETURN, [(material_id, 50)], origin_document_id=withdrawal_id)
    with pytest.raises(InvalidRequestError):
        await document_factory(DocumentType.RETURN, [(material_id, 6), (material_id, 5)], origin_document_id=withdrawal_id)

    await _approved_return(db_session, document_factory, material_id, withdrawal_id, 6)
    with pytest.raises(InvalidRequestError):
        await document_factory(DocumentType.RETURN, [(material_id, 5)], origin_document_id=withdrawal_id)

    await _approved_return(db_session, document_factory, material_id, withdrawal_id, 4)
    assert await _stock(db_session, material_id) == 10
    status = await get_return_status(db_session, withdrawal_id)
    assert status.returned_quantity == 10
    assert status.status == rom_schemas.ReturnState.FULLY_RETURNED


@pytest.mark.asyncio
async def test_approve_return_exceeding_outstanding(
    db_session: AsyncSession, material_factory, document_factory, cost_center_a, cost_center_b
):
    """(실패) 작성 후 다른 반납이 승인되어 미반납 수량을 넘게 된 반납 전표 승인은 롤백"""
    a_id, b_id = cost_center_a.id, cost_center_b.id
    material_id, withdrawal_id = await _approved_withdrawal(db_session, material_factory, document_factory)
    first = await document_factory(DocumentType.RETURN, [(material_id, 6)], origin_document_id=withdrawal_id)
    first_id = first.id

    # 작성 단계의 '대기 중 반납' 제약을 거치지 않고 두 번째 반납 전표를 직접 추가합니다.
    late = rom_models.MovementDocument(
        number="RDV-AL-OBRA-7-0099",
        doc_type=DocumentType.RETURN,
        status=DocumentStatus.PENDING,
        origin_document_id=withdrawal_id,
        origin_cost_center_id=b_id,
        destination_cost_center_id=a_id,
        created_by=TEST_ACTOR,
    )
    await rom_crud.movement_document.add_with_items(
        db_session, document=late, items=[rom_models.MovementLineItem(material_id=material_id, quantity=5)]
    )
    late_id = late.id
    await db_session.commit()

    await approve_document(db_session, first_id, APPROVER)
    assert await _stock(db_session, material_id) == 6

    with pytest.raises(InvalidRequestError):
        await approve_document(db_session, late_id, APPROVER)

    reloaded = await rom_crud.movement_document.get_with_items(db_session, late_id)
    assert reloaded.status == DocumentStatus.PENDING
    assert await _stock(db_session, material_id) == 6
    status = await get_return_status(db_session, withdrawal_id)
    assert status.returned_quantity == 6


@pytest.mark.asyncio
async def test_approve_return_already_in_ledger(db_session: AsyncSession, material_factory, document_factory):
    """(실패) 이미 원장에 반영된 반납 전표는 다시 반영하지 않음"""
    material = await material_factory("MAT-001", 0)
    material_id = material.id
    return_doc = await document_factory(DocumentType.RETURN, [(material_id, 3)])
    return_id = return_doc.id
    await MovementApplier(db_session).apply_all(
        [StockDelta(material_id=material_id, quantity=3, reason=inv_models.LedgerReason.RETURN, document_id=return_id)],
        TEST_ACTOR,
    )

    with pytest.raises(AlreadyFinalizedError):
        await approve_document(db_session, return_id, APPROVER)
    assert await _stock(db_session, material_id) == 3


@pytest.mark.asyncio
async def test_returnable_withdrawals(db_session: AsyncSession, material_factory, document_factory):
    """(성공) 반납 가능 목록: 대기 중 반납이 있거나 전량 반납된 출고는 제외"""
    material = await material_factory("MAT-001", 30)
    material_id = material.id
    ids = []
    for _ in range(3):
        withdrawal = await document_factory(DocumentType.WITHDRAWAL, [(material_id, 5)])
        ids.append(withdrawal.id)
        await approve_document(db_session, withdrawal.id, APPROVER)
    open_id, pending_return_id, full_id = ids
    await document_factory(DocumentType.WITHDRAWAL, [(material_id, 1)])  # 미승인 출고

    await document_factory(DocumentType.RETURN, [(material_id, 1)], origin_document_id=pending_return_id)
    await _approved_return(db_session, document_factory, material_id, full_id, 5)
    await _approved_return(db_session, document_factory, material_id, open_id, 2)

    returnable = await ReturnService(db_session).list_returnable_withdrawals()

    assert [r.document.id for r in returnable] == [open_id]
    assert returnable[0].return_status.status == rom_schemas.ReturnState.PARTIALLY_RETURNED
    assert returnable[0].return_status.returned_quantity == 2


# =================================================================================
# 4. 반납 현황 집계 함수 (순수 함수) 테스트
# =================================================================================
def _doc(doc_id, status, items, doc_type=DocumentType.RETURN):
    return SimpleNamespace(
        id=doc_id,
        doc_type=doc_type,
        status=status,
        items=[SimpleNamespace(material_id=mid, quantity=qty) for mid, qty in items],
    )


def test_aggregate_return_status_rules():
    """(성공) 승인된 반납만, 출고에 있는 자재만 집계하고 반납률은 100 을 넘지 않음"""
    withdrawal = _doc(1, DocumentStatus.APPROVED, [(10, 6), (20, 4), (10, 2)], DocumentType.WITHDRAWAL)
    returns = [
        _doc(2, DocumentStatus.APPROVED, [(10, 3)]),
        _doc(3, DocumentStatus.PENDING, [(20, 4)]),
        _doc(4, DocumentStatus.CANCELED, [(20, 4)]),
        _doc(5, DocumentStatus.APPROVED, [(99, 7), (20, 9)]),
    ]

    status = aggregate_return_status(withdrawal, returns, {10: "Cabo", 20: "Fita"})

    items = {item.material_id: item for item in status.items}
    assert set(items) == {10, 20}
    assert items[10].original_quantity == 8
    assert items[10].returned_quantity == 3
    assert items[10].material_name == "Cabo"
    assert items[20].returned_quantity == 9
    assert items[20].percentage == 100
    assert status.original_quantity == 12
    assert status.returned_quantity == sum(item.returned_quantity for item in status.items)
    assert status.percentage_returned == 100
    assert status.status == rom_schemas.ReturnState.FULLY_RETURNED


def test_aggregate_return_status_is_idempotent():
    """(성공) 같은 입력이면 몇 번을 계산해도 같은 결과"""
    withdrawal = _doc(1, DocumentStatus.APPROVED, [(10, 10)], DocumentType.WITHDRAWAL)
    returns = [_doc(2, DocumentStatus.APPROVED, [(10, 4)]), _doc(3, DocumentStatus.APPROVED, [(10, 4)])]

    first = aggregate_return_status(withdrawal, returns)
    second = aggregate_return_status(withdrawal, returns)

    assert first == second
    assert first.status == rom_schemas.ReturnState.PARTIALLY_RETURNED
    assert first.percentage_returned == 80


def test_aggregate_return_status_without_returns():
    """(성공) 승인된 반납이 없으면 not_returned"""
    withdrawal = _doc(1, DocumentStatus.APPROVED, [(10, 10)], DocumentType.WITHDRAWAL)

    status = aggregate_return_status(withdrawal, [_doc(2, DocumentStatus.PENDING, [(10, 10)])])

    assert status.status == rom_schemas.ReturnState.NOT_RETURNED
    assert status.returned_quantity == 0
    assert status.percentage_returned == 0


# =================================================================================
# 5. 동시 승인 테스트
# =================================================================================
async def _approve_in_own_session(session_factory, document_id):
    async with session_factory() as session:
        return await DocumentService(session).approve(document_id, APPROVER)


@pytest.mark.asyncio
async def test_concurrent_approvals_never_oversell(
    db_session: AsyncSession, session_factory, material_factory, document_factory
):
    """(성공) 합계가 재고를 넘는 두 출고를 동시에 승인하면 하나만 성공하고 재고는 음수가 되지 않음"""
    material = await material_factory("MAT-001", 10)
    material_id = material.id
    first = await document_factory(DocumentType.WITHDRAWAL, [(material_id, 6)])
    second = await document_factory(DocumentType.WITHDRAWAL, [(material_id, 6)])
    document_ids = [first.id, second.id]

    results = await asyncio.gather(
        *(_approve_in_own_session(session_factory, document_id) for document_id in document_ids),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, BaseException)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], (InsufficientStockError, StockConflictError))

    assert await _stock(db_session, material_id) == 4
    chain = await inv_crud.ledger_entry.get_chain(db_session, material_id=material_id)
    assert [entry.quantity_after for entry in chain] == [10, 4]

    statuses = {
        document_id: (await rom_crud.movement_document.get_with_items(db_session, document_id)).status
        for document_id in document_ids
    }
    assert sorted(statuses.values()) == sorted([DocumentStatus.APPROVED, DocumentStatus.PENDING])


# =================================================================================
# 6. API 엔드포인트 테스트
# =================================================================================
def _document_payload(doc_type, origin_cc, destination_cc, items, **extra):
    payload = {
        "doc_type": doc_type,
        "origin_cost_center_id": origin_cc,
        "destination_cost_center_id": destination_cc,
        "items": [{"material_id": mid, "quantity": qty} for mid, qty in items],
    }
    payload.update(extra)
    return payload


@pytest.mark.asyncio
async def test_document_api_flow(client: AsyncClient, material_factory, cost_center_a, cost_center_b):
    """(성공) 출고 작성/승인 후 반납 작성/승인, 반납 현황 조회"""
    a_id, b_id = cost_center_a.id, cost_center_b.id
    material = await material_factory("MAT-001", 10)
    material_id = material.id

    created = await client.post(
        "/api/v1/rom/documents",
        json=_document_payload("withdrawal", a_id, b_id, [(material_id, 4)], employee_id="E-100"),
    )
    assert created.status_code == 201
    withdrawal = created.json()
    assert withdrawal["number"] == "ROM-AL-OBRA-7-0001"
    assert withdrawal["status"] == "pending"
    assert withdrawal["created_by"] == TEST_ACTOR

    approved = await client.post(f"/api/v1/rom/documents/{withdrawal['id']}/approve")
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["approved_by"] == TEST_ACTOR

    stock = await client.get(f"/api/v1/inv/materials/{material_id}")
    assert stock.json()["quantity"] == 6

    again = await client.post(f"/api/v1/rom/documents/{withdrawal['id']}/approve")
    assert again.status_code == 409

    return_created = await client.post(
        "/api/v1/rom/documents",
        json=_document_payload(
            "return", b_id, a_id, [(material_id, 1)], origin_document_id=withdrawal["id"], responsible_name="Ana"
        ),
    )
    assert return_created.status_code == 201
    assert return_created.json()["number"] == "RDV-AL-OBRA-7-0001"
    assert return_created.json()["items"][0]["original_quantity"] == 4

    await client.post(f"/api/v1/rom/documents/{return_created.json()['id']}/approve")

    status = await client.get(f"/api/v1/rom/documents/{withdrawal['id']}/return_status")
    assert status.status_code == 200
    assert status.json()["status"] == "partially_returned"
    assert status.json()["percentage_returned"] == 25

    returnable = await client.get("/api/v1/rom/returnable_withdrawals")
    assert [r["document"]["id"] for r in returnable.json()] == [withdrawal["id"]]

    ledger = await client.get("/api/v1/inv/ledger_entries", params={"document_id": withdrawal["id"]})
    assert [e["quantity_delta"] for e in ledger.json()] == [-4]


@pytest.mark.asyncio
async def test_document_api_insufficient_stock(client: AsyncClient, material_factory, cost_center_a, cost_center_b):
    """(실패) 재고 부족 승인은 409 와 부족 품목 메시지, 전표는 pending 유지"""
    material = await material_factory("MAT-001", 3, name="Cabo")
    created = await client.post(
        "/api/v1/rom/documents",
        json=_document_payload("withdrawal", cost_center_a.id, cost_center_b.id, [(material.id, 5)]),
    )
    document_id = created.json()["id"]

    response = await client.post(f"/api/v1/rom/documents/{document_id}/approve")
    assert response.status_code == 409
    assert "Cabo: Insufficient stock. Available: 3, Requested: 5" in response.json()["detail"]

    document = await client.get(f"/api/v1/rom/documents/{document_id}")
    assert document.json()["status"] == "pending"


@pytest.mark.asyncio
async def test_document_api_cancel_and_filter(client: AsyncClient, material_factory, cost_center_a, cost_center_b):
    """(성공) 취소 후 상태 필터로 조회"""
    material = await material_factory("MAT-001", 3)
    payload = _document_payload("transfer", cost_center_a.id, cost_center_b.id, [(material.id, 1)])
    first = (await client.post("/api/v1/rom/documents", json=payload)).json()
    second = (await client.post("/api/v1/rom/documents", json=payload)).json()

    canceled = await client.post(f"/api/v1/rom/documents/{first['id']}/cancel")
    assert canceled.status_code == 200
    assert canceled.json()["status"] == "canceled"

    pending = await client.get("/api/v1/rom/documents", params={"status": "pending"})
    assert [d["id"] for d in pending.json()] == [second["id"]]

    transfers = await client.get("/api/v1/rom/documents", params={"doc_type": "transfer"})
    assert [d["id"] for d in transfers.json()] == [second["id"], first["id"]]


@pytest.mark.asyncio
async def test_document_api_validation_errors(client: AsyncClient, material_factory, cost_center_a, cost_center_b):
    """(실패) 책임자 중복 지정/빈 품목/0 수량은 422, 없는 자재는 404"""
    material = await material_factory("MAT-001", 3)
    a_id, b_id = cost_center_a.id, cost_center_b.id

    both = await client.post(
        "/api/v1/rom/documents",
        json=_document_payload(
            "withdrawal", a_id, b_id, [(material.id, 1)], employee_id="E-1", responsible_name="Ana"
        ),
    )
    assert both.status_code == 422

    empty = await client.post("/api/v1/rom/documents", json=_document_payload("withdrawal", a_id, b_id, []))
    assert empty.status_code == 422

    zero = await client.post("/api/v1/rom/documents", json=_document_payload("withdrawal", a_id, b_id, [(material.id, 0)]))
    assert zero.status_code == 422

    missing = await client.post("/api/v1/rom/documents", json=_document_payload("withdrawal", a_id, b_id, [(999, 1)]))
    assert missing.status_code == 404


def test_document_create_rejects_both_responsible_fields():
    """(실패) employee_id 와 responsible_name 은 동시에 지정할 수 없음"""
    with pytest.raises(ValidationError):
        rom_schemas.DocumentCreate(
            doc_type=DocumentType.WITHDRAWAL,
            employee_id="E-1",
            responsible_name="Ana",
            items=[rom_schemas.LineItemCreate(material_id=1, quantity=1)],
        )


@pytest.mark.asyncio
async def test_document_api_not_found(client: AsyncClient):
    """(실패) 없는 전표 조회/승인/반납 현황은 404"""
    assert (await client.get("/api/v1/rom/documents/999")).status_code == 404
    assert (await client.post("/api/v1/rom/documents/999/approve")).status_code == 404
    assert (await client.get("/api/v1/rom/documents/999/return_status")).status_code == 404


@pytest.mark.asyncio
async def test_document_api_requires_actor(client: AsyncClient, material_factory, cost_center_a, cost_center_b):
    """(실패) X-Actor-Id 없이 전표를 승인하면 401"""
    material = await material_factory("MAT-001", 3)
    created = await client.post(
        "/api/v1/rom/documents",
        json=_document_payload("withdrawal", cost_center_a.id, cost_center_b.id, [(material.id, 1)]),
    )

    response = await client.post(
        f"/api/v1/rom/documents/{created.json()['id']}/approve", headers={"X-Actor-Id": ""}
    )
    assert response.status_code == 401
