# app/domains/rom/crud.py

"""
'rom' 도메인의 CRUD 작업을 위한 함수들을 정의하는 모듈입니다.

전표 상태 변경은 transition_status 의 조건부 UPDATE(WHERE status = :from)로만 수행합니다.
동시에 두 요청이 같은 전표를 승인하려 해도 한 요청만 갱신에 성공합니다.
"""

import logging
from typing import Any, List, Optional

from sqlalchemy import update
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.crud_base import CRUDBase
from app.domains.rom import models as rom_models
from app.domains.rom import schemas as rom_schemas

logger = logging.getLogger(__name__)


class MovementDocumentCRUD(
    CRUDBase[
        rom_models.MovementDocument,
        rom_schemas.DocumentCreate,
        rom_schemas.DocumentCreate,
    ]
):
    """MovementDocument 모델에 특화된 CRUD 작업을 처리합니다."""

    def _with_items(self):
        # 상태는 조건부 UPDATE 로 바뀌므로 세션에 로드된 객체도 항상 DB 값으로 덮어씁니다.
        return (
            select(self.model)
            .options(selectinload(self.model.items))
            .execution_options(populate_existing=True)
        )

    async def get_with_items(
        self, db: AsyncSession, document_id: int
    ) -> rom_models.MovementDocument | None:
        """전표와 품목을 함께 조회합니다."""
        query = self._with_items().where(self.model.id == document_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def list_with_items(
        self,
        db: AsyncSession,
        *,
        doc_type: Optional[rom_models.DocumentType] = None,
        status: Optional[rom_models.DocumentStatus] = None,
        origin_document_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[rom_models.MovementDocument]:
        """유형/상태/원본 전표로 필터링한 전표 목록을 최신순으로 조회합니다."""
        query = self._with_items()
        if doc_type is not None:
            query = query.where(self.model.doc_type == doc_type)
        if status is not None:
            query = query.where(self.model.status == status)
        if origin_document_id is not None:
            query = query.where(self.model.origin_document_id == origin_document_id)
        query = query.order_by(self.model.id.desc()).offset(skip).limit(limit)
        result = await db.execute(query)
        return result.scalars().all()

    async def list_return_documents_by_origin(
        self,
        db: AsyncSession,
        *,
        origin_document_id: int,
        status: Optional[rom_models.DocumentStatus] = None,
    ) -> List[rom_models.MovementDocument]:
        """출고 전표를 참조하는 반납 전표 목록 (품목 포함)."""
        query = (
            self._with_items()
            .where(
                self.model.doc_type == rom_models.DocumentType.RETURN,
                self.model.origin_document_id == origin_document_id,
            )
            .order_by(self.model.id)
        )
        if status is not None:
            query = query.where(self.model.status == status)
        result = await db.execute(query)
        return result.scalars().all()

    async def get_numbers_with_stem(self, db: AsyncSession, *, stem: str) -> List[str]:
        """stem 으로 시작하는 기존 전표 번호 목록."""
        query = select(self.model.number).where(self.model.number.startswith(stem, autoescape=True))
        result = await db.execute(query)
        return result.scalars().all()

    async def transition_status(
        self,
        db: AsyncSession,
        *,
        document_id: int,
        from_status: rom_models.DocumentStatus,
        to_status: rom_models.DocumentStatus,
        **values: Any,
    ) -> bool:
        """
        전표 상태가 from_status 일 때만 to_status 로 변경합니다 (커밋하지 않음).
        갱신된 행이 1개이면 True.
        """
        statement = (
            update(self.model)
            .where(self.model.id == document_id, self.model.status == from_status)
            .values(status=to_status, **values)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(statement)
        return result.rowcount == 1

    async def add_with_items(
        self,
        db: AsyncSession,
        *,
        document: rom_models.MovementDocument,
        items: List[rom_models.MovementLineItem],
    ) -> rom_models.MovementDocument:
        """전표와 품목을 추가하고 flush 합니다 (커밋하지 않음)."""
        db.add(document)
        await db.flush()
        for position, item in enumerate(items):
            item.document_id = document.id
            item.position = position
            db.add(item)
        await db.flush()
        return document


movement_document = MovementDocumentCRUD(rom_models.MovementDocument)
