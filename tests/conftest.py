# tests/conftest.py

from typing import AsyncGenerator, Awaitable, Callable, List, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

# app.main을 임포트하여 FastAPI 앱 인스턴스에 접근합니다.
from app.main import app as main_app
from app.core import dependencies as deps
from app.core.database import get_session

# --- 모든 모델 임포트 ---
#  SQLModel.metadata.create_all()이 모든 테이블을 인식하려면 모델 클래스가 임포트되어야 합니다.
from app.domains.inv import models as inv_models
from app.domains.inv import schemas as inv_schemas
from app.domains.inv import services as inv_services
from app.domains.rom import models as rom_models  # noqa: F401
from app.domains.rom import schemas as rom_schemas
from app.services.document_service import DocumentService

TEST_ACTOR = "tester@example.com"


# --- 테스트용 데이터베이스 설정 ---
# 테스트마다 임시 디렉토리에 새 SQLite 파일 DB 를 만듭니다.
# 서비스가 스스로 커밋/롤백하므로 외부 트랜잭션 롤백 방식 대신 DB 자체를 분리합니다.
# 파일 DB 이므로 여러 세션(연결)이 같은 데이터를 공유하여 동시성 테스트도 가능합니다.
@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test_ledger.db'}",
        echo=False,
        future=True,
        poolclass=NullPool,     # 각 연결이 독립적으로 사용되고 바로 닫히도록 함
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine: AsyncEngine):
    """테스트용 세션 팩토리 (AsyncSession)."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """서비스/CRUD 를 직접 호출하는 테스트용 비동기 세션."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    X-Actor-Id 헤더가 설정된 AsyncClient 를 생성합니다.
    요청마다 테스트 DB 의 새 세션을 주입합니다.
    """

    async def override_get_session_and_dependency():
        async with session_factory() as session:
            yield session

    original_overrides = main_app.dependency_overrides.copy()

    try:
        main_app.dependency_overrides[get_session] = override_get_session_and_dependency
        main_app.dependency_overrides[deps.get_db_session] = override_get_session_and_dependency

        async with AsyncClient(
            transport=ASGITransport(app=main_app),
            base_url="http://test",
            headers={deps.ACTOR_HEADER: TEST_ACTOR},
        ) as async_client:
            yield async_client

    finally:
        # 클라이언트 픽스처가 끝나면 오버라이드를 반드시 복원해야 합니다.
        main_app.dependency_overrides.clear()
        main_app.dependency_overrides.update(original_overrides)


# --- 도메인 픽스처 ---
@pytest_asyncio.fixture(scope="function")
async def cost_center_a(db_session: AsyncSession) -> inv_models.CostCenter:
    """자재의 기본 귀속 원가 센터(창고)."""
    cost_center = inv_models.CostCenter(code="CC01", description="중앙 창고")
    db_session.add(cost_center)
    await db_session.commit()
    await db_session.refresh(cost_center)
    return cost_center


@pytest_asyncio.fixture(scope="function")
async def cost_center_b(db_session: AsyncSession) -> inv_models.CostCenter:
    """출고/이관 대상 원가 센터(현장)."""
    cost_center = inv_models.CostCenter(code="OBRA-7", description="현장 7")
    db_session.add(cost_center)
    await db_session.commit()
    await db_session.refresh(cost_center)
    return cost_center


@pytest.fixture(scope="function")
def material_factory(
    db_session: AsyncSession, cost_center_a: inv_models.CostCenter
) -> Callable[..., Awaitable[inv_models.Material]]:
    """기초 재고를 원장(initial_balance)으로 반영하여 자재를 생성하는 팩토리."""
    # 롤백 후에는 세션 객체가 만료되므로 ID 를 미리 꺼내 둡니다.
    cost_center_id = cost_center_a.id

    async def _create(code: str, quantity: int, name: Optional[str] = None) -> inv_models.Material:
        return await inv_services.create_material(
            db_session,
            obj_in=inv_schemas.MaterialCreate(
                code=code,
                name=name or f"자재 {code}",
                initial_quantity=quantity,
                cost_center_id=cost_center_id,
            ),
            actor_id=TEST_ACTOR,
        )

    return _create


@pytest.fixture(scope="function")
def document_factory(
    db_session: AsyncSession,
    cost_center_a: inv_models.CostCenter,
    cost_center_b: inv_models.CostCenter,
) -> Callable[..., Awaitable[rom_models.MovementDocument]]:
    """
    pending 전표를 작성하는 팩토리.
    출고/이관은 A -> B, 반납은 B -> A 방향을 기본으로 사용합니다.
    """
    a_id, b_id = cost_center_a.id, cost_center_b.id

    async def _create(
        doc_type: rom_models.DocumentType,
        items: List[Tuple[int, int]],
        origin_document_id: Optional[int] = None,
    ) -> rom_models.MovementDocument:
        if doc_type == rom_models.DocumentType.RETURN:
            origin_cc, destination_cc = b_id, a_id
        else:
            origin_cc, destination_cc = a_id, b_id
        obj_in = rom_schemas.DocumentCreate(
            doc_type=doc_type,
            origin_document_id=origin_document_id,
            origin_cost_center_id=origin_cc,
            destination_cost_center_id=destination_cc,
            responsible_name="Joana Lima",
            items=[rom_schemas.LineItemCreate(material_id=mid, quantity=qty) for mid, qty in items],
        )
        return await DocumentService(db_session).create_document(obj_in, TEST_ACTOR)

    return _create
