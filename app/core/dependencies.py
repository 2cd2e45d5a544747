# app/core/dependencies.py

"""
FastAPI 애플리케이션의 의존성 주입(Dependency Injection)을 정의하는 모듈입니다.

- 데이터베이스 세션 관리 (get_db_session).
- 요청을 수행하는 사용자 식별자 획득 (get_acting_user_id).
  인증 자체는 이 서비스의 범위 밖이며, 상위 게이트웨이가 검증한 식별자를
  'X-Actor-Id' 헤더로 전달한다고 가정합니다.
"""

from typing import AsyncGenerator, Optional

from fastapi import Header, HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.database import get_session as get_main_app_session

ACTOR_HEADER = "X-Actor-Id"


# --- 데이터베이스 세션 의존성 주입 ---
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI 의존성 주입을 위한 비동기 데이터베이스 세션 제너레이터입니다.
    app.core.database.get_session을 래핑하여 사용합니다.
    """
    async for session in get_main_app_session():
        yield session


# --- 행위자(Actor) 의존성 ---
async def get_acting_user_id(
    x_actor_id: Optional[str] = Header(None, alias=ACTOR_HEADER),
) -> str:
    """
    변경 작업을 수행하는 사용자의 불투명(opaque) 식별자를 반환합니다.
    헤더가 없거나 비어 있으면 401을 반환합니다.
    """
    if x_actor_id is None or not x_actor_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {ACTOR_HEADER} header.",
        )
    return x_actor_id.strip()
