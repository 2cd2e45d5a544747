# app/core/config.py

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
import os

# 프로젝트의 루트 디렉토리 경로를 계산합니다.
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class Settings(BaseSettings):
    """
    애플리케이션의 모든 설정을 정의하는 Pydantic BaseSettings 모델입니다.
    환경 변수 및 .env 파일에서 값을 자동으로 로드합니다.
    """

    # --- Pydantic Settings 설정 ---
    model_config = SettingsConfigDict(
        env_file=os.path.join(BASE_DIR, '.env'),  # 프로젝트 루트의 .env 파일을 명시적으로 지정
        env_file_encoding='utf-8',
        extra='ignore',                      # .env 파일에 정의되었지만 모델에 없는 변수는 무시
        case_sensitive=True
    )

    # --- 애플리케이션 기본 설정 ---
    APP_NAME: str = "Romaneio Ledger API"
    APP_VERSION: str = "0.1.0"
    APP_DESCRIPTION: str = "Inventory movement ledger and romaneio approval API"
    APP_ENV: str = Field("development", description="Application environment (e.g., development, production, testing)")
    DEBUG_MODE: bool = Field(False, description="Enable debug mode for detailed logging and SQL echo")
    LOG_LEVEL: str = Field("INFO", description="Root logging level (DEBUG, INFO, WARNING, ...)")

    # --- 데이터베이스 설정 ---
    # 운영: postgresql+asyncpg://..., 로컬/테스트: sqlite+aiosqlite:///./romaneio.db
    DATABASE_URL: SecretStr = Field(
        SecretStr("sqlite+aiosqlite:///./romaneio.db"),
        description="Async SQLAlchemy database connection URL",
    )
    # 개발 환경에서 애플리케이션 시작 시 테이블 자동 생성 여부 (운영은 Alembic 사용)
    AUTO_CREATE_TABLES: bool = Field(False, description="Create tables on startup (development only)")

    # --- 재고 원장 설정 ---
    # 조건부 갱신(compare-and-set)이 동시 갱신으로 실패했을 때 재시도 횟수
    STOCK_UPDATE_MAX_RETRIES: int = Field(3, ge=1, description="Max retries for conditional stock updates")
    # 전표 번호 중복(unique 위반) 시 재발번 횟수
    DOCUMENT_NUMBER_MAX_RETRIES: int = Field(3, ge=1, description="Max retries when a document number collides")
    # 전표 번호의 창고 구분 코드 (ROM-AL-... 의 'AL')
    WAREHOUSE_CODE: str = Field("AL", max_length=10, description="Warehouse segment of document numbers")


settings = Settings()
