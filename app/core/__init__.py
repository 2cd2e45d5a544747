# app/core/__init__.py

"""
FastAPI 애플리케이션의 핵심 구성 요소 패키지입니다.

이 패키지는 애플리케이션 전반에 걸쳐 사용되는 공통적이고 핵심적인 기능들을 캡슐화합니다.
주요 서브모듈은 다음과 같습니다:

- `config.py`: 애플리케이션의 설정 및 환경 변수 관리 (Pydantic Settings).
- `database.py`: 데이터베이스 연결, 세션 관리 (SQLModel 및 AsyncSQLAlchemy).
- `exceptions.py`: 재고/전표 도메인 전용 예외 계층 (HTTPException 기반).
- `crud_base.py`: 공통 비동기 CRUD 기본 클래스.
- `dependencies.py`: FastAPI의 의존성 주입 시스템에서 사용될 공통 의존성 함수들.
"""

__title__ = "Romaneio Ledger Core"
__description__ = "Core components for the romaneio ledger FastAPI application."
__version__ = "0.1.0"
__all__ = []
