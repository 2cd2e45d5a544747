# tests/__init__.py

"""
FastAPI 애플리케이션의 테스트 스위트 패키지입니다.

테스트 코드는 `pytest` (+ pytest-asyncio, httpx AsyncClient) 를 기반으로 작성되며,
각 비즈니스 도메인에 따라 하위 디렉토리로 구조화됩니다.

- `domains/`: 'inv'(재고 원장), 'rom'(자재 이동 전표) 도메인 테스트.
- `conftest.py`: 테스트 DB, 세션, API 클라이언트, 도메인 데이터 픽스처.
"""

__title__ = "Romaneio Ledger API Tests"
__description__ = "Test suite for the romaneio ledger FastAPI application."
__version__ = "0.1.0"
__all__ = []
