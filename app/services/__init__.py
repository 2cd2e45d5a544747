# app/services/__init__.py

"""
FastAPI 애플리케이션의 서비스 계층 패키지입니다.

이 패키지는 여러 도메인에 걸쳐 상호 작용하는 비즈니스 로직을 담당합니다.
각 도메인의 `crud.py` 가 데이터베이스와 직접 상호 작용하는 반면,
`services` 계층은 CRUD 작업을 조합하고 비즈니스 규칙을 적용합니다.

- `document_service.py`: 전표 작성과 승인/취소 상태 머신 ('rom' + 'inv').
- `return_service.py`: 출고 전표의 반납 현황 집계 ('rom' + 'inv').
"""

__title__ = "Romaneio Ledger Services"
__description__ = "Cross-domain business logic for the romaneio ledger application."
__version__ = "0.1.0"
__all__ = []
