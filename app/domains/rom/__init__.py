# app/domains/rom/__init__.py

"""
FastAPI 애플리케이션의 'rom' 도메인 패키지입니다.

'rom' 도메인은 자재 이동 전표(romaneio)를 관리합니다.
전표는 출고(withdrawal), 반납(return), 이관(transfer) 세 가지 유형이 있으며,
pending 상태로 생성되어 approved 또는 canceled 로 단 한 번만 전이합니다.
승인 시 재고 검증, 재고 반영(원장 기록), 원가 센터 재지정이 하나의 트랜잭션으로 수행됩니다.

주요 서브모듈:
- `models.py`: 전표/전표 품목 SQLModel 정의.
- `schemas.py`: 요청 및 응답 유효성 검사용 스키마.
- `crud.py`: 전표 조회/생성 및 조건부 상태 전이.
- `numbering.py`: 전표 번호 발번 규칙.
- `routers.py`: API 엔드포인트 정의.

승인 상태 머신과 반납 현황 집계는 `app.services` 패키지에 있습니다.
"""

__title__ = "Romaneio Document Domain"
__description__ = "Manages withdrawal, return and transfer documents and their approval."
__version__ = "0.1.0"
__all__ = []
