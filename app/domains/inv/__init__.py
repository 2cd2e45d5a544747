# app/domains/inv/__init__.py

"""
FastAPI 애플리케이션의 'inv' 도메인 패키지입니다.

'inv' 도메인은 원가 센터(CostCenter), 자재 품목(Material)과 현재 재고 수량,
그리고 재고 변경 1건마다 남는 불변 원장(LedgerEntry)을 관리합니다.
재고 수량은 조건부 갱신(compare-and-set)으로만 변경되며, 모든 변경은 원장에 기록됩니다.

주요 서브모듈:
- `models.py`: 원가 센터/자재/원장 테이블에 매핑되는 SQLModel 정의.
- `schemas.py`: 요청 및 응답 유효성 검사용 Pydantic 모델.
- `crud.py`: 비동기 조회, 조건부 재고 갱신, 원장 추가.
- `services.py`: 재고 검증기(StockValidator)와 재고 반영기(MovementApplier).
- `routers.py`: 'inv' 데이터에 접근하기 위한 FastAPI API 엔드포인트 정의.
"""

# 패키지 메타데이터 (선택 사항)
__title__ = "Romaneio Inventory Ledger Domain"
__description__ = "Manages cost centers, materials, stock quantities and the append-only ledger."
__version__ = "0.1.0"  # inv 도메인 패키지의 버전
__all__ = []  # 'from app.domains.inv import *' 시 내보낼 이름 목록. 일반적으로 비워둡니다.

# 다른 도메인에서는 명시적인 임포트 (예: from app.domains.inv.models import Material)를 사용합니다.
