# app/core/exceptions.py

"""
재고 원장 및 전표(romaneio) 도메인에서 사용하는 예외 계층을 정의하는 모듈입니다.

모든 예외는 FastAPI의 HTTPException을 상속하므로,
서비스/CRUD 계층에서 발생시킨 예외가 라우터에서 별도 변환 없이 그대로 HTTP 응답이 됩니다.
동시에 서비스 계층 호출자(테스트, 스크립트)는 구체적인 예외 타입으로 구분하여 처리할 수 있습니다.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status


class InventoryError(HTTPException):
    """재고/전표 도메인 예외의 기본 클래스입니다."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Inventory operation failed."

    def __init__(self, detail: Optional[Any] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail, headers=headers)

    @property
    def message(self) -> str:
        return self.detail if isinstance(self.detail, str) else str(self.detail)


# =============================================================================
# 1. 조회 실패 (404)
# =============================================================================
class NotFoundError(InventoryError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found."


class MaterialNotFoundError(NotFoundError):
    def __init__(self, material_id: Any):
        self.material_id = material_id
        super().__init__(f"Material {material_id} not found.")


class DocumentNotFoundError(NotFoundError):
    def __init__(self, document_id: Any):
        self.document_id = document_id
        super().__init__(f"Document {document_id} not found.")


class CostCenterNotFoundError(NotFoundError):
    def __init__(self, cost_center_id: Any):
        self.cost_center_id = cost_center_id
        super().__init__(f"Cost center {cost_center_id} not found.")


# =============================================================================
# 2. 호출자 오류 (400)
# =============================================================================
class InvalidRequestError(InventoryError):
    """수량 0 이하, 자격이 없는 원본 전표 등 호출자가 잘못 요청한 경우입니다."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request."


# =============================================================================
# 3. 상태/재고 충돌 (409)
# =============================================================================
class InvalidTransitionError(InventoryError):
    """pending 이 아닌 전표에 대한 승인/취소 시도."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Invalid document status transition."

    def __init__(self, document_id: Any, current_status: Any, target_status: Any):
        self.document_id = document_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Document {document_id} cannot move from '{_value(current_status)}' to '{_value(target_status)}'."
        )


class AlreadyFinalizedError(InventoryError):
    """이미 전량 반납된 출고 전표에 대해 추가 반납을 시도한 경우."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Withdrawal is already fully returned."


class InsufficientStockError(InventoryError):
    """
    재고 부족. 부족한 모든 품목(shortfalls)을 함께 전달합니다.
    shortfalls 항목: {"material_id", "material_name", "requested", "available", "shortfall"}
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Insufficient stock."

    def __init__(self, message: str, shortfalls: Optional[List[Dict[str, Any]]] = None):
        self.shortfalls = shortfalls or []
        super().__init__(message)


class StockConflictError(InventoryError):
    """조건부 재고 갱신이 재시도 한도까지 동시 갱신에 밀린 경우."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Stock was modified concurrently. Please retry."

    def __init__(self, material_id: Any, attempts: int):
        self.material_id = material_id
        self.attempts = attempts
        super().__init__(
            f"Stock of material {material_id} changed concurrently; gave up after {attempts} attempts."
        )


# =============================================================================
# 4. 저장소 오류 (500)
# =============================================================================
class PersistenceFailureError(InventoryError):
    """데이터베이스 쓰기 실패 (SQLAlchemyError 래핑)."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Database write failed."


def _value(enum_or_str: Any) -> Any:
    return getattr(enum_or_str, "value", enum_or_str)
