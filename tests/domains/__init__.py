# tests/domains/__init__.py

"""
도메인별 테스트 스위트 패키지입니다.

- `test_inv_n.py`: 'inv' 도메인 (원가 센터, 자재, 재고 검증/반영, 원장).
- `test_rom_n.py`: 'rom' 도메인 (전표 작성, 승인 상태 머신, 반납 현황, 동시성).
"""

__title__ = "Romaneio Ledger Domain Tests"
__description__ = "Categorized tests for each business domain."
__version__ = "0.1.0"
__all__ = []
