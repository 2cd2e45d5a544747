# app/__init__.py

"""
자재 입출고 원장(Ledger) 및 로마네이루(Romaneio) 승인 API의 메인 패키지입니다.

이 패키지는 애플리케이션의 핵심 로직과 도메인별 모듈을 포함합니다.
FastAPI 애플리케이션의 진입점 (main.py)과
공통 설정, 데이터베이스 연결, 예외 정의를 담는 core 서브패키지,
그리고 재고 원장(inv)과 이동 전표(rom) 도메인을 담는 domains 서브패키지로 구성됩니다.
"""

APP_NAME = "Romaneio Ledger API"
APP_VERSION = "0.1.0"
API_PREFIX = "/api/v1"  # API 라우트의 공통 접두사 (main.py에서 적용)

# PEP 440 (Version Identification and Dependency Specification)을 따르는 버전 정보
__version__ = APP_VERSION
__title__ = APP_NAME
__description__ = "Inventory movement ledger and romaneio approval API backend."
__author__ = "Your Team Name"
__license__ = "MIT"
__all__ = []  # 'from app import *' 시 내보낼 이름 목록. 일반적으로 비워둡니다.
