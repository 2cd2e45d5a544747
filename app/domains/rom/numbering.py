# app/domains/rom/numbering.py

"""
전표 번호 발번 규칙을 정의하는 모듈입니다.

형식: {접두어}-{창고 코드}-{원가 센터 코드}-{일련번호 4자리}
  - 접두어: 반납 전표는 'RDV', 그 외(출고/이관)는 'ROM'
  - 원가 센터: 반납 전표는 출발(origin) 원가 센터, 그 외는 도착(destination) 원가 센터
  - 일련번호: 같은 접두어 + 원가 센터 조합에서 이미 사용된 최대값 + 1
예) ROM-AL-CC01-0001, RDV-AL-CC01-0003
"""

import re
from typing import Iterable, NamedTuple, Optional

from app.core.config import settings
from app.domains.rom.models import DocumentType

WITHDRAWAL_PREFIX = "ROM"
RETURN_PREFIX = "RDV"
SEQUENCE_WIDTH = 4

DOCUMENT_NUMBER_PATTERN = re.compile(
    r"^(?P<prefix>ROM|RDV)-(?P<warehouse>[^-]+)-(?P<cost_center>.+)-(?P<sequence>\d{4,})$"
)


class ParsedDocumentNumber(NamedTuple):
    prefix: str
    warehouse: str
    cost_center_code: str
    sequence: int


def prefix_for(doc_type: DocumentType) -> str:
    return RETURN_PREFIX if doc_type == DocumentType.RETURN else WITHDRAWAL_PREFIX


def number_stem(doc_type: DocumentType, cost_center_code: str) -> str:
    """일련번호를 제외한 번호 앞부분 (예: 'ROM-AL-CC01-')."""
    return f"{prefix_for(doc_type)}-{settings.WAREHOUSE_CODE}-{cost_center_code}-"


def format_document_number(doc_type: DocumentType, cost_center_code: str, sequence: int) -> str:
    return f"{number_stem(doc_type, cost_center_code)}{sequence:0{SEQUENCE_WIDTH}d}"


def next_sequence(existing_numbers: Iterable[str], stem: str) -> int:
    """같은 stem 으로 시작하는 기존 번호 중 최대 일련번호 + 1 을 반환합니다."""
    highest = 0
    for number in existing_numbers:
        if not number.startswith(stem):
            continue
        suffix = number[len(stem):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest + 1


def parse_document_number(number: str) -> Optional[ParsedDocumentNumber]:
    match = DOCUMENT_NUMBER_PATTERN.match(number or "")
    if match is None:
        return None
    return ParsedDocumentNumber(
        prefix=match.group("prefix"),
        warehouse=match.group("warehouse"),
        cost_center_code=match.group("cost_center"),
        sequence=int(match.group("sequence")),
    )


def is_valid_document_number(number: str) -> bool:
    parsed = parse_document_number(number)
    return parsed is not None and parsed.warehouse == settings.WAREHOUSE_CODE
