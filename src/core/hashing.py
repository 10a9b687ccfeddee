"""
해시 계산: 템플릿/파일 식별용.

규칙:
- 템플릿의 정체성은 바이트 그 자체 → SHA-256
- run log에 template_hash로 기록 (동일 템플릿 재사용 추적)
"""

import hashlib


def compute_bytes_hash(content: bytes, algorithm: str = "sha256") -> str:
    """
    바이트 해시 계산.

    Args:
        content: 해시할 바이트
        algorithm: 해시 알고리즘 (기본: sha256)

    Returns:
        해시 문자열
    """
    return hashlib.new(algorithm, content).hexdigest()
