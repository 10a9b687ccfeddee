"""
App layer: HTTP API 서버 (FastAPI).

역할:
- 템플릿/엑셀 업로드, 세션 관리
- 검증, 미리보기, 일괄 생성, 다운로드 URL
- ⚠️ 파이프라인 로직 없음 (templates/render/core에 위임)
"""
