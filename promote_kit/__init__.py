"""
promote_kit
-----------

GitLab CI → Cloud Run 배포 파이프라인용 CLI 패키지.
커밋 정보(브랜치/SHA/태그)로부터 버전 태그와 이미지 주소, 스테이지 실행 여부를 결정하고
Maven 빌드, 이미지 푸시, Cloud Run 배포/트래픽 전환/롤백을 한 번에 처리하는 것을 목표로 한다.
"""

__all__ = [
    "config",
    "orchestrator",
    "resolver",
]
