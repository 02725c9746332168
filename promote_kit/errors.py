"""
errors
------

파이프라인 실행 중 발생하는 예외 타입.
외부 도구(gcloud/docker/mvn) 실패는 subprocess_utils 에서 RuntimeError 로 그대로 전달된다.
"""

from __future__ import annotations


class PromoteError(RuntimeError):
    """promote_kit 공통 예외."""


class InvalidContext(PromoteError, ValueError):
    """
    커밋 컨텍스트에 필수 값(branch/sha)이 없을 때 발생.
    해당 파이프라인 실행은 즉시 실패로 처리한다.
    """

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "커밋 컨텍스트에 필수 값이 누락되었습니다: " + ", ".join(self.missing)
        )


class ApprovalRequired(PromoteError):
    """수동 승인이 필요한 스테이지를 승인 없이 실행하려 할 때 발생."""

    def __init__(self, stage: str) -> None:
        self.stage = stage
        super().__init__(
            f"{stage} 는 수동 승인이 필요한 스테이지입니다. (--approve 로 명시적으로 실행하세요)"
        )
