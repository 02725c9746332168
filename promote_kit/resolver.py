"""
resolver
--------

커밋 정보와 대상 스테이지로부터 버전 태그, 이미지 주소, 스테이지 실행 여부를 결정하는 모듈.

외부 호출이나 상태가 없는 순수 함수만 둔다. 같은 입력이면 항상 같은 결과를 돌려준다.

규칙 (순서대로 적용):
1. 태그가 있으면 태그를 그대로 버전으로 쓰고, 없으면 ``{branch}-{sha}`` 를 만든다.
2. deploy-dev 는 main 브랜치이면서 태그가 없을 때만 자동 실행.
3. deploy-staging 은 태그가 있을 때 자동 실행.
4. deploy-prod 는 태그가 있고 staging 이 성공했을 때 수동 승인 후 실행.
5. 그 외 조합은 모두 SKIPPED.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from .errors import InvalidContext


MAIN_BRANCH = "main"


class Stage(str, Enum):
    DEV = "deploy-dev"
    STAGING = "deploy-staging"
    PROD = "deploy-prod"

    @classmethod
    def parse(cls, name: str) -> "Stage":
        try:
            return cls(name.strip())
        except ValueError as e:
            allowed = ", ".join(s.value for s in cls)
            raise ValueError(
                f"알 수 없는 스테이지입니다: {name!r} (허용되는 스테이지: {allowed})"
            ) from e


ALL_STAGES: List[str] = [s.value for s in Stage]


class StageEligibility(str, Enum):
    AUTO = "auto"
    MANUAL_APPROVAL = "manual_approval"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class CommitContext:
    branch: str
    commit_short_sha: str
    tag: Optional[str] = None

    def __post_init__(self) -> None:
        branch = (self.branch or "").strip()
        sha = (self.commit_short_sha or "").strip()
        tag = (self.tag or "").strip() or None

        # frozen dataclass 라 정규화 값은 object.__setattr__ 로 넣는다.
        object.__setattr__(self, "branch", branch)
        object.__setattr__(self, "commit_short_sha", sha)
        object.__setattr__(self, "tag", tag)

        if tag is not None:
            return

        missing: List[str] = []
        if not branch:
            missing.append("branch")
        if not sha:
            missing.append("commit_short_sha")
        if missing:
            raise InvalidContext(missing)

    @property
    def is_tagged(self) -> bool:
        return self.tag is not None


@dataclass(frozen=True)
class Resolution:
    stage: str
    version_tag: str
    image_reference: str
    eligibility: StageEligibility

    @property
    def runnable(self) -> bool:
        return self.eligibility is not StageEligibility.SKIPPED


def version_tag(context: CommitContext) -> str:
    if context.tag is not None:
        return context.tag
    return f"{context.branch}-{context.commit_short_sha}"


def image_reference(registry_base: str, tag: str) -> str:
    base = (registry_base or "").strip()
    if not base:
        raise ValueError("이미지 레지스트리 주소(registry_base)가 비어 있습니다.")
    return f"{base}:{tag}"


def stage_eligibility(
    context: CommitContext,
    stage: Union[Stage, str],
    *,
    staging_succeeded: bool = True,
) -> StageEligibility:
    try:
        target = Stage(stage)
    except ValueError:
        return StageEligibility.SKIPPED

    if target is Stage.DEV:
        if context.branch == MAIN_BRANCH and not context.is_tagged:
            return StageEligibility.AUTO
        return StageEligibility.SKIPPED

    if target is Stage.STAGING:
        return StageEligibility.AUTO if context.is_tagged else StageEligibility.SKIPPED

    if context.is_tagged and staging_succeeded:
        return StageEligibility.MANUAL_APPROVAL
    return StageEligibility.SKIPPED


def resolve(
    context: CommitContext,
    stage: Union[Stage, str],
    registry_base: str,
    *,
    staging_succeeded: bool = True,
) -> Resolution:
    """
    스테이지 하나에 대한 버전/이미지/실행 여부를 계산한다.

    staging_succeeded 는 deploy-prod 판단에만 쓰인다. CI 에서는 prod 잡이
    staging 잡에 needs 로 묶여 있으므로 기본값은 True 로 둔다.
    """
    tag = version_tag(context)
    stage_name = stage.value if isinstance(stage, Stage) else str(stage)
    return Resolution(
        stage=stage_name,
        version_tag=tag,
        image_reference=image_reference(registry_base, tag),
        eligibility=stage_eligibility(
            context, stage, staging_succeeded=staging_succeeded
        ),
    )
