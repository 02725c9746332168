from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

from .config import PromoteConfig
from .errors import ApprovalRequired
from .logging_utils import get_logger
from .resolver import ALL_STAGES, CommitContext, Resolution, Stage, StageEligibility, resolve
from . import (
    build_tool,
    gcp_artifact_registry,
    gcp_cloud_run,
    traffic,
)


logger = get_logger(__name__)

# 스테이지별 Spring profile
SPRING_PROFILES: Dict[str, str] = {
    Stage.DEV.value: "dev",
    Stage.STAGING.value: "staging",
    Stage.PROD.value: "prod",
}


def resolve_all(
    cfg: PromoteConfig,
    context: CommitContext,
    *,
    staging_succeeded: bool = True,
) -> List[Resolution]:
    return [
        resolve(context, name, cfg.registry_base, staging_succeeded=staging_succeeded)
        for name in ALL_STAGES
    ]


def plan_all(cfg: PromoteConfig, context: CommitContext, *, staging_succeeded: bool = True) -> str:
    """
    커밋 정보 기준으로 각 스테이지가 어떤 버전/이미지로 실행(또는 스킵)되는지
    요약 텍스트를 리턴한다. 실제 GCP 호출은 하지 않는다.
    """
    resolutions = resolve_all(cfg, context, staging_succeeded=staging_succeeded)

    lines: List[str] = []
    lines.append("# Deploy plan")
    lines.append(f"- project: {cfg.gcp_project_id}")
    lines.append(f"- region: {cfg.gcp_region}")
    lines.append("")

    lines.append("## Commit")
    lines.append(f"- branch: {context.branch or '(none)'}")
    lines.append(f"- sha: {context.commit_short_sha or '(none)'}")
    lines.append(f"- tag: {context.tag or '(none)'}")
    lines.append(f"- version: {resolutions[0].version_tag}")
    lines.append(f"- image: {resolutions[0].image_reference}")
    lines.append("")

    lines.append("## Stages")
    for r in resolutions:
        lines.append(f"- {r.stage}: {r.eligibility.value.upper()} (service={cfg.service_for(r.stage)})")

    steps = traffic.parse_traffic_steps(cfg.canary_traffic_steps)
    lines.append("")
    lines.append("## Prod traffic")
    if steps:
        lines.append(f"- canary steps: {', '.join(f'{s}%' for s in steps)}")
    else:
        lines.append("- canary steps: (none, 100% 즉시 전환)")

    return "\n".join(lines)


def _deploy_steps(
    cfg: PromoteConfig,
    resolution: Resolution,
    state: Dict[str, str],
) -> List[Tuple[str, Callable[[], None]]]:
    stage = Stage.parse(resolution.stage)
    service = cfg.service_for(stage)
    env_vars = {
        "APP_VERSION": resolution.version_tag,
        "SPRING_PROFILES_ACTIVE": SPRING_PROFILES[stage.value],
    }

    def app_build() -> None:
        build_tool.build_application(cfg, resolution.version_tag)

    def repository() -> None:
        gcp_artifact_registry.ensure_repository(cfg)

    def image() -> None:
        gcp_artifact_registry.build_and_push_image(cfg, resolution.image_reference, resolution.version_tag)

    def to_latest() -> None:
        gcp_cloud_run.route_to_latest(cfg, service)
        state["traffic"] = "100%"

    if stage is not Stage.PROD:
        def deploy() -> None:
            state["revision"] = gcp_cloud_run.deploy_revision(
                cfg, service, resolution.image_reference, env_vars=env_vars
            )

        return [
            ("app-build", app_build),
            ("repository", repository),
            ("image", image),
            ("deploy", deploy),
            ("traffic", to_latest),
        ]

    # prod 는 staging 에서 푸시한 같은 이미지를 그대로 배포한다. (재빌드 없음)
    steps = traffic.parse_traffic_steps(cfg.canary_traffic_steps)
    first = traffic.first_step(steps)

    def deploy_prod() -> None:
        canary_deploy = first < 100
        # 새 서비스 생성에는 --no-traffic 을 쓸 수 없으므로 첫 릴리스는 바로 100% 로 배포한다.
        if canary_deploy and not gcp_cloud_run.service_exists(cfg, service):
            logger.info("첫 prod 배포이므로 카나리 없이 100%% 로 배포합니다: %s", service)
            canary_deploy = False
        state["revision"] = gcp_cloud_run.deploy_revision(
            cfg, service, resolution.image_reference, env_vars=env_vars, no_traffic=canary_deploy
        )
        state["canary"] = "yes" if canary_deploy else "no"

    def prod_traffic() -> None:
        if state.get("canary") == "yes":
            gcp_cloud_run.set_traffic(cfg, service, state["revision"], first)
            state["traffic"] = f"{first}%"
        else:
            to_latest()

    return [("deploy", deploy_prod), ("traffic", prod_traffic)]


def apply_stage(
    cfg: PromoteConfig,
    context: CommitContext,
    stage: Stage | str,
    *,
    approved: bool = False,
    staging_succeeded: bool = True,
) -> tuple[str, bool]:
    """
    스테이지 하나를 실제로 실행한다.

    Returns:
        summary: 사람이 읽기 좋은 텍스트 요약
        has_failures: 실행 단계 중 하나라도 실패했는지 여부

    Raises:
        ApprovalRequired: 수동 승인 스테이지를 approved=False 로 실행한 경우
    """
    target = Stage.parse(stage)
    resolution = resolve(context, target, cfg.registry_base, staging_succeeded=staging_succeeded)
    service = cfg.service_for(target)

    logger.info(
        "스테이지 판단: %s -> %s (version=%s)",
        target.value,
        resolution.eligibility.value,
        resolution.version_tag,
    )

    lines: List[str] = []
    lines.append("# Deploy summary")
    lines.append(f"- stage: {target.value}")
    lines.append(f"- eligibility: {resolution.eligibility.value.upper()}")
    lines.append(f"- version: {resolution.version_tag}")
    lines.append(f"- image: {resolution.image_reference}")
    lines.append(f"- service: {service}")

    if not resolution.runnable:
        logger.info("실행 조건을 만족하지 않아 스테이지를 건너뜁니다: %s", target.value)
        lines.append("")
        lines.append("스테이지 실행 조건을 만족하지 않아 건너뛰었습니다.")
        return "\n".join(lines), False

    if resolution.eligibility is StageEligibility.MANUAL_APPROVAL and not approved:
        raise ApprovalRequired(target.value)

    state: Dict[str, str] = {}
    steps = _deploy_steps(cfg, resolution, state)

    executed: List[str] = []
    failed: List[str] = []
    skipped: List[str] = []

    for name, fn in steps:
        if failed:
            skipped.append(name)
            continue

        logger.info("단계 실행: %s", name)
        try:
            fn()
        except Exception:  # noqa: BLE001
            failed.append(name)
            logger.exception("단계 실행 실패: %s", name)
            continue

        executed.append(name)

    lines.append(f"- revision: {state.get('revision', '(none)')}")
    lines.append(f"- traffic: {state.get('traffic', '(unchanged)')}")

    for title, items in (
        ("Executed steps", executed),
        ("Skipped steps", skipped),
        ("Failed steps", failed),
    ):
        lines.append("")
        lines.append(f"## {title}")
        if items:
            for s in items:
                lines.append(f"- {s}")
        else:
            lines.append("- (none)")

    return "\n".join(lines), bool(failed)


def shift_traffic(cfg: PromoteConfig, stage: Stage | str, percent: Optional[int] = None) -> str:
    """
    가장 최신 리비전의 트래픽을 percent 로 (없으면 CANARY_TRAFFIC_STEPS 의 다음 단계로) 올린다.
    """
    service = cfg.service_for(stage)
    revisions = gcp_cloud_run.list_revisions(cfg, service)
    if not revisions:
        raise RuntimeError(f"리비전이 없습니다: service={service}")
    latest = revisions[0]

    if percent is None:
        steps = traffic.parse_traffic_steps(cfg.canary_traffic_steps)
        current = gcp_cloud_run.current_traffic(cfg, service).get(latest, 0)
        percent = traffic.next_step(steps, current)
        if percent is None:
            return f"{service}: {latest} 가 이미 {current}% 트래픽을 받고 있습니다. (다음 단계 없음)"

    gcp_cloud_run.set_traffic(cfg, service, latest, percent)
    return f"{service}: {latest} -> {percent}%"


def rollback_stage(cfg: PromoteConfig, stage: Stage | str, revision: Optional[str] = None) -> str:
    service = cfg.service_for(stage)
    target = gcp_cloud_run.rollback(cfg, service, revision)
    return f"{service}: 트래픽 100% -> {target} (롤백)"
