"""
gcp_cloud_run
-------------

Cloud Run 서비스 리비전 배포, 트래픽 분할, 롤백을 담당하는 모듈.
"""

from __future__ import annotations

import json
from typing import Dict, List, Optional

from dotenv import dotenv_values

from .config import PromoteConfig
from .logging_utils import get_logger
from .subprocess_utils import run_command


logger = get_logger(__name__)


def _common_flags(cfg: PromoteConfig) -> List[str]:
    return [
        f"--region={cfg.gcp_region}",
        f"--project={cfg.gcp_project_id}",
        "--quiet",
    ]


def _format_env_vars(env_vars: Dict[str, str]) -> str:
    # 값에 쉼표가 들어갈 수 있으므로 gcloud 의 커스텀 구분자 문법(^@^)을 쓴다.
    pairs = [f"{k}={v}" for k, v in sorted(env_vars.items())]
    if any("," in v for v in env_vars.values()):
        return "^@^" + "@".join(pairs)
    return ",".join(pairs)


def _merge_env_vars(cfg: PromoteConfig, env_vars: Optional[Dict[str, str]]) -> Dict[str, str]:
    """
    DEPLOY_ENV_VARS_FILE(.env 형식)과 스테이지 환경변수를 합친다. 같은 키는 스테이지 값이 우선한다.

    gcloud run deploy 는 --env-vars-file 과 --update-env-vars 를 함께 받지 않으므로
    항상 --update-env-vars 하나로 보낸다.
    """
    merged: Dict[str, str] = {}
    if cfg.env_vars_file:
        values = dotenv_values(dotenv_path=cfg.env_vars_file)
        if not values:
            logger.warning("DEPLOY_ENV_VARS_FILE 이 없거나 비어 있습니다: %s", cfg.env_vars_file)
        for k, v in values.items():
            # None 은 dotenv 에서 값이 없는 키를 의미하므로 스킵
            if v is None:
                continue
            merged[k] = v
    merged.update(env_vars or {})
    return merged


def service_exists(cfg: PromoteConfig, service: str) -> bool:
    """서비스가 이미 있는지 확인한다. 없음 이외의 조회 실패는 그대로 올린다."""
    cmd = [
        "gcloud",
        "run",
        "services",
        "describe",
        service,
        *_common_flags(cfg),
        "--format=value(metadata.name)",
    ]
    try:
        run_command(cmd)
    except RuntimeError as e:
        message = str(e)
        if "Cannot find service" in message or "NOT_FOUND" in message:
            logger.info("Cloud Run 서비스가 아직 없습니다: %s", service)
            return False
        raise
    return True


def deploy_revision(
    cfg: PromoteConfig,
    service: str,
    image_ref: str,
    *,
    env_vars: Optional[Dict[str, str]] = None,
    no_traffic: bool = False,
) -> str:
    """
    image_ref 로 새 리비전을 배포하고, 생성된 리비전 이름을 반환한다.

    no_traffic=True 이면 트래픽 없이 리비전만 만든다 (카나리 전환 전 단계).
    """
    logger.info("Cloud Run 배포: service=%s image=%s no_traffic=%s", service, image_ref, no_traffic)

    cmd = ["gcloud", "run", "deploy", service, f"--image={image_ref}", *_common_flags(cfg)]
    if no_traffic:
        cmd.append("--no-traffic")
    merged = _merge_env_vars(cfg, env_vars)
    if merged:
        cmd.append(f"--update-env-vars={_format_env_vars(merged)}")
    if cfg.secrets:
        cmd.append(f"--update-secrets={cfg.secrets}")
    if cfg.runtime_service_account:
        cmd.append(f"--service-account={cfg.runtime_service_account}")
    cmd.append("--allow-unauthenticated" if cfg.allow_unauthenticated else "--no-allow-unauthenticated")

    run_command(cmd, stream_output=True)

    describe_cmd = [
        "gcloud",
        "run",
        "services",
        "describe",
        service,
        *_common_flags(cfg),
        "--format=value(status.latestCreatedRevisionName)",
    ]
    revision = run_command(describe_cmd).stdout.strip()
    if not revision:
        raise RuntimeError(f"배포된 리비전 이름을 확인할 수 없습니다: service={service}")

    logger.info("새 리비전: %s", revision)
    return revision


def list_revisions(cfg: PromoteConfig, service: str) -> List[str]:
    """서비스의 리비전 이름 목록 (최신순)."""
    cmd = [
        "gcloud",
        "run",
        "revisions",
        "list",
        f"--service={service}",
        *_common_flags(cfg),
        "--sort-by=~metadata.creationTimestamp",
        "--format=value(metadata.name)",
    ]
    out = run_command(cmd).stdout
    return [line.strip() for line in out.splitlines() if line.strip()]


def current_traffic(cfg: PromoteConfig, service: str) -> Dict[str, int]:
    """리비전별 현재 트래픽 비율. (태그 전용 0% 항목은 제외)"""
    cmd = ["gcloud", "run", "services", "describe", service, *_common_flags(cfg), "--format=json"]
    out = run_command(cmd).stdout
    try:
        data = json.loads(out or "{}")
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Cloud Run 서비스 정보를 해석할 수 없습니다: service={service}") from e

    traffic: Dict[str, int] = {}
    for item in (data.get("status") or {}).get("traffic") or []:
        name = item.get("revisionName")
        percent = int(item.get("percent") or 0)
        if name and percent:
            traffic[name] = traffic.get(name, 0) + percent
    return traffic


def set_traffic(cfg: PromoteConfig, service: str, revision: str, percent: int) -> None:
    """
    revision 에 percent% 트래픽을 보낸다. 나머지는 기존 리비전들에 남는다.
    """
    if not 0 <= percent <= 100:
        raise ValueError(f"트래픽 비율은 0~100 사이여야 합니다: {percent}")

    logger.info("트래픽 전환: service=%s revision=%s -> %d%%", service, revision, percent)
    cmd = [
        "gcloud",
        "run",
        "services",
        "update-traffic",
        service,
        f"--to-revisions={revision}={percent}",
        *_common_flags(cfg),
    ]
    run_command(cmd, stream_output=True)


def route_to_latest(cfg: PromoteConfig, service: str) -> None:
    """
    트래픽 100% 를 최신 리비전으로 보내고 이후 배포도 최신을 따라가게 한다.
    롤백이나 카나리 전환으로 특정 리비전에 고정된 상태를 해제한다.
    """
    logger.info("트래픽 전환: service=%s -> latest 100%%", service)
    cmd = [
        "gcloud",
        "run",
        "services",
        "update-traffic",
        service,
        "--to-latest",
        *_common_flags(cfg),
    ]
    run_command(cmd, stream_output=True)


def rollback(cfg: PromoteConfig, service: str, revision: Optional[str] = None) -> str:
    """
    지정한 리비전(없으면 최신 직전 리비전)으로 트래픽 100% 를 되돌리고 그 리비전 이름을 반환한다.
    """
    target = revision
    if not target:
        revisions = list_revisions(cfg, service)
        if len(revisions) < 2:
            raise RuntimeError(
                f"롤백할 이전 리비전이 없습니다: service={service} (리비전 {len(revisions)}개)"
            )
        target = revisions[1]

    logger.info("롤백: service=%s -> %s", service, target)
    set_traffic(cfg, service, target, 100)
    return target
