from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from .resolver import CommitContext, Stage


ENV_FILES_DEFAULT_ORDER = [".env", ".env.promote"]

BUILD_MODES = ("local_docker", "cloud_build")


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    후순위 파일이 같은 키를 덮어쓴다.
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=True)


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "y"}


@dataclass
class PromoteConfig:
    # 필수 공통
    gcp_project_id: str
    gcp_region: str
    artifact_registry_repo: str
    image_name: str

    # 스테이지별 Cloud Run 서비스 이름 (비어 있으면 {image_name}-dev 등)
    dev_service_name: Optional[str] = None
    staging_service_name: Optional[str] = None
    prod_service_name: Optional[str] = None

    # 빌드
    build_mode: str = "local_docker"
    source_dir: str = "."
    build_command: str = "./mvnw"
    skip_app_build: bool = False

    # Cloud Run 배포 옵션
    runtime_service_account: Optional[str] = None
    allow_unauthenticated: bool = False
    env_vars_file: Optional[str] = None
    secrets: Optional[str] = None

    # 카나리 트래픽 단계 (예: "10,50,100"). 비어 있으면 한 번에 100% 전환
    canary_traffic_steps: str = ""

    @classmethod
    def from_env(cls) -> "PromoteConfig":
        # 필수값
        missing: List[str] = []
        def req(name: str) -> str:
            val = os.getenv(name)
            if not val:
                missing.append(name)
            return val or ""

        cfg = cls(
            gcp_project_id=req("GCP_PROJECT_ID"),
            gcp_region=req("GCP_REGION"),
            artifact_registry_repo=req("ARTIFACT_REGISTRY_REPO"),
            image_name=req("IMAGE_NAME"),
            dev_service_name=os.getenv("DEV_SERVICE_NAME"),
            staging_service_name=os.getenv("STAGING_SERVICE_NAME"),
            prod_service_name=os.getenv("PROD_SERVICE_NAME"),
            build_mode=os.getenv("BUILD_MODE", "local_docker"),
            source_dir=os.getenv("SOURCE_DIR", "."),
            build_command=os.getenv("BUILD_COMMAND", "./mvnw"),
            skip_app_build=_get_bool("SKIP_APP_BUILD", False),
            runtime_service_account=os.getenv("RUNTIME_SERVICE_ACCOUNT"),
            allow_unauthenticated=_get_bool("ALLOW_UNAUTHENTICATED", False),
            env_vars_file=os.getenv("DEPLOY_ENV_VARS_FILE"),
            secrets=os.getenv("DEPLOY_SECRETS"),
            canary_traffic_steps=os.getenv("CANARY_TRAFFIC_STEPS", ""),
        )

        if missing:
            raise ValueError(
                "필수 환경변수가 누락되었습니다: " + ", ".join(sorted(set(missing)))
            )

        if cfg.build_mode.lower() not in BUILD_MODES:
            raise ValueError(
                f"알 수 없는 BUILD_MODE 값입니다: {cfg.build_mode!r} (local_docker | cloud_build 중 하나)"
            )

        return cfg

    @property
    def registry_host(self) -> str:
        return f"{self.gcp_region}-docker.pkg.dev"

    @property
    def registry_base(self) -> str:
        return f"{self.registry_host}/{self.gcp_project_id}/{self.artifact_registry_repo}/{self.image_name}"

    def service_for(self, stage: Stage | str) -> str:
        target = Stage.parse(stage)
        if target is Stage.DEV:
            return self.dev_service_name or f"{self.image_name}-dev"
        if target is Stage.STAGING:
            return self.staging_service_name or f"{self.image_name}-staging"
        return self.prod_service_name or f"{self.image_name}-prod"


def commit_context_from_env(
    environ: Optional[Mapping[str, str]] = None,
    *,
    branch: Optional[str] = None,
    sha: Optional[str] = None,
    tag: Optional[str] = None,
) -> CommitContext:
    """
    GitLab CI 기본 변수(CI_COMMIT_BRANCH / CI_COMMIT_SHORT_SHA / CI_COMMIT_TAG)로
    CommitContext 를 만든다. 인자로 넘긴 값이 env 보다 우선한다.

    태그 파이프라인에서는 GitLab 이 CI_COMMIT_BRANCH 를 채우지 않으므로 branch 는 비어 있을 수 있다.
    """
    env = os.environ if environ is None else environ
    return CommitContext(
        branch=branch if branch is not None else env.get("CI_COMMIT_BRANCH", ""),
        commit_short_sha=sha if sha is not None else env.get("CI_COMMIT_SHORT_SHA", ""),
        tag=tag if tag is not None else env.get("CI_COMMIT_TAG"),
    )
