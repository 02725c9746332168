"""
gcp_artifact_registry
---------------------

Artifact Registry 리포지토리 존재 여부 확인 및
버전 태그가 붙은 이미지 빌드/푸시를 담당하는 모듈.
"""

from __future__ import annotations

import re

from .config import PromoteConfig
from .logging_utils import get_logger
from .subprocess_utils import run_command


logger = get_logger(__name__)


# docker 태그 규칙: 첫 글자는 영숫자/_ , 이후 영숫자/_/./- 최대 128자
_DOCKER_TAG_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")


def is_valid_docker_tag(tag: str) -> bool:
    return bool(_DOCKER_TAG_RE.match(tag or ""))


def ensure_repository(cfg: PromoteConfig) -> None:
    """
    Artifact Registry 리포가 존재하는지 확인하고,
    없으면 생성한다.
    """
    logger.info("Artifact Registry 리포 확인: %s", cfg.artifact_registry_repo)
    repo = cfg.artifact_registry_repo
    location = cfg.gcp_region
    project = cfg.gcp_project_id

    describe_cmd = [
        "gcloud",
        "artifacts",
        "repositories",
        "describe",
        repo,
        f"--location={location}",
        f"--project={project}",
        "--quiet",
    ]

    try:
        run_command(describe_cmd)
        logger.info("기존 Artifact Registry 리포를 사용합니다: %s", repo)
        return
    except RuntimeError as e:
        # describe 실패 시에만 create 시도 (다른 오류일 수도 있으므로 로그 남김)
        logger.warning("리포지토리 조회 실패, 생성 시도: %s", e)

    create_cmd = [
        "gcloud",
        "artifacts",
        "repositories",
        "create",
        repo,
        "--repository-format=DOCKER",
        f"--location={location}",
        f"--project={project}",
        "--quiet",
    ]
    run_command(create_cmd)
    logger.info("Artifact Registry 리포를 생성했습니다: %s", repo)


def build_and_push_image(cfg: PromoteConfig, image_ref: str, version_tag: str) -> str:
    """
    이미지를 빌드하고 image_ref(base:tag) 로 Artifact Registry 에 푸시한 뒤 image_ref 를 반환한다.

    빌드 방식은 cfg.build_mode 에 따라 동작한다.
    """
    if not is_valid_docker_tag(version_tag):
        raise ValueError(
            f"docker 이미지 태그로 사용할 수 없는 버전입니다: {version_tag!r} "
            "(영숫자, '_', '.', '-' 만 허용, 최대 128자)"
        )
    if not image_ref.endswith(f":{version_tag}"):
        raise ValueError(f"이미지 주소와 버전 태그가 일치하지 않습니다: {image_ref} / {version_tag}")

    mode = (cfg.build_mode or "local_docker").lower()
    logger.info("이미지 빌드 모드: %s", mode)

    if mode == "local_docker":
        build_cmd = [
            "docker",
            "build",
            "--build-arg",
            f"APP_VERSION={version_tag}",
            "-t",
            image_ref,
            cfg.source_dir,
        ]
        push_cmd = ["docker", "push", image_ref]
        run_command(build_cmd, stream_output=True)
        run_command(push_cmd, stream_output=True)
    elif mode == "cloud_build":
        build_cmd = [
            "gcloud",
            "builds",
            "submit",
            cfg.source_dir,
            f"--tag={image_ref}",
            f"--project={cfg.gcp_project_id}",
            "--quiet",
        ]
        run_command(build_cmd, stream_output=True)
    else:
        raise ValueError(f"알 수 없는 BUILD_MODE 값입니다: {cfg.build_mode!r} (local_docker | cloud_build 중 하나)")

    logger.info("이미지 빌드/푸시 완료: %s", image_ref)
    return image_ref
