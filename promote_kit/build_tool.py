"""
build_tool
----------

Spring Boot 애플리케이션을 버전 문자열과 함께 빌드하는 모듈 (Maven wrapper 기본).
"""

from __future__ import annotations

import shlex

from .config import PromoteConfig
from .logging_utils import get_logger
from .subprocess_utils import run_command


logger = get_logger(__name__)


def build_command(cfg: PromoteConfig, version_tag: str) -> list[str]:
    # -Drevision 은 Maven CI friendly version(${revision}) 을 채운다.
    return [
        *shlex.split(cfg.build_command),
        "-B",
        "package",
        "-DskipTests",
        f"-Drevision={version_tag}",
    ]


def build_application(cfg: PromoteConfig, version_tag: str) -> bool:
    """
    애플리케이션 jar 를 빌드한다. SKIP_APP_BUILD=true 이면 건너뛰고 False 를 반환한다.
    (Dockerfile 이 multi-stage 로 직접 빌드하는 경우)
    """
    if cfg.skip_app_build:
        logger.info("SKIP_APP_BUILD=true 이므로 애플리케이션 빌드를 건너뜁니다.")
        return False

    logger.info("애플리케이션 빌드: version=%s dir=%s", version_tag, cfg.source_dir)
    run_command(build_command(cfg, version_tag), cwd=cfg.source_dir, stream_output=True)
    return True
