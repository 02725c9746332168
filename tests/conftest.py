"""
pytest 설정:

로컬 작업 환경에 설치된 다른 버전의 promote_kit 패키지가 존재할 때,
`pytest` 실행 시 site-packages 쪽이 먼저 import 되어 테스트가 깨질 수 있다.

테스트는 항상 현재 레포의 소스를 대상으로 해야 하므로, repo root 를 sys.path 최상단에 고정한다.
"""

from __future__ import annotations

import os
import sys

import pytest


def pytest_configure() -> None:
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


_PROMOTE_ENV_KEYS = (
    "CI_COMMIT_BRANCH",
    "CI_COMMIT_SHORT_SHA",
    "CI_COMMIT_TAG",
    "CANARY_TRAFFIC_STEPS",
    "BUILD_MODE",
    "SKIP_APP_BUILD",
    "DEV_SERVICE_NAME",
    "STAGING_SERVICE_NAME",
    "PROD_SERVICE_NAME",
)


@pytest.fixture(autouse=True)
def _clean_ci_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # GitLab 러너 위에서 테스트가 돌 때 CI 변수가 섞이지 않도록 한다.
    for key in _PROMOTE_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
