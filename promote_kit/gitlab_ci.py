"""
gitlab_ci
---------

promote-gcp 를 호출하는 .gitlab-ci.yml 템플릿.
잡 rules 는 resolver 의 스테이지 규칙과 같은 조건을 쓴다.
"""

from __future__ import annotations

import os

from .logging_utils import get_logger


logger = get_logger(__name__)


GITLAB_CI_FILENAME = ".gitlab-ci.yml"

GITLAB_CI_TEMPLATE = """stages:
  - test
  - resolve
  - deploy-dev
  - deploy-staging
  - deploy-prod

variables:
  # .env.promote 또는 GitLab CI/CD Variables 에 GCP_PROJECT_ID, GCP_REGION,
  # ARTIFACT_REGISTRY_REPO, IMAGE_NAME 을 설정한다.
  BUILD_MODE: cloud_build
  # deploy 잡 이미지에는 JDK 가 없다. jar 는 multi-stage Dockerfile 이 Cloud Build 안에서 만든다.
  SKIP_APP_BUILD: "true"

default:
  image: gcr.io/google.com/cloudsdktool/google-cloud-cli:slim
  before_script:
    - echo "$GCP_SA_KEY" > /tmp/gcp-key.json
    - gcloud auth activate-service-account --key-file=/tmp/gcp-key.json
    - apt-get update && apt-get install -y --no-install-recommends python3-pip
    - pip3 install --break-system-packages gcp-promote-kit

test:
  stage: test
  image: eclipse-temurin:21-jdk
  before_script: []
  script:
    - ./mvnw -B verify

resolve:
  stage: resolve
  script:
    - promote-gcp resolve "$RESOLVE_STAGE" --format env > promote.env
  rules:
    - if: '$CI_COMMIT_TAG'
      variables:
        RESOLVE_STAGE: deploy-staging
    - if: '$CI_COMMIT_BRANCH == "main"'
      variables:
        RESOLVE_STAGE: deploy-dev
  artifacts:
    reports:
      dotenv: promote.env

deploy-dev:
  stage: deploy-dev
  script:
    - promote-gcp deploy deploy-dev
  rules:
    - if: '$CI_COMMIT_BRANCH == "main" && $CI_COMMIT_TAG == null'
      when: on_success

deploy-staging:
  stage: deploy-staging
  script:
    - promote-gcp deploy deploy-staging
  rules:
    - if: '$CI_COMMIT_TAG'
      when: on_success

deploy-prod:
  stage: deploy-prod
  needs: ["deploy-staging"]
  script:
    - promote-gcp deploy deploy-prod --approve
  rules:
    - if: '$CI_COMMIT_TAG'
      when: manual
  allow_failure: false

promote-prod-traffic:
  stage: deploy-prod
  needs: ["deploy-prod"]
  script:
    - promote-gcp traffic deploy-prod
  rules:
    - if: '$CI_COMMIT_TAG && $CANARY_TRAFFIC_STEPS'
      when: manual

rollback-prod:
  stage: deploy-prod
  needs: ["deploy-prod"]
  script:
    - promote-gcp rollback deploy-prod
  rules:
    - if: '$CI_COMMIT_TAG'
      when: manual
"""


def write_gitlab_ci(base_dir: str = ".", *, overwrite: bool = False) -> bool:
    """
    base_dir 에 .gitlab-ci.yml 을 만든다. 이미 있으면 overwrite=True 일 때만 덮어쓴다.
    파일을 썼으면 True.
    """
    target = os.path.join(base_dir, GITLAB_CI_FILENAME)
    if os.path.exists(target) and not overwrite:
        logger.info("%s 이(가) 이미 존재하여 건너뜁니다: %s", GITLAB_CI_FILENAME, target)
        return False

    with open(target, "w", encoding="utf-8") as f:
        f.write(GITLAB_CI_TEMPLATE)
    logger.info("%s 템플릿을 생성했습니다: %s", GITLAB_CI_FILENAME, target)
    return True
