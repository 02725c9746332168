from typing import List

import pytest

from promote_kit.config import PromoteConfig
from promote_kit import gcp_artifact_registry as ar
from promote_kit.subprocess_utils import RunResult


IMAGE = "us-central1-docker.pkg.dev/test-project/apps/backend:main-a1b2c3"


def _cfg(build_mode: str = "local_docker") -> PromoteConfig:
    return PromoteConfig(
        gcp_project_id="test-project",
        gcp_region="us-central1",
        artifact_registry_repo="apps",
        image_name="backend",
        build_mode=build_mode,
    )


def _record(calls: List[list[str]]):  # noqa: ANN202
    def fake_run(cmd, **kwargs) -> RunResult:  # noqa: ANN001, ARG001
        calls.append(list(cmd))
        return RunResult(returncode=0, stdout="", stderr="")

    return fake_run


def test_build_and_push_image_local_docker_calls_docker(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: List[list[str]] = []
    monkeypatch.setattr(ar, "run_command", _record(calls))

    image_url = ar.build_and_push_image(_cfg("local_docker"), IMAGE, "main-a1b2c3")

    assert image_url == IMAGE
    # docker build + docker push 두 번 호출되는지 확인
    assert [c[:2] for c in calls] == [["docker", "build"], ["docker", "push"]]
    assert "APP_VERSION=main-a1b2c3" in calls[0]
    assert calls[1][-1] == IMAGE


def test_build_and_push_image_cloud_build(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: List[list[str]] = []
    monkeypatch.setattr(ar, "run_command", _record(calls))

    ar.build_and_push_image(_cfg("cloud_build"), IMAGE, "main-a1b2c3")

    assert len(calls) == 1
    assert calls[0][:3] == ["gcloud", "builds", "submit"]
    assert f"--tag={IMAGE}" in calls[0]


def test_build_rejects_invalid_docker_tag(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: List[list[str]] = []
    monkeypatch.setattr(ar, "run_command", _record(calls))

    with pytest.raises(ValueError):
        ar.build_and_push_image(_cfg(), "repo/app:feature/x-a1b2c3", "feature/x-a1b2c3")

    assert calls == []


def test_build_rejects_mismatched_image_reference() -> None:
    with pytest.raises(ValueError):
        ar.build_and_push_image(_cfg(), "repo/app:v1.0.0", "v1.0.1")


@pytest.mark.parametrize(
    "tag,valid",
    [
        ("v1.5.0", True),
        ("main-a1b2c3", True),
        ("feature/x-a1b2c3", False),
        (".hidden", False),
        ("", False),
        ("a" * 129, False),
    ],
)
def test_is_valid_docker_tag(tag: str, valid: bool) -> None:
    assert ar.is_valid_docker_tag(tag) is valid


def test_ensure_repository_creates_when_describe_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: List[list[str]] = []

    def fake_run(cmd, **kwargs) -> RunResult:  # noqa: ANN001, ARG001
        calls.append(list(cmd))
        if "describe" in cmd:
            raise RuntimeError("NOT_FOUND")
        return RunResult(returncode=0, stdout="", stderr="")

    monkeypatch.setattr(ar, "run_command", fake_run)

    ar.ensure_repository(_cfg())

    assert [c[3] for c in calls] == ["describe", "create"]
    assert "--repository-format=DOCKER" in calls[1]


def test_ensure_repository_uses_existing(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: List[list[str]] = []
    monkeypatch.setattr(ar, "run_command", _record(calls))

    ar.ensure_repository(_cfg())

    assert len(calls) == 1
