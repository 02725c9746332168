import pytest

from promote_kit import build_tool
from promote_kit.config import PromoteConfig
from promote_kit.subprocess_utils import RunResult


def _cfg(**overrides) -> PromoteConfig:  # noqa: ANN003
    values = dict(
        gcp_project_id="test-project",
        gcp_region="us-central1",
        artifact_registry_repo="apps",
        image_name="backend",
        source_dir="backend",
    )
    values.update(overrides)
    return PromoteConfig(**values)


def test_build_command_passes_revision() -> None:
    cmd = build_tool.build_command(_cfg(build_command="mvn -s ci-settings.xml"), "v1.5.0")
    assert cmd == ["mvn", "-s", "ci-settings.xml", "-B", "package", "-DskipTests", "-Drevision=v1.5.0"]


def test_build_application_runs_in_source_dir(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def fake_run(cmd, **kwargs) -> RunResult:  # noqa: ANN001
        seen["cmd"] = list(cmd)
        seen["cwd"] = kwargs.get("cwd")
        return RunResult(returncode=0, stdout="", stderr="")

    monkeypatch.setattr(build_tool, "run_command", fake_run)

    assert build_tool.build_application(_cfg(), "main-a1b2c3") is True
    assert seen["cmd"][0] == "./mvnw"
    assert seen["cwd"] == "backend"


def test_build_application_skipped(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail_run(cmd, **kwargs) -> RunResult:  # noqa: ANN001, ARG001
        raise AssertionError("빌드가 실행되면 안 됩니다")

    monkeypatch.setattr(build_tool, "run_command", fail_run)

    assert build_tool.build_application(_cfg(skip_app_build=True), "v1.0.0") is False
