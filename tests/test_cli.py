import pytest
from click.testing import CliRunner

from promote_kit import cli, orchestrator


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GCP_PROJECT_ID", "test-project")
    monkeypatch.setenv("GCP_REGION", "us-central1")
    monkeypatch.setenv("ARTIFACT_REGISTRY_REPO", "apps")
    monkeypatch.setenv("IMAGE_NAME", "backend")


def _invoke(tmp_path, *args: str):  # noqa: ANN001, ANN202
    return CliRunner().invoke(cli.main, ["-C", str(tmp_path), *args])


def test_resolve_env_format(env, tmp_path) -> None:  # noqa: ANN001
    result = _invoke(tmp_path, "resolve", "deploy-dev", "--branch", "main", "--sha", "a1b2c3", "--format", "env")

    assert result.exit_code == 0, result.output
    assert "VERSION_TAG=main-a1b2c3" in result.output
    assert "IMAGE_REF=us-central1-docker.pkg.dev/test-project/apps/backend:main-a1b2c3" in result.output
    assert "STAGE_ELIGIBILITY=auto" in result.output


def test_resolve_reads_gitlab_variables(env, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:  # noqa: ANN001
    monkeypatch.setenv("CI_COMMIT_TAG", "v1.5.0")
    monkeypatch.setenv("CI_COMMIT_SHORT_SHA", "d4e5f6")

    result = _invoke(tmp_path, "resolve", "deploy-prod")

    assert result.exit_code == 0, result.output
    assert "version: v1.5.0" in result.output
    assert "eligibility: MANUAL_APPROVAL" in result.output


def test_resolve_invalid_context_exits_1(env, tmp_path) -> None:  # noqa: ANN001
    result = _invoke(tmp_path, "resolve", "deploy-dev", "--branch", "main")

    assert result.exit_code == 1
    assert "[ERROR]" in result.output
    assert "commit_short_sha" in result.output


def test_missing_config_exits_1(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:  # noqa: ANN001
    monkeypatch.delenv("IMAGE_NAME", raising=False)
    monkeypatch.setenv("GCP_PROJECT_ID", "test-project")
    monkeypatch.setenv("GCP_REGION", "us-central1")
    monkeypatch.setenv("ARTIFACT_REGISTRY_REPO", "apps")

    result = _invoke(tmp_path, "plan", "--branch", "main", "--sha", "a1b2c3")

    assert result.exit_code == 1
    assert "IMAGE_NAME" in result.output


def test_unknown_stage_is_rejected(env, tmp_path) -> None:  # noqa: ANN001
    result = _invoke(tmp_path, "resolve", "deploy-qa", "--branch", "main", "--sha", "a1b2c3")

    assert result.exit_code != 0


def test_plan_prints_stage_table(env, tmp_path) -> None:  # noqa: ANN001
    result = _invoke(tmp_path, "plan", "--tag", "v1.5.0", "--sha", "d4e5f6")

    assert result.exit_code == 0, result.output
    assert "- deploy-staging: AUTO" in result.output
    assert "- deploy-prod: MANUAL_APPROVAL" in result.output


def test_deploy_prod_without_approval_fails(env, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:  # noqa: ANN001
    def fail_deploy(*args, **kwargs) -> str:  # noqa: ANN002, ANN003
        raise AssertionError("배포되면 안 됩니다")

    monkeypatch.setattr(orchestrator.gcp_cloud_run, "deploy_revision", fail_deploy)

    result = _invoke(tmp_path, "deploy", "deploy-prod", "--tag", "v1.5.0", "--sha", "d4e5f6")

    assert result.exit_code == 1
    assert "--approve" in result.output


def test_deploy_reports_summary(env, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:  # noqa: ANN001
    calls = []

    def fake_apply(cfg, commit, stage, *, approved, staging_succeeded):  # noqa: ANN001, ANN202
        calls.append((commit.tag, stage, approved, staging_succeeded))
        return "# Deploy summary", False

    monkeypatch.setattr(cli, "apply_stage", fake_apply)

    result = _invoke(tmp_path, "deploy", "deploy-prod", "--tag", "v1.5.0", "--sha", "d4e5f6", "--approve")

    assert result.exit_code == 0, result.output
    assert calls == [("v1.5.0", "deploy-prod", True, True)]
    assert "# Deploy summary" in result.output


def test_deploy_with_failed_step_exits_1(env, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(cli, "apply_stage", lambda *a, **k: ("## Failed steps\n- image", True))

    result = _invoke(tmp_path, "deploy", "deploy-dev", "--branch", "main", "--sha", "a1b2c3")

    assert result.exit_code == 1
    assert "## Failed steps" in result.output


def test_traffic_and_rollback_commands(env, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(cli, "shift_traffic", lambda cfg, stage, percent: f"{stage} -> {percent}%")
    monkeypatch.setattr(cli, "rollback_stage", lambda cfg, stage, revision: f"{stage} rollback {revision}")

    shifted = _invoke(tmp_path, "traffic", "deploy-prod", "--percent", "50")
    rolled = _invoke(tmp_path, "rollback", "deploy-prod", "--revision", "rev-1")

    assert shifted.exit_code == 0, shifted.output
    assert "deploy-prod -> 50%" in shifted.output
    assert rolled.exit_code == 0, rolled.output
    assert "deploy-prod rollback rev-1" in rolled.output


def test_init_writes_gitlab_ci_once(tmp_path) -> None:  # noqa: ANN001
    first = _invoke(tmp_path, "init")
    second = _invoke(tmp_path, "init")

    assert first.exit_code == 0
    assert (tmp_path / ".gitlab-ci.yml").exists()
    assert "건너뜀" in second.output
