import sys
from typing import Optional

import click

from .config import commit_context_from_env, load_env_files, PromoteConfig
from .errors import ApprovalRequired, InvalidContext
from .gitlab_ci import GITLAB_CI_FILENAME, write_gitlab_ci
from .logging_utils import setup_logging, get_logger
from .orchestrator import apply_stage, plan_all, rollback_stage, shift_traffic
from .resolver import ALL_STAGES, CommitContext, resolve


logger = get_logger(__name__)


def _commit_options(fn):  # noqa: ANN001
    fn = click.option("--tag", "tag", default=None, help="릴리스 태그 (기본: $CI_COMMIT_TAG)")(fn)
    fn = click.option("--sha", "sha", default=None, help="커밋 short SHA (기본: $CI_COMMIT_SHORT_SHA)")(fn)
    fn = click.option("--branch", "branch", default=None, help="브랜치 이름 (기본: $CI_COMMIT_BRANCH)")(fn)
    return fn


_stage_argument = click.argument("stage", type=click.Choice(ALL_STAGES))


@click.group()
@click.option(
    "-C",
    "--chdir",
    "chdir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help="작업 디렉토리 (기본: 현재 디렉토리)",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="로그 레벨을 DEBUG로 올립니다.",
)
@click.pass_context
def main(ctx: click.Context, chdir: str, verbose: int) -> None:
    """GitLab CI → Cloud Run 버전 결정/배포/승격 CLI"""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["chdir"] = chdir
    ctx.obj["verbose"] = verbose


def _load_config_from_ctx(ctx: click.Context) -> PromoteConfig:
    base_dir: str = ctx.obj["chdir"]
    load_env_files(base_dir)
    cfg = PromoteConfig.from_env()
    logger.debug("Config loaded: %s", cfg)
    return cfg


def _fail(message: str) -> None:
    click.echo(f"[ERROR] {message}", err=True)
    sys.exit(1)


def _load_or_exit(
    ctx: click.Context,
    branch: Optional[str],
    sha: Optional[str],
    tag: Optional[str],
) -> tuple[PromoteConfig, CommitContext]:
    try:
        cfg = _load_config_from_ctx(ctx)
    except Exception as e:  # noqa: BLE001
        _fail(f"설정 로드 실패: {e}")

    try:
        commit = commit_context_from_env(branch=branch, sha=sha, tag=tag)
    except InvalidContext as e:
        _fail(str(e))

    return cfg, commit


@main.command(name="resolve")
@_stage_argument
@_commit_options
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "env"]),
    default="text",
    help="env: GitLab dotenv artifact 로 쓸 수 있는 KEY=VALUE 형식",
)
@click.option("--staging-failed", is_flag=True, help="staging 이 실패한 것으로 보고 판단합니다.")
@click.pass_context
def resolve_cmd(
    ctx: click.Context,
    stage: str,
    branch: Optional[str],
    sha: Optional[str],
    tag: Optional[str],
    output_format: str,
    staging_failed: bool,
) -> None:
    """스테이지 하나의 버전 태그/이미지 주소/실행 여부를 출력"""
    cfg, commit = _load_or_exit(ctx, branch, sha, tag)
    r = resolve(commit, stage, cfg.registry_base, staging_succeeded=not staging_failed)

    if output_format == "env":
        click.echo(f"VERSION_TAG={r.version_tag}")
        click.echo(f"IMAGE_REF={r.image_reference}")
        click.echo(f"STAGE_ELIGIBILITY={r.eligibility.value}")
        return

    click.echo(f"stage: {r.stage}")
    click.echo(f"version: {r.version_tag}")
    click.echo(f"image: {r.image_reference}")
    click.echo(f"eligibility: {r.eligibility.value.upper()}")


@main.command()
@_commit_options
@click.option("--staging-failed", is_flag=True, help="staging 이 실패한 것으로 보고 판단합니다.")
@click.pass_context
def plan(
    ctx: click.Context,
    branch: Optional[str],
    sha: Optional[str],
    tag: Optional[str],
    staging_failed: bool,
) -> None:
    """현재 커밋 기준으로 모든 스테이지의 AUTO/MANUAL_APPROVAL/SKIPPED 상태를 출력"""
    cfg, commit = _load_or_exit(ctx, branch, sha, tag)
    try:
        report = plan_all(cfg, commit, staging_succeeded=not staging_failed)
    except ValueError as e:
        _fail(str(e))
    click.echo(report)


@main.command(name="deploy")
@_stage_argument
@_commit_options
@click.option("--approve", is_flag=True, help="수동 승인 스테이지(deploy-prod)를 실행합니다.")
@click.option("--staging-failed", is_flag=True, help="staging 이 실패한 것으로 보고 판단합니다.")
@click.pass_context
def deploy(
    ctx: click.Context,
    stage: str,
    branch: Optional[str],
    sha: Optional[str],
    tag: Optional[str],
    approve: bool,
    staging_failed: bool,
) -> None:
    """스테이지 조건을 확인한 뒤 빌드/푸시/Cloud Run 배포를 실행"""
    cfg, commit = _load_or_exit(ctx, branch, sha, tag)

    try:
        summary, has_failures = apply_stage(
            cfg,
            commit,
            stage,
            approved=approve,
            staging_succeeded=not staging_failed,
        )
    except ApprovalRequired as e:
        _fail(str(e))
    except Exception as e:  # noqa: BLE001
        logger.exception("배포 중 오류 발생")
        _fail(f"배포 실패: {e}")

    click.echo(summary)

    if has_failures:
        sys.exit(1)


@main.command()
@_stage_argument
@click.option(
    "--percent",
    type=click.IntRange(0, 100),
    default=None,
    help="최신 리비전에 보낼 트래픽 비율. 생략하면 CANARY_TRAFFIC_STEPS 의 다음 단계",
)
@click.pass_context
def traffic(ctx: click.Context, stage: str, percent: Optional[int]) -> None:
    """최신 리비전의 트래픽 비율을 올린다 (카나리 전환)"""
    try:
        cfg = _load_config_from_ctx(ctx)
    except Exception as e:  # noqa: BLE001
        _fail(f"설정 로드 실패: {e}")

    try:
        message = shift_traffic(cfg, stage, percent)
    except Exception as e:  # noqa: BLE001
        logger.exception("트래픽 전환 중 오류 발생")
        _fail(f"트래픽 전환 실패: {e}")

    click.echo(message)


@main.command()
@_stage_argument
@click.option("--revision", default=None, help="되돌릴 리비전 (기본: 최신 직전 리비전)")
@click.pass_context
def rollback(ctx: click.Context, stage: str, revision: Optional[str]) -> None:
    """트래픽 100% 를 이전 리비전으로 되돌린다"""
    try:
        cfg = _load_config_from_ctx(ctx)
    except Exception as e:  # noqa: BLE001
        _fail(f"설정 로드 실패: {e}")

    try:
        message = rollback_stage(cfg, stage, revision)
    except Exception as e:  # noqa: BLE001
        logger.exception("롤백 중 오류 발생")
        _fail(f"롤백 실패: {e}")

    click.echo(message)


@main.command()
@click.option("--force", is_flag=True, help="이미 있는 파일을 덮어씁니다.")
@click.pass_context
def init(ctx: click.Context, force: bool) -> None:
    """현재 디렉토리에 .gitlab-ci.yml 템플릿을 생성"""
    base_dir: str = ctx.obj["chdir"]
    if write_gitlab_ci(base_dir, overwrite=force):
        click.echo(f"{GITLAB_CI_FILENAME} 템플릿을 생성했습니다.")
    else:
        click.echo(f"{GITLAB_CI_FILENAME} 이(가) 이미 존재하여 건너뜀 (--force 로 덮어쓰기)")
