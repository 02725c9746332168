"""
subprocess_utils
----------------

mvn/docker/gcloud 호출을 한 곳에서 처리하는 실행 유틸.
실패 시 외부 도구의 출력 일부를 그대로 RuntimeError 메시지에 담아 올린다. 재시도는 하지 않는다.
"""

from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass
from textwrap import shorten
from typing import Mapping, Sequence

from .logging_utils import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: str
    stderr: str


def _not_found(cmd: Sequence[str]) -> str:
    return f"필요한 명령을 찾을 수 없습니다: {cmd[0]} (gcloud/docker/mvn 이 설치되어 있는지 확인하세요)"


def _timed_out(cmd: Sequence[str], timeout: float | None) -> str:
    return f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {' '.join(cmd)}"


def run_command(
    cmd: Sequence[str],
    *,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = 900.0,
    stream_output: bool = False,
) -> RunResult:
    """
    subprocess 실행 공통 유틸.

    - stream_output=False: stdout/stderr 캡처, 실패 시 요약 포함
    - stream_output=True : stdout/stderr 를 합쳐 실시간으로 stderr 에 흘린다 (CI 잡 로그 확인 용이)
    """
    logger.info("명령 실행: %s", " ".join(cmd))

    if stream_output:
        # gcloud/docker는 stderr로도 진행 로그를 자주 내보내므로 STDOUT으로 합친다.
        try:
            proc = subprocess.Popen(  # noqa: S603
                list(cmd),
                cwd=cwd,
                env=dict(env) if env is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
            )
        except FileNotFoundError as e:
            raise RuntimeError(_not_found(cmd)) from e

        out_lines: list[str] = []
        try:
            assert proc.stdout is not None
            for line in proc.stdout:
                out_lines.append(line)
                sys.stderr.write(line)
                sys.stderr.flush()
            returncode = proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired as e:
            proc.kill()
            raise RuntimeError(_timed_out(cmd, timeout)) from e
        finally:
            if proc.stdout is not None:
                proc.stdout.close()

        if returncode != 0:
            combined = "".join(out_lines).strip()
            detail = "\nstdout/stderr:\n" + shorten(combined, width=2000) if combined else ""
            raise RuntimeError(
                f"명령 실행 실패: {' '.join(cmd)} (exit={returncode}){detail}"
            )

        return RunResult(returncode=returncode, stdout="".join(out_lines), stderr="")

    # capture 모드 (조용히 돌리고 실패 시 요약)
    try:
        result = subprocess.run(
            list(cmd),
            check=True,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
            env=dict(env) if env is not None else None,
        )
    except FileNotFoundError as e:
        raise RuntimeError(_not_found(cmd)) from e
    except subprocess.TimeoutExpired as e:
        raise RuntimeError(_timed_out(cmd, timeout)) from e
    except subprocess.CalledProcessError as e:
        stdout = (e.stdout or "").strip()
        stderr = (e.stderr or "").strip()
        detail = ""
        if stderr:
            detail = "\nstderr:\n" + shorten(stderr, width=2000)
        elif stdout:
            detail = "\nstdout:\n" + shorten(stdout, width=2000)
        raise RuntimeError(
            f"명령 실행 실패: {' '.join(cmd)} (exit={e.returncode}){detail}"
        ) from e

    if result.stdout:
        logger.debug("명령 stdout: %s", shorten(result.stdout.strip(), width=2000))
    if result.stderr:
        logger.debug("명령 stderr: %s", shorten(result.stderr.strip(), width=2000))
    return RunResult(returncode=result.returncode, stdout=result.stdout or "", stderr=result.stderr or "")
