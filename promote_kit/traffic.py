"""
traffic
-------

카나리 트래픽 전환 단계 파싱.

비율과 타이밍은 추정하지 않고 사용자 설정(CANARY_TRAFFIC_STEPS)만 따른다.
"""

from __future__ import annotations

from typing import List, Optional


def parse_traffic_steps(raw: Optional[str]) -> List[int]:
    """
    "10,50,100" 형태의 문자열을 [10, 50, 100] 으로 변환한다.

    비어 있으면 [] (카나리 없이 바로 100%).
    각 단계는 1~100 사이 정수이고 엄격히 증가해야 하며 마지막 단계는 100 이어야 한다.
    """
    if raw is None or not raw.strip():
        return []

    steps: List[int] = []
    for part in raw.split(","):
        p = part.strip().rstrip("%")
        if not p:
            continue
        try:
            value = int(p)
        except ValueError as e:
            raise ValueError(f"CANARY_TRAFFIC_STEPS 에 숫자가 아닌 값이 있습니다: {part.strip()!r}") from e
        if not 1 <= value <= 100:
            raise ValueError(f"트래픽 비율은 1~100 사이여야 합니다: {value}")
        if steps and value <= steps[-1]:
            raise ValueError(
                f"트래픽 단계는 증가하는 순서여야 합니다: {', '.join(map(str, steps + [value]))}"
            )
        steps.append(value)

    if steps and steps[-1] != 100:
        raise ValueError(f"마지막 트래픽 단계는 100 이어야 합니다: {steps[-1]}")

    return steps


def first_step(steps: List[int]) -> int:
    return steps[0] if steps else 100


def next_step(steps: List[int], current_percent: int) -> Optional[int]:
    """현재 비율보다 큰 첫 단계. 이미 마지막 단계 이상이면 None."""
    if not steps:
        return None if current_percent >= 100 else 100
    for s in steps:
        if s > current_percent:
            return s
    return None
