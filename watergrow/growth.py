from typing import NamedTuple, Optional, Tuple

# (name, first count in band, first count of the next band); the last band is open
STAGES: Tuple[Tuple[str, int, Optional[int]], ...] = (
    ("Seed", 0, 5),
    ("Sprout", 5, 15),
    ("Sapling", 15, 30),
    ("Bloom", 30, None),
)


class GrowthStage(NamedTuple):
    name: str
    progress: float  # 0.0 - 1.0 within the band


def stage(count: int) -> GrowthStage:
    """
    Map a water counter to its growth stage and the progress through it.
    Bloom is terminal and always reports full progress.
    """
    if count < 0:
        raise ValueError(f"water count cannot be negative: {count}")

    for name, start, end in STAGES[:-1]:
        if count < end:
            progress = (count - start) / (end - start)
            return GrowthStage(name, min(max(progress, 0.0), 1.0))

    return GrowthStage(STAGES[-1][0], 1.0)
