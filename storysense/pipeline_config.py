"""Pipeline configuration: identity strategy enum and PipelineConfig dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# Hand-curated speaker palette. Order matters: the Nth distinct speaker in a
# run always gets DEFAULT_PALETTE[N % len(DEFAULT_PALETTE)].
DEFAULT_PALETTE: tuple[str, ...] = (
    "#FC8500",
    "#4660D6",
    "#D81258",
    "#239EB",
    "#8F2D56",
    "#239ebc",
    "#8f2d56",
    "#ffad49",
    "#8ecae6",
    "#eedc3f",
    "#4660d6",
    "#bcf60c",
    "#fabebe",
    "#008080",
    "#e6beff",
    "#9a6324",
    "#fffac8",
    "#800000",
    "#aaffc3",
    "#808000",
    "#ffd8b1",
    "#000075",
    "#808080",
    "#ffffff",
    "#000000",
)


class IdStrategy(str, Enum):
    """How chunk and speaker ids are generated during a pipeline run."""

    RANDOM = "random"
    DETERMINISTIC = "deterministic"


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable configuration for one ingestion run.

    Defaults derive ids from the job and time range so that a redelivered
    event upserts the same documents instead of duplicating them.
    """

    max_word_count: int = 100
    id_strategy: IdStrategy = IdStrategy.DETERMINISTIC
    palette: tuple[str, ...] = DEFAULT_PALETTE
