"""
Configuration objects and numeric tolerances.

Configuration dataclasses are provided as a stable, typed surface for the
user-selectable behaviour of truncation, query evaluation and sampling.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

# Tolerance on |sum(probabilities) - 1| accepted at construction time.
PROBABILITY_TOL: float = 1e-6

# Absolute tolerance used when comparing a joint table against the product of its marginals.
INDEPENDENCE_TOL: float = 1e-9


@dataclass(frozen=True)
class TruncationConfig:
    """
    Truncation policy for family supports that are unbounded above.

    Enumeration proceeds in chunks of `chunk_size` outcomes and stops once a
    whole chunk adds no more than `1 - completeness` of the mass accumulated so
    far, or once `max_support` outcomes have been enumerated. Outcomes past
    `completeness` of the accumulated mass are dropped and the rest is
    renormalised to 1. Bounded supports are never truncated.
    """

    completeness: float = 1.0 - 1e-8
    max_support: int = 100_000
    chunk_size: int = 1024

    def validate(self) -> None:
        if not (0.0 < float(self.completeness) <= 1.0):
            raise ValueError("completeness must be in (0, 1]")
        if int(self.max_support) <= 0:
            raise ValueError("max_support must be positive")
        if int(self.chunk_size) <= 0:
            raise ValueError("chunk_size must be positive")


@dataclass(frozen=True)
class EngineConfig:
    """
    Configuration for probability evaluation.

    With `strict=True`, queries whose variables do not share a joint table fail
    with `NoJointAvailable` instead of assuming independence between them.
    """

    strict: bool = False
    tol: float = PROBABILITY_TOL

    def validate(self) -> None:
        if float(self.tol) < 0.0:
            raise ValueError("tol must be non-negative")


@dataclass(frozen=True)
class SamplerConfig:
    """
    Configuration for batched simulation.

    Each of the `n_batches` batches draws `n` values from its own stream,
    spawned from `np.random.SeedSequence(seed)`, so results do not depend on
    `n_jobs`.
    """

    n: int = 1000
    seed: int = 123
    n_batches: int = 1
    n_jobs: int = 1
    bitgen: Literal["PCG64"] = "PCG64"

    def validate(self) -> None:
        if int(self.n) < 0:
            raise ValueError("n must be non-negative")
        if int(self.n_batches) <= 0:
            raise ValueError("n_batches must be positive")
        if int(self.n_jobs) <= 0:
            raise ValueError("n_jobs must be positive")
        if str(self.bitgen) != "PCG64":
            raise ValueError("bitgen is not recognised")
