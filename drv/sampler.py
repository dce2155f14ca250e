"""
Monte Carlo simulation from outcome tables.

Draws use inverse-CDF sampling over an injectable uniform source. Batched
simulation spawns one independent stream per batch from a single
`np.random.SeedSequence`, so results are reproducible and do not depend on how
batches are distributed over worker processes.
"""

from __future__ import annotations

import multiprocessing as mp
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, Protocol, Sequence, Tuple, Union

import numpy as np
from scipy.stats import norm

from drv.config import SamplerConfig
from drv.errors import EmptySample
from drv.events import Event
from drv.table import Outcome, OutcomeTable


class UniformSource(Protocol):
    """
    Anything producing uniform reals in [0, 1); `np.random.Generator` qualifies.
    """

    def random(self, size: int) -> Any: ...


def make_generator(seed: Optional[Union[int, np.random.SeedSequence]] = None) -> np.random.Generator:
    """A PCG64 generator; fresh OS entropy when `seed` is None."""
    ss = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    return np.random.Generator(np.random.PCG64(ss))


@dataclass(frozen=True, eq=False)
class SampleSet:
    """
    Ordered sampled outcomes, tagged with the table they were drawn from.
    """

    values: Tuple[Outcome, ...]
    table: OutcomeTable

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[Outcome]:
        return iter(self.values)

    def counts(self) -> Counter:
        return Counter(self.values)

    def empirical_table(self) -> OutcomeTable:
        """Observed proportions as an outcome table."""
        if not self.values:
            raise EmptySample("the sample set is empty")
        c = self.counts()
        n = float(len(self.values))
        return OutcomeTable.construct(list(c.keys()), [v / n for v in c.values()])

    def mean(self) -> float:
        if not self.values:
            raise EmptySample("the sample set is empty")
        return float(np.mean(np.asarray(self.values, dtype=float)))


def _cumulative(probabilities: np.ndarray) -> np.ndarray:
    cum = np.cumsum(np.asarray(probabilities, dtype=float))
    return cum / cum[-1]


def _draw_indices(cum: np.ndarray, u: np.ndarray) -> np.ndarray:
    idx = np.searchsorted(cum, u, side="right")
    return np.minimum(idx, cum.shape[0] - 1)


def sample(
    table: OutcomeTable,
    n: int,
    *,
    source: Optional[UniformSource] = None,
    seed: Optional[int] = None,
) -> SampleSet:
    """
    Draw n independent outcomes from `table`.

    Args:
        table: Table to sample from.
        n: Number of draws.
        source: Uniform source; a PCG64 generator seeded with `seed` when omitted.
        seed: Seed for the default source (ignored when `source` is given).
    """
    n = int(n)
    if n < 0:
        raise ValueError("n must be non-negative")
    if source is None:
        source = make_generator(seed)
    u = np.asarray(source.random(n), dtype=float).reshape(-1)
    if int(u.shape[0]) != n:
        raise ValueError(f"the uniform source returned {int(u.shape[0])} values, expected {n}")
    if n and (float(np.min(u)) < 0.0 or float(np.max(u)) >= 1.0):
        raise ValueError("the uniform source must produce values in [0, 1)")
    idx = _draw_indices(_cumulative(table.probabilities), u)
    return SampleSet(values=tuple(table.outcomes[int(i)] for i in idx), table=table)


def _chunk_seeds(
    seeds: Sequence[Tuple[int, np.random.SeedSequence]], *, n_chunks: int
) -> Tuple[Tuple[Tuple[int, np.random.SeedSequence], ...], ...]:
    if int(n_chunks) <= 0:
        raise ValueError("n_chunks must be positive")
    chunks: List[List[Tuple[int, np.random.SeedSequence]]] = [[] for _ in range(int(n_chunks))]
    for i, item in enumerate(seeds):
        chunks[int(i) % int(n_chunks)].append(item)
    return tuple(tuple(c) for c in chunks if c)


def _run_batches(
    args: Tuple[np.ndarray, int, Tuple[Tuple[int, np.random.SeedSequence], ...]]
) -> List[Tuple[int, np.ndarray]]:
    cum, n, seeds = args
    out: List[Tuple[int, np.ndarray]] = []
    for batch, ss in seeds:
        rng = make_generator(ss)
        out.append((int(batch), _draw_indices(cum, rng.random(int(n)))))
    return out


def sample_batches(table: OutcomeTable, config: Optional[SamplerConfig] = None) -> Tuple[SampleSet, ...]:
    """
    Draw `config.n_batches` sample sets of `config.n` values each.

    Each batch has its own stream spawned from `SeedSequence(config.seed)`;
    with n_jobs > 1 the batches are spread over worker processes.
    """
    config = config or SamplerConfig()
    config.validate()
    root = np.random.SeedSequence(int(config.seed))
    seeds = list(enumerate(root.spawn(int(config.n_batches))))
    cum = _cumulative(table.probabilities)

    n_jobs = min(int(config.n_jobs), len(seeds))
    if n_jobs == 1:
        results = _run_batches((cum, int(config.n), tuple(seeds)))
    else:
        chunks = _chunk_seeds(seeds, n_chunks=n_jobs)
        ctx = mp.get_context("spawn")
        with ctx.Pool(processes=n_jobs) as pool:
            parts = pool.map(_run_batches, [(cum, int(config.n), c) for c in chunks])
        results = [r for part in parts for r in part]

    by_batch = dict(results)
    return tuple(
        SampleSet(values=tuple(table.outcomes[int(i)] for i in by_batch[b]), table=table)
        for b in range(int(config.n_batches))
    )


def _hits(sample_set: SampleSet, predicate: Union[Event, Callable[[Outcome], bool]]) -> int:
    if isinstance(predicate, Event):
        tables = predicate.tables()
        if any(t is not sample_set.table for t in tables):
            raise ValueError("the event refers to variables other than the sampled table")
        key = id(sample_set.table)
        return sum(1 for v in sample_set.values if predicate.holds({key: v}))
    return sum(1 for v in sample_set.values if bool(predicate(v)))


def empirical_proportion(sample_set: SampleSet, predicate: Union[Event, Callable[[Outcome], bool]]) -> float:
    """
    Fraction of samples satisfying `predicate` (a callable or an event over the
    sampled table).

    Raises:
        EmptySample: If the sample set is empty.
    """
    if len(sample_set) == 0:
        raise EmptySample("the proportion of an empty sample set is undefined")
    return float(_hits(sample_set, predicate)) / float(len(sample_set))


@dataclass(frozen=True)
class ProportionInterval:
    level: float
    estimate: float
    lower: float
    upper: float
    n: int


def proportion_interval(
    sample_set: SampleSet,
    predicate: Union[Event, Callable[[Outcome], bool]],
    *,
    level: float = 0.95,
) -> ProportionInterval:
    """
    Wilson score interval for the proportion of samples satisfying `predicate`.
    """
    level = float(level)
    if not (0.0 < level < 1.0):
        raise ValueError("level must be between 0 and 1")
    n = len(sample_set)
    if n == 0:
        raise EmptySample("the proportion of an empty sample set is undefined")
    k = _hits(sample_set, predicate)

    z = float(norm.ppf(0.5 + level / 2.0))
    p = k / n
    denominator = 1.0 + (z**2 / n)
    center = (p + (z**2 / (2.0 * n))) / denominator
    margin = (z / denominator) * np.sqrt((p * (1.0 - p) / n) + (z**2 / (4.0 * n**2)))
    return ProportionInterval(
        level=level,
        estimate=float(p),
        lower=float(max(0.0, center - margin)),
        upper=float(min(1.0, center + margin)),
        n=int(n),
    )
