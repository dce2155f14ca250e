"""
Discrete random variables with exact outcome/probability bookkeeping.

This package provides outcome tables, distribution construction (explicit
vectors, odds, named families), joint tables and marginalisation, event
expressions with a dependence-aware probability engine, and Monte Carlo
simulation.
"""

from drv.builder import constant, from_family, from_odds, from_vectors, uniform
from drv.config import (
    INDEPENDENCE_TOL,
    PROBABILITY_TOL,
    EngineConfig,
    SamplerConfig,
    TruncationConfig,
)
from drv.engine import (
    conditional_distribution,
    correlation,
    covariance,
    distribution_of,
    expectation,
    independent,
    joint_distribution,
    probability,
    resolve_frame,
    variance,
)
from drv.errors import (
    DivisionByZero,
    DRVError,
    EmptySample,
    IndexOutOfRange,
    InvalidParameters,
    InvalidProbability,
    NoJointAvailable,
    ShapeMismatch,
    UnknownFamily,
)
from drv.events import (
    Constant,
    Event,
    Expression,
    RandomVariable,
    and_,
    equals,
    greater_equal,
    greater_than,
    is_in,
    less_equal,
    less_than,
    not_,
    not_equals,
    or_,
    product_of,
    sum_of,
)
from drv.families import DEFAULT_REGISTRY, FamilyRegistry, FamilySpec, register_family
from drv.joint import (
    JointTable,
    MarginalVariable,
    construct_joint,
    iid,
    joint_from_array,
    joint_from_rule,
    joint_of_independent,
    marginal,
    marginals,
    product_of_iid,
    sum_of_iid,
    sum_of_independent,
)
from drv.sampler import (
    ProportionInterval,
    SampleSet,
    empirical_proportion,
    make_generator,
    proportion_interval,
    sample,
    sample_batches,
)
from drv.table import OutcomeTable, outcome_table

__all__ = [
    "OutcomeTable",
    "outcome_table",
    "JointTable",
    "MarginalVariable",
    "from_vectors",
    "from_odds",
    "from_family",
    "uniform",
    "constant",
    "FamilyRegistry",
    "FamilySpec",
    "DEFAULT_REGISTRY",
    "register_family",
    "construct_joint",
    "joint_from_array",
    "joint_of_independent",
    "joint_from_rule",
    "iid",
    "sum_of_iid",
    "product_of_iid",
    "sum_of_independent",
    "marginal",
    "marginals",
    "Expression",
    "Event",
    "Constant",
    "RandomVariable",
    "equals",
    "not_equals",
    "less_than",
    "less_equal",
    "greater_than",
    "greater_equal",
    "is_in",
    "and_",
    "or_",
    "not_",
    "sum_of",
    "product_of",
    "probability",
    "expectation",
    "variance",
    "covariance",
    "correlation",
    "distribution_of",
    "conditional_distribution",
    "joint_distribution",
    "independent",
    "resolve_frame",
    "SampleSet",
    "ProportionInterval",
    "sample",
    "sample_batches",
    "empirical_proportion",
    "proportion_interval",
    "make_generator",
    "EngineConfig",
    "SamplerConfig",
    "TruncationConfig",
    "PROBABILITY_TOL",
    "INDEPENDENCE_TOL",
    "DRVError",
    "ShapeMismatch",
    "InvalidProbability",
    "UnknownFamily",
    "InvalidParameters",
    "IndexOutOfRange",
    "DivisionByZero",
    "NoJointAvailable",
    "EmptySample",
]
