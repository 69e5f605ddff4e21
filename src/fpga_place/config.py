"""Placer configuration.

Configs are plain dataclasses; YAML files map one-to-one onto them:

    seed: 1
    place_algorithm: criticality_timing
    analytical:
      enabled: true
      iterations: 5
    anneal:
      inner_num: 0.5
      move_generator: static
      move_probabilities: {uniform: 0.7, centroid: 0.3}
"""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .analytical.solver import SolverKind
from .cost.costs import NocWeights, PlaceAlgorithm
from .errors import ConfigError
from .moves.move_generator import MoveGeneratorKind
from .noc.routing import NocRoutingAlgorithm


@dataclass
class AnalyticalConfig:
    """Analytical pre-placement."""
    enabled: bool = False
    solver: SolverKind = SolverKind.QP_HYBRID
    iterations: int = 0
    c0: float = 0.01
    decay: float = 5.0
    accumulate_anchors: bool = False
    cg_rtol: float = 1e-10
    cg_atol: float = 1e-9
    cg_maxiter: Optional[int] = None


@dataclass
class AnnealConfig:
    """Annealing schedule and move selection."""
    inner_num: float = 0.5
    init_t_scale: float = 20.0
    initial_temperature: Optional[float] = None
    exit_t_factor: float = 0.005
    max_num_temps: int = 500
    rlim_max: Optional[float] = None
    td_place_exp_first: float = 1.0
    td_place_exp_last: float = 8.0
    recompute_crit_freq: int = 1
    recompute_cost_every: int = 1
    incremental_cost_tolerance: float = 0.01
    quench_moves_factor: float = 1.0
    update_norm_factors: bool = False
    checkpointing: bool = True
    move_generator: MoveGeneratorKind = MoveGeneratorKind.UNIFORM
    move_probabilities: Dict[MoveGeneratorKind, float] = field(default_factory=dict)
    crit_limit: float = 0.7


@dataclass
class NocConfig:
    """NoC-aware placement."""
    enabled: bool = False
    routing_algorithm: NocRoutingAlgorithm = NocRoutingAlgorithm.SHORTEST_PATH
    placement_weighting: float = 0.6
    aggregate_bandwidth_weighting: float = 0.38
    latency_weighting: float = 0.02
    latency_overrun_weighting: float = 0.2
    congestion_weighting: float = 0.4

    def weights(self) -> NocWeights:
        return NocWeights(
            placement_weighting=self.placement_weighting,
            aggregate_bandwidth=self.aggregate_bandwidth_weighting,
            latency=self.latency_weighting,
            latency_overrun=self.latency_overrun_weighting,
            congestion=self.congestion_weighting
        )


@dataclass
class PlacerConfig:
    """Top-level placer configuration."""
    seed: int = 1
    place_algorithm: PlaceAlgorithm = PlaceAlgorithm.CRITICALITY_TIMING
    timing_tradeoff: float = 0.5
    clock_period: Optional[float] = None
    cube_bb: Optional[bool] = None
    analytical: AnalyticalConfig = field(default_factory=AnalyticalConfig)
    anneal: AnnealConfig = field(default_factory=AnnealConfig)
    noc: NocConfig = field(default_factory=NocConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PlacerConfig':
        """Build a config from nested dicts; enum fields accept their string values."""
        data = dict(data or {})
        nested = {
            "analytical": AnalyticalConfig,
            "anneal": AnnealConfig,
            "noc": NocConfig
        }
        kwargs = {}
        for name, sub_cls in nested.items():
            kwargs[name] = _build(sub_cls, data.pop(name, None) or {})
        config = _build(cls, data, **kwargs)
        config.validate()
        return config

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'PlacerConfig':
        with open(path) as f:
            return cls.from_dict(yaml.safe_load(f))

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))

    def to_yaml(self, path: Union[str, Path]) -> None:
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)

    def validate(self) -> None:
        """Raise ConfigError on out-of-range values."""
        if not 0.0 <= self.timing_tradeoff <= 1.0:
            raise ConfigError(f"timing_tradeoff must be in [0, 1], got {self.timing_tradeoff}")
        if self.clock_period is not None and self.clock_period <= 0:
            raise ConfigError("clock_period must be positive")

        a = self.analytical
        if a.iterations < 0:
            raise ConfigError("analytical.iterations must be non-negative")
        if a.c0 < 0 or a.decay <= 0:
            raise ConfigError("analytical.c0 must be >= 0 and analytical.decay > 0")
        if a.cg_rtol <= 0 and a.cg_atol <= 0:
            raise ConfigError("At least one of analytical.cg_rtol / cg_atol must be positive")

        s = self.anneal
        if s.inner_num <= 0:
            raise ConfigError("anneal.inner_num must be positive")
        if s.init_t_scale <= 0 or s.exit_t_factor <= 0:
            raise ConfigError("anneal.init_t_scale and anneal.exit_t_factor must be positive")
        if s.initial_temperature is not None and s.initial_temperature < 0:
            raise ConfigError("anneal.initial_temperature must be non-negative")
        if s.max_num_temps < 0:
            raise ConfigError("anneal.max_num_temps must be non-negative")
        if s.rlim_max is not None and s.rlim_max < 1:
            raise ConfigError("anneal.rlim_max must be at least 1")
        if s.recompute_crit_freq < 1 or s.recompute_cost_every < 1:
            raise ConfigError("anneal.recompute_crit_freq and recompute_cost_every must be >= 1")
        if s.incremental_cost_tolerance <= 0:
            raise ConfigError("anneal.incremental_cost_tolerance must be positive")
        if not 0.0 <= s.crit_limit <= 1.0:
            raise ConfigError("anneal.crit_limit must be in [0, 1]")
        if s.move_generator == MoveGeneratorKind.STATIC and not any(p > 0 for p in s.move_probabilities.values()):
            raise ConfigError("anneal.move_probabilities needs a positive entry for the static move generator")
        if any(p < 0 for p in s.move_probabilities.values()):
            raise ConfigError("anneal.move_probabilities must be non-negative")
        timing_kinds = {MoveGeneratorKind.WEIGHTED_CENTROID, MoveGeneratorKind.CRITICAL_UNIFORM}
        uses_timing = {s.move_generator} | {k for k, p in s.move_probabilities.items() if p > 0}
        if uses_timing & timing_kinds and not self.place_algorithm.is_timing_driven():
            raise ConfigError("Criticality-based move generators need place_algorithm=criticality_timing")

        if self.noc.enabled:
            if self.noc.placement_weighting < 0:
                raise ConfigError("noc.placement_weighting must be non-negative")
            try:
                self.noc.weights().normalized()
            except ValueError as e:
                raise ConfigError(str(e)) from e


def _build(cls, values: Dict[str, Any], **extra):
    known = {f.name: f for f in fields(cls)}
    unknown = set(values) - set(known)
    if unknown:
        raise ConfigError(f"Unknown {cls.__name__} keys: {sorted(unknown)}")
    kwargs = dict(extra)
    for name, value in values.items():
        kwargs[name] = _coerce(name, value)
    return cls(**kwargs)


_ENUM_FIELDS = {
    "solver": SolverKind,
    "place_algorithm": PlaceAlgorithm,
    "move_generator": MoveGeneratorKind,
    "routing_algorithm": NocRoutingAlgorithm
}


def _coerce(name: str, value: Any) -> Any:
    enum_cls = _ENUM_FIELDS.get(name)
    if enum_cls is not None:
        return _to_enum(enum_cls, value)
    if name == "move_probabilities":
        return {_to_enum(MoveGeneratorKind, k): float(p) for k, p in (value or {}).items()}
    return value


def _to_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = ", ".join(e.value for e in enum_cls)
        raise ConfigError(f"Invalid {enum_cls.__name__} '{value}' (choose from {choices})") from None


def _plain(value):
    """Enums to their values so the dict is YAML/JSON safe."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {_plain(k): _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value
