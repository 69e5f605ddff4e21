"""Annealing schedules: temperature, range limit and criticality exponent updates."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

FINAL_RLIM = 1.0


@dataclass
class AnnealingState:
    """Mutable schedule state carried across temperatures."""
    t: float
    rlim: float
    rlim_max: float
    crit_exponent: float
    move_lim: int
    alpha: float = 0.0
    num_temps: int = 0


class AnnealingSchedule(ABC):
    """Base class for annealing schedules."""

    @abstractmethod
    def update(self, state: AnnealingState, success_rate: float) -> None:
        """Advance the state by one temperature."""
        pass

    @abstractmethod
    def exit_condition(self, state: AnnealingState, cost: float, num_nets: int) -> bool:
        """Whether the annealing phase is over (quench follows)."""
        pass


class AdaptiveSchedule(AnnealingSchedule):
    """Success-rate driven schedule.

    Cooling is fast while almost every move is accepted and slow in the
    productive 15%-80% acceptance band; the range limit shrinks or grows to
    hold the success rate near 0.44.
    """

    def __init__(
        self,
        exit_t_factor: float = 0.005,
        max_num_temps: int = 500,
        td_place_exp_first: float = 1.0,
        td_place_exp_last: float = 8.0
    ):
        self.exit_t_factor = exit_t_factor
        self.max_num_temps = max_num_temps
        self.td_place_exp_first = td_place_exp_first
        self.td_place_exp_last = td_place_exp_last

    def update(self, state: AnnealingState, success_rate: float) -> None:
        state.num_temps += 1
        self.update_t(state, success_rate)
        self.update_rlim(state, success_rate)
        state.crit_exponent = self.crit_exponent(state.rlim, state.rlim_max)

    @staticmethod
    def alpha(success_rate: float, rlim: float) -> float:
        if success_rate > 0.96:
            return 0.5
        if success_rate > 0.8:
            return 0.9
        if success_rate > 0.15 or rlim > FINAL_RLIM:
            return 0.95
        return 0.8

    def update_t(self, state: AnnealingState, success_rate: float) -> None:
        state.alpha = self.alpha(success_rate, state.rlim)
        state.t *= state.alpha

    @staticmethod
    def update_rlim(state: AnnealingState, success_rate: float) -> None:
        state.rlim = min(max(state.rlim * (1.0 - 0.44 + success_rate), FINAL_RLIM), state.rlim_max)

    def crit_exponent(self, rlim: float, rlim_max: float) -> float:
        """Linear in rlim: first exponent at rlim_max, last exponent at the final range limit."""
        if rlim_max <= FINAL_RLIM:
            return self.td_place_exp_last
        progress = 1.0 - (rlim - FINAL_RLIM) / (rlim_max - FINAL_RLIM)
        return progress * (self.td_place_exp_last - self.td_place_exp_first) + self.td_place_exp_first

    def exit_condition(self, state: AnnealingState, cost: float, num_nets: int) -> bool:
        if state.num_temps >= self.max_num_temps:
            return True
        return state.t < self.exit_t_factor * cost / max(num_nets, 1)
