"""Per-agent turn budgets. Disabled tracking behaves as an unbounded budget."""

import logging
import math
from collections.abc import Iterable

logger = logging.getLogger(__name__)

UNBOUNDED = math.inf


class TurnBudget:
    """Remaining-turn counters for each agent in the roster.

    A budget of None or 0 disables tracking entirely: remaining() reports
    UNBOUNDED, consume() does nothing and all_exhausted() is always False.
    """

    def __init__(self) -> None:
        self._max: int | None = None
        self._remaining: dict[str, int] = {}

    def initialize(self, agent_names: Iterable[str], max_per_agent: int | None) -> None:
        if not max_per_agent:
            self._max = None
            self._remaining = {}
            logger.debug("Turn budget disabled")
            return
        if max_per_agent < 0:
            raise ValueError(f"max_per_agent must be positive, got {max_per_agent}")
        self._max = max_per_agent
        self._remaining = {name: max_per_agent for name in agent_names}
        logger.debug("Turn budget: %d per agent for %s", max_per_agent, list(self._remaining))

    @property
    def enabled(self) -> bool:
        return self._max is not None

    @property
    def max_per_agent(self) -> int | None:
        return self._max

    def remaining(self, agent_name: str) -> int | float:
        if not self.enabled:
            return UNBOUNDED
        return self._remaining.get(agent_name, 0)

    def consume(self, agent_name: str) -> None:
        if not self.enabled:
            return
        count = self._remaining.get(agent_name, 0)
        if count > 0:
            self._remaining[agent_name] = count - 1

    def all_exhausted(self) -> bool:
        return self.enabled and all(count == 0 for count in self._remaining.values())

    def reset(self) -> None:
        if not self.enabled:
            return
        self._remaining = {name: self._max for name in self._remaining}

    def snapshot(self) -> dict[str, int]:
        return dict(self._remaining)
