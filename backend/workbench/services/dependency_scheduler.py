"""
dependency_scheduler.py — Debounced fill-if-empty recomputation.

Each entity kind declares trigger attributes and the derived attributes
they feed.  A trigger change (re)arms a per-entity timer; when the timer
expires with no further triggers, the entity is recomputed against its
current values and each derived attribute is written only when it is blank
and the user has not supplied it.

Timing is driven by an injectable monotonic clock so the scheduler can be
stepped deterministically (``run_due(now)``) or drained on an event loop
(``drain()``).
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Set, Tuple

from workbench import config
from workbench.models.document_model import EntityModel
from workbench.services.logging_config import entity_extra
from workbench.services.physics_engine import PhysicsEngine, UnknownThickness
from workbench.services.schema_resolver import DERIVED

logger = logging.getLogger("workbench-scheduler")


TRIGGERS: Dict[str, FrozenSet[str]] = {
    "glass_unit": frozenset({
        "length", "width", "wind_load",
        "thickness", "thickness1", "thickness2", "thickness1_1", "thickness1_2",
        "support_type",
    }),
    "wind": frozenset({
        "b_length", "b_width", "b_height", "exposure_cat",
        "b_freq", "damping", "b_rigidity", "wind_speed",
    }),
}


@dataclass
class RecomputeOutcome:
    """What one recomputation did to one entity."""
    entity: EntityModel
    written: Dict[str, float] = field(default_factory=dict)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DependencyScheduler:
    """Per-entity debounce timers plus explicit per-field user state."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        engine: Optional[PhysicsEngine] = None,
        glass_window_s: float = config.GLASS_DEBOUNCE_S,
        wind_window_s: float = config.WIND_DEBOUNCE_S,
    ):
        self.clock = clock
        self.engine = engine or PhysicsEngine()
        self.windows: Dict[str, float] = {"glass_unit": glass_window_s, "wind": wind_window_s}
        # id(entity) → (due time, entity)
        self._pending: Dict[int, Tuple[float, EntityModel]] = {}
        # id(entity) → (entity, user-supplied attribute names)
        self._user: Dict[int, Tuple[EntityModel, Set[str]]] = {}

    # ── User state ────────────────────────────────────────────────────────────

    def _user_fields(self, entity: EntityModel) -> Set[str]:
        entry = self._user.get(id(entity))
        if entry is None or entry[0] is not entity:
            entry = (entity, set())
            self._user[id(entity)] = entry
        return entry[1]

    def mark_user(self, entity: EntityModel, name: str, value) -> None:
        """A non-blank value marks ``name`` user-supplied; a blank one releases it."""
        fields = self._user_fields(entity)
        if value is None or value == "":
            fields.discard(name)
        else:
            fields.add(name)

    def is_user_supplied(self, entity: EntityModel, name: str) -> bool:
        entry = self._user.get(id(entity))
        return entry is not None and entry[0] is entity and name in entry[1]

    def transfer(self, old: EntityModel, new: EntityModel) -> None:
        """
        Carry user state and any pending timer to a replacement record.
        Derived attributes start over, so their user marks are dropped.
        """
        fields = set()
        entry = self._user.pop(id(old), None)
        if entry is not None and entry[0] is old:
            derived = DERIVED.get(new.KIND, ())
            fields = {n for n in entry[1] if n in new.ATTRIBUTES and n not in derived}
        self._user[id(new)] = (new, fields)

        pending = self._pending.pop(id(old), None)
        if pending is not None and pending[1] is old:
            self._pending[id(new)] = (pending[0], new)

    def forget(self, entity: EntityModel) -> None:
        """Drop every trace of an entity that left the project."""
        entry = self._user.get(id(entity))
        if entry is not None and entry[0] is entity:
            del self._user[id(entity)]
        if self.is_pending(entity):
            del self._pending[id(entity)]

    def reset(self) -> None:
        self._pending.clear()
        self._user.clear()

    # ── Scheduling ────────────────────────────────────────────────────────────

    def is_trigger(self, kind: str, name: str) -> bool:
        return name in TRIGGERS.get(kind, ())

    def notify(self, entity: EntityModel, name: Optional[str] = None, now: Optional[float] = None) -> bool:
        """
        Record a change to ``entity``.  Returns True when a recomputation was
        (re)scheduled, i.e. ``name`` is a trigger (or omitted, meaning "any
        trigger") for an entity kind that has derived attributes.
        """
        kind = entity.KIND
        if kind not in TRIGGERS:
            return False
        if name is not None and name not in TRIGGERS[kind]:
            return False
        now = self.clock() if now is None else now
        self._pending[id(entity)] = (now + self.windows[kind], entity)
        return True

    def is_pending(self, entity: EntityModel) -> bool:
        entry = self._pending.get(id(entity))
        return entry is not None and entry[1] is entity

    def next_due(self) -> Optional[float]:
        if not self._pending:
            return None
        return min(due for due, _ in self._pending.values())

    def run_due(self, now: Optional[float] = None) -> List[RecomputeOutcome]:
        """Recompute every entity whose quiescence window has elapsed."""
        now = self.clock() if now is None else now
        due = sorted(
            (entry for entry in self._pending.items() if entry[1][0] <= now),
            key=lambda entry: entry[1][0],
        )
        outcomes: List[RecomputeOutcome] = []
        for key, (_, entity) in due:
            del self._pending[key]
            outcomes.append(self.recompute(entity))
        return outcomes

    async def drain(self) -> List[RecomputeOutcome]:
        """Sleep through pending windows until nothing is scheduled."""
        outcomes: List[RecomputeOutcome] = []
        while self._pending:
            delay = self.next_due() - self.clock()
            if delay > 0:
                await asyncio.sleep(delay)
            outcomes.extend(self.run_due())
        return outcomes

    # ── Recompute ─────────────────────────────────────────────────────────────

    def compute(self, entity: EntityModel) -> Dict[str, float]:
        """Every derived value computable from the entity's current inputs."""
        values = entity.values()
        if entity.KIND == "glass_unit":
            return self.engine.derive_glass_unit(values["glass_type"], values)["results"]
        if entity.KIND == "wind":
            return self.engine.derive_wind(values)["results"]
        return {}

    def recompute(self, entity: EntityModel) -> RecomputeOutcome:
        """Apply the fill-if-empty policy to ``entity`` now."""
        outcome = RecomputeOutcome(entity=entity)
        extra = entity_extra(entity.KIND, id(entity))
        try:
            results = self.compute(entity)
        except UnknownThickness as exc:
            outcome.error = exc
            logger.warning("Recompute aborted: %s", exc, extra=extra)
            return outcome
        except (ValueError, ArithmeticError) as exc:
            outcome.error = exc
            logger.error("Recompute failed: %s: %s", type(exc).__name__, exc, extra=extra)
            return outcome

        for name, value in results.items():
            if name not in entity.ATTRIBUTES:
                continue
            if not entity.is_blank(name) or self.is_user_supplied(entity, name):
                continue
            entity.set(name, value)
            outcome.written[name] = value

        if outcome.written:
            logger.debug("Derived values written", extra={**extra, "written": outcome.written})
        return outcome
