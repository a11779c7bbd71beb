"""In-memory rule store seeded from a YAML rule file.

Rule documents are validated into :class:`~contextune.models.rule.Rule`
models once, at load time; an invalid document raises
:class:`~contextune.utils.errors.ConfigurationError` so a broken rule file
fails at startup instead of at match time.

Effectiveness updates are held in memory for the lifetime of the process.
Rules are frozen models, so an update swaps the stored instance for a new
one under an :class:`asyncio.Lock`.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from contextune.config.loader import load_rule_documents
from contextune.interfaces.rule_store import IRuleStore
from contextune.models.context import Context
from contextune.models.rule import Rule
from contextune.utils.errors import ConfigurationError, NotFoundError
from contextune.utils.logging import get_logger

# The store pre-filters a wider window than requested before scoring so
# that a high-scoring lower-priority rule can still make the cut.
_PREFETCH_FACTOR = 2


class YAMLRuleStore(IRuleStore):
    """Rule store holding validated rules in memory.

    Parameters
    ----------
    rules:
        Already-validated rules.  Use :meth:`from_file` to load a YAML file.
    """

    def __init__(self, rules: list[Rule] | None = None) -> None:
        self._rules: dict[str, Rule] = {}
        for rule in rules or []:
            if rule.rule_id in self._rules:
                raise ConfigurationError(
                    message=f"Duplicate rule id '{rule.rule_id}'",
                    provider_name=self.get_provider_name(),
                )
            self._rules[rule.rule_id] = rule
        self._lock = asyncio.Lock()
        self._logger = get_logger(__name__, provider=self.get_provider_name())

    @classmethod
    def from_file(cls, path: str | Path) -> YAMLRuleStore:
        """Load and validate every rule document in *path*."""
        documents = load_rule_documents(path)
        rules: list[Rule] = []
        for index, document in enumerate(documents):
            try:
                rules.append(Rule.model_validate(document))
            except ValidationError as exc:
                rule_id = document.get("rule_id") if isinstance(document, dict) else None
                raise ConfigurationError(
                    message=f"Invalid rule #{index} ({rule_id or 'unnamed'}) in {path}: {exc}",
                    provider_name="yaml_rules",
                ) from exc

        store = cls(rules)
        store._logger.info("rules_loaded", path=str(path), count=len(rules))
        return store

    # ------------------------------------------------------------------
    # IRuleStore implementation
    # ------------------------------------------------------------------

    async def find_matching_rules(self, context: Context, limit: int = 10) -> list[Rule]:
        active = [r for r in self._rules.values() if r.is_active]
        active.sort(
            key=lambda r: (r.priority, r.effectiveness.success_rate),
            reverse=True,
        )
        window = active[: limit * _PREFETCH_FACTOR]

        scored = [(rule, rule.match_score(context)) for rule in window]
        scored = [item for item in scored if item[1] > 0]
        # sort() is stable, so equal scores keep the priority ordering.
        scored.sort(key=lambda item: item[1], reverse=True)
        return [rule for rule, _ in scored[:limit]]

    async def get_rule(self, rule_id: str) -> Rule | None:
        return self._rules.get(rule_id)

    async def update_effectiveness(
        self,
        rule_id: str,
        applied: bool = True,
        success: bool | None = None,
        rating: float | None = None,
    ) -> Rule:
        async with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                raise NotFoundError(
                    message=f"Rule '{rule_id}' not found",
                    provider_name=self.get_provider_name(),
                )
            updated = rule.with_effectiveness(
                rule.effectiveness.record(applied=applied, success=success, rating=rating)
            )
            self._rules[rule_id] = updated

        self._logger.debug(
            "rule_effectiveness_updated",
            rule_id=rule_id,
            success=success,
            rating=rating,
            applied_count=updated.effectiveness.applied_count,
        )
        return updated

    async def rule_performance(self, limit: int = 50) -> list[dict[str, Any]]:
        active = [r for r in self._rules.values() if r.is_active]
        active.sort(
            key=lambda r: (r.effectiveness.success_rate, r.effectiveness.applied_count),
            reverse=True,
        )
        report: list[dict[str, Any]] = []
        for rule in active[:limit]:
            eff = rule.effectiveness
            report.append({
                "rule_id": rule.rule_id,
                "name": rule.name,
                "priority": rule.priority,
                "applied_count": eff.applied_count,
                "success_rate": eff.success_rate,
                "avg_rating": eff.avg_rating,
                "last_applied": eff.last_applied,
                "score": eff.success_rate * eff.applied_count,
            })
        return report

    def get_provider_name(self) -> str:
        return "yaml_rules"

    def __len__(self) -> int:
        return len(self._rules)
