"""Abstract base class for recommendation-rule stores.

The store owns persistence and pre-filtering of rules; scoring and
combination of matched rules is the rule matcher's job.  Implementations
may load rules from YAML, SQLite, a document database or a remote
configuration service.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from contextune.models.context import Context
from contextune.models.rule import Rule


class IRuleStore(ABC):
    """Contract for rule persistence and effectiveness feedback."""

    @abstractmethod
    async def find_matching_rules(self, context: Context, limit: int = 10) -> list[Rule]:
        """Return active rules that match *context*.

        Parameters
        ----------
        context:
            The request context.
        limit:
            Maximum number of rules to return.

        Returns
        -------
        list[Rule]
            Matching active rules, highest match score first.

        Raises
        ------
        contextune.utils.errors.ExternalServiceError
            If the backing store cannot be read.
        """

    @abstractmethod
    async def get_rule(self, rule_id: str) -> Rule | None:
        """Return the rule with *rule_id*, or ``None`` if absent."""

    @abstractmethod
    async def update_effectiveness(
        self,
        rule_id: str,
        applied: bool = True,
        success: bool | None = None,
        rating: float | None = None,
    ) -> Rule:
        """Fold one feedback observation into the rule's effectiveness.

        Raises
        ------
        contextune.utils.errors.NotFoundError
            If no rule with *rule_id* exists.
        """

    @abstractmethod
    async def rule_performance(self, limit: int = 50) -> list[dict[str, Any]]:
        """Active rules ordered by success rate, then applied count."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
