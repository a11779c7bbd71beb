"""Rule store implementations."""

from contextune.providers.rules.yaml_rule_store import YAMLRuleStore

__all__ = ["YAMLRuleStore"]
