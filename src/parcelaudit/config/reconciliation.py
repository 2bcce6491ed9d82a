"""Record reconciliation defaults."""

from __future__ import annotations

from dataclasses import dataclass

from parcelaudit.domain.geometry import NEGLIGIBLE_OVERLAP_AREA
from parcelaudit.domain.model.enums import RecordKeyPolicy

from .env import float_env_var, optional_env_var
from .errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    key_policy: RecordKeyPolicy = RecordKeyPolicy.OPERATOR_CAMPAIGN
    overlap_epsilon: float = NEGLIGIBLE_OVERLAP_AREA


def get_reconciliation_config() -> ReconciliationConfig:
    raw_policy = optional_env_var("PARCELAUDIT_RECORD_KEY_POLICY")
    try:
        key_policy = (
            RecordKeyPolicy(raw_policy.lower())
            if raw_policy
            else RecordKeyPolicy.OPERATOR_CAMPAIGN
        )
    except ValueError as exc:
        choices = ", ".join(policy.value for policy in RecordKeyPolicy)
        raise ConfigurationError(
            f"PARCELAUDIT_RECORD_KEY_POLICY must be one of {choices}, got {raw_policy!r}",
            variables=["PARCELAUDIT_RECORD_KEY_POLICY"],
        ) from exc
    return ReconciliationConfig(
        key_policy=key_policy,
        overlap_epsilon=float_env_var("PARCELAUDIT_OVERLAP_EPSILON", NEGLIGIBLE_OVERLAP_AREA),
    )
