"""Decide which record events become permanent audit-trail entries.

The decision is a pure function of the event type, the certification state of the
record *before* the change and whether an actor is known. Entries are built here
and nowhere else; callers only append what :func:`decide` returns.

Rules are evaluated as a disjunction:

* collection creation and deletion are always recorded;
* single-feature changes and collection updates are recorded once the record has
  reached ``AUDITED`` (drafts are edited freely by the operator);
* certification state changes are always recorded.

Without a prior record state or without an actor (first import, system jobs) the
event is recorded unconditionally.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from parcelaudit.domain.model import CertificationState, EventType, HistoryEntry
from parcelaudit.domain.model._internal import utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from parcelaudit.domain.model import HistoryActor, OperatorRecord

type HistoryRule = Callable[[EventType, CertificationState], bool]


def _always(*event_types: EventType) -> HistoryRule:
    def rule(event_type: EventType, state: CertificationState) -> bool:
        _ = state
        return event_type in event_types

    return rule


def _from_state(threshold: CertificationState, *event_types: EventType) -> HistoryRule:
    def rule(event_type: EventType, state: CertificationState) -> bool:
        return event_type in event_types and state.is_at_least(threshold)

    return rule


HISTORY_RULES: Final[tuple[HistoryRule, ...]] = (
    _always(EventType.FEATURE_COLLECTION_CREATE),
    _always(EventType.FEATURE_COLLECTION_DELETE),
    _from_state(
        CertificationState.AUDITED,
        EventType.FEATURE_CREATE,
        EventType.FEATURE_DELETE,
        EventType.FEATURE_UPDATE,
    ),
    _from_state(CertificationState.AUDITED, EventType.FEATURE_COLLECTION_UPDATE),
    _always(EventType.CERTIFICATION_STATE_CHANGE),
)


@dataclass(frozen=True, slots=True, kw_only=True)
class HistoryContext:
    actor: HistoryActor | None = None
    prior_state: CertificationState | None = None

    @classmethod
    def for_record(
        cls,
        record: OperatorRecord | None,
        actor: HistoryActor | None = None,
    ) -> HistoryContext:
        """Capture the state of ``record`` before it is mutated."""

        return cls(
            actor=actor,
            prior_state=record.certification_state if record is not None else None,
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class HistoryPayload:
    features: object = None
    description: str | None = None
    state: CertificationState | None = None
    metadata: Mapping[str, Any] | None = None
    date: datetime | None = None


def should_record(event_type: EventType, prior_state: CertificationState) -> bool:
    return any(rule(event_type, prior_state) for rule in HISTORY_RULES)


def decide(
    event_type: EventType,
    payload: HistoryPayload | None = None,
    context: HistoryContext | None = None,
) -> HistoryEntry | None:
    payload = payload or HistoryPayload()
    context = context or HistoryContext()

    prior_state = context.prior_state
    if (
        prior_state is not None
        and context.actor is not None
        and not should_record(event_type, prior_state)
    ):
        return None

    return create_history_entry(event_type, payload, actor=context.actor)


def create_history_entry(
    event_type: EventType,
    payload: HistoryPayload,
    *,
    actor: HistoryActor | None = None,
) -> HistoryEntry:
    return HistoryEntry(
        type=event_type,
        date=payload.date or utcnow(),
        state=payload.state,
        description=payload.description,
        event_metadata=dict(payload.metadata) if payload.metadata is not None else None,
        user=actor,
        feature_ids=collect_feature_ids(payload.features),
    )


def collect_feature_ids(features: object) -> tuple[str, ...] | None:
    """Return the ids of a feature list or of an object exposing ``features``.

    Any other shape yields ``None``.
    """

    if isinstance(features, Mapping):
        features = features.get("features")  # pyright: ignore[reportUnknownMemberType]
    if isinstance(features, (str, bytes)) or not isinstance(features, Sequence):
        return None
    ids: list[str] = []
    for feature in features:  # pyright: ignore[reportUnknownVariableType]
        feature_id = feature.get("id") if isinstance(feature, Mapping) else None  # pyright: ignore[reportUnknownMemberType]
        if feature_id is not None:
            ids.append(str(feature_id))  # pyright: ignore[reportUnknownArgumentType]
    return tuple(ids)
