"""
Document lifecycle shared by prescriptions and certificates.

Stored states are ``active``, ``dispensed`` (prescriptions only) and
``cancelled``. ``expired`` is derived on every read from ``valid_until`` and is
never written back, so a row may stay ``active`` in the table long after its
validity window closed. Anything that takes a decision on a document has to go
through :func:`effective_status`.
"""
from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import and_

from clinicdocs.core.errors import ValidationError
from clinicdocs.models import IssuableDocument
from clinicdocs.models.document import DocumentKind, DocumentStatus


class EffectiveStatus(str, enum.Enum):
    active = "active"
    dispensed = "dispensed"
    cancelled = "cancelled"
    expired = "expired"


class Event(str, enum.Enum):
    dispense = "dispense"
    cancel = "cancel"


# (evento) -> (estado destino, tipos de documento permitidos)
TRANSITIONS: dict[Event, tuple[DocumentStatus, frozenset[DocumentKind]]] = {
    Event.dispense: (DocumentStatus.dispensed, frozenset({DocumentKind.prescription})),
    Event.cancel: (DocumentStatus.cancelled, frozenset({DocumentKind.prescription, DocumentKind.certificate})),
}


def utcnow() -> datetime:
    """Naive UTC, same convention as the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def derive_status(status: DocumentStatus, valid_until: datetime, now: datetime | None = None) -> EffectiveStatus:
    now = now or utcnow()
    if status == DocumentStatus.active and valid_until < now:
        return EffectiveStatus.expired
    return EffectiveStatus(status.value)


def effective_status(document: IssuableDocument, now: datetime | None = None) -> EffectiveStatus:
    return derive_status(document.status, document.valid_until, now)


def target_status(kind: DocumentKind, event: Event) -> DocumentStatus:
    target, kinds = TRANSITIONS[event]
    if kind not in kinds:
        raise ValidationError(f"cannot {event.value} a {kind.value}")
    return target


def ensure_transition(document: IssuableDocument, event: Event, now: datetime | None = None) -> DocumentStatus:
    """Check ``event`` is legal for ``document`` right now and return the target status.

    Raises ValidationError naming the current effective status otherwise.
    """
    target = target_status(document.kind, event)
    current = effective_status(document, now)
    if current == EffectiveStatus.active:
        return target
    if current.value == target.value:
        raise ValidationError(f"already {current.value}")
    raise ValidationError(f"cannot {event.value}: document is {current.value}")


def ensure_can_dispense(document: IssuableDocument, now: datetime | None = None) -> DocumentStatus:
    return ensure_transition(document, Event.dispense, now)


def ensure_can_cancel(document: IssuableDocument, now: datetime | None = None) -> DocumentStatus:
    return ensure_transition(document, Event.cancel, now)


def transition_guard(model: type[IssuableDocument], now: datetime):
    """WHERE clause for the conditional update: still active and not expired."""
    return and_(model.status == DocumentStatus.active, model.valid_until >= now)


def status_filter(model: type[IssuableDocument], status: EffectiveStatus, now: datetime):
    """WHERE clause selecting rows whose *effective* status is ``status``."""
    if status == EffectiveStatus.expired:
        return and_(model.status == DocumentStatus.active, model.valid_until < now)
    if status == EffectiveStatus.active:
        return transition_guard(model, now)
    return model.status == DocumentStatus(status.value)
