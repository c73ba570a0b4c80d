"""Interactive deletion workflow as an explicit state machine.

``Browsing -> Pending -> Committed | Cancelled``

:func:`transition` is pure: it maps ``(state, event)`` to the next state and
an optional :class:`EffectRequest`. Nothing touches the filesystem until an
:class:`EffectHandler` executes that request through the trash writer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple, Union

from .errors import InvalidTransitionError
from .models import BatchOutcome
from .selection import Candidate, filter_candidates
from .trash import TrashManager

logger = logging.getLogger(__name__)


class Action(str, Enum):
    DELETE = "delete"
    RESTORE = "restore"
    RESTORE_SESSION = "restore-session"
    RESTORE_ALL = "restore-all"
    UNDO = "undo"
    EMPTY = "empty"


# Actions that operate on the current selection.
SELECTION_ACTIONS = frozenset({Action.DELETE, Action.RESTORE})


# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Browsing:
    selection: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class Pending:
    action: Action
    paths: Tuple[str, ...] = ()
    session_id: Optional[str] = None
    # Selection to return to on cancel.
    selection: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class Committed:
    request: "EffectRequest"


@dataclass(frozen=True)
class Cancelled:
    selection: FrozenSet[str] = frozenset()


State = Union[Browsing, Pending, Committed, Cancelled]


# ---------------------------------------------------------------------------
# Events and effects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Select:
    paths: Tuple[str, ...]


@dataclass(frozen=True)
class Deselect:
    paths: Tuple[str, ...]


@dataclass(frozen=True)
class ClearSelection:
    pass


@dataclass(frozen=True)
class SelectMatching:
    """Replace the selection with the candidates matching *query* (and *kind*)."""

    query: str
    candidates: Tuple[Candidate, ...]
    kind: str = "all"


@dataclass(frozen=True)
class RequestAction:
    action: Action
    session_id: Optional[str] = None


@dataclass(frozen=True)
class Approve:
    pass


@dataclass(frozen=True)
class Cancel:
    pass


@dataclass(frozen=True)
class Resume:
    """Leave a terminal state and go back to browsing."""


Event = Union[Select, Deselect, ClearSelection, SelectMatching, RequestAction, Approve, Cancel, Resume]


@dataclass(frozen=True)
class EffectRequest:
    action: Action
    paths: Tuple[str, ...] = ()
    session_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Pure transition function
# ---------------------------------------------------------------------------

def transition(state: State, event: Event) -> Tuple[State, Optional[EffectRequest]]:
    if isinstance(state, Browsing):
        return _from_browsing(state, event), None

    if isinstance(state, Pending):
        if isinstance(event, Approve):
            request = EffectRequest(state.action, state.paths, state.session_id)
            return Committed(request), request
        if isinstance(event, Cancel):
            return Cancelled(state.selection), None
        raise InvalidTransitionError("Pending", type(event).__name__)

    if isinstance(state, Committed):
        if isinstance(event, Resume):
            return Browsing(), None
        raise InvalidTransitionError("Committed", type(event).__name__)

    if isinstance(state, Cancelled):
        if isinstance(event, Resume):
            return Browsing(state.selection), None
        raise InvalidTransitionError("Cancelled", type(event).__name__)

    raise InvalidTransitionError(type(state).__name__, type(event).__name__)


def _from_browsing(state: Browsing, event: Event) -> State:
    if isinstance(event, Select):
        return replace(state, selection=state.selection | frozenset(event.paths))
    if isinstance(event, Deselect):
        return replace(state, selection=state.selection - frozenset(event.paths))
    if isinstance(event, ClearSelection):
        return Browsing()
    if isinstance(event, SelectMatching):
        matched = filter_candidates(list(event.candidates), event.query, event.kind)
        return Browsing(frozenset(c.rel_path for c in matched))
    if isinstance(event, RequestAction):
        if event.action in SELECTION_ACTIONS and not state.selection:
            logger.debug("Ignoring %s request with empty selection", event.action.value)
            return state
        if event.action == Action.RESTORE_SESSION and not event.session_id:
            raise InvalidTransitionError("Browsing", "RequestAction(restore-session) without session id")
        paths = tuple(sorted(state.selection)) if event.action in SELECTION_ACTIONS else ()
        return Pending(event.action, paths, event.session_id, state.selection)
    raise InvalidTransitionError("Browsing", type(event).__name__)


# ---------------------------------------------------------------------------
# Effect layer
# ---------------------------------------------------------------------------

class EffectHandler:
    """Executes :class:`EffectRequest` objects against the trash writer."""

    def __init__(self, manager: TrashManager):
        self.manager = manager

    def execute(self, request: EffectRequest) -> BatchOutcome:
        with self.manager.writer() as writer:
            if request.action == Action.DELETE:
                return writer.delete(request.paths)
            if request.action == Action.RESTORE:
                return writer.restore(request.paths)
            if request.action == Action.RESTORE_SESSION:
                return writer.restore_session(request.session_id or "")
            if request.action == Action.RESTORE_ALL:
                return writer.restore_all()
            if request.action == Action.UNDO:
                return writer.undo()
            return writer.empty()


@dataclass
class InteractiveSession:
    """Drives :func:`transition` and hands effect requests to the handler."""

    handler: EffectHandler
    state: State = field(default_factory=Browsing)
    last_outcome: Optional[BatchOutcome] = None

    def send(self, event: Event) -> Optional[BatchOutcome]:
        self.state, request = transition(self.state, event)
        if request is None:
            return None
        self.last_outcome = self.handler.execute(request)
        return self.last_outcome

    def send_all(self, events: Iterable[Event]) -> Optional[BatchOutcome]:
        outcome = None
        for event in events:
            result = self.send(event)
            if result is not None:
                outcome = result
        return outcome
