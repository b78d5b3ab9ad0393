"""
Turn-taking state machine.

Transitions are synchronous: the coordinator only calls them from the event
loop, which is the single owner of turn state.
"""

from enum import Enum, auto
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from datetime import datetime

from .error_handling import InvalidTransitionError
from .logging_config import get_logger

logger = get_logger("state")


class TurnState(Enum):
    """Conversation states."""
    IDLE = auto()
    LISTENING = auto()
    AWAITING_REPLY = auto()
    SPEAKING = auto()
    ENDED = auto()
    TIME_LIMIT_ENDED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (TurnState.ENDED, TurnState.TIME_LIMIT_ENDED)

    @property
    def is_active(self) -> bool:
        return self in (TurnState.LISTENING, TurnState.AWAITING_REPLY, TurnState.SPEAKING)


@dataclass
class StateTransition:
    """Record of a state transition."""
    from_state: TurnState
    to_state: TurnState
    reason: str
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())
    metadata: Dict[str, Any] = field(default_factory=dict)


_ACTIVE_EXITS = [TurnState.ENDED, TurnState.TIME_LIMIT_ENDED]


class TurnStateMachine:
    """
    Validates turn transitions and keeps a bounded history.

    IDLE -> LISTENING <-> AWAITING_REPLY <-> SPEAKING -> LISTENING ...
    Every active state may end (user stop) or hit the time limit.
    Terminal states only leave through `reset()`.
    """

    VALID_TRANSITIONS = {
        TurnState.IDLE: [TurnState.LISTENING],
        TurnState.LISTENING: [TurnState.AWAITING_REPLY] + _ACTIVE_EXITS,
        TurnState.AWAITING_REPLY: [TurnState.SPEAKING, TurnState.LISTENING] + _ACTIVE_EXITS,
        TurnState.SPEAKING: [TurnState.LISTENING] + _ACTIVE_EXITS,
        TurnState.ENDED: [],
        TurnState.TIME_LIMIT_ENDED: [],
    }

    def __init__(self, max_history: int = 200):
        self._state = TurnState.IDLE
        self._history: List[StateTransition] = []
        self._max_history = max_history

    @property
    def current_state(self) -> TurnState:
        return self._state

    def can_transition(self, target: TurnState) -> bool:
        return target in self.VALID_TRANSITIONS.get(self._state, [])

    def transition_to(self,
                      target: TurnState,
                      reason: str = "",
                      metadata: Optional[Dict[str, Any]] = None) -> StateTransition:
        """
        Move to `target`.

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        if not self.can_transition(target):
            raise InvalidTransitionError(
                f"Invalid transition: {self._state.name} → {target.name}"
            )

        transition = StateTransition(
            from_state=self._state,
            to_state=target,
            reason=reason or "unspecified",
            metadata=metadata or {}
        )
        self._history.append(transition)
        if len(self._history) > self._max_history:
            self._history.pop(0)

        logger.debug(f"🔄 {self._state.name} → {target.name} ({transition.reason})")
        self._state = target
        return transition

    def reset(self) -> None:
        """Return to IDLE for a fresh session."""
        if self._state != TurnState.IDLE:
            logger.debug(f"State reset from {self._state.name} to IDLE")
        self._state = TurnState.IDLE

    def get_transition_history(self, last_n: int = 10) -> List[StateTransition]:
        return self._history[-last_n:]

    def get_status(self) -> Dict[str, Any]:
        return {
            'state': self._state.name,
            'history_size': len(self._history),
            'last_transition': self._history[-1] if self._history else None
        }
