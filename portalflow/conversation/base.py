"""Phase-driven chat flows: intent matching, transitions and sessions."""

from __future__ import annotations

import abc
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Pattern, Sequence, Tuple

from pydantic import BaseModel, Field

from ..contracts import ConversationState, Message, OfferedAction, Role
from ..errors import UnrecognizedInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Intent:
    """An input recognised for a phase."""

    name: str
    text: str
    match: Optional[re.Match] = None


class IntentMatcher:
    """Ordered regex rules per phase. The first matching rule wins."""

    def __init__(self, rules: Mapping[str, Sequence[Tuple[str, str | Pattern]]]) -> None:
        self._rules: Dict[str, List[Tuple[str, Pattern]]] = {
            phase: [
                (name, pattern if isinstance(pattern, re.Pattern) else re.compile(pattern, re.IGNORECASE))
                for name, pattern in phase_rules
            ]
            for phase, phase_rules in rules.items()
        }

    def match(self, phase: str, text: str) -> Intent:
        for name, pattern in self._rules.get(phase, []):
            found = pattern.search(text)
            if found:
                return Intent(name=name, text=text, match=found)
        raise UnrecognizedInput(phase, text)


class Transition(BaseModel):
    """Result of advancing a flow by one user input."""

    next_phase: str
    message: Message
    updates: Dict[str, Any] = Field(default_factory=dict)


def assistant(
    content: str,
    actions: Sequence[Tuple[str, str]] = (),
    data: Optional[Dict[str, Any]] = None,
) -> Message:
    return Message(
        role=Role.ASSISTANT,
        content=content,
        offered_actions=[OfferedAction(label=label, value=value) for label, value in actions],
        data=data or {},
    )


class ConversationalFlow(metaclass=abc.ABCMeta):
    """A chat flow whose phases only ever move forward.

    Subclasses declare ``phases`` in order, an :class:`IntentMatcher` and
    implement :meth:`handle`. Input that matches no rule, or that ``handle``
    rejects with :class:`UnrecognizedInput`, re-prompts in the same phase.
    """

    phases: Tuple[str, ...] = ()
    matcher: IntentMatcher

    @property
    def initial_phase(self) -> str:
        return self.phases[0]

    @property
    def final_phase(self) -> str:
        return self.phases[-1]

    def phase_index(self, phase: str) -> int:
        return self.phases.index(phase)

    @abc.abstractmethod
    def intro_message(self) -> Message:
        """Greeting shown when the flow starts."""

    @abc.abstractmethod
    async def handle(self, phase: str, intent: Intent, context: Mapping[str, Any]) -> Transition:
        """Produce the transition for a recognised intent."""

    @abc.abstractmethod
    def reprompt(self, phase: str, user_input: str) -> Message:
        """Ask again after unrecognised input."""

    async def advance(
        self, phase: str, user_input: str, context: Optional[Mapping[str, Any]] = None
    ) -> Transition:
        try:
            intent = self.matcher.match(phase, user_input)
            return await self.handle(phase, intent, context or {})
        except UnrecognizedInput as e:
            logger.info(f"{type(self).__name__}: {e}")
            return Transition(next_phase=phase, message=self.reprompt(phase, user_input))


class ConversationSession:
    """Holds one :class:`ConversationState` and applies flow transitions.

    Exactly one assistant message follows each accepted user message. The
    user message is only recorded together with its reply, so a send that
    raises leaves the transcript untouched. A reply computed for an earlier
    generation (the session was restarted while it was pending) is discarded.
    """

    def __init__(self, flow: ConversationalFlow) -> None:
        self.flow = flow
        self.context: Dict[str, Any] = {}
        self.state = ConversationState(phase=flow.initial_phase)
        self.start()

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self.state.messages)

    @property
    def phase(self) -> str:
        return self.state.phase

    @property
    def is_complete(self) -> bool:
        return self.state.phase == self.flow.final_phase

    @property
    def last_message(self) -> Message:
        return self.state.messages[-1]

    def start(self) -> Message:
        """Start or restart the flow with only the intro message."""
        generation = self.state.generation + 1
        self.context = {}
        intro = self.flow.intro_message()
        self.state = ConversationState(
            phase=self.flow.initial_phase, messages=[intro], generation=generation
        )
        return intro

    restart = start

    async def send(self, user_input: str) -> Optional[Message]:
        text = (user_input or "").strip()
        if not text:
            return None
        if self.state.pending_intent is not None:
            raise RuntimeError("A message is already being processed")

        state = self.state
        generation = state.generation
        phase = state.phase
        state.pending_intent = text

        try:
            transition = await self.flow.advance(phase, text, dict(self.context))
        finally:
            state.pending_intent = None

        if self.state is not state or self.state.generation != generation:
            logger.info(f"Discarding reply for abandoned conversation generation {generation}")
            return None

        if self.flow.phase_index(transition.next_phase) < self.flow.phase_index(phase):
            raise RuntimeError(
                f"{type(self.flow).__name__} tried to move back from {phase} to {transition.next_phase}"
            )

        self.context.update(transition.updates)
        state.phase = transition.next_phase
        state.messages.append(Message(role=Role.USER, content=text))
        state.messages.append(transition.message)
        return transition.message

    async def choose(self, action: OfferedAction | str) -> Optional[Message]:
        """Send the value of an offered action button."""
        value = action.value if isinstance(action, OfferedAction) else action
        return await self.send(value)
