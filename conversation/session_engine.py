"""
Conversational Session Engine — per-capability phase state machines.

Responsibility:
- Create, advance and finalize multi-turn sessions for stateful capabilities
- Run each phase's pure extractor and merge results into the data bag
- Expire idle sessions on access; prune stale entries only when cleanup() is called

Prohibitions:
- No capability-specific extraction logic (flows supply it)
- No persistence (state is process-local)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Literal

from commands.interface import CommandInterface
from shared.errors import NotFound, SessionExpired
from shared.models import CapabilityOutput, utc_now

logger = logging.getLogger(__name__)

SessionState = Literal["live", "expired", "finalized", "absent"]
Extractor = Callable[[str], dict[str, Any]]


@dataclass
class ConversationSession:
    session_id: str
    capability_id: str
    phase: int = 1
    data: dict[str, Any] = field(default_factory=dict)
    responses: list[str] = field(default_factory=list)
    last_activity: datetime = field(default_factory=utc_now)
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class PhaseSpec:
    """One step of a flow.

    next_phase=None marks the terminal phase. At the terminal phase, input
    accepted by finalize_when triggers finalization; other input is treated as
    a correction and answered with correction_prompt.
    """
    phase: int
    prompt: str | Callable[[ConversationSession], str]
    extractor: Extractor | None = None
    next_phase: int | None = None
    finalize_when: Callable[[str], bool] | None = None
    correction_prompt: str | Callable[[ConversationSession], str] | None = None


def merge_data(data: dict[str, Any], extracted: dict[str, Any]) -> dict[str, Any]:
    """Overwrite-by-key merge. Empty extractions never clear earlier fields."""
    for key, value in extracted.items():
        if value is None or value == "" or value == [] or value == {}:
            continue
        data[key] = value
    return data


class SessionStore:
    """Live sessions keyed by (capability_id, session_id), plus finalized markers."""

    def __init__(self):
        self._live: dict[tuple[str, str], ConversationSession] = {}
        self._finalized: dict[tuple[str, str], datetime] = {}

    def get(self, capability_id: str, session_id: str) -> ConversationSession | None:
        return self._live.get((capability_id, session_id))

    def put(self, session: ConversationSession) -> None:
        self._live[(session.capability_id, session.session_id)] = session

    def discard(self, capability_id: str, session_id: str) -> None:
        self._live.pop((capability_id, session_id), None)

    def mark_finalized(self, capability_id: str, session_id: str, at: datetime | None = None) -> None:
        self._live.pop((capability_id, session_id), None)
        self._finalized[(capability_id, session_id)] = at or utc_now()

    def is_finalized(self, capability_id: str, session_id: str) -> bool:
        return (capability_id, session_id) in self._finalized

    def clear_finalized(self, capability_id: str, session_id: str) -> None:
        self._finalized.pop((capability_id, session_id), None)

    def live_sessions(self, capability_id: str | None = None) -> list[ConversationSession]:
        return [
            s for (cid, _), s in self._live.items()
            if capability_id is None or cid == capability_id
        ]

    def owner_of(self, session_id: str) -> str | None:
        """Capability owning the most recently active live session for this id."""
        owners = [s for (_, sid), s in self._live.items() if sid == session_id]
        if not owners:
            return None
        return max(owners, key=lambda s: s.last_activity).capability_id

    def finalized_owner(self, session_id: str) -> str | None:
        """Capability that most recently finalized a session under this id."""
        marks = [(at, cid) for (cid, sid), at in self._finalized.items() if sid == session_id]
        if not marks:
            return None
        return max(marks)[1]

    def cleanup(self, now: datetime, max_age: timedelta) -> int:
        """Drop live sessions idle longer than max_age and finalized markers older than it.

        Returns the number of entries removed.
        """
        cutoff = now - max_age
        stale_live = [key for key, s in self._live.items() if s.last_activity < cutoff]
        stale_marks = [key for key, at in self._finalized.items() if at < cutoff]
        for key in stale_live:
            del self._live[key]
        for key in stale_marks:
            del self._finalized[key]
        removed = len(stale_live) + len(stale_marks)
        if removed:
            logger.info(
                "Removed %d idle sessions and %d finalized markers older than %s",
                len(stale_live),
                len(stale_marks),
                max_age,
            )
        return removed


class ConversationFlow(ABC):
    """Phase definitions and finalization for one stateful capability."""

    capability_id: str = ""
    timeout_seconds: float = 30 * 60

    @property
    @abstractmethod
    def phases(self) -> list[PhaseSpec]:
        ...

    def initial_extractor(self, text: str) -> dict[str, Any]:
        return {}

    @abstractmethod
    async def finalize(self, session: ConversationSession, commands: CommandInterface) -> CapabilityOutput:
        ...

    def expired_message(self) -> str:
        return "Your session expired due to inactivity. Start again to begin a fresh session."

    def idle_message(self) -> str:
        return "Nothing pending for this session. Start a new one whenever you are ready."

    def phase(self, number: int) -> PhaseSpec:
        for phase_spec in self.phases:
            if phase_spec.phase == number:
                return phase_spec
        raise NotFound(f"Phase {number} not defined", capability=self.capability_id, phase=number)

    @property
    def first_phase(self) -> int:
        return self.phases[0].phase


class SessionEngine:
    """Generic begin/continue driver shared by every stateful capability."""

    def __init__(
        self,
        flow: ConversationFlow,
        store: SessionStore | None = None,
        clock: Callable[[], datetime] = utc_now,
        timeout_seconds: float | None = None,
    ):
        self.flow = flow
        self.store = store or SessionStore()
        self._clock = clock
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else flow.timeout_seconds

    @property
    def capability_id(self) -> str:
        return self.flow.capability_id

    def begin(
        self,
        session_id: str,
        initial_input: str = "",
        seed_data: dict[str, Any] | None = None,
        phase: int | None = None,
    ) -> CapabilityOutput:
        """Start a session, replacing any previous one.

        The session opens at the flow's first phase unless `phase` is given;
        seed_data is merged after the initial extractor has run.
        """
        if self.store.get(self.capability_id, session_id) is not None:
            logger.info("Replacing live %s session %s", self.capability_id, session_id)
        self.store.clear_finalized(self.capability_id, session_id)

        now = self._clock()
        session = ConversationSession(
            session_id=session_id,
            capability_id=self.capability_id,
            phase=phase if phase is not None else self.flow.first_phase,
            data=merge_data({}, self.flow.initial_extractor(initial_input)) if initial_input else {},
            responses=[initial_input] if initial_input else [],
            last_activity=now,
            created_at=now,
        )
        merge_data(session.data, seed_data or {})
        phase_spec = self.flow.phase(session.phase)
        self.store.put(session)
        logger.info("Began %s session %s at phase %d", self.capability_id, session_id, session.phase)
        return self._prompt_output(session, phase_spec.prompt)

    async def continue_session(
        self,
        session_id: str,
        input_text: str,
        commands: CommandInterface,
    ) -> CapabilityOutput:
        session = self.store.get(self.capability_id, session_id)
        if session is None:
            if self.store.is_finalized(self.capability_id, session_id):
                return CapabilityOutput(
                    status="success",
                    explanation=self.flow.idle_message(),
                    metadata={"session_id": session_id, "capability": self.capability_id, "idle": True},
                )
            raise NotFound(
                f"No {self.capability_id} session for '{session_id}'",
                capability=self.capability_id,
                session_id=session_id,
            )

        if self._is_expired(session):
            self.store.discard(self.capability_id, session_id)
            logger.info("Expired %s session %s", self.capability_id, session_id)
            raise SessionExpired(
                self.flow.expired_message(),
                capability=self.capability_id,
                session_id=session_id,
            )

        session.responses.append(input_text)
        session.last_activity = self._clock()

        phase_spec = self.flow.phase(session.phase)
        if phase_spec.extractor is not None:
            merge_data(session.data, phase_spec.extractor(input_text))

        if phase_spec.next_phase is None:
            if phase_spec.finalize_when is None or phase_spec.finalize_when(input_text):
                return await self._finalize(session, commands)
            return self._prompt_output(session, phase_spec.correction_prompt or phase_spec.prompt, corrected=True)

        session.phase = phase_spec.next_phase
        logger.debug("%s session %s advanced to phase %d", self.capability_id, session_id, session.phase)
        return self._prompt_output(session, self.flow.phase(session.phase).prompt)

    def status(self, session_id: str) -> SessionState:
        session = self.store.get(self.capability_id, session_id)
        if session is not None:
            return "expired" if self._is_expired(session) else "live"
        if self.store.is_finalized(self.capability_id, session_id):
            return "finalized"
        return "absent"

    def get(self, session_id: str) -> ConversationSession | None:
        return self.store.get(self.capability_id, session_id)

    def discard(self, session_id: str) -> None:
        self.store.discard(self.capability_id, session_id)

    async def _finalize(self, session: ConversationSession, commands: CommandInterface) -> CapabilityOutput:
        output = await self.flow.finalize(session, commands)
        if output.status == "success":
            self.store.mark_finalized(self.capability_id, session.session_id, at=self._clock())
            logger.info("Finalized %s session %s", self.capability_id, session.session_id)
        else:
            logger.info(
                "%s session %s finalize returned %s; session kept",
                self.capability_id,
                session.session_id,
                output.status,
            )
        return output.model_copy(
            update={"metadata": {**output.metadata, "session_id": session.session_id, "phase": session.phase}}
        )

    def _is_expired(self, session: ConversationSession) -> bool:
        return (self._clock() - session.last_activity).total_seconds() > self.timeout_seconds

    def _prompt_output(
        self,
        session: ConversationSession,
        prompt: str | Callable[[ConversationSession], str],
        corrected: bool = False,
    ) -> CapabilityOutput:
        text = prompt(session) if callable(prompt) else prompt
        return CapabilityOutput(
            status="clarification",
            explanation=text,
            result={"data": dict(session.data)},
            metadata={
                "session_id": session.session_id,
                "capability": session.capability_id,
                "phase": session.phase,
                "corrected": corrected,
            },
        )
