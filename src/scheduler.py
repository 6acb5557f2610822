"""Conversation scheduler: status machine, timed turn loop and turn budgets.

The scheduler owns a single ConversationState. Every mutation goes through
the transition methods below or through tick(); asynchronous continuations
read that state object when they resume instead of holding copies of it.

Ticks run as their own tasks. A periodic timer task spawns one every
``tick_interval_sec`` while the conversation is running, and the turn-in-flight
flag is checked and set before the first await so overlapping triggers are
no-ops. Pausing or stopping cancels the timer but never an in-flight tick:
its reply is still appended when it arrives.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from config.config_loader import CommandsConfig, MessagesConfig
from src.budget import TurnBudget
from src.models import Agent, ConversationConfig, ConversationStatus, TurnKind, TurnRecord
from src.moderator import SpeakerSelector
from src.responder import ResponseGenerator
from src.transcript import Transcript

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL_SEC = 3.0

_TRANSITIONS: dict[ConversationStatus, set[ConversationStatus]] = {
    ConversationStatus.SETUP: {ConversationStatus.RUNNING},
    ConversationStatus.RUNNING: {ConversationStatus.PAUSED, ConversationStatus.STOPPED},
    ConversationStatus.PAUSED: {ConversationStatus.RUNNING, ConversationStatus.STOPPED},
    ConversationStatus.STOPPED: set(),
}


@dataclass
class ConversationState:
    config: ConversationConfig | None = None
    status: ConversationStatus = ConversationStatus.SETUP
    transcript: Transcript = field(default_factory=Transcript)
    budget: TurnBudget = field(default_factory=TurnBudget)
    turn_in_flight: bool = False


class ConversationScheduler:
    """Drives one conversation from setup to stop."""

    def __init__(
        self,
        selector: SpeakerSelector,
        generator: ResponseGenerator,
        *,
        tick_interval_sec: float = DEFAULT_TICK_INTERVAL_SEC,
        messages: MessagesConfig | None = None,
        commands: CommandsConfig | None = None,
        on_record: Callable[[TurnRecord], None] | None = None,
        on_status: Callable[[ConversationStatus], None] | None = None,
    ) -> None:
        self._selector = selector
        self._generator = generator
        self._interval = tick_interval_sec
        self._messages = messages or MessagesConfig()
        self._commands = commands or CommandsConfig()
        self._on_record = on_record
        self._on_status = on_status

        self._state = ConversationState()
        self._timer: asyncio.Task[None] | None = None
        self._ticks: set[asyncio.Task[bool]] = set()

    # -- Read side --

    @property
    def status(self) -> ConversationStatus:
        return self._state.status

    @property
    def transcript(self) -> tuple[TurnRecord, ...]:
        return self._state.transcript.snapshot()

    @property
    def turn_in_flight(self) -> bool:
        return self._state.turn_in_flight

    @property
    def config(self) -> ConversationConfig | None:
        return self._state.config

    def remaining_turns(self, agent_name: str) -> int | float:
        return self._state.budget.remaining(agent_name)

    # -- Transitions --

    def initialize(self, config: ConversationConfig) -> None:
        """Install the config and start running. The first tick fires immediately.

        Must be called from inside a running event loop.
        """
        state = self._state
        if state.status is not ConversationStatus.SETUP:
            raise RuntimeError(f"Conversation already initialized (status: {state.status.value})")

        state.config = config
        state.transcript = Transcript()
        self._append(TurnRecord(TurnKind.SYSTEM, self._messages.opening.format(topic=config.topic)))
        state.budget.initialize([a.name for a in config.agents], config.max_turns_per_agent)
        self._transition(ConversationStatus.RUNNING)

        logger.info(
            "Conversation started: %d agents, budget %s, topic %r",
            len(config.agents),
            config.max_turns_per_agent or "unbounded",
            config.topic[:80],
        )
        self._spawn_tick()
        self._start_timer()

    def pause(self) -> None:
        if self._transition(ConversationStatus.PAUSED):
            self._stop_timer()

    def resume(self) -> None:
        state = self._state
        if state.status is not ConversationStatus.PAUSED:
            logger.info("Resume ignored: conversation is %s", state.status.value)
            return

        if state.budget.enabled:
            state.budget.reset()
            self._append(
                TurnRecord(
                    TurnKind.SYSTEM,
                    self._messages.budget_reset.format(max_turns=state.budget.max_per_agent),
                )
            )
        self._transition(ConversationStatus.RUNNING)
        self._start_timer()

    def stop(self) -> None:
        if self._state.status is ConversationStatus.STOPPED:
            return
        if self._transition(ConversationStatus.STOPPED):
            self._stop_timer()

    def teardown(self) -> None:
        """Release the timer. Safe to call in any status, any number of times."""
        self._stop_timer()

    async def wait_idle(self) -> None:
        """Wait for every tick that is currently in flight to finish."""
        if self._ticks:
            await asyncio.gather(*list(self._ticks))

    # -- User input --

    def submit_user_message(self, text: str) -> TurnRecord | None:
        status = self._state.status
        if status in (ConversationStatus.SETUP, ConversationStatus.STOPPED):
            logger.warning("User message ignored: conversation is %s", status.value)
            return None
        record = TurnRecord(TurnKind.USER, text)
        self._append(record)
        return record

    def submit_command(self, text: str) -> bool:
        """Handle an in-band command. Returns False when the text is not a known command."""
        command = text.strip()
        if command == self._commands.pause:
            self.pause()
            return True
        if command == self._commands.resume:
            self.resume()
            return True
        return False

    def submit_input(self, text: str) -> None:
        """Route one line of user input: known commands are handled, the rest is chat."""
        text = text.strip()
        if not text:
            return
        if text.startswith(self._commands.prefix) and self.submit_command(text):
            return
        self.submit_user_message(text)

    # -- Turn generation --

    async def tick(self) -> bool:
        """Run one turn attempt. Returns False when skipped because of state."""
        state = self._state
        if state.config is None or state.turn_in_flight or state.status is ConversationStatus.STOPPED:
            logger.debug(
                "Tick skipped: configured=%s in_flight=%s status=%s",
                state.config is not None,
                state.turn_in_flight,
                state.status.value,
            )
            return False

        state.turn_in_flight = True
        try:
            await self._run_turn(state, state.config)
        finally:
            state.turn_in_flight = False
        return True

    async def _run_turn(self, state: ConversationState, config: ConversationConfig) -> None:
        try:
            agent: Agent | None = await self._selector.select(
                state.transcript.snapshot(), config.agents, config.topic
            )
        except Exception as exc:
            logger.warning("Speaker selection failed: %s", exc)
            agent = None

        if agent is None:
            logger.warning("No speaker could be resolved; skipping this tick")
            return

        if state.budget.remaining(agent.name) == 0:
            if state.budget.all_exhausted():
                if self._transition(ConversationStatus.PAUSED):
                    self._stop_timer()
                    self._append(TurnRecord(TurnKind.SYSTEM, self._messages.auto_pause))
            else:
                logger.info("%s has no turns left; skipping this tick", agent.name)
            return

        turn_number = state.transcript.agent_turn_count() + 1
        logger.info("Turn %d: %s is speaking", turn_number, agent.name)
        try:
            text = await self._generator.generate(
                agent,
                state.transcript.snapshot(),
                config.topic,
                config.instructions,
                turn_number,
            )
        except Exception as exc:
            logger.warning("Turn %d by %s failed: %s", turn_number, agent.name, exc)
            self._append(
                TurnRecord(
                    TurnKind.SYSTEM,
                    self._messages.generation_error.format(agent=agent.name, error=exc),
                )
            )
            return

        # Budgets only shrink while running; a reply landing after pause is free
        if state.status is ConversationStatus.RUNNING:
            state.budget.consume(agent.name)
        self._append(TurnRecord(TurnKind.AGENT, text, agent.name))

    # -- Internals --

    def _append(self, record: TurnRecord) -> None:
        self._state.transcript.append(record)
        if self._on_record:
            self._on_record(record)

    def _transition(self, target: ConversationStatus) -> bool:
        current = self._state.status
        if target not in _TRANSITIONS[current]:
            logger.info("Ignoring transition %s -> %s", current.value, target.value)
            return False
        self._state.status = target
        logger.info("Conversation %s -> %s", current.value, target.value)
        if self._on_status:
            self._on_status(target)
        return True

    async def _scheduled_tick(self) -> bool:
        # A timer tick queued just before a pause or stop must not start a turn
        if self._state.status is not ConversationStatus.RUNNING:
            return False
        return await self.tick()

    def _spawn_tick(self) -> None:
        task = asyncio.get_running_loop().create_task(self._scheduled_tick(), name="conversation_tick")
        self._ticks.add(task)
        task.add_done_callback(self._ticks.discard)

    def _start_timer(self) -> None:
        self._stop_timer()
        self._timer = asyncio.get_running_loop().create_task(self._run_timer(), name="conversation_timer")

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _run_timer(self) -> None:
        while self._state.status is ConversationStatus.RUNNING:
            await asyncio.sleep(self._interval)
            if self._state.status is ConversationStatus.RUNNING and not self._state.turn_in_flight:
                self._spawn_tick()
