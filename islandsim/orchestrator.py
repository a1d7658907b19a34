"""
Main simulation orchestrator.

The Orchestrator is the explicit simulation handle: it owns the World, the
seeded rng, the event log and the optional decision source, and exposes
every entry point (ticking, the GOD message, playback). Nothing is global;
two Orchestrators in one process never share state.

One tick is a strict ordered pipeline. Later phases read what earlier
phases wrote:

1. Shuffle the living agents (rng)
2. Per agent, in that order: lifecycle, nutrition, procreation/birth
3. Remove the dead
4. Refresh spatial memory for everyone still alive
5. Reshuffle (rng) and dispatch one action per agent, in batches
6. Validate, apply and log each action, serially, in dispatch order
7. Weather (rng)
8. Advance the clock

The pipeline never raises for a single agent's trouble: failed decisions
become decision_error / decision_fallback events and invalid actions are
dropped without an event. Programmer errors (ticking during replay,
unknown event ids) do raise.
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from uuid import UUID, uuid4

from .actions import (
    ActionCall,
    BuildCall,
    CommunicateCall,
    CraftCall,
    CreateCropFieldCall,
    GatherCall,
    GiveResourceCall,
    HarvestCropCall,
    MoveCall,
    UnknownActionError,
    allowed_actions,
)
from .agent import add_memory, create_agent, tick_age, update_happiness, update_relationship
from .config import Config, SimulationConfig
from .decision import DecisionAdapter, DecisionOutcome, DecisionStatus, HeuristicPolicy
from .events import EventLog
from .logging_utils import (
    Color,
    colored,
    log_deterministic,
    log_error,
    log_info,
    log_success,
)
from .persistence import InMemoryPersistence, PersistenceStrategy
from .resolvers import RECIPES, apply_action, check_preconditions, visible_recipients
from .rng import SeededRandom
from .schemas import (
    Agent,
    DayPhase,
    DroppedItems,
    Event,
    EventType,
    Gender,
    LifecycleStatus,
    MemoryCategory,
    MemoryEntry,
    Pregnancy,
    ResourceType,
    SimulationRun,
    Weather,
    World,
)
from .spatial_memory import observe_surroundings

DAY_START_HOUR = 6
DAY_END_HOUR = 18

ACTION_EVENT_TYPES: Dict[str, EventType] = {
    "move": EventType.MOVE,
    "communicate": EventType.COMMUNICATE,
    "gather": EventType.GATHER,
    "craft": EventType.CRAFT,
    "build": EventType.BUILD,
    "create_crop_field": EventType.CREATE_CROP_FIELD,
    "harvest_crop": EventType.HARVEST_CROP,
    "give_resource": EventType.GIVE,
}

TickListener = Callable[[int, World, World, List[Event]], None]


# =============================
# Module-level Exceptions
# =============================


class SimulationMode(str, Enum):
    LIVE = "live"
    REPLAY = "replay"


class SimulationModeError(RuntimeError):
    """Raised when an operation is not allowed in the current simulation mode."""

    def __init__(self, operation: str, mode: SimulationMode) -> None:
        self.operation = operation
        self.mode = mode
        message = (
            f"Cannot {operation} while the simulation is in {mode.value} mode.\n\n"
            "Remediation tips:\n"
            "  - Call resume_live() to return to the live timeline\n"
            "  - Or call branch_from(event_id) to continue from the viewed event"
        )
        super().__init__(message)


class TickInProgressError(SimulationModeError):
    """Raised when playback is requested while a tick is being computed."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        self.mode = SimulationMode.LIVE
        RuntimeError.__init__(
            self,
            f"Cannot {operation} while a tick is in progress.\n\n"
            "Remediation tips:\n"
            "  - Await the running tick() first\n"
            "  - Or pause() the background loop and retry once the current tick ends",
        )


def _loc(location) -> Dict[str, int]:
    return {"x": location.x, "y": location.y}


class Orchestrator:
    """
    Tick engine and simulation handle.

    All dependencies are injected; defaults give a self-contained,
    in-memory simulation driven by the local heuristic policy.
    """

    def __init__(
        self,
        world: World,
        config: Optional[SimulationConfig] = None,
        *,
        rng: Optional[SeededRandom] = None,
        decision_source: Any = None,
        event_log: Optional[EventLog] = None,
        persistence: Optional[PersistenceStrategy] = None,
        tick_listeners: Optional[List[TickListener]] = None,
        verbose: Optional[bool] = None,
    ):
        """Initialize the orchestrator.

        Args:
            world: Initial World. The orchestrator mutates it in place.
            config: Simulation constants (defaults to ``SimulationConfig()``).
            rng: Seeded stream; defaults to ``SeededRandom(config.seed)``.
            decision_source: Optional ``DecisionSource`` (or a ready
                ``DecisionAdapter``). Without one every agent uses the
                heuristic policy.
            event_log: Optional pre-populated log.
            persistence: Backend used by ``run()`` (defaults to in-memory).
            tick_listeners: Callables invoked after each tick with
                (tick, previous_world, world, events_of_tick).
            verbose: Print per-phase lines. Defaults to ISLANDSIM_VERBOSE.
        """
        self.world = world
        self.config = config or SimulationConfig()
        self.rng = rng or SeededRandom(self.config.seed)

        if decision_source is None or isinstance(decision_source, DecisionAdapter):
            self.adapter: Optional[DecisionAdapter] = decision_source
        else:
            self.adapter = DecisionAdapter(decision_source, self.config)
        self.heuristic = HeuristicPolicy()

        self.event_log = event_log if event_log is not None else EventLog()
        self.persistence = persistence or InMemoryPersistence()
        self.tick_listeners = tick_listeners or []
        self.verbose = Config.VERBOSE if verbose is None else verbose

        self.run_id: UUID = uuid4()
        self.mode = SimulationMode.LIVE
        # World to restore when leaving replay without branching.
        self._live_world: Optional[World] = None

        self._tick_lock = asyncio.Lock()
        self._tick_events: List[Event] = []
        self._pending_god_messages: List[Tuple[str, Optional[List[str]]]] = []
        self._loop_task: Optional[asyncio.Task] = None
        self._stop_signal: Optional[asyncio.Event] = None
        self._paused = False

    # ------------------------------------------------------------------
    # Lifecycle control
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def is_paused(self) -> bool:
        return self._paused

    def start(self) -> asyncio.Task:
        """Tick every ``tick_duration_ms`` on a background task until stopped."""
        if self.is_running:
            return self._loop_task
        self._paused = False
        self._stop_signal = asyncio.Event()
        self._loop_task = asyncio.get_running_loop().create_task(self._tick_loop())
        log_info(f"Simulation started (every {self.config.tick_duration_ms}ms)")
        return self._loop_task

    async def stop(self) -> None:
        """Stop the background loop after the tick in progress (if any) finishes."""
        if self._loop_task is None:
            return
        if self._stop_signal is not None:
            self._stop_signal.set()
        task, self._loop_task = self._loop_task, None
        await task
        log_info("Simulation stopped")

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    async def _tick_loop(self) -> None:
        interval = self.config.tick_duration_ms / 1000.0
        assert self._stop_signal is not None
        while not self._stop_signal.is_set():
            if not self._paused and self.mode == SimulationMode.LIVE:
                await self.tick()
            try:
                await asyncio.wait_for(self._stop_signal.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    # ------------------------------------------------------------------
    # Event logging
    # ------------------------------------------------------------------

    def log_event(
        self,
        event_type: EventType,
        agents: Sequence[str] = (),
        details: Optional[Dict[str, Any]] = None,
        *,
        event_id: Optional[str] = None,
    ) -> Event:
        """Append an event at the current tick and snapshot the World."""
        return self._record(self.world, event_type, agents, details, event_id=event_id)

    def _record(
        self,
        world: World,
        event_type: EventType,
        agents: Sequence[str] = (),
        details: Optional[Dict[str, Any]] = None,
        *,
        event_id: Optional[str] = None,
    ) -> Event:
        event = Event(
            id=event_id or self.event_log.next_event_id(),
            type=event_type,
            tick=world.time,
            agents_involved=list(agents),
            details=details or {},
        )
        event = self.event_log.log_event(event, world)
        self._tick_events.append(event)
        if self.verbose:
            log_deterministic(f"[Event] {event.id} {event.type.value} {event.agents_involved}")
        return event

    # ------------------------------------------------------------------
    # GOD message
    # ------------------------------------------------------------------

    def send_god_message(
        self, message: str, recipient_ids: Optional[Sequence[str]] = None
    ) -> Optional[Event]:
        """Inject an external message into the memory of living agents.

        An empty or missing ``recipient_ids`` broadcasts to every living
        agent. Unknown or dead ids are ignored.

        While a tick is in progress the message is queued and delivered
        right after that tick finishes; ``None`` is returned in that case.
        """
        if self.mode != SimulationMode.LIVE:
            raise SimulationModeError("send a GOD message", self.mode)
        text = message.strip()
        if not text:
            raise ValueError("GOD message must not be empty")

        ids = list(recipient_ids) if recipient_ids else None
        if self._tick_lock.locked():
            self._pending_god_messages.append((text, ids))
            log_info("[GOD] Message queued until the current tick finishes")
            return None
        return self._deliver_god_message(text, ids)

    def _deliver_god_message(self, text: str, recipient_ids: Optional[List[str]]) -> Event:
        world = self.world
        living = world.living_agents()
        if recipient_ids:
            wanted = set(recipient_ids)
            recipients = [agent for agent in living if agent.id in wanted]
        else:
            recipients = living

        event_id = self.event_log.next_event_id()
        ids = [agent.id for agent in recipients]
        for agent in recipients:
            add_memory(
                agent,
                MemoryEntry(
                    tick=world.time,
                    event_id=event_id,
                    description=f"[GOD] {text}",
                    category=MemoryCategory.GOD,
                    importance=8,
                    participants=ids,
                ),
                self.config.memory_limit,
            )
        log_info(f"[GOD] Message delivered to {len(ids)} agent(s)")
        return self._record(
            world,
            EventType.GOD_MESSAGE,
            ids,
            {"message": text, "recipients": ids, "broadcast": not recipient_ids},
            event_id=event_id,
        )

    def _flush_god_messages(self) -> List[Event]:
        pending, self._pending_god_messages = self._pending_god_messages, []
        if self.mode != SimulationMode.LIVE:
            return []
        return [self._deliver_god_message(text, ids) for text, ids in pending]

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def _ensure_idle(self, operation: str) -> None:
        if self._tick_lock.locked():
            raise TickInProgressError(operation)

    def jump_to(self, event_id: str) -> World:
        """View the World as it was when ``event_id`` was logged (replay mode).

        The log is untouched. ``resume_live()`` returns to the live World.

        Raises:
            UnknownEventError: If ``event_id`` is not in the log.
            TickInProgressError: If a tick is being computed.
        """
        self._ensure_idle("jump to an event")
        snapshot = self.event_log.jump_to(event_id)
        if self.mode == SimulationMode.LIVE:
            self._live_world = self.world
        self.world = snapshot
        self.mode = SimulationMode.REPLAY
        log_info(f"[Playback] Viewing {event_id} (tick {snapshot.time})")
        return snapshot

    def resume_live(self) -> World:
        self._ensure_idle("resume the live timeline")
        if self.mode == SimulationMode.REPLAY and self._live_world is not None:
            self.world = self._live_world
        self._live_world = None
        self.mode = SimulationMode.LIVE
        return self.world

    def branch_from(self, event_id: str) -> World:
        """Start a new timeline from ``event_id``, discarding every later event.

        Raises:
            UnknownEventError: If ``event_id`` is not in the log.
            TickInProgressError: If a tick is being computed.
        """
        self._ensure_idle("branch from an event")
        world = self.event_log.branch_from(event_id)
        self.world = world
        self._live_world = None
        self.mode = SimulationMode.LIVE
        log_info(f"[Playback] Branched from {event_id}; {len(self.event_log)} event(s) kept")
        return world

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def run(self, num_ticks: int) -> Dict[str, Any]:
        """Run ``num_ticks`` ticks, persisting run metadata, states and events.

        States are stored under the World's clock value: the state saved at
        time ``t`` is the World at the start of tick ``t``.

        Returns:
            Dict with run_id, final_state and events.
        """
        if self.mode != SimulationMode.LIVE:
            raise SimulationModeError("run", self.mode)

        await self.persistence.initialize()
        try:
            run = SimulationRun(
                id=self.run_id,
                start_time=datetime.now(timezone.utc),
                num_ticks=num_ticks,
                num_agents=len(self.world.living_agents()),
                seed=self.rng.seed,
                status="running",
                config=self.config.model_dump(mode="json"),
            )
            await self.persistence.save_run_metadata(run)
            await self.persistence.save_state(self.run_id, self.world.time, self.world)

            print(f"Starting simulation run {self.run_id}")
            print(f"Agents: {run.num_agents}, Ticks: {num_ticks}, Seed: {run.seed}\n")

            for _ in range(num_ticks):
                await self.tick()
                await self.persistence.save_state(self.run_id, self.world.time, self.world)

            await self.persistence.save_events(self.run_id, self.event_log.events)
            await self.persistence.update_run_status(
                self.run_id, "completed", datetime.now(timezone.utc)
            )
            log_success(f"Simulation complete: {len(self.world.living_agents())} agent(s) alive")
            return {
                "run_id": self.run_id,
                "final_state": self.world,
                "events": self.event_log.events,
            }
        except Exception:
            await self.persistence.update_run_status(
                self.run_id, "failed", datetime.now(timezone.utc)
            )
            raise
        finally:
            await self.persistence.close()

    async def tick(self) -> List[Event]:
        """Execute one tick and return the events it produced.

        Raises:
            SimulationModeError: If called while viewing a replay.
        """
        if self.mode != SimulationMode.LIVE:
            raise SimulationModeError("tick", self.mode)

        async with self._tick_lock:
            if self.mode != SimulationMode.LIVE:
                raise SimulationModeError("tick", self.mode)
            self._tick_events = []
            world = self.world
            tick = world.time
            previous = world.model_copy(deep=True) if self.tick_listeners else None

            print(colored(f"=== Tick {tick} (day {world.day}, hour {world.hour}) ===", Color.CYAN, bold=True))

            # 1-2. Lifecycle, nutrition and procreation in shuffled order.
            order = self.rng.shuffle(world.living_agents())
            for agent in order:
                self._lifecycle_phase(world, agent, tick)
                if agent.alive:
                    self._nutrition_phase(world, agent, tick)
                if agent.alive:
                    self._procreation_phase(world, agent, tick)

            # 3. Removal.
            dead = [agent.id for agent in world.agents if not agent.alive]
            world.agents = [agent for agent in world.agents if agent.alive]
            if dead and self.verbose:
                log_deterministic(f"[Lifecycle] Removed {len(dead)} dead agent(s)")

            # 4. Spatial memory.
            for agent in world.agents:
                observe_surroundings(agent, world, self.config)

            # 5-6. Decisions and actions.
            await self._dispatch_phase(world, tick)

            # 7-8. Weather, then the clock.
            self._weather_phase(world, tick)
            self._advance_clock(world)

            events = list(self._tick_events)
            self._print_tick_summary(world, tick, events)

            for listener in self.tick_listeners:
                try:
                    listener(tick, previous, world, events)
                except Exception as exc:  # pragma: no cover - diagnostic hook
                    log_error(f"[Analysis] Listener failed: {exc}")

        self._flush_god_messages()
        return events

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _lifecycle_phase(self, world: World, agent: Agent, tick: int) -> None:
        before = agent.status
        tick_age(
            agent,
            self.config.child_duration,
            self.config.elder_age,
            self.rng,
            self.config.elder_death_probability,
        )
        if agent.status != before:
            self._record(world, 
                EventType.STATUS_CHANGE,
                [agent.id],
                {"from": before.value, "to": agent.status.value, "age": agent.age},
            )
        if not agent.alive:
            self._handle_death(world, agent, tick, "elderly")

    def _nutrition_phase(self, world: World, agent: Agent, tick: int) -> None:
        hour = world.hour
        if hour == 0:
            agent.meals_eaten = 0

        if agent.inventory.food > 0 and agent.last_meal_tick != tick:
            agent.inventory.take(ResourceType.FOOD, 1)
            agent.meals_eaten += 1
            agent.last_meal_tick = tick

        if hour != 23:
            return
        if agent.meals_eaten >= self.config.meals_per_day:
            agent.starving = False
            agent.underfed_days = 0
            return

        agent.underfed_days += 1
        # Underfed while already starving is fatal.
        if agent.starving:
            self._handle_death(
                world,
                agent,
                tick,
                "starvation",
                {"mealsEaten": agent.meals_eaten, "underfedDays": agent.underfed_days},
            )
            return
        add_memory(
            agent,
            MemoryEntry(
                tick=tick,
                description=f"I only ate {agent.meals_eaten} meal(s) today and I am starving",
                category=MemoryCategory.SURVIVAL,
                importance=7,
            ),
            self.config.memory_limit,
        )
        agent.starving = True
        update_happiness(agent, "starve")
        if self.verbose:
            log_deterministic(f"[Nutrition] {agent.name} is starving ({agent.meals_eaten} meal(s))")

    def _procreation_phase(self, world: World, agent: Agent, tick: int) -> None:
        if (
            agent.status == LifecycleStatus.ADULT
            and agent.gender == Gender.FEMALE
            and agent.pregnancy is None
        ):
            partner = next(
                (
                    other
                    for other in world.agents
                    if other.id != agent.id
                    and other.alive
                    and other.status == LifecycleStatus.ADULT
                    and other.gender == Gender.MALE
                    and other.pregnancy is None
                    and other.location == agent.location
                ),
                None,
            )
            if partner is not None:
                agent.pregnancy = Pregnancy(
                    start_tick=tick,
                    duration=self.config.pregnancy_duration,
                    partner_id=partner.id,
                )
                for parent, other in ((agent, partner), (partner, agent)):
                    update_relationship(parent, other.id, "procreate")
                    update_happiness(parent, "procreate")
                self._record(world, 
                    EventType.PROCREATE,
                    [agent.id, partner.id],
                    {"location": _loc(agent.location)},
                )

        pregnancy = agent.pregnancy
        if pregnancy is not None and tick - pregnancy.start_tick >= pregnancy.duration:
            self._give_birth(world, agent, pregnancy, tick)

    def _give_birth(self, world: World, mother: Agent, pregnancy: Pregnancy, tick: int) -> None:
        child_id = f"child_{self.rng.base36_token()}"
        child = create_agent(
            self.rng,
            id=child_id,
            name=child_id,
            age=0,
            status=LifecycleStatus.CHILD,
            last_meal_tick=tick,
            location=mother.location.model_copy(),
            visibility_radius=mother.visibility_radius,
        )
        world.agents.append(child)
        mother.pregnancy = None

        involved = [mother.id, pregnancy.partner_id, child.id]
        for parent_id in (mother.id, pregnancy.partner_id):
            parent = world.find_agent(parent_id)
            if parent is None or not parent.alive:
                continue
            add_memory(
                parent,
                MemoryEntry(
                    tick=tick,
                    description=f"My child {child.name} was born",
                    category=MemoryCategory.BIRTH,
                    importance=9,
                    participants=involved,
                ),
                self.config.memory_limit,
            )
        self._record(world, 
            EventType.BIRTH,
            involved,
            {
                "location": _loc(mother.location),
                "motherId": mother.id,
                "fatherId": pregnancy.partner_id,
                "childId": child.id,
                "gender": child.gender.value,
            },
        )
        log_deterministic(f"[Lifecycle] {mother.name} gave birth to {child.name}")

    def _handle_death(
        self,
        world: World,
        agent: Agent,
        tick: int,
        reason: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        agent.alive = False

        if not agent.inventory.is_empty():
            items = {key: value for key, value in agent.inventory.as_dict().items() if value > 0}
            world.dropped_items.append(
                DroppedItems(
                    location=agent.location.model_copy(),
                    inventory=agent.inventory.model_copy(),
                    tick=tick,
                    source_agent_id=agent.id,
                )
            )
            self._record(world, 
                EventType.RESOURCE_DROP,
                [agent.id],
                {"location": _loc(agent.location), "items": items},
            )
            agent.inventory.clear()

        details: Dict[str, Any] = {"reason": reason, "age": agent.age, "location": _loc(agent.location)}
        details.update(extra or {})
        self._record(world, EventType.DEATH, [agent.id], details)
        log_deterministic(f"[Lifecycle] {agent.name} died ({reason})")

        for witness in world.agents:
            if witness.alive and witness.id != agent.id and witness.can_see(agent.location):
                update_happiness(witness, "death")
                add_memory(
                    witness,
                    MemoryEntry(
                        tick=tick,
                        description=f"I saw {agent.name} die ({reason})",
                        category=MemoryCategory.DEATH,
                        importance=8,
                        participants=[agent.id],
                    ),
                    self.config.memory_limit,
                )

    async def _dispatch_phase(self, world: World, tick: int) -> None:
        order = self.rng.shuffle(world.living_agents())
        batch_size = self.config.decision_batch_size

        for start in range(0, len(order), batch_size):
            batch = order[start:start + batch_size]
            outcomes: List[Optional[DecisionOutcome]] = [None] * len(batch)
            if self.adapter is not None:
                results = await asyncio.gather(
                    *(self.adapter.decide(agent, world, tick) for agent in batch),
                    return_exceptions=True,
                )
                for index, result in enumerate(results):
                    if isinstance(result, BaseException):
                        outcomes[index] = DecisionOutcome(
                            agent_id=batch[index].id,
                            status=DecisionStatus.FAILED,
                            error=f"{type(result).__name__}: {result}",
                        )
                    else:
                        outcomes[index] = result

            for agent, outcome in zip(batch, outcomes):
                if agent.alive:
                    self._act(world, agent, outcome, tick)

    def _act(self, world: World, agent: Agent, outcome: Optional[DecisionOutcome], tick: int) -> None:
        source = "heuristic"
        telemetry: Optional[Dict[str, Any]] = None
        if outcome is not None and outcome.telemetry is not None:
            telemetry = outcome.telemetry.model_dump(exclude_none=True)

        if outcome is None:
            call = self.heuristic.choose(agent, world, self.rng, self.config)
        elif outcome.status == DecisionStatus.ACTION and outcome.call is not None:
            call = outcome.call
            source = "llm" if self.adapter is not None and self.adapter.uses_llm() else "decision"
        elif outcome.status == DecisionStatus.FAILED:
            self._record(world, 
                EventType.DECISION_FALLBACK,
                [agent.id],
                {"reason": outcome.error, "fallback": "heuristic"},
            )
            call = self.heuristic.choose(agent, world, self.rng, self.config)
        else:
            details: Dict[str, Any] = {"status": outcome.status.value, "error": outcome.error}
            if outcome.raw_calls:
                details["calls"] = [raw.name for raw in outcome.raw_calls]
            if telemetry:
                details["decision"] = telemetry
            self._record(world, EventType.DECISION_ERROR, [agent.id], details)
            return

        if not self._validate(world, agent, call, tick):
            if self.verbose:
                log_deterministic(f"[Dispatch] Dropped invalid {call.name} from {agent.name}")
            return

        agents, details = self._describe(world, agent, call)
        try:
            apply_action(world, call, tick=tick, config=self.config)
        except UnknownActionError as exc:
            self._record(world, EventType.DECISION_ERROR, [agent.id], {"status": "unknown_action", "error": str(exc)})
            return

        details["source"] = source
        if telemetry:
            details["decision"] = telemetry
        self._record(world, ACTION_EVENT_TYPES[call.name], agents, details)

    def _validate(self, world: World, agent: Agent, call: ActionCall, tick: int) -> bool:
        """Spatial, status and resource checks. Failing actions are dropped silently."""
        if call.name not in allowed_actions(agent.status):
            return False

        if isinstance(call, MoveCall):
            if agent.location.chebyshev(call.to) > self.config.agent_move_per_tick:
                return False
            tile = world.tile_at(call.to.x, call.to.y)
            if tile is None or not tile.walkable:
                return False
        elif isinstance(call, (GatherCall, BuildCall, CreateCropFieldCall, HarvestCropCall)):
            if world.tile_at(call.location.x, call.location.y) is None:
                return False
            if not agent.can_see(call.location):
                return False
        elif isinstance(call, GiveResourceCall):
            recipient = world.find_agent(call.to_agent_id)
            if recipient is None or not agent.can_see(recipient.location):
                return False

        return check_preconditions(world, call, tick=tick, config=self.config)

    def _describe(self, world: World, agent: Agent, call: ActionCall) -> tuple[List[str], Dict[str, Any]]:
        """Agents involved and event details, computed before the resolver runs."""
        if isinstance(call, MoveCall):
            return [agent.id], {"from": _loc(agent.location), "to": _loc(call.to)}
        if isinstance(call, CommunicateCall):
            recipients = [other.id for other in visible_recipients(world, agent, call.recipients)]
            return [agent.id] + recipients, {"message": call.message, "recipients": recipients}
        if isinstance(call, GatherCall):
            return [agent.id], {"resource": call.resource.value, "location": _loc(call.location), "quantity": 1}
        if isinstance(call, CraftCall):
            output = {res.value: qty for res, qty in RECIPES[call.recipe]["output"].items()}
            return [agent.id], {"recipe": call.recipe.value, "output": output}
        if isinstance(call, BuildCall):
            return [agent.id], {"structureType": call.structure_type.value, "location": _loc(call.location)}
        if isinstance(call, CreateCropFieldCall):
            return [agent.id], {"location": _loc(call.location)}
        if isinstance(call, HarvestCropCall):
            return [agent.id], {"location": _loc(call.location), "food": self.config.crop_harvest_food}
        if isinstance(call, GiveResourceCall):
            return [agent.id, call.to_agent_id], {
                "toAgentId": call.to_agent_id,
                "resource": call.resource.value,
                "quantity": call.quantity,
            }
        raise UnknownActionError(getattr(call, "name", type(call).__name__))

    def _weather_phase(self, world: World, tick: int) -> None:
        if not self.rng.random_bool(self.config.weather_change_probability):
            return
        world.weather = Weather.RAIN if world.weather == Weather.SUN else Weather.SUN
        watered = 0
        if world.weather == Weather.RAIN:
            for tile in world.iter_tiles():
                if tile.crop_field is not None and not tile.crop_field.harvested:
                    tile.crop_field.watered += 1
                    watered += 1
        self._record(world, EventType.WEATHER_CHANGE, [], {"weather": world.weather.value, "fieldsWatered": watered})
        if self.verbose:
            log_deterministic(f"[Weather] Now {world.weather.value}; watered {watered} field(s)")

    def _advance_clock(self, world: World) -> None:
        world.time += 1
        world.day_night = DayPhase.DAY if DAY_START_HOUR <= world.hour < DAY_END_HOUR else DayPhase.NIGHT

    def _print_tick_summary(self, world: World, tick: int, events: List[Event]) -> None:
        counts: Dict[str, int] = {}
        for event in events:
            counts[event.type.value] = counts.get(event.type.value, 0) + 1
        summary = ", ".join(f"{name}={count}" for name, count in sorted(counts.items())) or "none"
        print(
            f"  Population: {len(world.living_agents())} | Weather: {world.weather.value}"
            f" | {world.day_night.value} | Events: {summary}"
        )
        if self.verbose:
            for event in events:
                print(f"    {event.id} {event.type.value} {event.agents_involved} {event.details}")
        print()


__all__ = [
    "ACTION_EVENT_TYPES",
    "Orchestrator",
    "SimulationMode",
    "SimulationModeError",
    "TickInProgressError",
]
