"""
PersistenceStrategy interface for pluggable storage backends.

Persistence is optional: a simulation runs entirely in memory unless a
backend is injected into the Orchestrator. Two implementations ship here:

1. InMemoryPersistence - dict-based storage, lost on exit (tests, prototyping)
2. JsonPersistence - one directory per run, human-readable JSON files

What gets stored:
- run metadata (seed, config, status, timing)
- World snapshots by tick (the same document the event log snapshots)
- the event log, written as one ordered list

All methods are async so file or network backends never block a tick.

Usage pattern:
    persistence = JsonPersistence("simulation_runs")
    await persistence.initialize()
    await persistence.save_state(run_id, tick, world)
    await persistence.close()
"""

import asyncio
import json
import shutil
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional
from uuid import UUID

from islandsim.schemas import Event, SimulationRun, World


class PersistenceStrategy(ABC):
    """Abstract base class for simulation state persistence.

    Method categories:
    1. Lifecycle: initialize(), close()
    2. Run metadata: save_run_metadata(), update_run_status(), get_run()
    3. World snapshots: save_state(), get_state()
    4. Events: save_events(), get_events()
    5. Cleanup: delete_run()
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend (create directories, open connections)."""

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources. Stored data stays readable."""

    @abstractmethod
    async def save_run_metadata(self, run: SimulationRun) -> None:
        pass

    @abstractmethod
    async def update_run_status(
        self, run_id: UUID, status: str, end_time: Optional[datetime] = None
    ) -> None:
        pass

    @abstractmethod
    async def get_run(self, run_id: UUID) -> Optional[SimulationRun]:
        pass

    @abstractmethod
    async def save_state(self, run_id: UUID, tick: int, state: World) -> None:
        """Store the World as it stood after ``tick`` completed."""

    @abstractmethod
    async def get_state(self, run_id: UUID, tick: int) -> Optional[World]:
        pass

    @abstractmethod
    async def save_events(self, run_id: UUID, events: List[Event]) -> None:
        """Replace the stored event log for ``run_id`` with ``events`` (in order)."""

    @abstractmethod
    async def get_events(self, run_id: UUID) -> List[Event]:
        pass

    @abstractmethod
    async def delete_run(self, run_id: UUID) -> None:
        pass


class InMemoryPersistence(PersistenceStrategy):
    """In-memory persistence using dicts.

    States are deep-copied on save so later ticks cannot mutate stored
    snapshots. ``close()`` keeps the data so callers can inspect a finished
    run; use ``delete_run()`` for explicit cleanup.
    """

    def __init__(self) -> None:
        self.runs: Dict[UUID, SimulationRun] = {}
        self.states: Dict[tuple[UUID, int], World] = {}
        self.events: Dict[UUID, List[Event]] = {}

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def save_run_metadata(self, run: SimulationRun) -> None:
        self.runs[run.id] = run

    async def update_run_status(
        self, run_id: UUID, status: str, end_time: Optional[datetime] = None
    ) -> None:
        if run_id in self.runs:
            self.runs[run_id].status = status
            if end_time:
                self.runs[run_id].end_time = end_time

    async def get_run(self, run_id: UUID) -> Optional[SimulationRun]:
        return self.runs.get(run_id)

    async def save_state(self, run_id: UUID, tick: int, state: World) -> None:
        self.states[(run_id, tick)] = state.model_copy(deep=True)

    async def get_state(self, run_id: UUID, tick: int) -> Optional[World]:
        stored = self.states.get((run_id, tick))
        return stored.model_copy(deep=True) if stored is not None else None

    async def save_events(self, run_id: UUID, events: List[Event]) -> None:
        self.events[run_id] = list(events)

    async def get_events(self, run_id: UUID) -> List[Event]:
        return list(self.events.get(run_id, []))

    async def delete_run(self, run_id: UUID) -> None:
        self.runs.pop(run_id, None)
        self.events.pop(run_id, None)
        for key in [key for key in self.states if key[0] == run_id]:
            del self.states[key]


class JsonPersistence(PersistenceStrategy):
    """File-based persistence using JSON.

    Directory structure:
    ```
    {base_path}/
      {run_id}/
        run.json            # SimulationRun metadata
        events.json         # ordered event log
        states/
          00000.json        # World after tick 0
          00001.json
    ```

    All file I/O runs in a worker thread via ``asyncio.to_thread``.
    """

    def __init__(self, base_path: Path | str = "simulation_runs"):
        self.base_path = Path(base_path)

    async def initialize(self) -> None:
        await asyncio.to_thread(self.base_path.mkdir, parents=True, exist_ok=True)

    async def close(self) -> None:
        return None

    async def save_run_metadata(self, run: SimulationRun) -> None:
        run_dir = self._run_dir(run.id)
        await asyncio.to_thread(run_dir.mkdir, parents=True, exist_ok=True)
        payload = run.model_dump(mode="json")
        await asyncio.to_thread(
            (run_dir / "run.json").write_text, json.dumps(payload, indent=2), "utf-8"
        )

    async def update_run_status(
        self, run_id: UUID, status: str, end_time: Optional[datetime] = None
    ) -> None:
        path = self._run_dir(run_id) / "run.json"
        if not path.exists():
            return

        def _update() -> None:
            payload = json.loads(path.read_text("utf-8"))
            payload["status"] = status
            payload["end_time"] = end_time.isoformat() if end_time else None
            path.write_text(json.dumps(payload, indent=2), "utf-8")

        await asyncio.to_thread(_update)

    async def get_run(self, run_id: UUID) -> Optional[SimulationRun]:
        path = self._run_dir(run_id) / "run.json"
        if not path.exists():
            return None
        raw = await asyncio.to_thread(path.read_text, "utf-8")
        return SimulationRun.model_validate_json(raw)

    async def save_state(self, run_id: UUID, tick: int, state: World) -> None:
        path = self._state_path(run_id, tick)
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_text, state.model_dump_json(indent=2), "utf-8")

    async def get_state(self, run_id: UUID, tick: int) -> Optional[World]:
        path = self._state_path(run_id, tick)
        if not path.exists():
            return None
        raw = await asyncio.to_thread(path.read_text, "utf-8")
        return World.model_validate_json(raw)

    async def save_events(self, run_id: UUID, events: List[Event]) -> None:
        path = self._run_dir(run_id) / "events.json"
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        payload = [event.model_dump(mode="json") for event in events]
        await asyncio.to_thread(path.write_text, json.dumps(payload, indent=2), "utf-8")

    async def get_events(self, run_id: UUID) -> List[Event]:
        path = self._run_dir(run_id) / "events.json"
        if not path.exists():
            return []
        payload = await asyncio.to_thread(lambda: json.loads(path.read_text("utf-8")))
        return [Event.model_validate(item) for item in payload]

    async def delete_run(self, run_id: UUID) -> None:
        run_dir = self._run_dir(run_id)
        if run_dir.exists():
            await asyncio.to_thread(shutil.rmtree, run_dir)

    def _run_dir(self, run_id: UUID) -> Path:
        return self.base_path / str(run_id)

    def _state_path(self, run_id: UUID, tick: int) -> Path:
        return self._run_dir(run_id) / "states" / f"{tick:05d}.json"


__all__ = ["PersistenceStrategy", "InMemoryPersistence", "JsonPersistence"]
