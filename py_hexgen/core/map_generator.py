"""
Map generation orchestrator.

Runs the stage pipeline (land, climate, rivers, features, roads) against a
``CellBuffer`` and applies the result to a live ``HexGrid``:

- ``generate`` runs everything on the calling thread.
- ``generate_async`` runs the stages on a background thread. The owner polls
  ``is_generation_complete`` and then calls ``finish_async_generation``,
  which applies the buffer. The grid is only ever touched by the owner.

Progress and completion are published as events. Worker progress is queued
and only delivered from ``finish_async_generation`` so listeners always run
on the owner's thread.
"""

import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Union

import structlog

from ..utils.random import create_prng, resolve_seed
from .cancellation import CancellationToken, GenerationCancelled
from .cells import CellBuffer
from .climate import ClimateGenerator
from .features import FeatureGenerator
from .generation_config import GenerationOptions
from .hex_grid import HexGrid
from .hex_neighbors import DIRECTION_COUNT
from .land import LandGenerator
from .rivers import RiverGenerator
from .roads import RoadGenerator

logger = structlog.get_logger()


class GeneratorState(Enum):
    """Run lifecycle. CANCELLED and FAILED last only while the completion event is delivered."""

    IDLE = "idle"
    GENERATING = "generating"
    APPLYING = "applying"
    CANCELLED = "cancelled"
    FAILED = "failed"


class GenerationStage(str, Enum):
    """Pipeline stages in the order they are reported."""

    RESETTING = "Resetting"
    LAND = "Land"
    CLIMATE = "Climate"
    RIVERS = "Rivers"
    FEATURES = "Features"
    ROADS = "Roads"
    APPLYING = "Applying"
    COMPLETE = "Complete"


STAGE_PROGRESS: Dict[GenerationStage, float] = {
    GenerationStage.RESETTING: 0.0,
    GenerationStage.LAND: 0.1,
    GenerationStage.CLIMATE: 0.3,
    GenerationStage.RIVERS: 0.5,
    GenerationStage.FEATURES: 0.7,
    GenerationStage.ROADS: 0.8,
    GenerationStage.APPLYING: 0.9,
    GenerationStage.COMPLETE: 1.0,
}


class GenerationOutcome(str, Enum):
    SUCCESS = "success"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class GenerationStarted:
    seed: int


@dataclass(frozen=True)
class GenerationProgress:
    stage: GenerationStage
    progress: float


@dataclass(frozen=True)
class GenerationCompleted:
    outcome: GenerationOutcome
    message: str = ""

    @property
    def success(self) -> bool:
        return self.outcome == GenerationOutcome.SUCCESS


GenerationEvent = Union[GenerationStarted, GenerationProgress, GenerationCompleted]
ProgressCallback = Callable[[GenerationStage, float], None]


class GeneratorError(Exception):
    """Base class for orchestrator usage errors."""


class GenerationInProgressError(GeneratorError):
    """A run was requested while another one is active."""


class NoPendingGenerationError(GeneratorError):
    """``finish_async_generation`` was called without a finished background run."""


def generate_cells(
    width: int,
    height: int,
    seed: int,
    options: Optional[GenerationOptions] = None,
    token: Optional[CancellationToken] = None,
    report: Optional[ProgressCallback] = None,
) -> CellBuffer:
    """
    Run every stage against a fresh buffer.

    Pure with respect to its inputs: the same width, height, seed and
    options always give the same buffer. Each stage draws from its own
    PRNG derived from ``seed``.

    Args:
        width: Grid width in cells
        height: Grid height in cells
        seed: Run seed (use ``resolve_seed`` first for "random")
        options: Tunables; defaults apply when omitted
        token: Optional cancellation token polled by every stage
        report: Optional callback receiving (stage, fraction) before each stage

    Returns:
        The populated buffer

    Raises:
        GenerationCancelled: When ``token`` is cancelled mid-run
    """
    options = options or GenerationOptions()
    elevation = options.elevation

    def progress(stage: GenerationStage) -> None:
        if token is not None:
            token.raise_if_cancelled()
        if report is not None:
            report(stage, STAGE_PROGRESS[stage])

    cells = CellBuffer(width, height, elevation)

    progress(GenerationStage.LAND)
    LandGenerator(create_prng(seed), options.land, elevation).generate(
        cells, options.land.land_percentage, token
    )

    progress(GenerationStage.CLIMATE)
    ClimateGenerator(seed, options.climate, elevation).generate(cells, token)

    progress(GenerationStage.RIVERS)
    RiverGenerator(
        create_prng(seed, options.rivers.river_seed_offset), options.rivers, elevation
    ).generate(cells, token)

    progress(GenerationStage.FEATURES)
    FeatureGenerator(
        create_prng(seed, options.features.feature_seed_offset), options.features, elevation
    ).generate(cells, token)

    progress(GenerationStage.ROADS)
    RoadGenerator(options.roads, elevation).generate(cells, token)

    if token is not None:
        token.raise_if_cancelled()
    return cells


def apply_cells_to_grid(grid: HexGrid, cells: CellBuffer) -> None:
    """
    Copy a finished buffer onto the live grid in three passes.

    1. Scalars (elevation, terrain, moisture, features), clearing old
       rivers and roads first
    2. Rivers, once every elevation is final, so validity checks see the
       new terrain
    3. Roads, once rivers are in place

    Chunk refreshes are suppressed for the duration and flushed with one
    ``refresh_all_chunks`` call, even when a pass fails.
    """
    if (grid.width, grid.height) != (cells.width, cells.height):
        raise ValueError(
            f"Grid is {grid.width}x{grid.height} but buffer is {cells.width}x{cells.height}"
        )

    grid.set_refresh_suppression(True)
    try:
        for index in range(cells.size):
            x, z = cells.coords(index)
            cell = grid.get_cell_by_offset(x, z)
            if cell is None:
                continue
            cell.remove_river()
            cell.remove_roads()
            cell.water_level = int(cells.water_level[index])
            cell.elevation = int(cells.elevation[index])
            cell.terrain_type_index = int(cells.terrain[index])
            cell.moisture = float(cells.moisture[index])
            cell.urban_level = int(cells.urban_level[index])
            cell.farm_level = int(cells.farm_level[index])
            cell.plant_level = int(cells.plant_level[index])
            cell.special_index = int(cells.special[index])
            cell.walled = bool(cells.walled[index])

        rejected_rivers = 0
        for index in range(cells.size):
            if not cells.has_outgoing_river[index]:
                continue
            x, z = cells.coords(index)
            cell = grid.get_cell_by_offset(x, z)
            if cell is not None and not cell.set_outgoing_river(int(cells.outgoing_river[index])):
                rejected_rivers += 1

        rejected_roads = 0
        for index in range(cells.size):
            x, z = cells.coords(index)
            cell = grid.get_cell_by_offset(x, z)
            if cell is None:
                continue
            for direction in range(DIRECTION_COUNT):
                if cells.roads[index, direction] and not cell.add_road(direction):
                    rejected_roads += 1

        if rejected_rivers or rejected_roads:
            logger.warning(
                "Grid rejected generated edges",
                rivers=rejected_rivers,
                roads=rejected_roads,
            )
    finally:
        grid.set_refresh_suppression(False)
        grid.refresh_all_chunks()


class MapGenerator:
    """
    Drives generation runs against a live grid.

    Only one run may be active at a time; a second request raises
    ``GenerationInProgressError``. Every public method must be called from
    the thread that owns the grid.
    """

    def __init__(self, options: Optional[GenerationOptions] = None):
        self.options = options or GenerationOptions()
        self.state = GeneratorState.IDLE
        self.current_seed: Optional[int] = None
        self.last_cells: Optional[CellBuffer] = None

        self._events: "queue.Queue[GenerationEvent]" = queue.Queue()
        self._listeners: List[Callable[[GenerationEvent], None]] = []

        self._grid: Optional[HexGrid] = None
        self._worker: Optional[threading.Thread] = None
        self._token: Optional[CancellationToken] = None
        self._complete = threading.Event()
        self._pending_lock = threading.Lock()
        self._pending_progress: List[GenerationProgress] = []
        self._result: Optional[CellBuffer] = None
        self._error: Optional[BaseException] = None

    @property
    def is_generating(self) -> bool:
        return self.state != GeneratorState.IDLE

    @property
    def last_seed(self) -> Optional[int]:
        """Seed of the most recent run, kept after it ends so it can be replayed."""
        return self.current_seed

    @property
    def last_statistics(self) -> Optional[Dict[str, object]]:
        """Statistics of the last successfully applied buffer."""
        if self.last_cells is None:
            return None
        return self.last_cells.statistics()

    # Events

    def add_listener(self, listener: Callable[[GenerationEvent], None]) -> None:
        """Register a callback invoked (on the owner thread) for every event."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[GenerationEvent], None]) -> None:
        self._listeners.remove(listener)

    def drain_events(self) -> List[GenerationEvent]:
        """Return and clear every event published so far."""
        events = []
        while True:
            try:
                events.append(self._events.get_nowait())
            except queue.Empty:
                return events

    def _emit(self, event: GenerationEvent) -> None:
        self._events.put(event)
        for listener in self._listeners:
            listener(event)

    def _report(self, stage: GenerationStage, progress: float) -> None:
        logger.info("Generation progress", stage=stage.value, progress=progress)
        self._emit(GenerationProgress(stage, progress))

    def _queue_progress(self, stage: GenerationStage, progress: float) -> None:
        with self._pending_lock:
            self._pending_progress.append(GenerationProgress(stage, progress))

    def _flush_progress(self) -> None:
        with self._pending_lock:
            pending, self._pending_progress = self._pending_progress, []
        for event in pending:
            self._report(event.stage, event.progress)

    # Synchronous

    def generate(self, grid: HexGrid, seed: Optional[int] = 0) -> GenerationOutcome:
        """
        Generate and apply a map on the calling thread.

        Args:
            grid: Live grid to overwrite
            seed: Run seed; 0 or None picks a random one

        Returns:
            SUCCESS, or FAILED when a stage raised (the grid is left untouched
            unless the failure happened while applying)
        """
        self._begin(grid, seed)

        try:
            self._emit(GenerationStarted(self.current_seed))
            self._report(GenerationStage.RESETTING, STAGE_PROGRESS[GenerationStage.RESETTING])
            cells = generate_cells(
                grid.width, grid.height, self.current_seed, self.options, report=self._report
            )
            return self._apply(cells)
        except Exception as exc:
            return self._fail(exc)
        finally:
            self._reset()

    # Asynchronous

    def generate_async(self, grid: HexGrid, seed: Optional[int] = 0) -> int:
        """
        Start a background run and return its seed immediately.

        Nothing touches ``grid`` until ``finish_async_generation``.
        """
        self._begin(grid, seed)

        try:
            self._emit(GenerationStarted(self.current_seed))

            self._token = CancellationToken()
            self._complete.clear()
            self._result = None
            self._error = None
            with self._pending_lock:
                self._pending_progress = []

            self._worker = threading.Thread(
                target=self._run_worker,
                args=(grid.width, grid.height, self.current_seed, self._token),
                name=f"map-generator-{self.current_seed}",
                daemon=True,
            )
            self._worker.start()
        except Exception:
            # No worker is running yet
            self._reset()
            raise
        return self.current_seed

    def _run_worker(self, width: int, height: int, seed: int, token: CancellationToken) -> None:
        try:
            self._queue_progress(
                GenerationStage.RESETTING, STAGE_PROGRESS[GenerationStage.RESETTING]
            )
            self._result = generate_cells(
                width, height, seed, self.options, token, report=self._queue_progress
            )
        except GenerationCancelled:
            logger.info("Background generation cancelled", seed=seed)
        except Exception as exc:
            logger.exception("Background generation failed", seed=seed)
            self._error = exc
        finally:
            self._complete.set()

    def is_generation_complete(self) -> bool:
        """True once the background worker has stopped, whatever the outcome."""
        return self._worker is not None and self._complete.is_set()

    def finish_async_generation(self) -> GenerationOutcome:
        """
        Join the worker, deliver its queued progress and apply the result.

        Raises:
            NoPendingGenerationError: When no background run is active
        """
        if self._worker is None:
            raise NoPendingGenerationError("No background generation to finish")

        self._worker.join()

        try:
            self._flush_progress()
            if self._error is not None:
                return self._fail(self._error)
            if (self._token is not None and self._token.cancelled) or self._result is None:
                self.state = GeneratorState.CANCELLED
                self._emit(GenerationCompleted(GenerationOutcome.CANCELLED))
                return GenerationOutcome.CANCELLED
            return self._apply(self._result)
        except Exception as exc:
            return self._fail(exc)
        finally:
            self._reset()

    def cancel_generation(self) -> bool:
        """
        Cancel the background run, discarding its partial work.

        Blocks until the worker has unwound, so a new run may start as soon
        as this returns.

        Returns:
            False when there was nothing to cancel
        """
        if self._worker is None:
            return False

        self._token.cancel()
        self._worker.join()
        with self._pending_lock:
            self._pending_progress = []

        logger.info("Generation cancelled", seed=self.current_seed)
        self.state = GeneratorState.CANCELLED
        try:
            self._emit(GenerationCompleted(GenerationOutcome.CANCELLED))
        finally:
            self._reset()
        return True

    # Helpers

    def _begin(self, grid: HexGrid, seed: Optional[int]) -> None:
        if self.is_generating:
            raise GenerationInProgressError("Generation already in progress")

        self.state = GeneratorState.GENERATING
        self.current_seed = resolve_seed(seed)
        self._grid = grid
        logger.info(
            "Starting generation",
            seed=self.current_seed,
            width=grid.width,
            height=grid.height,
        )

    def _apply(self, cells: CellBuffer) -> GenerationOutcome:
        self.state = GeneratorState.APPLYING
        self._report(GenerationStage.APPLYING, STAGE_PROGRESS[GenerationStage.APPLYING])
        apply_cells_to_grid(self._grid, cells)
        self.last_cells = cells

        self._report(GenerationStage.COMPLETE, STAGE_PROGRESS[GenerationStage.COMPLETE])
        logger.info("Generation complete", seed=self.current_seed, **_summary(cells))
        self._emit(GenerationCompleted(GenerationOutcome.SUCCESS))
        return GenerationOutcome.SUCCESS

    def _fail(self, exc: BaseException) -> GenerationOutcome:
        message = f"{type(exc).__name__}: {exc}"
        logger.error("Generation failed", seed=self.current_seed, error=message)
        self.state = GeneratorState.FAILED
        self._emit(GenerationCompleted(GenerationOutcome.FAILED, message))
        return GenerationOutcome.FAILED

    def _reset(self) -> None:
        self.state = GeneratorState.IDLE
        self._grid = None
        self._worker = None
        self._token = None
        self._result = None
        self._error = None


def _summary(cells: CellBuffer) -> Dict[str, object]:
    stats = cells.statistics()
    return {
        "land_cells": stats["land_cells"],
        "river_cells": stats["river_cells"],
        "road_edges": stats["road_edges"],
    }


__all__ = [
    "GenerationCompleted",
    "GenerationInProgressError",
    "GenerationOutcome",
    "GenerationProgress",
    "GenerationStage",
    "GenerationStarted",
    "GeneratorError",
    "GeneratorState",
    "MapGenerator",
    "NoPendingGenerationError",
    "STAGE_PROGRESS",
    "apply_cells_to_grid",
    "generate_cells",
]
