"""FastAPI main application."""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .. import __version__
from ..config import settings
from ..core.generation_config import GenerationOptions
from ..core.hex_grid import HexGrid
from ..core.map_generator import (
    GenerationCompleted,
    GenerationOutcome,
    GenerationProgress,
    MapGenerator,
)
from ..utils.logging import configure_logging

configure_logging(settings.log_level, settings.log_format)

logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="Hex Map Generator API",
    description="Procedural hex world maps: land, climate, rivers, features and roads",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response models
class MapGenerationRequest(BaseModel):
    """Request to generate a new map."""

    width: Optional[int] = Field(None, ge=1, description="Grid width in cells")
    height: Optional[int] = Field(None, ge=1, description="Grid height in cells")
    seed: int = Field(0, ge=0, description="Seed for reproducible generation; 0 picks one")
    land_percentage: Optional[float] = Field(
        None, ge=0.0, le=1.0, description="Target share of land cells"
    )


class JobResponse(BaseModel):
    """Response with job information."""

    job_id: str
    status: str
    seed: int
    stage: Optional[str] = None
    progress: float = 0.0
    message: str = ""
    error_message: Optional[str] = None


class MapStatistics(BaseModel):
    """Summary statistics of a generated map."""

    map_id: str
    seed: int
    width: int
    height: int
    total_cells: int
    land_cells: int
    water_cells: int
    land_ratio: float
    river_cells: int
    road_edges: int
    settlements: int
    biome_distribution: Dict[str, int]
    special_features: Dict[str, int]


class CellData(BaseModel):
    """Read-only state of one cell."""

    index: int
    x: int
    z: int
    elevation: int
    water_level: int
    underwater: bool
    terrain: str
    moisture: float
    urban_level: int
    farm_level: int
    plant_level: int
    special: str
    has_incoming_river: bool
    incoming_river: Optional[int]
    has_outgoing_river: bool
    outgoing_river: Optional[int]
    roads: List[int]


@dataclass
class GenerationJob:
    """One generation run and the grid it writes to."""

    id: str
    grid: HexGrid
    generator: MapGenerator
    seed: int
    status: str = "running"
    stage: Optional[str] = None
    progress: float = 0.0
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def absorb_events(self) -> None:
        for event in self.generator.drain_events():
            if isinstance(event, GenerationProgress):
                self.stage = event.stage.value
                self.progress = event.progress
            elif isinstance(event, GenerationCompleted):
                self.status = {
                    GenerationOutcome.SUCCESS: "completed",
                    GenerationOutcome.CANCELLED: "cancelled",
                    GenerationOutcome.FAILED: "failed",
                }[event.outcome]
                if event.message:
                    self.error_message = event.message

    def to_response(self, message: str = "") -> JobResponse:
        return JobResponse(
            job_id=self.id,
            status=self.status,
            seed=self.seed,
            stage=self.stage,
            progress=self.progress,
            message=message or f"Job {self.status}",
            error_message=self.error_message,
        )


jobs: Dict[str, GenerationJob] = {}
jobs_lock = threading.Lock()


def _get_job(job_id: str) -> GenerationJob:
    with jobs_lock:
        job = jobs.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


def _get_completed_map(map_id: str) -> GenerationJob:
    job = _get_job(map_id)
    if job.status != "completed":
        raise HTTPException(status_code=409, detail=f"Map is not ready (job {job.status})")
    return job


# Event handlers
@app.on_event("startup")
async def startup_event():
    logger.info("Starting Hex Map Generator API", version=__version__)


@app.on_event("shutdown")
async def shutdown_event():
    """Cancel anything still running."""
    logger.info("Shutting down Hex Map Generator API")
    with jobs_lock:
        running = [job for job in jobs.values() if job.status == "running"]
    for job in running:
        job.generator.cancel_generation()


# API endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Hex Map Generator API",
        "version": __version__,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    with jobs_lock:
        running = sum(1 for job in jobs.values() if job.status == "running")
    return {"status": "healthy", "running_jobs": running}


@app.post("/maps", response_model=JobResponse)
async def generate_map(request: MapGenerationRequest):
    """
    Start map generation job.

    Returns immediately with job ID. Use /jobs/{job_id} to check status.
    """
    width = request.width or settings.default_map_width
    height = request.height or settings.default_map_height
    if width > settings.max_map_width or height > settings.max_map_height:
        raise HTTPException(
            status_code=422,
            detail=f"Map size limited to {settings.max_map_width}x{settings.max_map_height}",
        )

    options = GenerationOptions()
    if request.land_percentage is not None:
        options = options.with_land_percentage(request.land_percentage)

    job_id = str(uuid.uuid4())
    grid = HexGrid(width, height)
    generator = MapGenerator(options)
    seed = generator.generate_async(grid, request.seed)

    job = GenerationJob(id=job_id, grid=grid, generator=generator, seed=seed)
    job.absorb_events()
    with jobs_lock:
        jobs[job_id] = job

    logger.info("Map generation requested", job_id=job_id, seed=seed, width=width, height=height)
    return job.to_response("Map generation job started")


@app.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job_status(job_id: str):
    """
    Get status of a map generation job.

    A finished background run is applied to its grid here.
    """
    job = _get_job(job_id)
    with job.lock:
        if job.status == "running" and job.generator.is_generation_complete():
            job.generator.finish_async_generation()
            job.absorb_events()
            logger.info("Map generation finished", job_id=job_id, status=job.status)
    return job.to_response()


@app.delete("/jobs/{job_id}", response_model=JobResponse)
async def cancel_job(job_id: str):
    """Cancel a running job."""
    job = _get_job(job_id)
    with job.lock:
        if job.status != "running":
            raise HTTPException(status_code=409, detail=f"Job already {job.status}")

        job.generator.cancel_generation()
        job.absorb_events()
    return job.to_response("Map generation cancelled")


@app.get("/maps/{map_id}/statistics", response_model=MapStatistics)
async def get_map_statistics(map_id: str):
    """Get statistics for a generated map."""
    job = _get_completed_map(map_id)
    stats = job.generator.last_statistics

    return MapStatistics(
        map_id=job.id,
        seed=job.seed,
        width=job.grid.width,
        height=job.grid.height,
        total_cells=stats["total_cells"],
        land_cells=stats["land_cells"],
        water_cells=stats["water_cells"],
        land_ratio=stats["land_ratio"],
        river_cells=stats["river_cells"],
        road_edges=stats["road_edges"],
        settlements=stats["settlements"],
        biome_distribution=stats["biomes"],
        special_features=stats["special_features"],
    )


@app.get("/maps/{map_id}/cells/{cell_index}", response_model=CellData)
async def get_cell(map_id: str, cell_index: int):
    """Get the applied state of a specific cell."""
    job = _get_completed_map(map_id)
    cell = job.grid.get_cell(cell_index)
    if cell is None:
        raise HTTPException(status_code=400, detail=f"Invalid cell index {cell_index}")

    snapshot = cell.snapshot()
    return CellData(
        index=snapshot.index,
        x=snapshot.x,
        z=snapshot.z,
        elevation=snapshot.elevation,
        water_level=snapshot.water_level,
        underwater=snapshot.is_underwater,
        terrain=snapshot.terrain.name.lower(),
        moisture=snapshot.moisture,
        urban_level=snapshot.urban_level,
        farm_level=snapshot.farm_level,
        plant_level=snapshot.plant_level,
        special=snapshot.special.name.lower(),
        has_incoming_river=snapshot.has_incoming_river,
        incoming_river=snapshot.incoming_river if snapshot.has_incoming_river else None,
        has_outgoing_river=snapshot.has_outgoing_river,
        outgoing_river=snapshot.outgoing_river if snapshot.has_outgoing_river else None,
        roads=[direction for direction, road in enumerate(snapshot.roads) if road],
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
