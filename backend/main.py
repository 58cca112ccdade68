"""
FastAPI service for the school timetable backtracking solver.

Designed for deployment on Google Cloud Run.
"""

import os
import time
import json
import logging
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Optional

from models import DEFAULT_CLUMP_LIMIT, DEFAULT_MAX_NODES, DEFAULT_MAX_TIME_SECONDS, InputError
from normalizer import validate_input
from solver import generate_timetable

# Configure logging
DEBUG_SOLVER = os.environ.get("DEBUG_SOLVER", "").lower() in ("1", "true", "yes")
logging.basicConfig(
    level=logging.DEBUG if DEBUG_SOLVER else logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

if DEBUG_SOLVER:
    logger.info("DEBUG_SOLVER is enabled - verbose logging active")

# Server-side defaults for requests that leave the search budget unset
MAX_NODES = int(os.environ.get("SCHEDULER_MAX_NODES", DEFAULT_MAX_NODES))
MAX_TIME_SECONDS = float(os.environ.get("SCHEDULER_MAX_TIME_SECONDS", DEFAULT_MAX_TIME_SECONDS))
CLUMP_LIMIT = int(os.environ.get("SCHEDULER_CLUMP_LIMIT", DEFAULT_CLUMP_LIMIT))

app = FastAPI(
    title="School Timetable API",
    description="Backtracking timetable generator for classes and teachers",
    version="1.0.0"
)

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
]

# Also allow origin from environment variable
if os.environ.get("FRONTEND_URL"):
    ALLOWED_ORIGINS.append(os.environ["FRONTEND_URL"])

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SubjectRequirement(BaseModel):
    name: str
    weeklyFrequency: int = Field(gt=0)
    teacherId: Optional[str] = None
    preferredTeacherName: Optional[str] = None  # Used when no id is known


class ClassEntry(BaseModel):
    id: str
    name: str
    subjects: list[SubjectRequirement] = []


class Teacher(BaseModel):
    id: str
    name: str
    subjectSpecialization: list[str] = []
    availableDays: Optional[list[str]] = None  # None = every day


class SolveRequest(BaseModel):
    classes: list[ClassEntry]
    teachers: list[Teacher] = []
    days: list[str] = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
    periods: int
    clumpLimit: Optional[int] = None
    seed: Optional[int] = None
    maxNodes: Optional[int] = None
    maxTimeSeconds: Optional[float] = None
    diagnose: bool = False


class ClassSchedule(BaseModel):
    className: str
    schedule: dict[str, str]
    teacherAssignments: dict[str, str]
    status: str


class SolveResponse(BaseModel):
    schedules: list[ClassSchedule]
    globalConflicts: list[str]
    success: bool
    elapsedSeconds: float
    diagnostics: Optional[dict] = None


@app.get("/")
async def root():
    return {"message": "School Timetable API", "version": "1.0.0"}


@app.get("/health")
async def health_check():
    """Health check endpoint for Cloud Run."""
    return {"status": "healthy", "timestamp": time.time()}


@app.post("/solve", response_model=SolveResponse)
def solve_timetable(request: SolveRequest):
    """
    Generate a draft timetable.

    Unsatisfiable inputs are not errors: they come back with success=false and
    a conflict message. Malformed inputs are rejected with 400.
    """
    start_time = time.time()

    # Convert Pydantic models to dicts for solver
    classes = [c.model_dump() for c in request.classes]
    teachers = [t.model_dump() for t in request.teachers]

    logger.info(f"=== SOLVE REQUEST === Classes: {len(classes)}, Teachers: {len(teachers)}, Days: {len(request.days)}, Periods: {request.periods}")

    if DEBUG_SOLVER:
        logger.debug(f"Seed: {request.seed}, ClumpLimit: {request.clumpLimit}, MaxNodes: {request.maxNodes}, MaxTime: {request.maxTimeSeconds}")
        for t in teachers:
            days = t.get('availableDays')
            constraint_str = f" [days:{days}]" if days else ""
            logger.debug(f"  Teacher: {t['name']} - {t['subjectSpecialization']}{constraint_str}")
        for c in classes:
            reqs = ', '.join(f"{s['name']} x{s['weeklyFrequency']}/wk" for s in c['subjects'])
            logger.debug(f"  Class: {c['name']} - {reqs}")

    try:
        # Caller-side rejection: an empty class list is not a scheduling request
        validate_input(classes, request.days, request.periods, allow_empty_classes=False)

        result = generate_timetable(
            classes=classes,
            teachers=teachers,
            days=request.days,
            periods=request.periods,
            clump_limit=request.clumpLimit if request.clumpLimit is not None else CLUMP_LIMIT,
            seed=request.seed,
            max_nodes=request.maxNodes if request.maxNodes is not None else MAX_NODES,
            max_time_seconds=request.maxTimeSeconds if request.maxTimeSeconds is not None else MAX_TIME_SECONDS,
            diagnose=request.diagnose,
        )
    except InputError as e:
        logger.warning(f"INVALID INPUT: {e}")
        raise HTTPException(status_code=400, detail={"status": "error", "message": str(e)})
    except Exception as e:
        elapsed = time.time() - start_time
        logger.error(f"SOLVE ERROR: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={
                "status": "error",
                "message": str(e),
                "elapsedSeconds": elapsed,
            }
        )

    elapsed = time.time() - start_time

    logger.info(f"=== SOLVE RESULT === Success: {result['success']}, Time: {elapsed:.1f}s")
    if not result['success']:
        logger.warning(f"UNSATISFIED: {result['globalConflicts']} ({result['diagnostics']['stopReason']})")
        if DEBUG_SOLVER:
            logger.debug(f"Diagnostics: {json.dumps(result['diagnostics'], indent=2)}")

    return SolveResponse(
        schedules=result['schedules'],
        globalConflicts=result['globalConflicts'],
        success=result['success'],
        elapsedSeconds=elapsed,
        diagnostics=result['diagnostics'],
    )


if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8080))
    uvicorn.run(app, host="0.0.0.0", port=port)
