"""
FastAPI Backend for the Adaptive Socratic Tutor

Thin REST layer over SocraticTutor:
- Start a problem (tutoring or assessment mode)
- Send student turns and receive the tutor's next question
- Read history, analytics and cross-session recommendations
- End a session and update the student's profile

Error mapping: invalid input → 422, completion service unavailable → 503.
"""

import logging
import os
import sys
import time
import uuid
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from lib.logger import get_logger, setup_logging

setup_logging(level=logging.INFO, use_colors=True)
logger = get_logger("backend.main")

# Add the adaptive_socratic_tutor package to Python path
backend_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(backend_dir)
package_src = os.path.join(project_root, 'adaptive_socratic_tutor', 'src')
if os.path.exists(package_src) and package_src not in sys.path:
    sys.path.insert(0, package_src)

from lib.supabase_client import get_supabase_client

from adaptive_socratic_tutor.errors import InvalidInputError, InvalidProblemError, UpstreamUnavailableError
from adaptive_socratic_tutor.socratic_tutor import SocraticTutor

# Singleton pattern for SocraticTutor to avoid reinitializing on every request
_tutor_instance: Optional[SocraticTutor] = None


def get_tutor() -> SocraticTutor:
    """Get or create singleton SocraticTutor instance."""
    global _tutor_instance
    if _tutor_instance is None:
        _tutor_instance = SocraticTutor(supabase_client=get_supabase_client())
    return _tutor_instance


app = FastAPI(
    title="Adaptive Socratic Tutor API",
    description="REST API for adaptive Socratic math tutoring",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== Pydantic Models ====================

class ProblemRequest(BaseModel):
    problem: str
    student_id: Optional[str] = None
    assessment: bool = False
    expected_answer: Optional[str] = None


class StudentMessage(BaseModel):
    content: str


class TutorResponse(BaseModel):
    content: str
    session_id: str
    metadata: Optional[Dict[str, Any]] = None


class HistoryMessage(BaseModel):
    role: str
    content: str
    timestamp: str
    question_type: Optional[str] = None
    depth_level: Optional[int] = None
    is_understanding_check: bool = False
    direct_answer_flagged: bool = False


# ==================== Error Handling ====================

@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    content: Dict[str, Any] = {"detail": exc.message}
    if isinstance(exc, InvalidProblemError):
        content["errors"] = exc.errors
    logger.warning(f"Rejected input on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=422, content=content)


@app.exception_handler(UpstreamUnavailableError)
async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailableError):
    logger.error(f"Completion service unavailable on {request.url.path}", error=exc.original_error)
    return JSONResponse(
        status_code=503,
        content={"detail": "The tutoring service is temporarily unavailable. Please send your message again."},
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    logger.request(request.method, request.url.path)
    response = await call_next(request)
    logger.response(response.status_code, request.url.path, time.perf_counter() - start)
    return response


def _turn_metadata(tutor: SocraticTutor, session_id: str) -> Dict[str, Any]:
    engine = tutor.get_session(session_id)
    tracker = engine.get_depth_tracker()
    last = engine.get_conversation_history()[-1]
    return {
        "question_type": last.question_type.value if last.question_type else None,
        "depth": tracker.current_depth,
        "max_depth": tracker.max_depth_reached,
        "dialogue_level": tracker.dialogue_level.value,
        "cycle_stage": tracker.cycle_stage.value,
        "is_understanding_check": last.is_understanding_check,
        "direct_answer_flagged": last.direct_answer_flagged,
        "difficulty": engine.get_current_difficulty().value,
    }


# ==================== Endpoints ====================

@app.get("/")
async def root():
    return {"status": "ok", "service": "Adaptive Socratic Tutor API", "version": "1.0.0"}


@app.post("/api/sessions")
async def create_session():
    return {"session_id": str(uuid.uuid4())}


@app.post("/api/sessions/{session_id}/problem", response_model=TutorResponse)
async def start_problem(session_id: str, request: ProblemRequest, tutor: SocraticTutor = Depends(get_tutor)):
    """Start tutoring (or an assessment) on a new problem."""
    if request.assessment:
        content = await tutor.start_assessment_problem(
            session_id, request.problem, request.expected_answer, request.student_id
        )
    else:
        content = await tutor.start_problem(session_id, request.problem, request.student_id)
    return TutorResponse(content=content, session_id=session_id, metadata=_turn_metadata(tutor, session_id))


@app.post("/api/sessions/{session_id}/respond", response_model=TutorResponse)
async def respond(session_id: str, message: StudentMessage, tutor: SocraticTutor = Depends(get_tutor)):
    """Send one student turn; returns the tutor's next question."""
    content = await tutor.respond(session_id, message.content)
    return TutorResponse(content=content, session_id=session_id, metadata=_turn_metadata(tutor, session_id))


@app.get("/api/sessions/{session_id}/messages", response_model=List[HistoryMessage])
async def get_messages(session_id: str, tutor: SocraticTutor = Depends(get_tutor)):
    engine = tutor.sessions.get(session_id)
    if engine is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return [
        HistoryMessage(
            role=m.role,
            content=m.content,
            timestamp=m.timestamp.isoformat(),
            question_type=m.question_type.value if m.question_type else None,
            depth_level=m.depth_level,
            is_understanding_check=m.is_understanding_check,
            direct_answer_flagged=m.direct_answer_flagged,
        )
        for m in engine.get_conversation_history()
    ]


@app.get("/api/sessions/{session_id}/analytics")
async def get_analytics(session_id: str, tutor: SocraticTutor = Depends(get_tutor)):
    engine = tutor.sessions.get(session_id)
    if engine is None:
        raise HTTPException(status_code=404, detail="Session not found")
    analytics = engine.generate_analytics()
    analytics["understanding_checks_info"] = engine.get_understanding_check_info()
    return analytics


@app.post("/api/sessions/{session_id}/end")
async def end_session(session_id: str, tutor: SocraticTutor = Depends(get_tutor)):
    if session_id not in tutor.sessions:
        raise HTTPException(status_code=404, detail="Session not found")
    performance = await tutor.end_session(session_id)
    logger.success(
        f"Session {session_id[:20]} ended",
        {"turns": performance.total_interactions, "violations": performance.direct_answer_count},
    )
    return performance.to_dict()


@app.get("/api/students/{student_id}/profile")
async def get_profile(student_id: str, tutor: SocraticTutor = Depends(get_tutor)):
    profile = await tutor.get_profile(student_id)
    return profile.to_dict()


@app.get("/api/students/{student_id}/recommendations")
async def get_recommendations(student_id: str, tutor: SocraticTutor = Depends(get_tutor)):
    recommendations = await tutor.get_recommendations(student_id)
    return [
        {
            "type": r.type,
            "priority": r.priority,
            "message": r.message,
            "action": r.action,
            "reasoning": r.reasoning,
        }
        for r in recommendations
    ]


@app.get("/api/students/{student_id}/report")
async def get_report(student_id: str, days: int = 30, tutor: SocraticTutor = Depends(get_tutor)):
    report = await tutor.get_analytics_report(student_id, days=days)
    return {
        "student_id": report.student_id,
        "report_date": report.report_date.isoformat(),
        "time_range_start": report.time_range_start.isoformat(),
        "time_range_end": report.time_range_end.isoformat(),
        "summary": report.summary,
        "breakdown": report.breakdown,
        "recommendations": report.recommendations,
        "achievements": report.achievements,
    }


@app.on_event("startup")
async def startup_event():
    logger.section("ADAPTIVE SOCRATIC TUTOR API", {"model": os.getenv("OPENAI_MODEL", "gpt-4o-mini")})


if __name__ == "__main__":
    import uvicorn

    try:
        uvicorn.run(app, host="0.0.0.0", port=8000)
    except KeyboardInterrupt:
        logger.info("🛑 Server stopped.")
        sys.exit(0)
