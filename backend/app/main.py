from __future__ import annotations

from pathlib import Path

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import PROJECT_ROOT, AgentSettings, configure_logging, load_project_env
from .models import (
    GenerateRequest,
    RollbackRequest,
    SecurityCheckRequest,
    UpdateCodeRequest,
    ValidateAstRequest,
    ValidateCodeRequest,
)
from .prompts import validation_feedback_prompt
from .services.agent_service import AgentService
from .storage import SessionStore
from .telemetry import TELEMETRY
from .validation_feedback import build_validation_feedback

load_project_env(PROJECT_ROOT / ".env")
SETTINGS = AgentSettings.from_env()
configure_logging(SETTINGS.log_level, SETTINGS.log_format)

logger = structlog.get_logger(__name__)

STORE = SessionStore(Path(SETTINGS.state_file) if SETTINGS.state_file else None)

app = FastAPI(title="AI UI Generator API", version="0.3.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[SETTINGS.allowed_origin],
    allow_credentials=SETTINGS.allowed_origin != "*",
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_service() -> AgentService:
    # Settings are re-read per request so LLM configuration changes apply without a restart.
    return AgentService(STORE, AgentSettings.from_env())


@app.get("/api/health")
def health() -> dict[str, object]:
    return {"ok": True, "service": "ai-ui-generator-api"}


@app.get("/api/metrics")
def metrics() -> dict[str, object]:
    return TELEMETRY.snapshot()


@app.post("/api/session")
def create_session() -> dict:
    return get_service().create_session()


@app.get("/api/session/{session_id}/history")
def session_history(session_id: str) -> dict:
    return get_service().history(session_id)


@app.post("/api/generate")
def generate(request: GenerateRequest):
    try:
        return get_service().run_agent(request.intent, request.mode, request.session_id)
    except HTTPException:
        raise
    except Exception as error:  # noqa: BLE001
        logger.exception("generation_failed", error_type=type(error).__name__)
        message = str(error) or type(error).__name__
        return JSONResponse(
            status_code=500,
            content={
                "error": "Generation failed",
                "detail": message,
                "feedback": build_validation_feedback([message]).model_dump(),
                "feedback_prompt": validation_feedback_prompt(validation_errors=[message]),
            },
        )


@app.post("/api/update-code")
def update_code(request: UpdateCodeRequest) -> dict:
    return get_service().update_code(request.session_id, request.code, request.intent)


@app.post("/api/rollback")
def rollback(request: RollbackRequest) -> dict:
    return get_service().rollback(request.session_id, request.version_id)


@app.post("/api/validate-code")
def validate_code(request: ValidateCodeRequest) -> dict:
    return AgentService.validate_code(request.code)


@app.post("/api/validate-ast")
def validate_ast(request: ValidateAstRequest) -> dict:
    return AgentService.validate_ast(request.generated_ast)


@app.post("/api/security-check")
def security_check(request: SecurityCheckRequest) -> dict:
    return AgentService.security_check(request.user_intent)
