"""FastAPI server exposing the orchestrator's public and internal endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..calculator import CalculatorError
from ..config import OrchestratorConfig
from ..orchestrator import ExpressionNotFound, ExpressionRegistry

logger = logging.getLogger(__name__)


class CalculateRequest(BaseModel):
    expression: str


class TaskReport(BaseModel):
    id: Union[int, str]
    result: Optional[float] = None
    error: Optional[str] = None
    seq: Optional[int] = None


def _parse_id(raw: Union[int, str]) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=404, detail=f"Expression not found: {raw}") from exc


def _registry(request: Request) -> ExpressionRegistry:
    return request.app.state.registry


def create_app(
    registry: ExpressionRegistry | None = None,
    config: OrchestratorConfig | None = None,
) -> FastAPI:
    """Build the orchestrator app around ``registry`` (a fresh one by default)."""

    config = config or OrchestratorConfig()
    app = FastAPI(title="Distributed Calculator Orchestrator")
    app.state.config = config
    app.state.registry = registry or ExpressionRegistry(operation_time=config.operation_time)

    @app.exception_handler(RequestValidationError)
    async def malformed_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Malformed request to %s: %s", request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"detail": f"Malformed request body: {exc.errors()}"})

    @app.post("/api/v1/calculate", status_code=201)
    def calculate(payload: CalculateRequest, request: Request) -> Dict[str, str]:
        try:
            expression_id = _registry(request).submit(payload.expression)
        except CalculatorError as exc:
            logger.info("Rejected expression %r: %s", payload.expression, exc)
            raise HTTPException(status_code=500, detail=f"Failed to add expression: {exc}") from exc
        return {"id": str(expression_id)}

    @app.get("/api/v1/expressions")
    def list_expressions(request: Request) -> List[Dict[str, Any]]:
        return [record.to_payload() for record in _registry(request).get_all()]

    @app.get("/api/v1/expressions/{expression_id}")
    def get_expression(expression_id: str, request: Request) -> Dict[str, Any]:
        try:
            record = _registry(request).get_expression(_parse_id(expression_id))
        except ExpressionNotFound as exc:
            raise HTTPException(status_code=404, detail=f"Expression not found: {expression_id}") from exc
        return record.to_payload()

    @app.get("/internal/task")
    def next_task(request: Request) -> Dict[str, Any]:
        task = _registry(request).next_task()
        if task is None:
            raise HTTPException(status_code=404, detail="No tasks available")
        return task.to_payload()

    @app.post("/internal/task")
    def report_task(report: TaskReport, request: Request) -> Dict[str, Any]:
        if report.result is None and report.error is None:
            raise HTTPException(status_code=400, detail="Either result or error is required")
        expression_id = _parse_id(report.id)
        registry = _registry(request)
        try:
            if report.error is not None:
                applied = registry.report_failure(expression_id, report.error)
            else:
                applied = registry.report_result(expression_id, report.result, report.seq)
        except ExpressionNotFound as exc:
            raise HTTPException(status_code=404, detail=f"Expression not found: {report.id}") from exc
        return {"accepted": applied}

    return app


app = create_app()
