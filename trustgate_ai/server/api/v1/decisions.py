"""
Trust Decision Endpoints.

The agent runtime submits every operation here before executing it and acts on
the returned outcome: ``auto`` proceeds, ``manual`` waits for a human.
"""

from fastapi import APIRouter
from starlette.concurrency import run_in_threadpool

from trustgate_ai.core.monitoring import log_trust_decision
from trustgate_ai.server.schemas import (
    AuditFailureResponse,
    ClassificationData,
    DecisionResponse,
    OperationRequest,
)
from trustgate_ai.server.services.deps import TrustServiceDep

router = APIRouter()


@router.post(
    "",
    response_model=DecisionResponse,
    summary="Evaluate Operation",
    description="Classify an operation, decide auto or manual approval, and audit the decision.",
    response_description="The audited decision and the classification behind it.",
    responses={503: {"model": AuditFailureResponse, "description": "Decision could not be audited"}},
)
async def evaluate_operation(request: OperationRequest, service: TrustServiceDep) -> DecisionResponse:
    """
    Evaluate an operation.

    The decision is only returned once its audit record has been persisted. If
    auditing fails the response is 503 and carries a manual fallback decision.
    """
    operation = request.to_operation()
    evaluation = await run_in_threadpool(service.evaluate_detailed, operation)
    log_trust_decision(
        operation.id,
        evaluation.decision.outcome.value,
        evaluation.decision.reason,
        evaluation.record.processing_time_ms,
    )
    return DecisionResponse(
        decision=evaluation.decision,
        classification=ClassificationData.from_result(evaluation.classification),
        sequence_number=evaluation.record.sequence_number,
    )
