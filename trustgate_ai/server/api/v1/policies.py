"""
Policy Management Endpoints.

This module exposes the active trust policy document and lets administrators
replace it or preview the effect of a replacement.
"""

from fastapi import APIRouter, Query
from starlette.concurrency import run_in_threadpool

from trustgate_ai.server.schemas import PolicyConflictResponse
from trustgate_ai.server.services.deps import TrustServiceDep
from trustgate_ai.trust_core.policy import PolicyDocument
from trustgate_ai.trust_core.reporting import PolicyChangeReport

router = APIRouter()


@router.get(
    "/current",
    response_model=PolicyDocument,
    summary="Get Active Policy",
    description="Retrieve the policy document currently used for decisions.",
    response_description="The policy document in its camelCase file format.",
)
async def get_policy(service: TrustServiceDep) -> PolicyDocument:
    return service.current_policy()


@router.put(
    "/current",
    response_model=PolicyChangeReport,
    summary="Replace Active Policy",
    description="Validate and atomically install a new policy document.",
    response_description="Report of what changed and its estimated impact.",
    responses={409: {"model": PolicyConflictResponse, "description": "Pattern both allowed and denied"}},
)
async def replace_policy(
    policy_in: PolicyDocument,
    service: TrustServiceDep,
    generated_by: str = Query(default="api", description="Recorded as the author of the change report."),
) -> PolicyChangeReport:
    """
    Replace the active policy.

    Decisions already in progress finish against the previous version. A
    document that lists the same pattern as both auto-approved and denied is
    rejected with 409 and the previous policy stays active.
    """
    return await run_in_threadpool(service.update_policy, policy_in, generated_by)


@router.post(
    "/diff",
    response_model=PolicyChangeReport,
    summary="Preview Policy Change",
    description="Compare a candidate policy with the active one without installing it.",
    response_description="Report of what would change and its estimated impact.",
    responses={409: {"model": PolicyConflictResponse, "description": "Pattern both allowed and denied"}},
)
async def preview_policy(policy_in: PolicyDocument, service: TrustServiceDep) -> PolicyChangeReport:
    return service.preview_policy_change(policy_in)
