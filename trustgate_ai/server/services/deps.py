"""
Trust Service Dependency.

Provides the singleton ``TrustService`` to API endpoints.
"""

from typing import Annotated

from fastapi import Depends

from trustgate_ai.server.services.trust import get_trust_service
from trustgate_ai.trust_core.service import TrustService

TrustServiceDep = Annotated[TrustService, Depends(get_trust_service)]
