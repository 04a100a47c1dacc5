"""
API Dependencies
Shared dependencies for reaching the process-wide orchestrator
"""
from fastapi import HTTPException, Request, status

from callbot.services.call_orchestrator import CallOrchestrator


def get_call_orchestrator(request: Request) -> CallOrchestrator:
    """
    Get the orchestrator built at startup.

    Raises:
        HTTPException: 503 if the application has not finished starting
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Call orchestrator not initialized"
        )
    return orchestrator
