"""
Code retrieval and deletion endpoints for the companion view.

Both endpoints act on the calling user's own code only. The retrieval
endpoint is polled by clients, so it must stay side-effect free.
"""

import logging

from app.core.context import RequestContext, get_request_context
from app.core.dependencies import get_code_store
from app.core.exceptions import AuthenticationError, BaseAppException
from app.db.code_store import CodeStore
from app.metrics.code_metrics import CODE_API_REQUESTS
from app.models.codes import CodeStatus, DeleteCodeResponse, RetrieveCodeResponse
from fastapi import APIRouter, Depends

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_user(context: RequestContext, endpoint: str) -> str:
    if not context.is_authenticated:
        CODE_API_REQUESTS.labels(endpoint=endpoint, result="unauthenticated").inc()
        raise AuthenticationError()
    return context.user_id


@router.get("/retrieve-code", response_model=RetrieveCodeResponse)
async def retrieve_code(
    context: RequestContext = Depends(get_request_context),
    store: CodeStore = Depends(get_code_store),
) -> RetrieveCodeResponse:
    """Return the caller's code status.

    Raises:
        AuthenticationError: 401 if no user identity is present
        BaseAppException: 500 if the store cannot be read
    """
    user_id = _require_user(context, "retrieve")

    try:
        code = await store.get(user_id)
    except Exception as e:
        CODE_API_REQUESTS.labels(endpoint="retrieve", result="error").inc()
        logger.error(f"Error retrieving code: {e}")
        raise BaseAppException(
            "Failed to retrieve code", error_code="STORAGE_READ_ERROR"
        ) from e

    if not code:
        CODE_API_REQUESTS.labels(endpoint="retrieve", result="unavailable").inc()
        return RetrieveCodeResponse(status=CodeStatus.UNAVAILABLE, code=None)

    CODE_API_REQUESTS.labels(endpoint="retrieve", result="available").inc()
    return RetrieveCodeResponse(status=CodeStatus.AVAILABLE, code=code)


@router.post("/delete-code", response_model=DeleteCodeResponse)
async def delete_code(
    context: RequestContext = Depends(get_request_context),
    store: CodeStore = Depends(get_code_store),
) -> DeleteCodeResponse:
    """Clear the caller's code so the next trigger issues a fresh one."""
    user_id = _require_user(context, "delete")

    try:
        await store.delete(user_id)
    except Exception as e:
        CODE_API_REQUESTS.labels(endpoint="delete", result="error").inc()
        logger.error(f"Error deleting code: {e}")
        raise BaseAppException(
            "Failed to delete code", error_code="STORAGE_DELETE_ERROR"
        ) from e

    CODE_API_REQUESTS.labels(endpoint="delete", result="deleted").inc()
    logger.info(f"Deleted code for user {user_id}")
    return DeleteCodeResponse()
