import logging
from typing import Optional

from app.core.context import RequestContext, get_request_context
from app.core.dependencies import get_host_platform
from app.core.exceptions import InitializationError, MissingContextError
from app.models.codes import InitResponse
from app.services.host_platform import HostPlatformClient
from fastapi import APIRouter, Depends

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/init", response_model=InitResponse)
async def init(
    context: RequestContext = Depends(get_request_context),
    host_platform: Optional[HostPlatformClient] = Depends(get_host_platform),
) -> InitResponse:
    """
    Bootstrap the companion view with its post id and the viewer's username.

    Anonymous viewers get ``"anonymous"``. A missing post id is a 400.
    """
    if not context.post_id:
        logger.error("API Init Error: postId not found in request context")
        raise MissingContextError("postId")

    username = context.username
    if not username and context.user_id and host_platform is not None:
        try:
            username = await host_platform.get_username(context.user_id)
        except Exception as e:
            logger.error(f"API Init Error for post {context.post_id}: {e}")
            raise InitializationError(str(e)) from e

    return InitResponse(post_id=context.post_id, username=username or "anonymous")
