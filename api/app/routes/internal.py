"""Platform-invoked hooks.

The host platform calls these endpoints on lifecycle events. They carry no
user identity and have no interactive caller, so the comment hook always
acknowledges with an empty body and only logs failures.
"""

import logging
from typing import Optional

from app.core.config import Settings, get_settings
from app.core.context import RequestContext, get_request_context
from app.core.error_handlers import error_response
from app.core.dependencies import get_host_platform, get_trigger_handler
from app.core.exceptions import HostPlatformNotConfiguredError, MissingContextError
from app.models.codes import CommentCreateEvent, ErrorResponse, InstallResponse
from app.services.host_platform import HostPlatformClient
from app.services.trigger_handler import TriggerHandler
from fastapi import APIRouter, Depends, Request, status
from pydantic import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/on-app-install",
    response_model=InstallResponse,
    responses={400: {"model": ErrorResponse}},
)
async def on_app_install(
    context: RequestContext = Depends(get_request_context),
    host_platform: Optional[HostPlatformClient] = Depends(get_host_platform),
    settings: Settings = Depends(get_settings),
):
    """Create the companion post when the app is installed in a community."""
    subreddit_name = context.subreddit_name
    try:
        if host_platform is None:
            raise HostPlatformNotConfiguredError("post creation")
        if not subreddit_name:
            raise MissingContextError("subredditName")
        post = await host_platform.create_post(subreddit_name, settings.POST_TITLE)
    except Exception as e:
        logger.error(f"Error creating post: {e}")
        return error_response(status.HTTP_400_BAD_REQUEST, "Failed to create post")

    return InstallResponse(
        message=f"Post created in subreddit {subreddit_name} with id {post['id']}"
    )


@router.post("/on-comment-create")
async def on_comment_create(
    request: Request,
    handler: TriggerHandler = Depends(get_trigger_handler),
) -> dict:
    """Hand a new comment to the trigger handler.

    Malformed payloads and handler failures are logged and acknowledged
    like any other event.
    """
    try:
        payload = await request.json()
        event = CommentCreateEvent.model_validate(payload)
    except (ValueError, ValidationError) as e:
        logger.warning(f"Ignoring malformed comment event: {e}")
        return {}

    logger.debug(f"Comment text received: {event.body!r}")
    await handler.handle_comment_created(event)
    return {}
