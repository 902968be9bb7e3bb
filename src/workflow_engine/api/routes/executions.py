"""Execution routes: records, subscription tokens, status stream."""
import asyncio
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, Field

from workflow_engine.api.deps import (
    get_app_settings,
    get_channel,
    get_execution_store,
    get_token_issuer,
)
from workflow_engine.channels import (
    STATUS_TOPIC,
    StatusChannel,
    Subscription,
    SubscriptionTokenIssuer,
    channel_name_for,
)
from workflow_engine.config import Settings
from workflow_engine.errors import SubscriptionTokenError
from workflow_engine.observability import get_logger
from workflow_engine.storage import ExecutionRecord, ExecutionStore

logger = get_logger(__name__)
router = APIRouter()


class TokenRequest(BaseModel):
    """Optional current token; it is returned as-is while still fresh."""

    token: str | None = Field(default=None, description="Token currently held")


class TokenResponse(BaseModel):
    token: str
    channel: str
    topics: list[str]
    expires_at: datetime


@router.get("/v1/executions/{execution_id}", response_model=ExecutionRecord)
def get_execution(
    execution_id: str,
    store: ExecutionStore = Depends(get_execution_store),
) -> ExecutionRecord:
    """
    Get an execution record.

    Raises:
        HTTPException: If execution not found
    """
    record = store.get(execution_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Execution not found")
    return record


@router.post("/v1/executions/{execution_id}/subscription-token", response_model=TokenResponse)
def issue_subscription_token(
    execution_id: str,
    request: TokenRequest | None = None,
    issuer: SubscriptionTokenIssuer = Depends(get_token_issuer),
) -> TokenResponse:
    """
    Issue (or refresh) a token for the run's status channel.

    Runs that are queued but not yet started have no record, so the
    channel is granted by execution id alone.
    """
    channel = channel_name_for(execution_id)

    current = request.token if request is not None else None
    if current and not issuer.needs_refresh(current):
        try:
            claims = issuer.verify(current, channel, STATUS_TOPIC)
        except SubscriptionTokenError as e:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
        return TokenResponse(
            token=current,
            channel=channel,
            topics=claims.get("topics", [STATUS_TOPIC]),
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )

    issued = issuer.issue(channel, [STATUS_TOPIC])
    return TokenResponse(
        token=issued.token,
        channel=issued.channel,
        topics=issued.topics,
        expires_at=issued.expires_at,
    )



async def _forward_events(
    websocket: WebSocket,
    subscription: Subscription,
    store: ExecutionStore,
    execution_id: str,
    idle_s: float,
) -> None:
    """Send events until the subscription ends or the run is over and quiet."""
    while True:
        try:
            event = await asyncio.wait_for(subscription.__anext__(), timeout=idle_s)
        except asyncio.TimeoutError:
            record = store.get(execution_id)
            if record is not None and record.status.is_terminal:
                return
            continue
        except StopAsyncIteration:
            return
        await websocket.send_json(event.model_dump(mode="json", by_alias=True))


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/v1/executions/{execution_id}/status")
async def stream_status(
    websocket: WebSocket,
    execution_id: str,
    token: str = "",
    channel: StatusChannel = Depends(get_channel),
    issuer: SubscriptionTokenIssuer = Depends(get_token_issuer),
    store: ExecutionStore = Depends(get_execution_store),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """
    Stream the run's status events to the editor.

    The stream ends when the run has reached a terminal state and no event
    arrived for ``status_stream_idle_s``, or as soon as the client leaves.
    """
    channel_name = channel_name_for(execution_id)
    try:
        issuer.verify(token, channel_name, STATUS_TOPIC)
    except SubscriptionTokenError as e:
        logger.warning(
            f"Status subscription rejected: {e.message}",
            extra={"execution_id": execution_id},
        )
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    subscription = await channel.subscribe(channel_name, STATUS_TOPIC)
    async with subscription:
        forward = asyncio.create_task(
            _forward_events(websocket, subscription, store, execution_id, settings.status_stream_idle_s)
        )
        disconnect = asyncio.create_task(_wait_for_disconnect(websocket))
        try:
            done, _ = await asyncio.wait({forward, disconnect}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            forward.cancel()
            disconnect.cancel()

    if disconnect in done:
        logger.debug("Status subscriber disconnected", extra={"execution_id": execution_id})
        return
    try:
        forward.result()
    except WebSocketDisconnect:
        logger.debug("Status subscriber disconnected", extra={"execution_id": execution_id})
        return
    await websocket.close()
