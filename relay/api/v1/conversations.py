"""Conversation REST API routes - V1."""

from fastapi import APIRouter, HTTPException, Depends, Query

from ...models.conversation import ConversationResponse
from ...models.message import PushMessageRequest, MessageResponse, ConversationMessagesResponse
from ...models.task import RequestTaskResponse, FlushResponse
from ...services.pipeline import RelayPipeline
from .responses import conversation_response, message_response, task_response

router = APIRouter(prefix="/api/v1/conversations", tags=["Conversations"])

# Relay pipeline (set by main.py)
pipeline: RelayPipeline = None


def get_pipeline() -> RelayPipeline:
    """Dependency to get the relay pipeline."""
    if pipeline is None:
        raise HTTPException(status_code=500, detail="Pipeline not initialized")
    return pipeline


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: str,
    relay: RelayPipeline = Depends(get_pipeline)
):
    """Get conversation details."""
    conversation = relay.store.conversations.get(conversation_id)

    if not conversation:
        raise HTTPException(status_code=404, detail=f"Conversation not found: {conversation_id}")

    return conversation_response(conversation)


@router.post("/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
async def push_message(
    conversation_id: str,
    request: PushMessageRequest,
    relay: RelayPipeline = Depends(get_pipeline)
):
    """Push a user message into the conversation's batch buffer."""
    message = await relay.aggregator.push(conversation_id, request.content)
    # A size flush may already have sealed the message into a task.
    return message_response(relay.store.messages.get(message.id) or message)


@router.get("/{conversation_id}/messages", response_model=ConversationMessagesResponse)
async def get_messages(
    conversation_id: str,
    limit: int = Query(100, ge=1, le=1000),
    relay: RelayPipeline = Depends(get_pipeline)
):
    """Get the messages of a conversation."""
    if relay.store.conversations.get(conversation_id) is None:
        raise HTTPException(status_code=404, detail=f"Conversation not found: {conversation_id}")

    messages = relay.store.messages.get_by_conversation(conversation_id, limit=limit)

    return ConversationMessagesResponse(
        conversation_id=conversation_id,
        messages=[message_response(m) for m in messages],
        total=len(messages),
        buffered=relay.aggregator.pending_count(conversation_id)
    )


@router.post("/{conversation_id}/flush", response_model=FlushResponse)
async def flush_conversation(
    conversation_id: str,
    relay: RelayPipeline = Depends(get_pipeline)
):
    """Seal the conversation's buffer into a request task now."""
    task = await relay.aggregator.flush(conversation_id)
    tasks = [task_response(task)] if task else []
    return FlushResponse(tasks=tasks, total=len(tasks))


@router.post("/{conversation_id}/send", response_model=RequestTaskResponse)
async def send_message(
    conversation_id: str,
    request: PushMessageRequest,
    relay: RelayPipeline = Depends(get_pipeline)
):
    """Deliver one message immediately, bypassing the batch buffer."""
    task = await relay.dispatcher.push(conversation_id, request.content)
    return task_response(task)
