"""Conversions from data objects to API response models."""

from ...db.database_models import (
    ConversationDO,
    MessageDO,
    RequestTaskDO,
    FailedMessageDO,
    DeliverySettingDO
)
from ...models.conversation import ConversationResponse
from ...models.delivery import DeliverySettingResponse
from ...models.failed_message import FailedMessageResponse
from ...models.message import MessageResponse
from ...models.task import RequestTaskResponse


def conversation_response(conversation: ConversationDO) -> ConversationResponse:
    return ConversationResponse(
        id=conversation.id,
        status=conversation.status,
        remote_conversation_id=conversation.remote_conversation_id,
        created_at=conversation.created_at,
        last_active=conversation.last_active,
        metadata=conversation.metadata
    )


def message_response(message: MessageDO) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        conversation_id=message.conversation_id,
        role=message.role,
        content=message.content,
        status=message.status,
        retry_count=message.retry_count,
        request_task_id=message.request_task_id,
        error_message=message.error_message,
        created_at=message.created_at,
        sent_at=message.sent_at,
        received_at=message.received_at,
        metadata=message.metadata
    )


def task_response(task: RequestTaskDO) -> RequestTaskResponse:
    return RequestTaskResponse(
        id=task.id,
        task_id=task.task_id,
        conversation_id=task.conversation_id,
        status=task.status,
        aggregated_content=task.aggregated_content,
        message_count=task.message_count,
        response=task.response,
        error_message=task.error_message,
        created_at=task.created_at,
        processing_started_at=task.processing_started_at,
        completed_at=task.completed_at,
        metadata=task.metadata
    )


def failed_message_response(failed: FailedMessageDO) -> FailedMessageResponse:
    return FailedMessageResponse(
        id=failed.id,
        conversation_id=failed.conversation_id,
        message_id=failed.message_id,
        request_task_id=failed.request_task_id,
        error=failed.error,
        attempts=failed.attempts,
        failed_at=failed.failed_at,
        retried=failed.retried,
        retry_history=failed.retry_history,
        context=failed.context
    )


def mask_api_key(api_key: str) -> str:
    """Keep the first 8 and last 4 characters of long keys."""
    if len(api_key) > 12:
        return api_key[:8] + "..." + api_key[-4:]
    return "***"


def setting_response(setting: DeliverySettingDO) -> DeliverySettingResponse:
    return DeliverySettingResponse(
        id=setting.id,
        name=setting.name,
        base_url=setting.base_url,
        api_key=mask_api_key(setting.api_key),
        batch_threshold=setting.batch_threshold,
        batch_time_window=setting.batch_time_window,
        request_timeout=setting.request_timeout,
        max_retries=setting.max_retries,
        is_active=setting.is_active
    )
