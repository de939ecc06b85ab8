"""
Notification dispatcher.

Notifications are placed on the RabbitMQ notification exchange and
delivered by the consumer in ``evv_service.messaging.consumer``. Sending is
fire-and-forget from the caller's point of view: every failure is logged,
never raised, so a broker outage cannot fail a check-in or a credential sweep.

A dispatcher built with ``background=True`` hands the broker round trip to a
task and returns as soon as the message is scheduled; request handlers use it
so a slow or unreachable broker never holds up the response. Pending
publishes are awaited on shutdown through ``drain_pending_publishes``.
"""
import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Set
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from evv_service.messaging.rabbitmq import RabbitMQPublisher
from evv_service.notifications.events import NotificationEventType, get_event_config
from evv_service.notifications.repository import RecipientRepository

logger = logging.getLogger(__name__)


class MessagePublisher(Protocol):
    def publish(self, routing_key: str, message: Dict) -> None: ...


class RecipientDirectory(Protocol):
    async def list_user_ids_by_roles(self, company_id: UUID, roles: Sequence[str]) -> List[UUID]: ...

    async def get_sponsor_user_id(self, client_id: UUID) -> Optional[UUID]: ...


def routing_key_for(event_type: NotificationEventType) -> str:
    return f"notification.{event_type.value.lower()}"


# Held here so scheduled publishes outlive the request-scoped dispatcher
_pending_publishes: Set[asyncio.Task] = set()


async def drain_pending_publishes() -> None:
    """Wait for every publish scheduled by a background dispatcher."""
    while _pending_publishes:
        await asyncio.gather(*list(_pending_publishes))


class NotificationDispatcher:
    """Resolves recipients and enqueues one message per send call"""

    def __init__(self, publisher: MessagePublisher, directory: RecipientDirectory, background: bool = False):
        self.publisher = publisher
        self.directory = directory
        self.background = background

    async def send_notification(
        self,
        event_type: NotificationEventType,
        company_id: UUID,
        recipient_ids: Iterable[UUID],
        data: Dict[str, Any],
    ) -> bool:
        """
        Enqueue a notification for explicit recipients.

        Returns False when there is nobody to notify or the publish failed.
        In background mode True only means the publish was scheduled; its
        failure is logged when the task finishes.
        """
        recipients = list(dict.fromkeys(str(r) for r in recipient_ids if r))
        if not recipients:
            logger.info(f"No recipients for {event_type.value}, nothing to send")
            return False

        event_config = get_event_config(event_type)
        message = {
            "event": event_type.value,
            "companyId": str(company_id),
            "recipientIds": recipients,
            "priority": event_config.priority.value,
            "data": data,
            "attempt": 1,
        }

        if not self.background:
            return await self._publish(event_type, message)

        task = asyncio.create_task(self._publish(event_type, message))
        _pending_publishes.add(task)
        task.add_done_callback(_pending_publishes.discard)
        return True

    async def _publish(self, event_type: NotificationEventType, message: Dict[str, Any]) -> bool:
        try:
            await asyncio.to_thread(self.publisher.publish, routing_key_for(event_type), message)
        except Exception as e:
            logger.error(f"Failed to enqueue {event_type.value} notification: {e}")
            return False

        logger.info(f"Enqueued {event_type.value} notification for {len(message['recipientIds'])} recipient(s)")
        return True

    async def resolve_role_recipients(self, company_id: UUID, roles: Sequence[str]) -> List[UUID]:
        """User ids for the given roles; an empty list when lookup fails."""
        try:
            return await self.directory.list_user_ids_by_roles(company_id, roles)
        except Exception as e:
            logger.error(f"Failed to resolve recipients for roles {list(roles)}: {e}")
            return []

    async def send_notification_to_role(
        self,
        event_type: NotificationEventType,
        company_id: UUID,
        data: Dict[str, Any],
        roles: Optional[Sequence[str]] = None,
    ) -> bool:
        """
        Enqueue a notification for every active user holding one of the roles.

        Defaults to the event's configured recipient roles (SPONSOR is
        resolved per client, see send_notification_to_sponsor).
        """
        if roles is None:
            roles = [r for r in get_event_config(event_type).default_recipient_roles if r != "SPONSOR"]
        recipients = await self.resolve_role_recipients(company_id, roles)
        return await self.send_notification(event_type, company_id, recipients, data)

    async def send_notification_to_sponsor(
        self,
        event_type: NotificationEventType,
        company_id: UUID,
        client_id: UUID,
        data: Dict[str, Any],
    ) -> bool:
        """Enqueue a notification for the client's sponsor, if any."""
        try:
            sponsor_id = await self.directory.get_sponsor_user_id(client_id)
        except Exception as e:
            logger.error(f"Failed to resolve sponsor for client {client_id}: {e}")
            return False
        if not sponsor_id:
            return False
        return await self.send_notification(event_type, company_id, [sponsor_id], data)


# Connects lazily on first publish
notification_publisher = RabbitMQPublisher()


def build_notification_dispatcher(db: AsyncSession) -> NotificationDispatcher:
    """Dispatcher sharing the process-wide publisher and the request's session"""
    return NotificationDispatcher(notification_publisher, RecipientRepository(db), background=True)
