from typing import Dict, List, Callable, Any
import asyncio
import logging

logger = logging.getLogger(__name__)

EXAM_SUBMITTED = "exam_submitted"
EXAM_TIMED_OUT = "exam_timed_out"
HEALTH_RECORD_SAVED = "health_record_saved"
CERTIFICATE_APPROVED = "certificate_approved"


class EventBus:
    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: str, handler: Callable):
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: str, handler: Callable):
        if handler in self._handlers.get(event_type, []):
            self._handlers[event_type].remove(handler)

    async def publish(self, event_type: str, data: Dict[str, Any]):
        handlers = list(self._handlers.get(event_type, []))
        if not handlers:
            return

        tasks = []
        for handler in handlers:
            if asyncio.iscoroutinefunction(handler):
                tasks.append(asyncio.create_task(handler(data)))
            else:
                tasks.append(asyncio.get_running_loop().run_in_executor(None, handler, data))

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(f"Error in event handler {handler.__name__} for {event_type}: {result}")


async def log_notification(data: Dict[str, Any]):
    """Default subscriber: the portal has no notification service, so events are logged."""
    logger.info(f"Notification: {data.get('message') or data}")


def register_default_handlers(bus: "EventBus"):
    for event_type in (EXAM_SUBMITTED, EXAM_TIMED_OUT, HEALTH_RECORD_SAVED, CERTIFICATE_APPROVED):
        bus.subscribe(event_type, log_notification)


event_bus = EventBus()
