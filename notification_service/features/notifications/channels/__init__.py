"""Channel adapters, the channel registry and the concurrent dispatcher."""

from notification_service.features.notifications.channels.base import (
    ChannelAdapter,
    DeliveryResult,
    Failed,
    Sent,
)
from notification_service.features.notifications.channels.contacts import ContactDirectory
from notification_service.features.notifications.channels.dispatcher import (
    ChannelDispatcher,
    DeliveryOutcome,
    DeliveryTask,
    build_default_adapters,
    get_channel_dispatcher,
)
from notification_service.features.notifications.channels.registry import (
    ChannelRegistry,
    get_channel_registry,
)

__all__ = [
    "ChannelAdapter",
    "ChannelDispatcher",
    "ChannelRegistry",
    "ContactDirectory",
    "DeliveryOutcome",
    "DeliveryResult",
    "DeliveryTask",
    "Failed",
    "Sent",
    "build_default_adapters",
    "get_channel_dispatcher",
    "get_channel_registry",
]
