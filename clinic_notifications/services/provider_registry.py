from typing import Dict, List, Optional
import logging

from .providers import NotificationProvider, WhatsAppProvider, SMSProvider, EmailProvider
from ..models.enums import NotificationChannel

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """One provider per channel, built once at process start"""

    def __init__(self):
        self._providers: Dict[NotificationChannel, NotificationProvider] = {}

    @classmethod
    def from_env(cls) -> "ProviderRegistry":
        """Build the registry from provider environment variables"""
        registry = cls()
        registry.register(WhatsAppProvider())
        registry.register(SMSProvider())
        registry.register(EmailProvider())

        configured = registry.get_configured_channels()
        if configured:
            logger.info(f"Configured notification providers: {', '.join(c.value for c in configured)}")
        else:
            logger.warning("No notification provider is configured")
        return registry

    def register(self, provider: NotificationProvider):
        channel = NotificationChannel(provider.channel)
        if channel in self._providers:
            logger.info(f"Replacing provider for {channel.value}")
        self._providers[channel] = provider

    def get(self, channel: NotificationChannel) -> Optional[NotificationProvider]:
        return self._providers.get(NotificationChannel(channel))

    def get_configured_channels(self) -> List[NotificationChannel]:
        return [
            channel for channel in NotificationChannel
            if channel in self._providers and self._providers[channel].is_configured()
        ]

    def providers_status(self) -> Dict:
        configured = self.get_configured_channels()
        status = {
            "configured": [channel.value for channel in configured],
            "available": [channel.value for channel in NotificationChannel if channel in self._providers]
        }
        for channel in NotificationChannel:
            status[channel.value.lower()] = channel in configured
        return status
