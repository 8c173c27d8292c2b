class NotificationError(Exception):
    """Base class for notification engine errors"""


class ProviderNotConfiguredError(NotificationError):
    def __init__(self, channel):
        self.channel = channel
        super().__init__(f"Provider for channel {getattr(channel, 'value', channel)} is not configured")


class TemplateNotFoundError(NotificationError):
    def __init__(self, kind, channel):
        self.kind = kind
        self.channel = channel
        super().__init__(
            f"No active template for {getattr(kind, 'value', kind)} / {getattr(channel, 'value', channel)}"
        )


class RecipientNotFoundError(NotificationError):
    def __init__(self, channel, patient_id=None):
        self.channel = channel
        self.patient_id = patient_id
        super().__init__(
            f"Recipient not found for channel {getattr(channel, 'value', channel)}"
        )


class NotificationDeliveryError(NotificationError):
    """Raised by immediate sends when a provider reports a failure"""

    def __init__(self, channel, message, result=None):
        self.channel = channel
        self.result = result
        super().__init__(f"{getattr(channel, 'value', channel)}: {message}")
