class BotError(Exception):
    """Base class for the bot's own failures."""


class SourceFetchError(BotError):
    """An upstream source could not be read for this cycle (HTTP error, timeout, bad payload)."""

    def __init__(self, source_id: str, message: str = ""):
        self.source_id = source_id
        super().__init__(f"{source_id}: {message}" if message else source_id)


class PublishSendError(BotError):
    """The new notification could not be sent; the cycle stops before touching state."""


class StateStoreCorrupt(BotError):
    """Persisted state exists but cannot be parsed."""


class ConfigurationError(BotError):
    """A required setting is missing. Only raised at startup."""
