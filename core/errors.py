# core/errors.py

class EngineError(Exception):
    """Base class for errors raised by the capability engine and channel layer."""


class RegistryIntegrityError(EngineError):
    """A catalog entry and the handler table disagree at startup."""


class RegistrySealedError(EngineError):
    """Registration was attempted after the registry was sealed."""


class DuplicateDirectiveTagError(RegistryIntegrityError):
    pass


class UnknownCapabilityError(EngineError):
    """A template allow-list or lookup names a capability id that is not in the catalog."""


class ConnectorNotConfiguredError(EngineError):
    """A handler needed an external client that was not supplied."""


class PairingCodeGenerationError(EngineError):
    pass


class AgentNotFoundError(EngineError):
    pass


class StoreError(EngineError):
    """Persistence failure. Surfaced to the caller, never retried silently."""


class ChannelApiError(EngineError):
    """A channel provider (Telegram Bot API) rejected a call or was unreachable."""
