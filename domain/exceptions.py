class GatewayError(Exception):
    """Base class for failures raised by gateway collaborators."""


class DeliveryError(GatewayError):
    """An outbound message could not be delivered."""


class ModelError(GatewayError):
    """The language model call failed or was refused before being made."""


class UnsupportedMediaError(ModelError):
    """An attachment has a mime type the model backend does not accept."""


class FetchError(GatewayError):
    """Attachment bytes could not be downloaded."""


class ConfigurationError(GatewayError):
    """Required configuration is missing or malformed."""
