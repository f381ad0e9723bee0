"""
Error types for the card deck artifact pipeline.

All errors raised by the core derive from CardOCIError so that callers
(CLI, HTTP layers) can catch them in one place. None of them are retried.
"""


class CardOCIError(Exception):
    """Base class for all card-oci errors."""


class InvalidCardCode(CardOCIError, ValueError):
    """Card shorthand could not be mapped to a rank and suit."""


class DeckFileError(CardOCIError):
    """Deck definition file is missing or malformed."""


class AssetNotFound(CardOCIError):
    """Card image file does not exist in the asset directory."""


class InvalidReference(CardOCIError, ValueError):
    """Registry reference, tag or digest has an invalid format."""


class BlobNotFound(CardOCIError):
    """No blob with the requested digest exists in the store."""


class TagNotFound(CardOCIError):
    """Tag is not bound to any manifest in the store."""


class LayoutError(CardOCIError):
    """Directory is not a usable OCI image layout."""


class ManifestDecodeError(CardOCIError):
    """Manifest blob is not a valid OCI image manifest."""


class ConfigDecodeError(CardOCIError):
    """Config blob is not a JSON list of card codes."""


class BlobCorrupted(CardOCIError):
    """Fetched bytes do not match the digest or size of their descriptor."""


class TransferFailed(CardOCIError):
    """Network or store I/O failure while copying an artifact."""


class RegistryError(TransferFailed):
    """Registry answered with an unexpected status code."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
