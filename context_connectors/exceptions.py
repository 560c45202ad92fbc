"""Exception hierarchy for the context-connectors library."""


class ConnectorsError(Exception):
    """Base exception for all context-connectors errors."""

    pass


class ConfigurationError(ConnectorsError):
    """Missing credentials or a malformed source/store identifier."""

    pass


class InvalidIndexSpecError(ConfigurationError):
    """An index spec string could not be parsed."""

    pass


class RefResolutionError(ConnectorsError):
    """A branch, tag or commit reference could not be resolved remotely."""

    pass


class SourceFetchError(ConnectorsError):
    """Downloading the full file set from a source failed."""

    pass


class IncrementalUnsafeError(ConnectorsError):
    """An incremental update cannot be trusted; a full rebuild is required.

    Raised inside change detection only and converted to a ``None`` result
    before it reaches callers of ``fetch_changes``.
    """

    pass


class StoreError(ConnectorsError):
    """A store operation failed."""

    pass


class IndexNotFoundError(StoreError):
    """An index required by the operation does not exist."""

    pass


class RemoteDeleteForbiddenError(StoreError):
    """Attempt to delete an index that only exists in a read-only layer."""

    pass


class CorruptStateError(StoreError):
    """A persisted state file is missing a required field."""

    pass


class ClientNotInitializedError(ConnectorsError):
    """SearchClient used before ``initialize()`` completed."""

    pass


class SourceNotConfiguredError(ConnectorsError):
    """File operation requested on a client opened in search-only mode."""

    pass
