class DispatchError(Exception):
    """Base error for the dispatch daemon."""


class PersistenceError(DispatchError):
    """The message store could not be reached or rejected a statement."""


class ChannelConfigError(DispatchError):
    """A channel's stored configuration cannot be resolved."""
