"""Data access errors raised by the repositories."""


class RepositoryError(Exception):
    """Base exception for repository operations."""


class NotFoundError(RepositoryError):
    """A ``get_*`` lookup found nothing (``find_*`` returns None instead)."""

    def __init__(self, entity_type: str, identifier: str | int):
        self.entity_type = entity_type
        self.identifier = identifier
        super().__init__(f"{entity_type} not found: {identifier}")


class DuplicateError(RepositoryError):
    """A write hit a unique key held by another row.

    For balance snapshots this means the (account, day) slot belongs to a
    different user, so the upsert must not overwrite it.

    Attributes:
        entity_type: Model name, e.g. ``BalanceSnapshot``
        key: Column values of the conflicting unique key
    """

    def __init__(self, entity_type: str, **key: object):
        self.entity_type = entity_type
        self.key = key
        described = ", ".join(f"{column}={value}" for column, value in key.items())
        super().__init__(f"{entity_type} already exists for {described}")
