"""Error taxonomy shared by the engine, the services and the API."""


class EventSyncError(Exception):
    """Base class for errors raised by eventsync."""


class NotFoundError(EventSyncError):
    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class AuthorizationError(EventSyncError):
    """The caller is not a member of the workspace or lacks a permission."""


class DataIntegrityWarning(UserWarning):
    """
    Non-fatal data gaps (no registration deadline, no end date, task
    without a due date). Documented defaults are applied instead; this is
    never raised.
    """
