"""Exceptions raised by the scheduler, queue store and worker."""


class OutreachError(Exception):
    """Base class for all outreach errors."""


class InvalidScheduleParameters(OutreachError, ValueError):
    """Scheduling input rejected before any slot was produced."""


class StoreError(OutreachError):
    """Base class for queue store failures."""


class StoreUnavailable(StoreError):
    """The queue file exists but could not be read or written."""


class StoreCorrupt(StoreError):
    """The queue file exists but its contents cannot be parsed."""


class ItemNotFound(StoreError):
    def __init__(self, item_id: str):
        super().__init__(f"Queue item not found: {item_id}")
        self.item_id = item_id


class ItemNotEditable(StoreError):
    def __init__(self, item_id: str, status: str):
        super().__init__(f"Queue item {item_id} is '{status}'; only drafts can be edited")
        self.item_id = item_id
        self.status = status


class DeliveryFailure(OutreachError):
    """The transport could not deliver a message."""


class ContentGenerationError(OutreachError):
    """The content service returned nothing usable."""


class CriticalLoopFailure(OutreachError):
    """An error escaped the per-item boundary of the dispatch loop."""
