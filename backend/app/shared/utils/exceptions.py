"""
Custom Exceptions for the Outreach CRM.

These exceptions provide clear, specific error handling for business logic scenarios.
Routers translate them into HTTP status codes; services raise them instead of
returning ad hoc error strings when the caller cannot continue.
"""


class ConcurrentModificationError(Exception):
    """
    Raised when a compare-and-set update finds the row already changed.

    Example:
        The scheduler reads CampaignLead (current_step=1)
        A webhook advances the same CampaignLead to current_step=2
        The scheduler tries to advance from current_step=1 -> ConcurrentModificationError

    Recovery:
        The caller should reload the fresh row and decide again.
    """
    def __init__(self, entity_type: str, entity_id, message: str = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.message = message or f"{entity_type} with ID {entity_id} was modified by another process. Please refresh and try again."
        super().__init__(self.message)


class EntityNotFoundError(Exception):
    """
    Raised when a requested entity does not exist in the database.
    """
    def __init__(self, entity_type: str, entity_id):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.message = f"{entity_type} with ID {entity_id} not found."
        super().__init__(self.message)


class InvalidStateError(Exception):
    """
    Raised when an operation is not allowed in the entity's current status.
    e.g. approving an item that was already rejected.
    """
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class SequenceValidationError(Exception):
    """
    Raised when a campaign sequence cannot be run as configured:
    no steps, or step_order values that are not contiguous from 1.
    """
    def __init__(self, campaign_id: int, message: str, missing_steps=None):
        self.campaign_id = campaign_id
        self.missing_steps = missing_steps or []
        self.message = message
        super().__init__(self.message)
