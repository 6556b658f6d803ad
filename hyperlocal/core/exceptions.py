class NotFoundError(Exception):
    """Raised when an order, store or product reference does not exist"""

    def __init__(self, resource: str, identifier):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class InvalidTransitionError(Exception):
    """Raised when a status change would leave a terminal state"""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move order from {current} to {requested}")
