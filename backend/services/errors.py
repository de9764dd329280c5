"""
Domain errors raised by the lifecycle engine.

The store never raises for missing records; the engine turns absence into
these, and the API layer maps them onto HTTP status codes.
"""


class LifecycleError(Exception):
    """Base class for contribution lifecycle failures"""


class ContributionNotFoundError(LifecycleError):
    def __init__(self, contribution_id: int):
        self.contribution_id = contribution_id
        super().__init__(f"Contribution {contribution_id} not found")


class ModelNotFoundError(LifecycleError):
    def __init__(self, model_id: int):
        self.model_id = model_id
        super().__init__(f"Model {model_id} not found")


class UserNotFoundError(LifecycleError):
    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class ContributionAlreadyProcessedError(LifecycleError):
    """Raised when a terminal contribution is asked to transition again"""

    def __init__(self, contribution_id: int, status: str):
        self.contribution_id = contribution_id
        self.status = status
        super().__init__(f"Contribution {contribution_id} already processed ({status})")
