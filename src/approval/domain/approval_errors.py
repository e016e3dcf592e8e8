from dataclasses import dataclass


class ApprovalError(Exception):
    """Base class for rejected approval operations."""
    pass


@dataclass
class ApprovalNotFoundError(ApprovalError):
    request_id: str

    def __str__(self) -> str:
        return f"Approval request not found: {self.request_id}"


@dataclass
class ApprovalClosedError(ApprovalError):
    """Response submitted to a request that is already terminal."""
    request_id: str
    status: str

    def __str__(self) -> str:
        return f"Approval request {self.request_id} is {self.status}, not pending"


@dataclass
class ApprovalNotPermittedError(ApprovalError):
    """Responder is not one of the request's required approvers."""
    request_id: str
    user_id: str

    def __str__(self) -> str:
        return f"User {self.user_id} is not an approver of request {self.request_id}"
