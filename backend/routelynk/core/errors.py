"""Error taxonomy shared by the services and the request boundary.

Services raise these; ``routelynk.main`` turns them into ``{"message": ...}``
responses with the matching status code.
"""
from fastapi import status


class RouteLynkError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"message": self.message}


class Unauthenticated(RouteLynkError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(RouteLynkError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(RouteLynkError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidInput(RouteLynkError):
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientStock(RouteLynkError):
    status_code = status.HTTP_400_BAD_REQUEST


class Expired(RouteLynkError):
    status_code = status.HTTP_400_BAD_REQUEST


class PaymentGatewayError(RouteLynkError):
    status_code = status.HTTP_502_BAD_GATEWAY


class PartialFailure(RouteLynkError):
    """A multi-step operation stopped after some steps became durable.

    ``committed`` names the steps that cannot be taken back automatically
    (for payments: the gateway charge).
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, committed: list[str]):
        super().__init__(message)
        self.committed = committed

    def to_dict(self) -> dict:
        return {"message": self.message, "committed": self.committed}
