"""
Identity Providers

The coordinator never decides who the user is. It asks an IdentityProvider
before every operation and refuses to touch the store without an answer.
"""

from abc import ABC, abstractmethod
from typing import Optional


class IdentityProvider(ABC):
    """Source of the id of the user a session acts for."""

    @abstractmethod
    def current_user_id(self) -> Optional[str]:
        """
        Id of the signed-in user.

        Returns:
            The user id, or None if nobody is signed in
        """
        pass


class StaticIdentity(IdentityProvider):
    """
    Identity fixed at construction.

    For sessions that already know their user (a CLI, a test, a request
    handler that authenticated upstream).
    """

    def __init__(self, user_id: Optional[str]):
        self._user_id = user_id

    def current_user_id(self) -> Optional[str]:
        return self._user_id

    def sign_out(self) -> None:
        self._user_id = None
