"""Source control collaborator contract.

Deployment from source control is delegated entirely to an external
service; the broker only forwards requests for applications it knows.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Branch:
    """A deployable source branch or tag."""

    id: str
    display_id: str
    type: str = "branch"


class SCM(ABC):
    """Source control service the platform deploys from."""

    @abstractmethod
    async def deploy(self, namespace: str, name: str, branch: str) -> None:
        """Deploy ``branch`` of the application's repository."""

    @abstractmethod
    async def get_deployment_branch(self, namespace: str, name: str) -> Branch:
        """Return the branch currently deployed."""

    @abstractmethod
    async def get_deployment_branches(self, namespace: str, name: str) -> list[Branch]:
        """Return every branch that could be deployed."""
