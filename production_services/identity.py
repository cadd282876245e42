"""
Identity resolution at the service boundary.

The identity provider owns authentication; this module only turns a user id
into the ``ActorContext`` the kernel works with.  Role and home-stage strings
are parsed here, so nothing past this boundary handles raw role text.
"""

from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from uuid import UUID

from production_config import WorkflowConfig
from production_kernel.domain.roles import ActorContext, parse_role
from production_kernel.domain.stages import parse_stage
from production_kernel.exceptions import IdentityLookupError, ProductionKernelError
from production_kernel.logging_config import get_logger
from production_services._timeouts import call_with_timeout

logger = get_logger("services.identity")


@dataclass(frozen=True)
class ProfileRecord:
    """Profile row as the identity provider returns it."""

    user_id: UUID
    role: str | None
    is_active: bool = True
    home_stage: str | None = None
    display_name: str | None = None


@runtime_checkable
class ProfileDirectory(Protocol):
    """Lookup interface implemented by the identity provider adapter."""

    def get_profile(self, user_id: UUID) -> ProfileRecord | None:
        """Return the profile, or None if the user is unknown."""
        ...


class IdentityResolver:
    """Resolves user ids to actor contexts with a bounded wait."""

    def __init__(self, directory: ProfileDirectory, timeout_seconds: float = 5.0):
        self._directory = directory
        self._timeout_seconds = timeout_seconds

    @classmethod
    def from_config(cls, directory: ProfileDirectory, config: WorkflowConfig) -> "IdentityResolver":
        """Resolver bounded by ``config.identity_timeout_seconds``."""
        return cls(directory, timeout_seconds=config.identity_timeout_seconds)

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    def resolve(self, user_id: UUID | str) -> ActorContext:
        """
        Raises:
            IdentityLookupError: Unknown user, provider failure or timeout.
            UnknownRoleError / UnknownStageError: Profile carries values
                the workflow does not recognize.
        """
        try:
            uid = user_id if isinstance(user_id, UUID) else UUID(str(user_id))
        except ValueError:
            raise IdentityLookupError(str(user_id), "malformed user id") from None

        try:
            profile = call_with_timeout(
                self._directory.get_profile, self._timeout_seconds, uid,
            )
        except FutureTimeoutError:
            logger.warning(
                "identity_lookup_timeout",
                extra={"user_id": str(uid), "timeout_seconds": self._timeout_seconds},
            )
            raise IdentityLookupError(
                str(uid), f"timed out after {self._timeout_seconds}s",
            ) from None
        except ProductionKernelError:
            raise
        except Exception as exc:
            logger.warning(
                "identity_lookup_failed",
                extra={"user_id": str(uid)},
                exc_info=True,
            )
            raise IdentityLookupError(str(uid), str(exc)) from exc

        if profile is None:
            raise IdentityLookupError(str(uid), "no profile for user")

        return ActorContext(
            user_id=uid,
            role=parse_role(profile.role),
            is_active=bool(profile.is_active),
            home_stage=parse_stage(profile.home_stage) if profile.home_stage else None,
        )
