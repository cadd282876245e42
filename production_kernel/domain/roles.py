"""
Roles and the request-scoped actor context.

Responsibility:
    Closed enumeration of the roles the identity provider can assign, and
    the immutable ``ActorContext`` passed explicitly into every workflow
    operation.  No operation reads the current user from ambient state.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from uuid import UUID

from production_kernel.domain.stages import Stage
from production_kernel.exceptions import UnknownRoleError


class Role(str, Enum):
    """Roles recognized by the workflow."""

    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    OPERATOR = "operator"


# Legacy spellings still present in older profile rows.
ROLE_ALIASES: MappingProxyType = MappingProxyType({
    "operador": Role.OPERATOR,
})

MANAGER_ROLES: frozenset[Role] = frozenset({Role.ADMIN, Role.SUPERVISOR})


def parse_role(value: "Role | str | None") -> Role | None:
    """Convert a boundary role value into a Role.

    ``None`` or an empty string means the profile has no role; that actor
    is denied everything by the authorization resolver.

    Raises:
        UnknownRoleError: For any other unrecognized value.
    """
    if value is None or isinstance(value, Role):
        return value
    normalized = str(value).strip().lower()
    if not normalized:
        return None
    if normalized in ROLE_ALIASES:
        return ROLE_ALIASES[normalized]
    try:
        return Role(normalized)
    except ValueError:
        raise UnknownRoleError(str(value)) from None


@dataclass(frozen=True)
class ActorContext:
    """Authenticated user performing a workflow operation.

    ``home_stage`` is the module an operator normally works in; it only
    widens what the operator can *see*, never what they can change.
    """

    user_id: UUID
    role: Role | None
    is_active: bool = True
    home_stage: Stage | None = None

    @property
    def is_manager(self) -> bool:
        return self.is_active and self.role in MANAGER_ROLES

    @property
    def role_value(self) -> str | None:
        return self.role.value if self.role is not None else None
