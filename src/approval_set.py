"""
QuorumID - Bounded Approval Set

Ordered, duplicate-free collection of principal ids with a fixed capacity.
Shared by claim attestation (validator signers) and social recovery
(guardian approvers). Insertion order is kept for auditing.
"""

from collections.abc import Iterable, Iterator

from registry_errors import AlreadyExistsError, CapacityExceededError

# Maximum signers/approvers on a single record
MAX_APPROVERS = 10


class BoundedApprovalSet:
    """
    Insertion-ordered set of principals, at most ``capacity`` long.

    ``add`` validates everything before touching state, so a rejected
    append leaves the set exactly as it was.
    """

    def __init__(self, members: Iterable[str] = (), capacity: int = MAX_APPROVERS):
        self.capacity = capacity
        self._order: list[str] = []
        self._members: set[str] = set()
        for member in members:
            self.add(member)

    def __contains__(self, principal: object) -> bool:
        return principal in self._members

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[str]:
        return iter(self._order)

    def __repr__(self) -> str:
        return f"BoundedApprovalSet({self._order!r}, capacity={self.capacity})"

    @property
    def is_full(self) -> bool:
        return len(self._order) >= self.capacity

    def add(
        self,
        principal: str,
        operation: str = "append_approval",
        duplicate_error: type[AlreadyExistsError] = AlreadyExistsError,
    ) -> int:
        """
        Append a principal.

        Args:
            principal: Principal id to append
            operation: Operation name for error context
            duplicate_error: Error class raised on a repeat principal

        Returns:
            The new size of the set

        Raises:
            AlreadyExistsError (or duplicate_error): If already present
            CapacityExceededError: If the set is full
        """
        if principal in self._members:
            raise duplicate_error(
                f"{principal} has already approved",
                operation=operation,
                details={"principal": principal},
            )
        if self.is_full:
            raise CapacityExceededError(
                f"Approval set is full ({self.capacity} entries)",
                operation=operation,
                details={"principal": principal, "capacity": self.capacity},
            )
        self._order.append(principal)
        self._members.add(principal)
        return len(self._order)

    def to_list(self) -> list[str]:
        return list(self._order)
