from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen"
            )
        self._implementations[name] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[name]

    def __contains__(self, name: object) -> bool:
        return name in self._implementations

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


# Job Registry - background processing handlers
class JobHandler(Protocol):
    """Protocol for job handlers that process background tasks."""

    async def handle(self, payload: dict[str, Any], worker_id: str) -> None:
        """
        Handle a background job.

        Args:
            payload: Job-specific parameters
            worker_id: Identity of the worker holding the job lock

        Raises on any failure; the worker applies the retry policy.
        """
        ...


@runtime_checkable
class VersionScopedHandler(JobHandler, Protocol):
    """Handler whose payload points at an asset version.

    The worker marks that version failed whenever the job fails.
    """

    def version_id_for(self, payload: dict[str, Any]) -> str | None:
        """Return the asset version referenced by the payload, if any."""
        ...


class JobRegistry(Registry[JobHandler]):
    """Registry for background job handlers."""

    def __init__(self):
        super().__init__("Job")
