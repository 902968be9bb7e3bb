"""
Executor Registry - node type tag -> async executor.

Assembled once at process start and frozen; after that it is read-only and
shared by every concurrent run.

Executors can be registered via:
1. Manual registration
2. Entry-points (for plugin executor packs)
"""

from __future__ import annotations

from importlib.metadata import entry_points
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from workflow_engine.errors import RegistryFrozenError, UnknownNodeTypeError
from workflow_engine.executors.contracts import ExecutorDefinition, ExecutorKind, NodeExecutor
from workflow_engine.models import NodeType
from workflow_engine.observability import get_logger

logger = get_logger(__name__)

# Entry point group for executor packs
EXECUTOR_ENTRY_POINT = "workflow_engine.executors"

NodeTypeLike = Union[str, NodeType]


def _type_key(node_type: NodeTypeLike) -> str:
    return node_type.value if isinstance(node_type, NodeType) else str(node_type)


def _default_kind(node_type: str) -> ExecutorKind:
    if NodeType.is_trigger(node_type):
        return ExecutorKind.TRIGGER
    if NodeType.is_branching(node_type) or node_type in (
        NodeType.SET_VARIABLE.value,
        NodeType.STOP_WORKFLOW.value,
        NodeType.INITIAL.value,
    ):
        return ExecutorKind.CONDITION
    return ExecutorKind.ACTION


class ExecutorRegistry:
    """
    Central registry mapping node types to executors.

    Usage:
        registry = ExecutorRegistry()
        registry.register(NodeType.SET_VARIABLE, set_variable_executor)
        registry.discover_entry_points()
        registry.freeze()

        executor = registry.require("SET_VARIABLE")
    """

    def __init__(self):
        """Initialize empty registry."""
        self._executors: Dict[str, NodeExecutor] = {}
        self._definitions: Dict[str, ExecutorDefinition] = {}
        self._frozen = False
        self._discovered = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(
        self,
        node_type: NodeTypeLike,
        executor: NodeExecutor,
        *,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        kind: Optional[ExecutorKind] = None,
        branching: Optional[bool] = None,
    ) -> ExecutorDefinition:
        """
        Register an executor.

        Args:
            node_type: Node type tag
            executor: Async callable ``(ExecutorParams) -> context``
            display_name: Human-readable name (defaults to the tag)
            description: What the node does
            kind: trigger / condition / action (derived from the tag if omitted)
            branching: Whether the node selects its edge by handle

        Returns:
            ExecutorDefinition for the registered executor

        Raises:
            RegistryFrozenError: If the registry was already frozen
        """
        key = _type_key(node_type)
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register '{key}': registry is frozen")

        if key in self._executors:
            logger.warning(f"Replacing executor for node type: {key}")

        definition = ExecutorDefinition(
            node_type=key,
            display_name=display_name or key.replace("_", " ").title(),
            description=description or getattr(executor, "__doc__", None),
            kind=kind or _default_kind(key),
            branching=NodeType.is_branching(key) if branching is None else branching,
        )
        self._executors[key] = executor
        self._definitions[key] = definition

        logger.debug(f"Registered executor: {key}")
        return definition

    def register_many(
        self,
        executors: Union[Mapping[NodeTypeLike, NodeExecutor], Iterable[Tuple[NodeTypeLike, NodeExecutor]]],
    ) -> int:
        """
        Register several executors at once.

        Returns:
            Number of executors registered
        """
        items = executors.items() if isinstance(executors, Mapping) else executors
        count = 0
        for node_type, executor in items:
            self.register(node_type, executor)
            count += 1
        return count

    def discover_entry_points(self, group: str = EXECUTOR_ENTRY_POINT, force: bool = False) -> int:
        """
        Discover executor packs via entry points.

        Entry points are declared in the pack's pyproject.toml:

            [project.entry-points."workflow_engine.executors"]
            crm = "crm_pack:executors"

        The entry point must be a function returning a mapping (or list of
        pairs) of node type -> executor.

        Args:
            group: Entry point group
            force: Re-discover even if already done

        Returns:
            Number of packs discovered
        """
        if self._discovered and not force:
            return 0

        count = 0
        for ep in entry_points(group=group):
            try:
                provider = ep.load()
                registered = self.register_many(provider())
            except RegistryFrozenError:
                raise
            except Exception as e:
                logger.error(f"Failed to load executor pack '{ep.name}': {e}")
                continue
            count += 1
            logger.info(f"Discovered executor pack '{ep.name}' with {registered} executors")

        self._discovered = True
        return count

    def freeze(self) -> None:
        """Make the registry read-only."""
        self._frozen = True
        logger.info(f"Executor registry frozen with {len(self)} node types")

    def get(self, node_type: NodeTypeLike) -> Optional[NodeExecutor]:
        """Get executor by node type."""
        return self._executors.get(_type_key(node_type))

    def require(self, node_type: NodeTypeLike, node_id: Optional[str] = None) -> NodeExecutor:
        """
        Get executor by node type.

        Raises:
            UnknownNodeTypeError: If nothing is registered for the type
        """
        executor = self.get(node_type)
        if executor is None:
            raise UnknownNodeTypeError(
                f"Unknown node type: {_type_key(node_type)}", node_id=node_id
            )
        return executor

    def get_definition(self, node_type: NodeTypeLike) -> Optional[ExecutorDefinition]:
        """Get executor metadata by node type."""
        return self._definitions.get(_type_key(node_type))

    def definitions(self) -> List[ExecutorDefinition]:
        """List all executor definitions."""
        return list(self._definitions.values())

    def list_node_types(self) -> List[str]:
        """List all registered node types."""
        return list(self._executors.keys())

    def has(self, node_type: NodeTypeLike) -> bool:
        """Check if node type is registered."""
        return _type_key(node_type) in self._executors

    def __len__(self) -> int:
        """Number of registered executors."""
        return len(self._executors)

    def __iter__(self) -> Iterator[str]:
        """Iterate over registered node types."""
        return iter(self._executors)

    def __contains__(self, node_type: object) -> bool:
        """Check if node type is registered."""
        if not isinstance(node_type, (str, NodeType)):
            return False
        return self.has(node_type)


__all__ = [
    "EXECUTOR_ENTRY_POINT",
    "ExecutorRegistry",
]
