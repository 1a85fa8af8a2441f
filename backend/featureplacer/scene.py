import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from .models import PlacementDirective
from .utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SceneHandle:
    """Opaque reference to an instantiated scene object."""

    id: str
    display_name: str


class SceneSink(Protocol):
    def instantiate(self, directive: PlacementDirective) -> SceneHandle:
        ...


class InMemorySceneRegistry:
    """Keeps every instantiated directive, addressable by handle or display name."""

    def __init__(self):
        self._directives: Dict[str, PlacementDirective] = {}
        self._handles: List[SceneHandle] = []

    def instantiate(self, directive: PlacementDirective) -> SceneHandle:
        handle = SceneHandle(id=uuid.uuid4().hex[:12], display_name=directive.display_name)
        self._directives[handle.id] = directive
        self._handles.append(handle)
        return handle

    def __len__(self) -> int:
        return len(self._handles)

    @property
    def handles(self) -> List[SceneHandle]:
        return list(self._handles)

    def directive(self, handle: SceneHandle) -> PlacementDirective:
        return self._directives[handle.id]

    def find(self, display_name: str) -> Optional[SceneHandle]:
        for handle in self._handles:
            if handle.display_name == display_name:
                return handle
        return None

    def display_names(self) -> List[str]:
        """Sorted names, as offered to a picker."""
        return sorted(handle.display_name for handle in self._handles)

    def clear(self) -> None:
        self._directives.clear()
        self._handles.clear()
        logger.info("Scene registry cleared")
