from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, List, Optional, Union

from .errors import ConfigurationError
from .query import ALL_FIELDS
from .utils.logging import get_logger

logger = get_logger(__name__)

SELECT_ALL = "Get All Features"


@dataclass(frozen=True)
class AllFields:
    """Take every field in the catalog."""


@dataclass(frozen=True)
class ExplicitFields:
    fields: FrozenSet[str] = frozenset()


SelectionState = Union[AllFields, ExplicitFields]
SelectionListener = Callable[["SelectionIndex"], None]


class SelectionIndex:
    """Output fields chosen for the next query.

    The state is either ``AllFields`` or ``ExplicitFields``, never both, so a
    "select all" toggle and an explicit field set cannot coexist.
    """

    def __init__(
        self,
        catalog: Iterable[str] = (),
        select_all_label: str = SELECT_ALL,
        initial: Optional[SelectionState] = None,
    ):
        self.catalog: FrozenSet[str] = frozenset(catalog)
        self.select_all_label = select_all_label
        self._state: SelectionState = initial or ExplicitFields()
        self._listeners: List[SelectionListener] = []

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def select_all_flag(self) -> bool:
        return isinstance(self._state, AllFields)

    @property
    def selected_fields(self) -> FrozenSet[str]:
        if isinstance(self._state, ExplicitFields):
            return self._state.fields
        return frozenset()

    def subscribe(self, listener: SelectionListener) -> Callable[[], None]:
        """Register a "selection changed" callback; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def toggle(self, field_name: str) -> None:
        if field_name == self.select_all_label:
            if self.select_all_flag:
                self._state = ExplicitFields()
            else:
                self._state = AllFields()
        else:
            if self.catalog and field_name not in self.catalog:
                raise ConfigurationError(f"Unknown field: {field_name!r}")
            if self.select_all_flag:
                self._state = ExplicitFields(frozenset({field_name}))
            else:
                current = self._state.fields
                if field_name in current:
                    self._state = ExplicitFields(current - {field_name})
                else:
                    self._state = ExplicitFields(current | {field_name})

        logger.debug(
            "Field selection toggled",
            extra={'field_name': field_name, 'select_all': self.select_all_flag},
        )
        for listener in list(self._listeners):
            listener(self)

    def is_selected(self, field_name: str) -> bool:
        if field_name == self.select_all_label:
            return self.select_all_flag
        if self.select_all_flag:
            return not self.catalog or field_name in self.catalog
        return field_name in self._state.fields

    def effective_field_set(self) -> FrozenSet[str]:
        if self.select_all_flag:
            # Without a catalog "all" is the service wildcard
            return self.catalog or frozenset({ALL_FIELDS})
        return self._state.fields

    def reset(self) -> None:
        self._state = ExplicitFields()
        for listener in list(self._listeners):
            listener(self)
