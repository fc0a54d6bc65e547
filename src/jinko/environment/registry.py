"""Filter and test registries.

`env.filters` and `env.tests` are dict-like views over dictionaries
stored on the environment. Every mutation replaces the whole dictionary
(copy-on-write), so a render that already fetched a filter keeps seeing
a consistent table.
"""

from __future__ import annotations

from collections.abc import Callable, ItemsView, Iterator, KeysView, ValuesView
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jinko.environment.core import Environment


class FilterRegistry:
    """Dict-like registry of filter or test callables.

    Supports:
        - env.filters['name'] = func
        - env.filters.update({'name': func})
        - func = env.filters['name']
        - del env.tests['name']
        - 'name' in env.filters

    """

    __slots__ = ("_attr", "_env")

    def __init__(self, env: Environment, attr: str):
        self._env = env
        self._attr = attr

    def _get_dict(self) -> dict[str, Callable]:
        return getattr(self._env, self._attr)

    def _set_dict(self, d: dict[str, Callable]) -> None:
        setattr(self._env, self._attr, d)

    def __getitem__(self, name: str) -> Callable:
        return self._get_dict()[name]

    def __setitem__(self, name: str, func: Callable) -> None:
        if not callable(func):
            raise TypeError(f"{self._attr.strip('_')} {name!r} must be callable")
        new = self._get_dict().copy()
        new[name] = func
        self._set_dict(new)

    def __delitem__(self, name: str) -> None:
        new = self._get_dict().copy()
        del new[name]
        self._set_dict(new)

    def __contains__(self, name: object) -> bool:
        return name in self._get_dict()

    def __iter__(self) -> Iterator[str]:
        return iter(self._get_dict())

    def __len__(self) -> int:
        return len(self._get_dict())

    def get(self, name: str, default: Callable | None = None) -> Callable | None:
        return self._get_dict().get(name, default)

    def update(self, mapping: dict[str, Callable]) -> None:
        """Register several callables at once."""
        for name, func in mapping.items():
            if not callable(func):
                raise TypeError(f"{self._attr.strip('_')} {name!r} must be callable")
        new = self._get_dict().copy()
        new.update(mapping)
        self._set_dict(new)

    def copy(self) -> dict[str, Callable]:
        return self._get_dict().copy()

    def keys(self) -> KeysView[str]:
        return self._get_dict().keys()

    def values(self) -> ValuesView[Callable]:
        return self._get_dict().values()

    def items(self) -> ItemsView[str, Callable]:
        return self._get_dict().items()
