"""Aspect registry and selection."""

from __future__ import annotations

from typing import Iterable, Iterator

from fleet_drift.aspects.base import Aspect
from fleet_drift.core.fingerprint import Fingerprint


class AspectRegistry:
    """Ordered, name-keyed set of aspects registered once at startup."""

    def __init__(self, aspects: Iterable[Aspect] = ()):
        self._by_name: dict[str, Aspect] = {}
        for aspect in aspects:
            self.register(aspect)

    def register(self, aspect: Aspect) -> None:
        if aspect.name in self._by_name:
            raise ValueError(f"Aspect {aspect.name!r} is already registered")
        self._by_name[aspect.name] = aspect

    def __iter__(self) -> Iterator[Aspect]:
        return iter(self._by_name.values())

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def names(self) -> list[str]:
        return list(self._by_name)

    def get(self, name: str) -> Aspect:
        try:
            return self._by_name[name]
        except KeyError as e:
            raise KeyError(f"Unknown aspect {name!r}. Registered={sorted(self._by_name)}") from e

    def for_fingerprint(self, fp: Fingerprint) -> Aspect | None:
        """The aspect owning `fp` (fingerprint type == aspect name), if registered."""

        return self._by_name.get(fp.type)

    def select(self, names: Iterable[str] | None) -> list[Aspect]:
        if names is None:
            return list(self)
        return [self.get(n) for n in names]


def default_aspects() -> list[Aspect]:
    # Local import keeps the registry importable without every aspect module.
    from fleet_drift.aspects.license import LicenseAspect
    from fleet_drift.aspects.npm_scripts import NpmScriptsAspect
    from fleet_drift.aspects.pipeline import CurrentPipelineAspect

    return [LicenseAspect(), NpmScriptsAspect(), CurrentPipelineAspect()]


def default_registry() -> AspectRegistry:
    return AspectRegistry(default_aspects())
