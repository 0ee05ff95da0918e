"""Custom property providers and the asynchronous prerequisite protocol.

A provider computes one derived property of a Model (bonds, secondary
structure) and stores it under ``model.custom_properties[provider.name]``.
``ensure`` is the only suspension point of a query: it runs before the
synchronous evaluation and offloads the CPU-bound ``compute`` to an executor.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from molselect.config import SelectionSettings, load_settings
from molselect.core.logging_utils import get_logger
from molselect.model.model import Model
from molselect.model.structure import Structure
from molselect.runtime.task import RuntimeContext

logger = get_logger(__name__)


@dataclass
class CustomPropertyContext:
    runtime: RuntimeContext = field(default_factory=RuntimeContext)
    settings: SelectionSettings = field(default_factory=load_settings)


EnsureHook = Callable[[CustomPropertyContext, Structure], Awaitable[None]]


class CustomPropertyProvider(ABC):
    """One family of derived per-model data."""

    name: str = ""
    label: str = ""

    def is_available(self, model: Model) -> bool:
        return self.name in model.custom_properties

    def get(self, model: Model) -> Optional[Any]:
        return model.custom_properties.get(self.name)

    @abstractmethod
    def compute(self, model: Model, settings: SelectionSettings) -> Any:
        """Synchronous, CPU-bound computation of the property value."""

    async def ensure(self, ctx: CustomPropertyContext, structure: Structure) -> None:
        """Compute the property for every model of ``structure`` that lacks it."""
        for model in structure.models:
            if self.is_available(model):
                continue
            ctx.runtime.update(f"Computing {self.label or self.name} for {model.label}")
            value = await ctx.runtime.run_sync(self.compute, model, ctx.settings)
            model.custom_properties[self.name] = value
            logger.info("Computed %s for %s", self.name, model.label)


PROVIDERS: dict[str, CustomPropertyProvider] = {}


def register_provider(provider: CustomPropertyProvider) -> CustomPropertyProvider:
    PROVIDERS[provider.name] = provider
    return provider


def get_provider(name: str) -> CustomPropertyProvider:
    if name not in PROVIDERS:
        raise ValueError(f"Unknown custom property: {name!r}. Available: {sorted(PROVIDERS)}")
    return PROVIDERS[name]


def ensure_properties(*providers: CustomPropertyProvider) -> EnsureHook:
    """Prerequisite hook that ensures the given providers in order."""

    async def hook(ctx: CustomPropertyContext, structure: Structure) -> None:
        for provider in providers:
            await provider.ensure(ctx, structure)

    hook.providers = providers
    return hook
