"""Per-compile options and state threaded through every builder."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..model.capability import ConformanceDescription
from ..registry.protocols import DefinitionRegistry, SearchParameterRegistry, ValueSetExpander
from ..registry.terminology import ChainedExpander
from ..utils.config import ENHANCE, EXAMPLE_BASE_URL, MAX_CHAIN_DEPTH, RESOLVER_SCOPE
from .document import SpecDocument


@dataclass(frozen=True, slots=True)
class CompileOptions:
    enhance: bool = ENHANCE
    example_base_url: str = EXAMPLE_BASE_URL
    max_chain_depth: int = MAX_CHAIN_DEPTH
    resolver_scope: Optional[str] = RESOLVER_SCOPE


@dataclass(frozen=True, slots=True)
class Registries:
    definitions: DefinitionRegistry
    search_parameters: SearchParameterRegistry
    value_sets: ValueSetExpander

    @classmethod
    def from_registry(cls, registry, *expanders: ValueSetExpander) -> "Registries":
        """Use one object implementing all three protocols for every role.

        Extra *expanders* are consulted for value sets after *registry*.
        """

        value_sets = ChainedExpander([registry, *expanders]) if expanders else registry
        return cls(definitions=registry, search_parameters=registry, value_sets=value_sets)


@dataclass(slots=True)
class CompileContext:
    """Everything one compile reads or writes; never shared between compiles."""

    conformance: ConformanceDescription
    document: SpecDocument
    registries: Registries
    options: CompileOptions

    @property
    def enhance(self) -> bool:
        return self.options.enhance

    @property
    def xml_enabled(self) -> bool:
        return self.conformance.xml_enabled


__all__ = ["CompileContext", "CompileOptions", "Registries"]
