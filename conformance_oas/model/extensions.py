"""Typed extension payloads carried by CapabilityStatement elements.

Extensions are decoded once, at the boundary, into one of the variants
below. Downstream code selects them by type with :func:`first_of` and
:func:`all_of` and never inspects raw extension values again.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Type, TypeVar, Union

EXPECTATION_URL = "http://hl7.org/fhir/StructureDefinition/capabilitystatement-expectation"
COMBINATION_URL = (
    "http://hl7.org/fhir/StructureDefinition/capabilitystatement-search-parameter-combination"
)
EXAMPLES_URL = (
    "https://fhir.nhs.uk/StructureDefinition/Extension-NHSDigital-CapabilityStatement-Examples"
)
QUERY_PARAMETERS_URL = (
    "https://fhir.nhs.uk/StructureDefinition/"
    "Extension-NHSDigital-CapabilityStatement-QueryParameters"
)
OP_PARAMETER_EXAMPLE_URL = "http://hapifhir.io/fhir/StructureDefinition/op-parameter-example-value"


@dataclass(frozen=True, slots=True)
class Expectation:
    """Conformance expectation code such as ``SHALL`` or ``SHOULD``."""

    code: str


@dataclass(frozen=True, slots=True)
class ExampleReference:
    reference: Optional[str]
    request: bool = False
    summary: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ExampleSet:
    examples: Tuple[ExampleReference, ...] = ()

    def for_request(self, request: bool) -> List[ExampleReference]:
        return [example for example in self.examples if example.request == request]


@dataclass(frozen=True, slots=True)
class QueryParameterConstraints:
    required: Optional[bool] = None
    minimum: Optional[int] = None
    maximum: Optional[int] = None
    example: Optional[str] = None
    allowed_values: Optional[str] = None
    show_code_and_system: bool = True


@dataclass(frozen=True, slots=True)
class SearchParameterCombination:
    expectation: Optional[str] = None
    required: Tuple[str, ...] = ()
    optional: Tuple[str, ...] = ()


Extension = Union[Expectation, ExampleSet, QueryParameterConstraints, SearchParameterCombination]

E = TypeVar("E", Expectation, ExampleSet, QueryParameterConstraints, SearchParameterCombination)


def all_of(extensions: Iterable[Extension], kind: Type[E]) -> List[E]:
    return [extension for extension in extensions if isinstance(extension, kind)]


def first_of(extensions: Iterable[Extension], kind: Type[E]) -> Optional[E]:
    for extension in extensions:
        if isinstance(extension, kind):
            return extension
    return None


__all__ = [
    "COMBINATION_URL",
    "EXAMPLES_URL",
    "EXPECTATION_URL",
    "ExampleReference",
    "ExampleSet",
    "Expectation",
    "Extension",
    "OP_PARAMETER_EXAMPLE_URL",
    "QUERY_PARAMETERS_URL",
    "QueryParameterConstraints",
    "SearchParameterCombination",
    "all_of",
    "first_of",
]
