"""Resolve declared search parameters, following dotted chains.

A declared name such as ``subject:Patient.name`` is split into chain
segments. The first segment is resolved against the search-parameter
registry for the current resource type, narrowed to that type, adjusted
for its modifier, and mapped to a schema. Remaining segments are resolved
recursively against the chain's target type, so the tail of a chain is
always identical to resolving it directly.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple

from ..model.capability import SearchParameterDeclaration
from ..model.definitions import SearchParameterDefinition
from ..model.extensions import Expectation, first_of
from ..registry.protocols import SearchParameterRegistry
from ..utils.config import MAX_CHAIN_DEPTH
from ..utils.errors import CautionCode
from ..utils.logging import increment_counter, record_caution
from .markdown import DocFragments, escape, escape_pipes, unescape
from .schema_mapper import map_type

logger = logging.getLogger("conformance_oas.features.search_chain")

IDENTIFIER_MODIFIER = "identifier"
FALLBACK_TARGET = "Resource"

SEARCH_TABLE_HEADER = (
    "\n\n **Search Parameter Conformance** \n\n"
    " | Conformance Expectation | Name | OAS format / FHIR Type |  \n"
    " |--------|--------|--------| \n "
)
UNKNOWN_PARAMETER_CAUTION = (
    "\n\n **Caution:** This does not appear to be a valid search parameter. "
    "Please check HL7 FHIR conformance."
)
CHAINED_NOTE = (
    "\n\n Chained search parameter. Please see "
    "[chained](http://www.hl7.org/fhir/search.html#chaining)"
)
NON_REFERENCE_CHAIN_CAUTION = (
    "\n\n Caution: This does not appear to be a valid search parameter. "
    "Chained search parameters **MUST** always be on reference types. "
    "Please check HL7 FHIR conformance."
)


@dataclass(frozen=True, slots=True)
class ResolvedSearchParameter:
    """One resolved chain segment plus the resolution of the rest of the chain."""

    name: str
    resource_type: str
    definition: Optional[SearchParameterDefinition]
    schema: Dict[str, Any]
    explode: bool = False
    expectation: Optional[str] = None
    rows: DocFragments = DocFragments()
    notes: DocFragments = DocFragments()
    chain: Optional["ResolvedSearchParameter"] = None

    @property
    def resolved(self) -> bool:
        return self.definition is not None

    @property
    def type(self) -> Optional[str]:
        return self.definition.type if self.definition else None

    @property
    def expression(self) -> Optional[str]:
        """Expression escaped for embedding in markdown."""

        if self.definition is None or self.definition.expression is None:
            return None
        return escape_pipes(self.definition.expression)

    @property
    def description(self) -> str:
        """Narrowed definition description escaped for embedding in markdown."""

        if self.definition is None:
            return ""
        return escape(self.definition.description)

    @property
    def leaf(self) -> "ResolvedSearchParameter":
        node = self
        while node.chain is not None:
            node = node.chain
        return node

    def documentation(self) -> DocFragments:
        fragments = self.rows.extend(self.notes)
        if self.chain is not None:
            fragments = fragments.extend(self.chain.documentation())
        return fragments


def _narrow_expression(expression: Optional[str], resource_type: str) -> Optional[str]:
    if not expression or "|" not in expression:
        return expression
    for variant in expression.split("|"):
        if variant.replace(" ", "").startswith(resource_type):
            return variant.strip()
    return expression


def _narrow_description(description: Optional[str], resource_type: str) -> Optional[str]:
    if not description:
        return description
    text = unescape(description)
    if "*" not in text:
        return text
    for variant in text.split("*"):
        candidate = variant.strip()
        if candidate.startswith(resource_type) or candidate.startswith(f"[{resource_type}"):
            return candidate
    return text


def _identifier_expression(expression: Optional[str], resource_type: str) -> str:
    items = [
        item
        for item in (expression or resource_type).split(".")
        if item and not item.startswith("where(resolve()")
    ]
    if not items or items[-1] != IDENTIFIER_MODIFIER:
        items.append(IDENTIFIER_MODIFIER)
    if len(items) == 1:
        items.insert(0, resource_type)
    return ".".join(items)


def _apply_modifier(
    definition: SearchParameterDefinition, modifier: Optional[str], resource_type: str
) -> SearchParameterDefinition:
    if modifier is None:
        return definition
    if modifier == IDENTIFIER_MODIFIER:
        return replace(
            definition,
            code=f"{definition.code}:{IDENTIFIER_MODIFIER}",
            type="token",
            expression=_identifier_expression(definition.expression, resource_type),
        )
    return replace(
        definition,
        expression=f"{definition.expression or resource_type}.where(resolve() is {modifier})",
    )


def _chain_target(definition: SearchParameterDefinition, modifier: Optional[str]) -> str:
    if modifier and modifier != IDENTIFIER_MODIFIER:
        return modifier
    target = FALLBACK_TARGET
    for candidate in definition.target:
        if candidate != "Group":
            target = candidate
    return target


def _lookup(
    declaration: SearchParameterDeclaration,
    base_name: str,
    resource_type: str,
    registry: SearchParameterRegistry,
) -> Optional[SearchParameterDefinition]:
    if declaration.definition:
        return registry.search_parameter_by_url(declaration.definition)
    return registry.search_parameter(resource_type, base_name)


def _row(expectation: Optional[str], name: str, resource_type: str, type_tag: str) -> str:
    marker = f"**{expectation}**" if expectation else ""
    return (
        f"| {marker} | [{name}](https://www.hl7.org/fhir/R4/{resource_type}.html#search) "
        f"| [{type_tag}](https://www.hl7.org/fhir/R4/search.html#{type_tag}) |\n"
    )


def resolve_search_parameter(
    declaration: SearchParameterDeclaration,
    resource_type: str,
    registry: SearchParameterRegistry,
    *,
    max_depth: int = MAX_CHAIN_DEPTH,
    depth: int = 0,
) -> ResolvedSearchParameter:
    """Resolve *declaration* for *resource_type*, recursing through chains."""

    segments = declaration.segments
    head = segments[0].split(":")
    base_name = head[0]
    modifier = head[1] if len(head) > 1 and head[1] else None
    remaining: Tuple[str, ...] = segments[1:]
    expectation_ext = first_of(declaration.extensions, Expectation)
    expectation = expectation_ext.code if expectation_ext else None

    found = _lookup(declaration, base_name, resource_type, registry)
    if found is None:
        record_caution(
            CautionCode.UNKNOWN_SEARCH_PARAMETER,
            "search parameter could not be resolved",
            parameter=declaration.name,
            resource_type=resource_type,
        )
        notes = DocFragments()
        if remaining:
            notes = notes.add(CHAINED_NOTE)
        return ResolvedSearchParameter(
            name=declaration.name,
            resource_type=resource_type,
            definition=None,
            schema={"type": "string"},
            expectation=expectation,
            rows=DocFragments().add(UNKNOWN_PARAMETER_CAUTION),
            notes=notes,
        )

    # Narrow a private copy; registry entries are shared between compiles.
    narrowed = replace(
        found,
        expression=_narrow_expression(found.expression, resource_type),
        description=_narrow_description(found.description, resource_type),
    )
    narrowed = _apply_modifier(narrowed, modifier, resource_type)
    mapped = map_type(narrowed.type)
    increment_counter("search.parameters_resolved")

    rows = DocFragments().add(_row(expectation, base_name, resource_type, narrowed.type.lower()))
    notes = DocFragments()
    if remaining:
        notes = notes.add(CHAINED_NOTE)

    if not remaining:
        if mapped.note:
            notes = notes.add(f"\n\n {mapped.note}")
        return ResolvedSearchParameter(
            name=declaration.name,
            resource_type=resource_type,
            definition=narrowed,
            schema=mapped.schema,
            explode=mapped.explode,
            expectation=expectation,
            rows=rows,
            notes=notes,
        )

    if narrowed.type != "reference":
        record_caution(
            CautionCode.INVALID_CHAIN,
            "chained through a non-reference parameter",
            parameter=declaration.name,
            resource_type=resource_type,
        )
        return ResolvedSearchParameter(
            name=declaration.name,
            resource_type=resource_type,
            definition=narrowed,
            schema=mapped.schema,
            explode=mapped.explode,
            expectation=expectation,
            rows=rows,
            notes=notes.add(NON_REFERENCE_CHAIN_CAUTION),
        )

    if depth + 1 >= max_depth:
        record_caution(
            CautionCode.CHAIN_TOO_DEEP,
            "chain exceeds the maximum depth",
            parameter=declaration.name,
            resource_type=resource_type,
            max_depth=max_depth,
        )
        return ResolvedSearchParameter(
            name=declaration.name,
            resource_type=resource_type,
            definition=narrowed,
            schema=mapped.schema,
            explode=mapped.explode,
            expectation=expectation,
            rows=rows,
            notes=notes.add(
                f"\n\n **Caution:** Chained search parameter is deeper than {max_depth} "
                f"levels; `{'.'.join(remaining)}` was not resolved."
            ),
        )

    target = _chain_target(narrowed, modifier)
    logger.debug(
        "search.chain",
        extra={"parameter": declaration.name, "resource_type": resource_type, "target": target},
    )
    tail = resolve_search_parameter(
        SearchParameterDeclaration(name=".".join(remaining)),
        target,
        registry,
        max_depth=max_depth,
        depth=depth + 1,
    )
    leaf = tail.leaf
    return ResolvedSearchParameter(
        name=declaration.name,
        resource_type=resource_type,
        definition=narrowed,
        schema=leaf.schema,
        explode=leaf.explode,
        expectation=expectation,
        rows=rows,
        notes=notes,
        chain=tail,
    )


__all__ = [
    "CHAINED_NOTE",
    "NON_REFERENCE_CHAIN_CAUTION",
    "ResolvedSearchParameter",
    "SEARCH_TABLE_HEADER",
    "UNKNOWN_PARAMETER_CAUTION",
    "resolve_search_parameter",
]
