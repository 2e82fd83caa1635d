"""Assemble OpenAPI query parameters for a resource's search operation."""
from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..model.capability import ResourceCapability, SearchParameterDeclaration
from ..model.extensions import QueryParameterConstraints, first_of
from ..utils.errors import CautionCode
from ..utils.logging import record_caution
from .context import CompileContext
from .markdown import DocFragments
from .search_chain import SEARCH_TABLE_HEADER, resolve_search_parameter

INCLUDE_EXAMPLE = "MedicationRequest:patient"
ITERATE_DESCRIPTION = "The inclusion process can be iterative"
VALUE_SET_FALLBACK_LINK = "https://simplifier.net/guide/nhsdigital/home"


def _array_of_strings(values: Sequence[str]) -> Dict[str, Any]:
    items: Dict[str, Any] = {"type": "string", "example": INCLUDE_EXAMPLE}
    if values:
        items["enum"] = list(values)
    return {"type": "array", "items": items}


def _check_include(
    ctx: CompileContext, kind: str, value: str
) -> Tuple[Optional[List[str]], Optional[str]]:
    """Return the split value, or an inline error text when it is unusable."""

    parts = value.split(":")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        record_caution(CautionCode.INVALID_INCLUDE, "malformed include value", parameter=kind, value=value)
        return None, (
            f"\n **FHIR ERROR {kind} {value} format {{resourceType}}:{{searchParameterName}}**"
        )
    if parts[0] == "*":
        return parts, None
    if ctx.registries.search_parameters.search_parameter(parts[0], parts[1]) is None:
        record_caution(CautionCode.INVALID_INCLUDE, "unknown include parameter", parameter=kind, value=value)
        return parts, (
            f"\n **FHIR ERROR {kind} {value} searchParameter {parts[1]} "
            f"does not exist for {parts[0]}**"
        )
    return parts, None


def include_parameters(
    ctx: CompileContext, resource: ResourceCapability, declaration: SearchParameterDeclaration
) -> List[Dict[str, Any]]:
    """Build ``_include`` and, when needed, its ``_include:iterate`` sibling.

    Values that start with the current resource type (or the ``*`` wildcard)
    are enumerated on ``_include``; values for other types go to the
    iterate parameter, which is created only if at least one exists.
    """

    own: List[str] = []
    others: List[str] = []
    description = DocFragments().add(declaration.documentation)
    for value in resource.search_include:
        if value == "*":
            own.append(value)
            continue
        parts, error = _check_include(ctx, "_include", value)
        description = description.add(error)
        if parts is None:
            continue
        if parts[0] in (resource.type, "*"):
            own.append(value)
        else:
            others.append(value)

    parameters = [
        {
            "name": "_include",
            "in": "query",
            "description": description.render(),
            "style": "form",
            "explode": True,
            "schema": _array_of_strings(own),
        }
    ]
    if others:
        parameters.append(
            {
                "name": "_include:iterate",
                "in": "query",
                "description": ITERATE_DESCRIPTION,
                "style": "form",
                "explode": True,
                "schema": _array_of_strings(others),
            }
        )
    return parameters


def revinclude_parameter(
    ctx: CompileContext, resource: ResourceCapability, declaration: SearchParameterDeclaration
) -> Dict[str, Any]:
    values: List[str] = []
    description = DocFragments().add(declaration.documentation)
    for value in resource.search_rev_include:
        parts, error = _check_include(ctx, "_revinclude", value)
        description = description.add(error)
        if parts is not None:
            values.append(value)
    return {
        "name": "_revinclude",
        "in": "query",
        "description": description.render(),
        "style": "form",
        "explode": True,
        "schema": _array_of_strings(values),
    }


def apply_constraints(
    ctx: CompileContext,
    parameter: Dict[str, Any],
    constraints: Optional[QueryParameterConstraints],
) -> None:
    """Apply required/minimum/maximum/example/allowed values to *parameter*."""

    if constraints is None:
        return
    schema = parameter["schema"]
    if constraints.required is not None:
        parameter["required"] = constraints.required
    if constraints.minimum is not None:
        schema["minimum"] = constraints.minimum
    if constraints.maximum is not None:
        schema["maximum"] = constraints.maximum
    if constraints.example is not None:
        schema["example"] = constraints.example
    if not constraints.allowed_values:
        return
    expander = ctx.registries.value_sets
    value_set = expander.value_set(constraints.allowed_values)
    if value_set is None:
        return
    link = value_set.url if constraints.allowed_values.startswith("http://hl7.org") else VALUE_SET_FALLBACK_LINK
    parameter["description"] = (
        f"{parameter.get('description', '')}\n\n A code from FHIR ValueSet "
        f"[{value_set.name or value_set.url}]({link})"
    )
    codes = expander.expand(value_set.url)
    if not codes:
        return
    enum = [
        f"{code.system}|{code.code}" if constraints.show_code_and_system and code.system else code.code
        for code in codes
    ]
    target = schema["items"] if schema.get("type") == "array" and "items" in schema else schema
    target["enum"] = enum


def search_parameter(
    ctx: CompileContext, resource: ResourceCapability, declaration: SearchParameterDeclaration
) -> Dict[str, Any]:
    resolved = resolve_search_parameter(
        declaration,
        resource.type,
        ctx.registries.search_parameters,
        max_depth=ctx.options.max_chain_depth,
    )
    description = (
        DocFragments()
        .add(declaration.documentation or resolved.description)
        .add(SEARCH_TABLE_HEADER)
        .extend(resolved.documentation())
    )
    if ctx.enhance and resolved.leaf.expression:
        description = description.add(f"\n\n **Expression:** {resolved.leaf.expression}")
    parameter: Dict[str, Any] = {
        "name": declaration.name,
        "in": "query",
        "description": description.render(),
        "style": "form",
        "explode": resolved.explode,
        "schema": copy.deepcopy(resolved.schema),
    }
    return parameter


def query_parameters(ctx: CompileContext, resource: ResourceCapability) -> List[Dict[str, Any]]:
    """Return the query parameters of ``GET /{resource.type}``."""

    parameters: List[Dict[str, Any]] = []
    for declaration in resource.search_params:
        if declaration.name.startswith("_include") and resource.search_include:
            built = include_parameters(ctx, resource, declaration)
        elif declaration.name.startswith("_revinclude") and resource.search_rev_include:
            built = [revinclude_parameter(ctx, resource, declaration)]
        else:
            built = [search_parameter(ctx, resource, declaration)]
        apply_constraints(ctx, built[0], first_of(declaration.extensions, QueryParameterConstraints))
        parameters.extend(built)
    return parameters


__all__ = [
    "apply_constraints",
    "include_parameters",
    "query_parameters",
    "revinclude_parameter",
    "search_parameter",
]
