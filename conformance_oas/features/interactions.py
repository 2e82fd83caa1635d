"""Map declared RESTful interactions onto OpenAPI paths and methods."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from ..model import capability as codes
from ..model.capability import Interaction, ResourceCapability
from ..model.extensions import ExampleSet, SearchParameterCombination, all_of, first_of
from .content import (
    JSON_PATCH,
    SYSTEM_TAG,
    SYSTEM_TAG_DESCRIPTION,
    ensure_json_patch_schema,
    ensure_resource_tag,
    request_body,
    responses,
    schema_ref,
)
from .context import CompileContext
from .examples import (
    GeneratedExample,
    acknowledgement_example,
    explicit_examples,
    history_example,
    patch_example,
    searchset_example,
)
from .markdown import DocFragments, unescape
from .search_params import query_parameters

logger = logging.getLogger("conformance_oas.features.interactions")

RESOURCE_ID_EXAMPLE = "6160eb19-6fc3-4b43-953a-54ea01dc1cf4"


@dataclass(frozen=True, slots=True)
class Route:
    path: str
    method: str
    anchor: str
    instance: bool = False
    version: bool = False


# Path templates are formatted with the resource type.
ROUTES: Mapping[str, Route] = {
    codes.SEARCH_TYPE: Route("/{type}", "get", "search"),
    codes.READ: Route("/{type}/{{id}}", "get", "read", instance=True),
    codes.VREAD: Route("/{type}/{{id}}/_history/{{version}}", "get", "vread", instance=True, version=True),
    codes.UPDATE: Route("/{type}/{{id}}", "put", "update", instance=True),
    codes.CREATE: Route("/{type}", "post", "create"),
    codes.PATCH: Route("/{type}/{{id}}", "patch", "patch", instance=True),
    codes.DELETE: Route("/{type}/{{id}}", "delete", "delete", instance=True),
    codes.HISTORY_TYPE: Route("/{type}/_history", "get", "history"),
    codes.HISTORY_INSTANCE: Route("/{type}/{{id}}/_history", "get", "history", instance=True),
}

_OUTCOME_INTERACTIONS = frozenset({codes.UPDATE, codes.CREATE, codes.PATCH, codes.DELETE})
_HISTORY_INTERACTIONS = frozenset({codes.HISTORY_TYPE, codes.HISTORY_INSTANCE})


def route_for(code: str, resource_type: str) -> Optional[Route]:
    route = ROUTES.get(code)
    if route is None:
        return None
    return Route(
        path=route.path.format(type=resource_type),
        method=route.method,
        anchor=route.anchor,
        instance=route.instance,
        version=route.version,
    )


def external_docs(anchor: str) -> Dict[str, str]:
    return {
        "description": f"FHIR RESTful API - {anchor}",
        "url": f"https://hl7.org/fhir/R4/http.html#{anchor}",
    }


def id_parameter() -> Dict[str, Any]:
    return {
        "name": "id",
        "in": "path",
        "description": "The resource ID",
        "required": True,
        "style": "simple",
        "example": RESOURCE_ID_EXAMPLE,
        "schema": {"type": "string"},
    }


def version_parameter() -> Dict[str, Any]:
    return {
        "name": "version",
        "in": "path",
        "description": "The resource version ID",
        "required": True,
        "style": "simple",
        "example": "1",
        "schema": {"type": "string"},
    }


def expectation_text(interaction: Interaction) -> DocFragments:
    fragments = DocFragments()
    for code in interaction.expectations:
        fragments = fragments.add(f"\n\n Query Conformance Expectation: **{code}** be supported.")
    return fragments


def combination_table(resource: ResourceCapability) -> str:
    """Markdown table of the declared search parameter combinations."""

    combinations = all_of(resource.extensions, SearchParameterCombination)
    if not combinations:
        return ""
    link = f"https://www.hl7.org/fhir/R4/{resource.type}.html#search"
    lines = [
        "\n\n **Search Parameter Combination Conformance** \n\n "
        "| Conformance Expectation | Parameter Combination | \n",
        "|----------|---------| \n",
    ]
    for combination in combinations:
        conformance = f"**{combination.expectation}**" if combination.expectation else ""
        names = [f"[{name}]({link})" for name in combination.required]
        names.extend(f"[{name}]({link}) *optional*" for name in combination.optional)
        lines.append(f"| {conformance}| {' + '.join(names)} | \n")
    return "".join(lines)


def _finish(operation: Dict[str, Any], description: DocFragments) -> None:
    if description:
        operation["description"] = description.render()


def _response_examples(
    ctx: CompileContext, resource: ResourceCapability, interaction: Interaction, code: str
) -> List[GeneratedExample]:
    examples = explicit_examples(
        first_of(interaction.extensions, ExampleSet),
        ctx.registries.definitions,
        request=False,
        base_url=ctx.options.example_base_url,
        search=code == codes.SEARCH_TYPE,
    )
    if code == codes.SEARCH_TYPE:
        fallback = searchset_example(resource.type, ctx.options.example_base_url).payload
        examples = [
            example if example.payload is not None else example.with_payload(fallback)
            for example in examples
        ]
    if examples and code in (codes.CREATE, codes.UPDATE):
        examples.append(acknowledgement_example())
    return examples


def add_resource_interaction(
    ctx: CompileContext, resource: ResourceCapability, interaction: Interaction
) -> None:
    code = interaction.code
    route = route_for(code, resource.type)
    if route is None:
        logger.debug(
            "interaction.skipped", extra={"interaction": code, "resource_type": resource.type}
        )
        return

    operation = ctx.document.operation(route.path, route.method)
    operation["tags"] = [resource.type]
    description = DocFragments().add(unescape(interaction.documentation))
    if ctx.enhance:
        operation["externalDocs"] = external_docs(route.anchor)
        description = description.extend(expectation_text(interaction))
        if code == codes.SEARCH_TYPE:
            description = description.add(combination_table(resource))
    _finish(operation, description)

    parameters: List[Dict[str, Any]] = []
    if route.instance:
        parameters.append(id_parameter())
    if route.version:
        parameters.append(version_parameter())
    if code == codes.SEARCH_TYPE:
        parameters.extend(query_parameters(ctx, resource))
    if parameters:
        operation["parameters"] = parameters

    if code in (codes.UPDATE, codes.CREATE):
        request_examples = explicit_examples(
            first_of(interaction.extensions, ExampleSet),
            ctx.registries.definitions,
            request=True,
            base_url=ctx.options.example_base_url,
            create=code == codes.CREATE,
        )
        operation["requestBody"] = request_body(
            ctx, resource.type, request_examples, profile=resource.profile
        )
    elif code == codes.PATCH:
        ensure_json_patch_schema(ctx)
        operation["requestBody"] = {
            "content": {
                JSON_PATCH: {
                    "schema": schema_ref("JSONPATCH"),
                    "example": json.dumps(patch_example(resource.type)),
                }
            }
        }

    examples = _response_examples(ctx, resource, interaction, code)
    if code == codes.SEARCH_TYPE:
        operation["responses"] = responses(
            ctx, "Bundle", examples or [searchset_example(resource.type, ctx.options.example_base_url)]
        )
    elif code in _HISTORY_INTERACTIONS:
        operation["responses"] = responses(
            ctx, "Bundle", examples or [history_example(resource.type, ctx.options.example_base_url)]
        )
    elif code in _OUTCOME_INTERACTIONS:
        operation["responses"] = responses(ctx, "OperationOutcome", examples)
    else:
        operation["responses"] = responses(ctx, resource.type, examples, profile=resource.profile)


def add_resource_interactions(ctx: CompileContext, resource: ResourceCapability) -> None:
    """Register every declared interaction of *resource*, in declaration order."""

    ensure_resource_tag(ctx, resource.type, resource.profile, resource.documentation)
    for interaction in resource.interactions:
        add_resource_interaction(ctx, resource, interaction)


def add_system_interactions(ctx: CompileContext) -> None:
    """Register ``/metadata`` and the declared system-level interactions."""

    document = ctx.document
    conformance = ctx.conformance
    document.add_tag(SYSTEM_TAG, SYSTEM_TAG_DESCRIPTION)

    metadata = document.operation("/metadata", "get")
    metadata["tags"] = [SYSTEM_TAG]
    if ctx.enhance:
        metadata["externalDocs"] = external_docs("capabilities")
    metadata["responses"] = responses(ctx, "CapabilityStatement")

    if conformance.supports_system(codes.TRANSACTION, codes.BATCH):
        transaction = document.operation("/", "post")
        transaction["tags"] = [SYSTEM_TAG]
        if ctx.enhance:
            transaction["externalDocs"] = external_docs("transaction")
        transaction["requestBody"] = request_body(ctx, "Bundle")
        transaction["responses"] = responses(ctx, "Bundle")

    if conformance.supports_system(codes.HISTORY_SYSTEM):
        history = document.operation("/_history", "get")
        history["tags"] = [SYSTEM_TAG]
        if ctx.enhance:
            history["externalDocs"] = external_docs("history")
        history["responses"] = responses(ctx, "Bundle")


__all__ = [
    "ROUTES",
    "Route",
    "add_resource_interaction",
    "add_resource_interactions",
    "add_system_interactions",
    "combination_table",
    "expectation_text",
    "external_docs",
    "id_parameter",
    "route_for",
    "version_parameter",
]
