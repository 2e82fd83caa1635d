"""Media-type content, component schemas and standard responses."""
from __future__ import annotations

from typing import Any, Dict, Optional, Sequence
from urllib.parse import urlparse

from .context import CompileContext
from .examples import GeneratedExample, error_outcome, forbidden_outcome, generic_payload

FHIR_JSON = "application/fhir+json"
FHIR_XML = "application/fhir+xml"
JSON_PATCH = "application/json-patch+json"

JSON_PATCH_SCHEMA = "JSONPATCH"
SYSTEM_TAG = "System Level Operations"
SYSTEM_TAG_DESCRIPTION = "Server-level operations"

_RESOLVABLE_PREFIXES = ("https://fhir.nhs.uk/", "https://fhir.hl7.org.uk")


def schema_ref(name: str) -> Dict[str, str]:
    return {"$ref": f"#/components/schemas/{name}"}


def documentation_path(url: Optional[str], resolver_scope: Optional[str]) -> str:
    """Return a browsable link for a canonical URL.

    UK canonicals are rewritten through the package resolver when a scope
    is configured; every other URL is returned unchanged.
    """

    if not url:
        return ""
    if resolver_scope and any(prefix in url for prefix in _RESOLVABLE_PREFIXES):
        return (
            "https://simplifier.net/resolve?fhirVersion=R4"
            f"&scope={resolver_scope}&canonical={url}"
        )
    return url


def profile_name(url: Optional[str]) -> str:
    if not url:
        return ""
    path = urlparse(url).path
    return path[path.rfind("/") + 1 :]


def ensure_resource_schema(
    ctx: CompileContext, resource_type: str, profile: Optional[str] = None
) -> None:
    """Register the component schema for *resource_type* unless it exists."""

    document = ctx.document
    if document.has_schema(resource_type):
        return
    definitions = ctx.registries.definitions
    scope = ctx.options.resolver_scope
    description = (
        f"HL7 FHIR Schema [{resource_type}]"
        f"(https://hl7.org/fhir/R4/fhir.schema.json#/definitions/{resource_type})."
        f" HL7 FHIR Documentation [{resource_type}](https://www.hl7.org/fhir/R4/{resource_type}.html)"
    )
    external_docs = {
        "description": resource_type,
        "url": f"https://www.hl7.org/fhir/R4/{resource_type}.html",
    }
    if profile:
        structure = definitions.structure_definition(profile)
        if structure is not None:
            external_docs = {
                "description": structure.title or resource_type,
                "url": documentation_path(profile, scope),
            }
        else:
            fallback = definitions.default_profile(resource_type)
            if fallback is not None and fallback.title:
                description += (
                    " \n\n NHS England/HL7 UK Conformance Documentation (Schema constraints) "
                    f"[{fallback.title}]({documentation_path(fallback.url, scope)})"
                )
            external_docs = {"description": profile, "url": documentation_path(profile, scope)}
    else:
        fallback = definitions.default_profile(resource_type)
        if fallback is not None:
            external_docs = {
                "description": fallback.title or resource_type,
                "url": documentation_path(fallback.url, scope),
            }
    document.add_schema(
        resource_type,
        {"type": "object", "description": description, "externalDocs": external_docs},
    )


def ensure_json_patch_schema(ctx: CompileContext) -> None:
    ctx.document.add_schema(
        JSON_PATCH_SCHEMA,
        {"type": "object", "description": "See [JSON Patch](http://jsonpatch.com/)"},
    )


def ensure_resource_tag(
    ctx: CompileContext,
    resource_type: str,
    profile: Optional[str] = None,
    documentation: Optional[str] = None,
) -> None:
    if resource_type in ctx.document.tags:
        return
    ensure_resource_schema(ctx, resource_type, profile)
    ctx.document.add_tag(resource_type, documentation)


def _example_key(example: GeneratedExample, used: Dict[str, Any], default: str) -> str:
    key = example.summary or default
    if key not in used:
        return key
    index = 2
    while f"{key} ({index})" in used:
        index += 1
    return f"{key} ({index})"


def media_type(
    ctx: CompileContext,
    resource_type: str,
    examples: Sequence[GeneratedExample] = (),
    *,
    profile: Optional[str] = None,
    schema: Optional[Dict[str, Any]] = None,
    default_key: str = "example",
) -> Dict[str, Any]:
    """Return one media-type object for *resource_type*.

    With no examples, or one example without summary or description, a
    single ``example`` is attached; otherwise an ``examples`` map keyed by
    summary. Examples without a payload get the generic payload of the
    resource type.
    """

    ensure_resource_schema(ctx, resource_type, profile)
    entry: Dict[str, Any] = {"schema": dict(schema) if schema else schema_ref(resource_type)}
    fallback = generic_payload(resource_type, capability_statement=ctx.conformance.source)
    if not examples:
        entry["example"] = GeneratedExample(payload=fallback).value
        return entry
    if len(examples) == 1 and not examples[0].summary and not examples[0].description:
        entry["example"] = GeneratedExample(payload=examples[0].payload or fallback).value
        return entry
    named: Dict[str, Any] = {}
    for example in examples:
        if example.payload is None:
            example = example.with_payload(fallback)
        named[_example_key(example, named, default_key)] = example.to_openapi()
    entry["examples"] = named
    return entry


def content(
    ctx: CompileContext,
    resource_type: str,
    examples: Sequence[GeneratedExample] = (),
    *,
    profile: Optional[str] = None,
) -> Dict[str, Any]:
    body = media_type(ctx, resource_type, examples, profile=profile)
    return with_xml(ctx, {FHIR_JSON: body})


def with_xml(ctx: CompileContext, mapping: Dict[str, Any]) -> Dict[str, Any]:
    """Mirror the FHIR JSON media type as FHIR XML when XML is declared."""

    if ctx.xml_enabled and FHIR_JSON in mapping:
        mapping[FHIR_XML] = dict(mapping[FHIR_JSON])
    return mapping


def standard_responses(ctx: CompileContext) -> Dict[str, Any]:
    """The client-error responses every operation carries."""

    responses: Dict[str, Any] = {
        "4xx": {
            "description": "Client error",
            "content": content(
                ctx, "OperationOutcome", [GeneratedExample(payload=error_outcome())]
            ),
        }
    }
    if ctx.conformance.has_security:
        responses["403"] = {
            "description": "Forbidden",
            "content": content(
                ctx, "OperationOutcome", [GeneratedExample(payload=forbidden_outcome())]
            ),
        }
    return responses


def responses(
    ctx: CompileContext,
    resource_type: str,
    examples: Sequence[GeneratedExample] = (),
    *,
    profile: Optional[str] = None,
) -> Dict[str, Any]:
    result: Dict[str, Any] = {
        "200": {
            "description": "Success",
            "content": content(ctx, resource_type, examples, profile=profile),
        }
    }
    result.update(standard_responses(ctx))
    return result


def request_body(
    ctx: CompileContext,
    resource_type: str,
    examples: Sequence[GeneratedExample] = (),
    *,
    profile: Optional[str] = None,
) -> Dict[str, Any]:
    return {"content": content(ctx, resource_type, examples, profile=profile)}


__all__ = [
    "FHIR_JSON",
    "FHIR_XML",
    "JSON_PATCH",
    "JSON_PATCH_SCHEMA",
    "SYSTEM_TAG",
    "SYSTEM_TAG_DESCRIPTION",
    "content",
    "documentation_path",
    "ensure_json_patch_schema",
    "ensure_resource_schema",
    "ensure_resource_tag",
    "media_type",
    "profile_name",
    "request_body",
    "responses",
    "schema_ref",
    "standard_responses",
    "with_xml",
]
