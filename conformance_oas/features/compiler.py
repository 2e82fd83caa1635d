"""Compile a conformance description into an OpenAPI document."""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from ..model.capability import ConformanceDescription
from ..model.decode import decode_capability_statement
from ..utils.logging import compile_scope
from .content import documentation_path
from .context import CompileContext, CompileOptions, Registries
from .document import SpecDocument
from .interactions import add_resource_interactions, add_system_interactions
from .markdown import unescape
from .operations import add_operations

logger = logging.getLogger("conformance_oas.compiler")


def _info(conformance: ConformanceDescription) -> Dict[str, Any]:
    info: Dict[str, Any] = {"description": unescape(conformance.description)}
    if conformance.title:
        info["title"] = conformance.title
    if conformance.software_version:
        info["version"] = conformance.software_version
    if conformance.contacts:
        contact: Dict[str, Any] = {}
        for entry in conformance.contacts:
            if entry.name:
                contact["name"] = entry.name
            if entry.email:
                contact["email"] = entry.email
            if entry.url:
                contact["url"] = entry.url
        info["contact"] = contact
    return info


def _header(ctx: CompileContext) -> None:
    conformance = ctx.conformance
    document = ctx.document
    document.info = _info(conformance)
    if conformance.url:
        document.external_docs = {
            "url": documentation_path(conformance.url, ctx.options.resolver_scope)
        }
        if conformance.title:
            document.external_docs["description"] = conformance.title
    server: Dict[str, Any] = {}
    if conformance.implementation_url:
        server["url"] = conformance.implementation_url
    if conformance.software_name:
        server["description"] = conformance.software_name
    document.servers = [server]


def compile_openapi(
    conformance: ConformanceDescription,
    registries: Registries,
    options: Optional[CompileOptions] = None,
) -> SpecDocument:
    """Build the OpenAPI document for *conformance* in a single pass.

    Non-fatal conformance problems are written into the document text.
    A path and method declared twice raises ``DuplicateOperationError``.
    """

    options = options or CompileOptions()
    ctx = CompileContext(
        conformance=conformance,
        document=SpecDocument(),
        registries=registries,
        options=options,
    )
    metadata = {
        "resources": len(conformance.resources),
        "enhance": options.enhance,
        "xml": conformance.xml_enabled,
    }
    with compile_scope("compile.openapi", logger=logger, extra=metadata) as scope:
        _header(ctx)
        add_system_interactions(ctx)
        add_operations(ctx, conformance.operations)
        for resource in conformance.resources:
            add_resource_interactions(ctx, resource)
            add_operations(ctx, resource.operations, resource.type)
            scope.increment("resources.compiled")
        scope.increment("paths.registered", len(ctx.document.paths))
    return ctx.document


def compile_capability_statement(
    capability_statement: Mapping[str, Any],
    registries: Registries,
    options: Optional[CompileOptions] = None,
) -> Dict[str, Any]:
    """Decode a CapabilityStatement JSON object and return the OpenAPI dict."""

    conformance = decode_capability_statement(capability_statement)
    return compile_openapi(conformance, registries, options).to_dict()


__all__ = ["compile_capability_statement", "compile_openapi"]
