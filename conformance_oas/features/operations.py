"""Custom ``$operation`` endpoints declared by a CapabilityStatement."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..model.capability import OperationDeclaration, SupportedMessage
from ..model.definitions import OperationDefinition, OperationParameter
from ..model.extensions import ExampleSet, first_of
from ..utils.errors import CautionCode
from ..utils.logging import record_caution
from .content import (
    FHIR_JSON,
    SYSTEM_TAG,
    documentation_path,
    ensure_resource_schema,
    ensure_resource_tag,
    media_type,
    profile_name,
    responses,
    with_xml,
)
from .context import CompileContext
from .examples import GeneratedExample, explicit_examples, parameters_example
from .interactions import id_parameter
from .markdown import DocFragments, escape, unescape

logger = logging.getLogger("conformance_oas.features.operations")

PROCESS_MESSAGE_URLS = frozenset(
    {
        "http://hl7.org/fhir/OperationDefinition/MessageHeader-process-message",
        "https://fhir.nhs.uk/OperationDefinition/MessageHeader-process-message",
    }
)
MESSAGE_BUNDLE_PROFILE = "https://fhir.nhs.uk/StructureDefinition/NHSDigital-Bundle-FHIRMessage"
UNKNOWN_OPERATION_URL = "http://example.fhir.org/unknown-operation"
UNKNOWN_OPERATION_DESCRIPTION = (
    "**NOT HL7 FHIR Conformant** - No definition found for custom operation"
)
_TABLE_HEADER = (
    " \n\n |Name | Cardinality | Type | Profile | Documentation |\n"
    " |-------|-----------|-------------|------------|------------|"
)


def resolve_operation(
    ctx: CompileContext, declaration: OperationDeclaration
) -> Tuple[OperationDefinition, bool]:
    """Return the definition for *declaration* and whether it had to be stubbed."""

    if declaration.definition:
        found = ctx.registries.definitions.operation_definition(declaration.definition)
        if found is not None:
            return found, False
    record_caution(
        CautionCode.UNKNOWN_OPERATION,
        "no OperationDefinition found",
        operation=declaration.name,
        definition=declaration.definition,
    )
    stub = OperationDefinition(
        code=declaration.name,
        url=UNKNOWN_OPERATION_URL,
        description=UNKNOWN_OPERATION_DESCRIPTION,
        affects_state=False,
        system=True,
    )
    return stub, True


def operation_paths(
    definition: OperationDefinition, resource_type: Optional[str]
) -> List[Tuple[str, bool]]:
    """Return ``(path, instance)`` pairs for each declared invocation context."""

    code = definition.code
    if resource_type is None:
        return [(f"/${code}", False)] if definition.system else []
    paths: List[Tuple[str, bool]] = []
    if definition.type:
        paths.append((f"/{resource_type}/${code}", False))
    if definition.instance:
        paths.append((f"/{resource_type}/{{id}}/${code}", True))
    return paths


def _parameter_row(parameter: OperationParameter) -> str:
    profile = ",".join(parameter.target_profile)
    documentation = escape(parameter.documentation, table=True)
    if parameter.parts:
        cells = "".join(
            f"<tr><td>{part.name}</td><td>{part.min}..{part.max}</td>"
            f"<td>{part.type or ''}</td><td>{part.documentation or ''}</td></tr>"
            for part in parameter.parts
        )
        documentation += f"<br/><br/> <table>{cells}</table>"
    return (
        f"\n |{parameter.name}|{parameter.min}..{parameter.max}|{parameter.type or ''}|"
        f"{profile}|{documentation}|"
    )


def parameter_tables(definition: OperationDefinition) -> str:
    inputs = "\n\n ## Parameters (In)" + _TABLE_HEADER
    outputs = "\n\n ## Parameters (Out)" + _TABLE_HEADER
    for parameter in definition.parameters:
        if parameter.use == "out":
            outputs += _parameter_row(parameter)
        else:
            inputs += _parameter_row(parameter)
    return inputs + outputs


def query_parameter(parameter: OperationParameter) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "name": parameter.name,
        "in": "query",
        "description": unescape(parameter.documentation),
        "required": parameter.min > 0,
        "style": "form",
        "schema": {"type": "string"},
    }
    if len(parameter.examples) == 1:
        entry["example"] = parameter.examples[0]
    elif parameter.examples:
        entry["examples"] = {value: {"value": value} for value in parameter.examples}
    return entry


def message_example(
    ctx: CompileContext, supported: SupportedMessage
) -> Tuple[str, GeneratedExample]:
    """Describe one supported message as a named request example."""

    documentation = DocFragments()
    summary = None
    if supported.definition:
        documentation = documentation.add(
            f" \n\n MessageDefinition.url = **{supported.definition}** \n"
        )
        definition = ctx.registries.definitions.message_definition(supported.definition)
        if definition is not None:
            summary = unescape(definition.description) or None
            if definition.purpose:
                documentation = documentation.add(f"\n ### Purpose{definition.purpose}")
            if definition.event_code:
                documentation = documentation.add(
                    " \n\n The first Bundle.entry **MUST** be a FHIR MessageHeader with \n"
                    f" MessageHeader.eventCoding = **{definition.event_code}** \n"
                )
            if definition.focus:
                documentation = documentation.add(
                    "\n\n | Resource | Profile | Min | Max | \n",
                    "|----------|---------|-----|-----| \n",
                )
                for focus in definition.focus:
                    link = ""
                    if focus.profile:
                        link = documentation_path(focus.profile, ctx.options.resolver_scope)
                        ensure_resource_tag(ctx, focus.code, focus.profile, "")
                    documentation = documentation.add(
                        f"| [{focus.code}](https://www.hl7.org/fhir/R4/{focus.code}.html) "
                        f"| [{profile_name(focus.profile)}]({link}) | {focus.min} | {focus.max} | \n"
                    )
        documentation = documentation.add("\n")

    payload = None
    request_examples = explicit_examples(
        first_of(supported.extensions, ExampleSet),
        ctx.registries.definitions,
        request=True,
        base_url=ctx.options.example_base_url,
    )
    for example in request_examples:
        if example.payload is not None:
            payload = example.payload
    if payload is None:
        payload = {"resourceType": "Bundle", "type": "message"}
    example = GeneratedExample(
        payload=payload,
        summary=summary,
        description=unescape(documentation.render()) or None,
    )
    return profile_name(supported.definition) or "message", example


def _supported_messages(ctx: CompileContext) -> List[SupportedMessage]:
    return [
        supported
        for messaging in ctx.conformance.messaging
        for supported in messaging.supported_messages
    ]


def _process_message_body(ctx: CompileContext) -> Dict[str, Any]:
    ensure_resource_schema(ctx, "Bundle", MESSAGE_BUNDLE_PROFILE)
    examples: Dict[str, Any] = {}
    for supported in _supported_messages(ctx):
        key, example = message_example(ctx, supported)
        examples[key] = example.to_openapi()
    body: Dict[str, Any] = {"schema": {"$ref": "#/components/schemas/Bundle"}}
    if examples:
        body["examples"] = examples
    return body


def _parameters_body(
    ctx: CompileContext,
    definition: OperationDefinition,
    declaration: OperationDeclaration,
    resource_type: Optional[str],
) -> Dict[str, Any]:
    request_examples = [
        example
        for example in explicit_examples(
            first_of(declaration.extensions, ExampleSet),
            ctx.registries.definitions,
            request=True,
            base_url=ctx.options.example_base_url,
        )
        if example.payload is not None
    ]
    if request_examples:
        return media_type(ctx, "Parameters", request_examples, default_key="Example")
    body = media_type(ctx, "Parameters")
    body["example"] = GeneratedExample(payload=parameters_example(definition, resource_type)).value
    return body


def _supported_messages_text(ctx: CompileContext) -> str:
    text = "\n\n ## Supported Messages \n\n"
    for messaging in ctx.conformance.messaging:
        if messaging.documentation:
            text += f"{messaging.documentation} \n"
        for supported in messaging.supported_messages:
            text += f"* {profile_name(supported.definition)} \n"
    return text


def _operation_responses(
    ctx: CompileContext, declaration: OperationDeclaration
) -> Dict[str, Any]:
    examples = [
        example
        for example in explicit_examples(
            first_of(declaration.extensions, ExampleSet),
            ctx.registries.definitions,
            request=False,
            base_url=ctx.options.example_base_url,
        )
        if example.payload is not None
    ]
    if examples:
        return responses(ctx, examples[0].resource_type or "Parameters", examples)
    return responses(ctx, "Parameters")


def populate_operation(
    ctx: CompileContext,
    operation: Dict[str, Any],
    definition: OperationDefinition,
    declaration: OperationDeclaration,
    resource_type: Optional[str],
    *,
    get_form: bool,
    parameters: Sequence[Dict[str, Any]] = (),
) -> None:
    operation["tags"] = [resource_type or SYSTEM_TAG]
    if definition.title:
        operation["summary"] = definition.title

    process_message = definition.url in PROCESS_MESSAGE_URLS
    description = DocFragments().add(unescape(definition.description))
    if ctx.enhance and definition.parameters:
        description = description.add(parameter_tables(definition))
    if definition.comment:
        description = description.add(f"\n\n ## Comment \n\n{unescape(definition.comment)}")
    if ctx.enhance and process_message:
        description = description.add(_supported_messages_text(ctx))
    if description:
        operation["description"] = description.render()

    query = list(parameters)
    if get_form:
        query.extend(query_parameter(parameter) for parameter in definition.input_parameters())
    if query:
        operation["parameters"] = query

    if not get_form:
        if process_message:
            body = _process_message_body(ctx)
        else:
            body = _parameters_body(ctx, definition, declaration, resource_type)
        operation["requestBody"] = {"content": with_xml(ctx, {FHIR_JSON: body})}

    operation["responses"] = _operation_responses(ctx, declaration)


def add_operation(
    ctx: CompileContext, declaration: OperationDeclaration, resource_type: Optional[str]
) -> None:
    definition, stubbed = resolve_operation(ctx, declaration)
    if stubbed:
        operation = ctx.document.operation(f"/${definition.code}", "get")
        populate_operation(ctx, operation, definition, declaration, resource_type, get_form=True)
        return

    method = "post" if definition.affects_state else "get"
    for path, instance in operation_paths(definition, resource_type):
        operation = ctx.document.operation(path, method)
        populate_operation(
            ctx,
            operation,
            definition,
            declaration,
            resource_type,
            get_form=method == "get",
            parameters=[id_parameter()] if instance else (),
        )
    logger.debug(
        "operation.added",
        extra={"operation": definition.code, "resource_type": resource_type, "method": method},
    )


def add_operations(
    ctx: CompileContext,
    declarations: Sequence[OperationDeclaration],
    resource_type: Optional[str] = None,
) -> None:
    for declaration in declarations:
        add_operation(ctx, declaration, resource_type)


__all__ = [
    "MESSAGE_BUNDLE_PROFILE",
    "PROCESS_MESSAGE_URLS",
    "UNKNOWN_OPERATION_DESCRIPTION",
    "UNKNOWN_OPERATION_URL",
    "add_operation",
    "add_operations",
    "message_example",
    "operation_paths",
    "parameter_tables",
    "populate_operation",
    "query_parameter",
    "resolve_operation",
]
