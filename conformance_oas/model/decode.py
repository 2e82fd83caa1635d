"""Decode FHIR R4 JSON resources into the typed model.

This is the only place that looks at raw extension payloads. Everything
downstream of :func:`decode_capability_statement` works on frozen
dataclasses and the closed extension variants.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .capability import (
    ConformanceDescription,
    Contact,
    Interaction,
    MessagingEntry,
    OperationDeclaration,
    ResourceCapability,
    SearchParameterDeclaration,
    SupportedMessage,
)
from .definitions import (
    MessageDefinition,
    MessageFocus,
    OperationDefinition,
    OperationParameter,
    SearchParameterDefinition,
    StructureDefinitionSummary,
    ValueSetCode,
    ValueSetSummary,
)
from .extensions import (
    COMBINATION_URL,
    EXAMPLES_URL,
    EXPECTATION_URL,
    OP_PARAMETER_EXAMPLE_URL,
    QUERY_PARAMETERS_URL,
    ExampleReference,
    ExampleSet,
    Expectation,
    Extension,
    QueryParameterConstraints,
    SearchParameterCombination,
)

logger = logging.getLogger("conformance_oas.model.decode")

Definition = Union[
    SearchParameterDefinition,
    OperationDefinition,
    MessageDefinition,
    StructureDefinitionSummary,
    ValueSetSummary,
]


def _list(node: Mapping[str, Any], key: str) -> List[Any]:
    value = node.get(key)
    if isinstance(value, list):
        return value
    return []


def _str(node: Mapping[str, Any], key: str) -> Optional[str]:
    value = node.get(key)
    if isinstance(value, str) and value != "":
        return value
    return None


def _extension_value(extension: Mapping[str, Any]) -> Any:
    for key, value in extension.items():
        if key.startswith("value"):
            if key == "valueReference" and isinstance(value, Mapping):
                return value.get("reference")
            if key == "valueCoding" and isinstance(value, Mapping):
                return value.get("code")
            return value
    return None


def _sub_extensions(extension: Mapping[str, Any], url: str) -> List[Mapping[str, Any]]:
    return [item for item in _list(extension, "extension") if item.get("url") == url]


def _sub_value(extension: Mapping[str, Any], url: str) -> Any:
    for item in _sub_extensions(extension, url):
        return _extension_value(item)
    return None


def _optional_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in {"true", "false"}:
        return value.lower() == "true"
    return None


def _optional_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _decode_examples(extension: Mapping[str, Any]) -> ExampleSet:
    examples = []
    for item in _sub_extensions(extension, "example"):
        examples.append(
            ExampleReference(
                reference=_sub_value(item, "value"),
                request=bool(_optional_bool(_sub_value(item, "request"))),
                summary=_sub_value(item, "summary"),
                description=_sub_value(item, "description"),
            )
        )
    return ExampleSet(tuple(examples))


def _decode_query_parameters(extension: Mapping[str, Any]) -> QueryParameterConstraints:
    show = _optional_bool(_sub_value(extension, "showCodeAndSystem"))
    return QueryParameterConstraints(
        required=_optional_bool(_sub_value(extension, "required")),
        minimum=_optional_int(_sub_value(extension, "minimum")),
        maximum=_optional_int(_sub_value(extension, "maximum")),
        example=_sub_value(extension, "exampleParameter"),
        allowed_values=_sub_value(extension, "allowedValues"),
        show_code_and_system=True if show is None else show,
    )


def _decode_combination(extension: Mapping[str, Any]) -> SearchParameterCombination:
    expectation = _sub_value(extension, EXPECTATION_URL)
    return SearchParameterCombination(
        expectation=expectation if isinstance(expectation, str) else None,
        required=tuple(
            str(_extension_value(item)) for item in _sub_extensions(extension, "required")
        ),
        optional=tuple(
            str(_extension_value(item)) for item in _sub_extensions(extension, "optional")
        ),
    )


def decode_extensions(node: Mapping[str, Any]) -> Tuple[Extension, ...]:
    """Decode the known extensions of *node*, ignoring everything else."""

    decoded: List[Extension] = []
    for extension in _list(node, "extension"):
        if not isinstance(extension, Mapping):
            continue
        url = extension.get("url")
        if url == EXPECTATION_URL:
            value = _extension_value(extension)
            if isinstance(value, str):
                decoded.append(Expectation(value))
        elif url == EXAMPLES_URL:
            decoded.append(_decode_examples(extension))
        elif url == QUERY_PARAMETERS_URL:
            decoded.append(_decode_query_parameters(extension))
        elif url == COMBINATION_URL:
            decoded.append(_decode_combination(extension))
    return tuple(decoded)


def _decode_interaction(node: Mapping[str, Any]) -> Interaction:
    return Interaction(
        code=str(node.get("code", "")),
        documentation=_str(node, "documentation"),
        extensions=decode_extensions(node),
    )


def _decode_operation(node: Mapping[str, Any]) -> OperationDeclaration:
    return OperationDeclaration(
        name=str(node.get("name", "")),
        definition=_str(node, "definition"),
        documentation=_str(node, "documentation"),
        extensions=decode_extensions(node),
    )


def _decode_search_param(node: Mapping[str, Any]) -> SearchParameterDeclaration:
    return SearchParameterDeclaration(
        name=str(node.get("name", "")),
        definition=_str(node, "definition"),
        type=_str(node, "type"),
        documentation=_str(node, "documentation"),
        extensions=decode_extensions(node),
    )


def _decode_resource_capability(node: Mapping[str, Any]) -> ResourceCapability:
    return ResourceCapability(
        type=str(node.get("type", "")),
        profile=_str(node, "profile"),
        documentation=_str(node, "documentation"),
        interactions=tuple(_decode_interaction(item) for item in _list(node, "interaction")),
        search_params=tuple(_decode_search_param(item) for item in _list(node, "searchParam")),
        operations=tuple(_decode_operation(item) for item in _list(node, "operation")),
        search_include=tuple(str(item) for item in _list(node, "searchInclude")),
        search_rev_include=tuple(str(item) for item in _list(node, "searchRevInclude")),
        extensions=decode_extensions(node),
    )


def _decode_contact(node: Mapping[str, Any]) -> Contact:
    email = None
    url = None
    for telecom in _list(node, "telecom"):
        system = telecom.get("system")
        if system == "email":
            email = _str(telecom, "value")
        elif system == "url":
            url = _str(telecom, "value")
    return Contact(name=_str(node, "name"), email=email, url=url)


def _decode_messaging(node: Mapping[str, Any]) -> MessagingEntry:
    return MessagingEntry(
        documentation=_str(node, "documentation"),
        supported_messages=tuple(
            SupportedMessage(
                definition=_str(item, "definition"),
                mode=_str(item, "mode"),
                extensions=decode_extensions(item),
            )
            for item in _list(node, "supportedMessage")
        ),
    )


def decode_capability_statement(document: Mapping[str, Any]) -> ConformanceDescription:
    """Decode a CapabilityStatement JSON object into a ConformanceDescription."""

    if not isinstance(document, Mapping) or document.get("resourceType") != "CapabilityStatement":
        raise ValueError("Payload must be a CapabilityStatement JSON object.")

    rest_entries = _list(document, "rest")
    rest: Mapping[str, Any] = rest_entries[0] if rest_entries else {}
    software = document.get("software") or {}
    implementation = document.get("implementation") or {}

    description = ConformanceDescription(
        title=_str(document, "title"),
        description=_str(document, "description"),
        url=_str(document, "url"),
        software_name=_str(software, "name"),
        software_version=_str(software, "version"),
        implementation_url=_str(implementation, "url"),
        contacts=tuple(_decode_contact(item) for item in _list(document, "contact")),
        formats=tuple(str(item) for item in _list(document, "format")),
        has_security=bool(rest.get("security")),
        interactions=tuple(_decode_interaction(item) for item in _list(rest, "interaction")),
        operations=tuple(_decode_operation(item) for item in _list(rest, "operation")),
        resources=tuple(_decode_resource_capability(item) for item in _list(rest, "resource")),
        messaging=tuple(_decode_messaging(item) for item in _list(document, "messaging")),
        source=dict(document),
    )
    logger.debug(
        "decode.capability_statement",
        extra={"resources": len(description.resources), "formats": list(description.formats)},
    )
    return description


def _decode_operation_parameter(node: Mapping[str, Any]) -> OperationParameter:
    examples = tuple(
        str(_extension_value(item))
        for item in _list(node, "extension")
        if item.get("url") == OP_PARAMETER_EXAMPLE_URL and _extension_value(item) is not None
    )
    return OperationParameter(
        name=str(node.get("name", "")),
        use=str(node.get("use", "in")),
        min=_optional_int(node.get("min")) or 0,
        max=str(node.get("max", "1")),
        type=_str(node, "type"),
        documentation=_str(node, "documentation"),
        target_profile=tuple(str(item) for item in _list(node, "targetProfile")),
        examples=examples,
        parts=tuple(_decode_operation_parameter(item) for item in _list(node, "part")),
    )


def _decode_search_parameter_definition(node: Mapping[str, Any]) -> SearchParameterDefinition:
    return SearchParameterDefinition(
        code=str(node.get("code", "")),
        type=str(node.get("type", "")),
        url=_str(node, "url"),
        base=tuple(str(item) for item in _list(node, "base")),
        expression=_str(node, "expression"),
        description=_str(node, "description"),
        target=tuple(str(item) for item in _list(node, "target")),
    )


def _decode_operation_definition(node: Mapping[str, Any]) -> OperationDefinition:
    return OperationDefinition(
        code=str(node.get("code", "")),
        url=_str(node, "url"),
        title=_str(node, "title"),
        description=_str(node, "description"),
        comment=_str(node, "comment"),
        affects_state=bool(node.get("affectsState", False)),
        system=bool(node.get("system", False)),
        type=bool(node.get("type", False)),
        instance=bool(node.get("instance", False)),
        parameters=tuple(_decode_operation_parameter(item) for item in _list(node, "parameter")),
    )


def _decode_message_definition(node: Mapping[str, Any]) -> MessageDefinition:
    event = node.get("eventCoding")
    event_code = event.get("code") if isinstance(event, Mapping) else _str(node, "eventUri")
    return MessageDefinition(
        url=str(node.get("url", "")),
        description=_str(node, "description"),
        purpose=_str(node, "purpose"),
        event_code=event_code,
        focus=tuple(
            MessageFocus(
                code=str(item.get("code", "")),
                profile=_str(item, "profile"),
                min=_optional_int(item.get("min")) or 0,
                max=str(item.get("max", "1")),
            )
            for item in _list(node, "focus")
        ),
    )


def decode_resource(node: Mapping[str, Any]) -> Optional[Definition]:
    """Decode a definitional resource, or return ``None`` for any other type."""

    resource_type = node.get("resourceType")
    if resource_type == "SearchParameter":
        return _decode_search_parameter_definition(node)
    if resource_type == "OperationDefinition":
        return _decode_operation_definition(node)
    if resource_type == "MessageDefinition":
        return _decode_message_definition(node)
    if resource_type == "StructureDefinition" and _str(node, "url"):
        return StructureDefinitionSummary(
            url=str(node["url"]),
            title=_str(node, "title") or _str(node, "name"),
            type=_str(node, "type"),
        )
    if resource_type == "ValueSet" and _str(node, "url"):
        return ValueSetSummary(url=str(node["url"]), name=_str(node, "name"))
    return None


def _flatten_contains(entries: Iterable[Mapping[str, Any]]) -> Iterable[ValueSetCode]:
    for entry in entries:
        code = _str(entry, "code")
        if code is not None:
            yield ValueSetCode(code=code, system=_str(entry, "system"), display=_str(entry, "display"))
        yield from _flatten_contains(_list(entry, "contains"))


def decode_value_set_codes(node: Mapping[str, Any]) -> List[ValueSetCode]:
    """Return the literal codes of a ValueSet from its expansion or its compose."""

    expansion = node.get("expansion")
    if isinstance(expansion, Mapping) and _list(expansion, "contains"):
        return list(_flatten_contains(_list(expansion, "contains")))

    codes: List[ValueSetCode] = []
    compose: Dict[str, Any] = node.get("compose") or {}
    for include in _list(compose, "include"):
        system = _str(include, "system")
        for concept in _list(include, "concept"):
            code = _str(concept, "code")
            if code is not None:
                codes.append(ValueSetCode(code=code, system=system, display=_str(concept, "display")))
    return codes


__all__ = [
    "Definition",
    "decode_capability_statement",
    "decode_extensions",
    "decode_resource",
    "decode_value_set_codes",
]
