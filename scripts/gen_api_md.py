#!/usr/bin/env python3
"""Generate a Markdown API reference from a compiled FHIR OpenAPI document.

The source may be an OpenAPI JSON document (URL or path) or a
CapabilityStatement, which is compiled first.
"""
from __future__ import annotations

import json
import sys
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlparse
from urllib.request import urlopen

from conformance_oas.features.compiler import compile_capability_statement
from conformance_oas.features.context import Registries
from conformance_oas.registry.memory import InMemoryRegistry

_METHOD_ORDER = ("get", "put", "post", "delete", "patch")


def load_openapi(source: str) -> Mapping[str, Any]:
    """Load OpenAPI JSON from an HTTP(S) URL or filesystem path.

    CapabilityStatements are compiled with an empty registry.
    """
    parsed = urlparse(source)
    if parsed.scheme in {"http", "https"}:
        with urlopen(source) as response:  # type: ignore[arg-type]
            data = response.read()
            encoding = response.headers.get_content_charset("utf-8")
            payload = json.loads(data.decode(encoding))
    elif parsed.scheme and parsed.scheme != "file":
        raise ValueError(f"Unsupported URL scheme: {parsed.scheme}")
    else:
        path = parsed.path if parsed.scheme else source
        with open(path, "r", encoding="utf-8") as fh:
            payload = json.load(fh)
    if isinstance(payload, Mapping) and payload.get("resourceType") == "CapabilityStatement":
        return compile_capability_statement(
            payload, Registries.from_registry(InMemoryRegistry())
        )
    return payload


def schema_summary(schema: Mapping[str, Any] | None) -> str:
    """Return a short type label such as ``string`` or ``array<string>``."""
    if not schema:
        return ""
    if "$ref" in schema:
        return str(schema["$ref"]).rsplit("/", 1)[-1]
    schema_type = schema.get("type") or "object"
    if schema_type == "array":
        items = schema.get("items")
        inner = schema_summary(items) if isinstance(items, Mapping) else "object"
        schema_type = f"array<{inner}>"
    fmt = schema.get("format")
    if fmt:
        schema_type = f"{schema_type} ({fmt})"
    return schema_type


def first_line(text: str | None) -> str:
    if not text:
        return ""
    for line in text.splitlines():
        stripped = line.strip()
        if stripped:
            return stripped.replace("|", "\\|")
    return ""


Row = tuple[str, str, str, str, str]


def render_table(rows: list[Row]) -> str:
    if not rows:
        return ""
    header = "| Name | In | Type | Required | Notes |\n| --- | --- | --- | --- | --- |"
    body_lines = [
        f"| `{name}` | {location} | {typ} | {required} | {notes} |"
        for name, location, typ, required, notes in rows
    ]
    return "\n".join([header, *body_lines])


def parameter_rows(parameters: list[Mapping[str, Any]]) -> list[Row]:
    rows: list[Row] = []
    for parameter in parameters:
        required = "Yes" if parameter.get("required") else "No"
        rows.append(
            (
                str(parameter.get("name", "")),
                str(parameter.get("in", "")),
                schema_summary(parameter.get("schema")),
                required,
                first_line(parameter.get("description")),
            )
        )
    return rows


def render_method(path: str, method: str, spec: Mapping[str, Any]) -> list[str]:
    lines: list[str] = [f"### {method.upper()} `{path}`"]
    summary = spec.get("summary")
    if summary:
        lines.append("")
        lines.append(f"**Summary:** {summary}")
    description = first_line(spec.get("description"))
    if description:
        lines.append("")
        lines.append(description)
    external = spec.get("externalDocs")
    if isinstance(external, Mapping) and external.get("url"):
        lines.append("")
        lines.append(f"See [{external.get('description') or external['url']}]({external['url']})")
    table = render_table(parameter_rows(list(spec.get("parameters", []))))
    if table:
        lines.append("")
        lines.append("#### Parameters")
        lines.append("")
        lines.extend(table.splitlines())
    request_body = spec.get("requestBody")
    if isinstance(request_body, Mapping):
        content = request_body.get("content", {})
        lines.append("")
        lines.append("#### Request body")
        for mimetype in sorted(content):
            lines.append(f"- `{mimetype}`: {schema_summary(content[mimetype].get('schema'))}")
    responses = spec.get("responses", {})
    if responses:
        lines.append("")
        lines.append("#### Responses")
        for status in sorted(responses):
            resp = responses[status]
            title = resp.get("description", "") if isinstance(resp, Mapping) else ""
            content = resp.get("content", {}) if isinstance(resp, Mapping) else {}
            schemas = sorted({schema_summary(media.get("schema")) for media in content.values()})
            suffix = f" ({', '.join(schemas)})" if schemas else ""
            lines.append(f"- `{status}` {title}{suffix}".rstrip())
    return lines


def group_by_tag(doc: Mapping[str, Any]) -> dict[str, list[tuple[str, str, Mapping[str, Any]]]]:
    """Group ``(path, method, operation)`` triples by their first tag, in tag order."""
    groups: dict[str, list[tuple[str, str, Mapping[str, Any]]]] = {
        tag.get("name", ""): [] for tag in doc.get("tags", []) if isinstance(tag, Mapping)
    }
    for path, item in doc.get("paths", {}).items():
        for method in _METHOD_ORDER:
            operation = item.get(method)
            if operation is None:
                continue
            tags = operation.get("tags") or ["default"]
            groups.setdefault(tags[0], []).append((path, method, operation))
    return {tag: entries for tag, entries in groups.items() if entries}


def render_api(doc: Mapping[str, Any], source: str) -> str:
    parts: list[str] = []
    info = doc.get("info", {})
    title = info.get("title", "FHIR API")
    version = info.get("version", "")
    parts.append(f"# {title} API reference")
    parts.append("")
    parts.append(f"_Source: {source}, OpenAPI {doc.get('openapi', '')} {version}_".rstrip())
    parts.append("")
    description = info.get("description")
    if description:
        parts.append(description.strip())
        parts.append("")
    servers = [server.get("url") for server in doc.get("servers", []) if server.get("url")]
    if servers:
        parts.append("Servers: " + ", ".join(f"`{url}`" for url in servers))
        parts.append("")
    for tag, entries in group_by_tag(doc).items():
        parts.append(f"## {tag}")
        parts.append("")
        for path, method, operation in entries:
            parts.extend(render_method(path, method, operation))
            parts.append("")
    return "\n".join(parts)


def main(argv: list[str]) -> int:
    if len(argv) != 2:
        print("Usage: gen_api_md.py <openapi-or-capabilitystatement-url-or-path>", file=sys.stderr)
        return 1
    source = argv[1]
    doc = load_openapi(source)
    markdown = render_api(doc, source)
    sys.stdout.write(markdown)
    if not markdown.endswith("\n"):
        sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
