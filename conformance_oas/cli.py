"""Command line entry point: compile a CapabilityStatement or serve the API."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence, TextIO

import uvicorn

from .app import build_api_app, load_capability_statement
from .features.compiler import compile_capability_statement
from .features.context import CompileOptions, Registries
from .registry.memory import InMemoryRegistry
from .registry.terminology import TerminologyClient
from .utils import config
from .utils.errors import DuplicateOperationError
from .utils.logging import configure_root

logger = logging.getLogger("conformance_oas.cli")


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the ``compile`` and ``serve`` commands."""
    parser = argparse.ArgumentParser(
        prog="conformance-oas",
        description="Compile FHIR CapabilityStatements into OpenAPI 3.0.1 documents",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    compile_cmd = commands.add_parser("compile", help="Compile one CapabilityStatement file")
    compile_cmd.add_argument("capability_statement", type=Path, help="CapabilityStatement JSON file")
    compile_cmd.add_argument(
        "--definitions",
        type=Path,
        nargs="*",
        default=list(config.DEFINITION_PATHS),
        help="Files or directories of conformance resources (SearchParameter, OperationDefinition, ...)",
    )
    compile_cmd.add_argument(
        "--enhance",
        action="store_true",
        default=config.ENHANCE,
        help="Add links, parameter tables and conformance expectations to descriptions",
    )
    compile_cmd.add_argument(
        "--terminology-url",
        type=str,
        default=config.TERMINOLOGY_URL,
        help="FHIR terminology server used to expand value sets",
    )
    compile_cmd.add_argument(
        "--max-chain-depth",
        type=int,
        default=config.MAX_CHAIN_DEPTH,
        help=f"Deepest chained search parameter to follow, default: {config.MAX_CHAIN_DEPTH}",
    )
    compile_cmd.add_argument("--out", type=Path, default=None, help="Write the document here instead of stdout")

    serve_cmd = commands.add_parser("serve", help="Run the HTTP API")
    serve_cmd.add_argument("--host", type=str, default="127.0.0.1", help="Bind host, default: 127.0.0.1")
    serve_cmd.add_argument("--port", type=int, default=8080, help="Bind port, default: 8080")
    return parser


def run_compile(args: argparse.Namespace, *, stdout: Optional[TextIO] = None) -> int:
    statement = load_capability_statement(args.capability_statement)
    registry = InMemoryRegistry.from_paths(args.definitions or ())
    options = CompileOptions(enhance=args.enhance, max_chain_depth=max(args.max_chain_depth, 1))
    terminology = TerminologyClient(args.terminology_url) if args.terminology_url else None
    try:
        registries = (
            Registries.from_registry(registry, terminology)
            if terminology is not None
            else Registries.from_registry(registry)
        )
        document = compile_capability_statement(statement, registries, options)
    except DuplicateOperationError as exc:
        logger.error("compile.contradictory", extra={"operation_path": exc.path, "method": exc.method})
        print(f"error: {exc}", file=sys.stderr)
        return 2
    finally:
        if terminology is not None:
            terminology.close()

    rendered = json.dumps(document, indent=2, ensure_ascii=False)
    if args.out is not None:
        args.out.write_text(rendered + "\n", encoding="utf-8")
        logger.info("compile.written", extra={"out": str(args.out), "paths": len(document["paths"])})
    else:
        (stdout or sys.stdout).write(rendered + "\n")
    return 0


def run_serve(args: argparse.Namespace) -> int:
    app = build_api_app(
        capability_statement_path=config.CAPABILITY_STATEMENT_PATH,
        definition_paths=config.DEFINITION_PATHS,
        terminology_url=config.TERMINOLOGY_URL,
    )
    logger.info("[Server] OpenAPI endpoint on http://%s:%s/openapi.json", args.host, args.port)
    uvicorn.run(app, host=args.host, port=int(args.port))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_root(logging.DEBUG if args.debug else logging.INFO)
    if args.command == "compile":
        return run_compile(args)
    return run_serve(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())


__all__ = ["build_parser", "main", "run_compile", "run_serve"]
