"""Compile FHIR CapabilityStatements into OpenAPI documents."""

from .utils.env import load_env

# Ensure environment defaults from `.env` are available to all modules on import.
load_env()

__version__ = "0.4.0"
