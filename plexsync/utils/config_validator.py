"""
JSON Schema validation for configuration files and inbound tree messages.
Allows external tools (and message producers) to validate their documents.
"""

import json
from pathlib import Path
from typing import Any

from jsonschema import Draft7Validator

# JSON Schema for the flattened listener configuration
CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "plexsync configuration",
    "description": "Configuration schema for the plexsync queue listener",
    "type": "object",
    "properties": {
        # Service Bus
        "connection_string": {
            "type": "string",
            "pattern": "Endpoint=.+;SharedAccessKeyName=.+;SharedAccessKey=.+",
            "description": "Service Bus namespace connection string",
        },
        "listen_queue": {"type": "string", "minLength": 1},
        "success_queue": {"type": "string", "minLength": 1},
        "error_queue": {"type": "string", "minLength": 1},
        "max_concurrent_calls": {
            "type": "integer",
            "minimum": 1,
            "maximum": 32,
            "description": "Messages processed at the same time",
        },
        "receive_timeout": {
            "type": "integer",
            "minimum": 1,
            "maximum": 230,
            "description": "Long-poll timeout in seconds",
        },
        "lock_renewal_interval": {
            "type": "integer",
            "minimum": 5,
            "maximum": 150,
            "description": "Seconds between message lock renewals",
        },
        # Blob storage
        "container_url": {
            "type": "string",
            "pattern": "^https?://",
            "description": "Blob container URL",
        },
        "sas_token": {"type": "string"},
        # Mappings
        "media_mappings": {
            "type": "object",
            "minProperties": 1,
            "additionalProperties": {"type": "string", "minLength": 1},
            "description": "Category name to local destination root",
        },
        # Behaviour
        "verify_size": {
            "type": "boolean",
            "description": "Fail a job when a file's size differs from the message",
        },
        "log_level": {
            "type": "string",
            "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        },
        "json_log_dir": {"type": "string"},
    },
    "required": [
        "connection_string",
        "listen_queue",
        "success_queue",
        "error_queue",
        "container_url",
        "media_mappings",
    ],
    "additionalProperties": False,
}

# JSON Schema for a message body, in its canonical lower-case spelling
TREE_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "plexsync folder tree",
    "description": "A folder tree whose files are mirrored from blob storage",
    "$ref": "#/definitions/folder",
    "definitions": {
        "file": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "size": {"type": "integer", "minimum": 0},
            },
            "required": ["name"],
        },
        "folder": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "files": {"type": "array", "items": {"$ref": "#/definitions/file"}},
                "subfolders": {
                    "type": "array",
                    "items": {"$ref": "#/definitions/folder"},
                },
            },
            "required": ["name"],
        },
    },
}


def _collect_errors(schema: dict[str, Any], document: Any) -> list[str]:
    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(document), key=lambda e: list(e.path))
    messages = []
    for error in errors:
        path = ".".join(str(p) for p in error.path) if error.path else "root"
        messages.append(f"{path}: {error.message}")
    return messages


def validate_config_schema(config_dict: dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against JSON schema.

    Args:
        config_dict: Flattened configuration dictionary

    Returns:
        Tuple of (is_valid, error_messages)
    """
    messages = _collect_errors(CONFIG_SCHEMA, config_dict)
    return not messages, messages


def validate_tree_schema(tree_dict: Any) -> tuple[bool, list[str]]:
    """Validate a decoded message body against the folder tree schema."""
    messages = _collect_errors(TREE_SCHEMA, tree_dict)
    return not messages, messages


def export_schema(schema: dict[str, Any], output_path: Path) -> None:
    """
    Export a JSON schema to file for external validation tools.

    Args:
        schema: One of CONFIG_SCHEMA or TREE_SCHEMA
        output_path: Path to save schema file
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2)
