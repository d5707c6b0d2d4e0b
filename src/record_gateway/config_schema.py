"""
JSON schemas for configuration validation.
"""

BACKEND_SCHEMA = {
    "type": "object",
    "properties": {
        "kind": {"type": "string", "enum": ["memory", "http"]},
        "base_url": {"type": ["string", "null"]},
        "api_key": {"type": ["string", "null"]},
        "timeout": {"type": "number", "exclusiveMinimum": 0},
        "headers": {"type": "object", "additionalProperties": {"type": "string"}},
        "required_fields": {
            "type": "object",
            "additionalProperties": {"type": "array", "items": {"type": "string"}},
        },
    },
    "required": ["kind"],
    "allOf": [
        {
            "if": {"properties": {"kind": {"const": "http"}}},
            "then": {"required": ["base_url"]},
        },
    ],
    "additionalProperties": False,
}

LOGGING_SCHEMA = {
    "type": "object",
    "properties": {
        "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
        "format": {"type": "string", "enum": ["text", "json"]},
        "log_requests": {"type": "boolean"},
        "log_responses": {"type": "boolean"},
    },
    "additionalProperties": False,
}

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "backend": BACKEND_SCHEMA,
        "logging": LOGGING_SCHEMA,
    },
}
