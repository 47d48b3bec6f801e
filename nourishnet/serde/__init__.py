"""Sanitization and wire serialization for persistence and network boundaries."""

from .deserializer import TIMESTAMP_FIELDS, WireDeserializer, parse_instant
from .sanitizer import sanitize, sanitize_string
from .serializer import WireSerializer, format_instant
from .walk import ValueKind, classify, transform

to_wire = WireSerializer.serialize
rehydrate = WireDeserializer.rehydrate

__all__ = [
    "TIMESTAMP_FIELDS",
    "ValueKind",
    "WireDeserializer",
    "WireSerializer",
    "classify",
    "format_instant",
    "parse_instant",
    "rehydrate",
    "sanitize",
    "sanitize_string",
    "to_wire",
    "transform",
]
