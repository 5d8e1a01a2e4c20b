"""
Function binding model and function.json rendering.

A FunctionEntryPoint is what the entry-point scanner reports for one
trigger-bearing method. The packager turns it into a FunctionConfiguration,
which is validated and written to ``<staging>/<function>/function.json``.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

FUNCTION_NAME_PATTERN = r"^[A-Za-z][A-Za-z0-9_\-]{0,127}$"
VALID_DIRECTIONS = ("in", "out", "inout")


class BindingKind(Enum):
    """Binding types known to the Java function runtime (``type`` in function.json)."""
    HTTP_TRIGGER = "httpTrigger"
    HTTP = "http"
    TIMER_TRIGGER = "timerTrigger"
    QUEUE_TRIGGER = "queueTrigger"
    QUEUE = "queue"
    BLOB_TRIGGER = "blobTrigger"
    BLOB = "blob"
    TABLE = "table"
    EVENT_HUB_TRIGGER = "eventHubTrigger"
    EVENT_HUB = "eventHub"
    EVENT_GRID_TRIGGER = "eventGridTrigger"
    EVENT_GRID = "eventGrid"
    SERVICE_BUS_TRIGGER = "serviceBusTrigger"
    SERVICE_BUS = "serviceBus"
    COSMOS_DB_TRIGGER = "cosmosDBTrigger"
    COSMOS_DB = "cosmosDB"
    SIGNALR = "signalR"
    SIGNALR_CONNECTION_INFO = "signalRConnectionInfo"
    KAFKA_TRIGGER = "kafkaTrigger"
    KAFKA = "kafka"
    SENDGRID = "sendGrid"
    TWILIO_SMS = "twilioSms"

    @classmethod
    def from_type(cls, binding_type: str) -> Optional['BindingKind']:
        """Case-insensitive lookup; custom binding types return None."""
        lowered = binding_type.lower()
        for member in cls:
            if member.value.lower() == lowered:
                return member
        return None


HTTP_ONLY_KINDS = frozenset({BindingKind.HTTP_TRIGGER, BindingKind.HTTP})


@dataclass
class Binding:
    """
    One input/output/trigger binding of a function.

    Attributes:
        type: Binding type as written to function.json (e.g. ``httpTrigger``)
        direction: ``in``, ``out`` or ``inout``
        name: Parameter name the binding is wired to
        attributes: Remaining binding attributes (authLevel, schedule, connection...)
    """
    type: str
    direction: str
    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> Optional[BindingKind]:
        return BindingKind.from_type(self.type)

    @property
    def is_trigger(self) -> bool:
        return self.type.lower().endswith("trigger")

    def to_json_dict(self) -> Dict[str, Any]:
        data = {"type": self.type, "direction": self.direction, "name": self.name}
        for key in sorted(self.attributes):
            if key not in data:
                data[key] = self.attributes[key]
        return data


@dataclass
class FunctionEntryPoint:
    """A discovered trigger-bearing method, e.g. ``com.example.Functions.run``."""
    name: str
    entry_point: str
    bindings: List[Binding] = field(default_factory=list)


@dataclass
class FunctionConfiguration:
    """Content of one function.json."""
    script_file: str
    entry_point: str
    bindings: List[Binding] = field(default_factory=list)

    @classmethod
    def from_entry_point(cls, entry_point: FunctionEntryPoint, script_file: str) -> 'FunctionConfiguration':
        return cls(script_file=script_file, entry_point=entry_point.entry_point, bindings=list(entry_point.bindings))

    def to_json_dict(self) -> Dict[str, Any]:
        return {
            "scriptFile": self.script_file,
            "entryPoint": self.entry_point,
            "bindings": [binding.to_json_dict() for binding in self.bindings],
        }

    def to_json(self) -> str:
        """Pretty-printed, fixed key order, ``\\n`` line endings and a trailing newline."""
        return json.dumps(self.to_json_dict(), indent=2) + "\n"


def validate_function_configuration(name: str, config: FunctionConfiguration) -> List[str]:
    """
    Structural checks for one function.

    Returns:
        Error messages prefixed with the function name; empty when valid.
    """
    errors = []
    if not re.match(FUNCTION_NAME_PATTERN, name or ""):
        errors.append(f"{name}: invalid function name, it must start with a letter and contain only "
                      f"letters, digits, '_' or '-' (max 128 characters)")
    if not config.script_file:
        errors.append(f"{name}: scriptFile is empty")
    if not config.entry_point or "." not in config.entry_point:
        errors.append(f"{name}: entryPoint '{config.entry_point}' must be a qualified method name")

    triggers = [binding for binding in config.bindings if binding.is_trigger]
    if len(triggers) != 1:
        errors.append(f"{name}: exactly one trigger binding is required, found {len(triggers)}")

    seen = set()
    for binding in config.bindings:
        if binding.direction.lower() not in VALID_DIRECTIONS:
            errors.append(f"{name}: binding '{binding.name}' has invalid direction '{binding.direction}'")
        key = binding.name.lower()
        if key in seen:
            errors.append(f"{name}: duplicate binding name '{binding.name}'")
        seen.add(key)
    return errors
