"""
Domain models for parsed templates.
Defines variable definitions and the billable resources extracted from them.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

VARIABLE_TYPES = ("string", "number", "bool")
OTHER_TYPE = "other"


@dataclass(frozen=True)
class VariableDefinition:
    """A declared input variable."""
    name: str
    type: str = OTHER_TYPE  # "string" | "number" | "bool" | "other"
    description: Optional[str] = None
    default: Any = None

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "default": self.default,
        }


@dataclass
class ResourceSpec:
    """A resource declaration with its resolved quantity and attributes."""
    type: str
    name: str
    count: int
    attributes: Dict[str, Any] = field(default_factory=dict)
    provider: str = ""
    region: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": self.type,
            "name": self.name,
            "count": self.count,
            "attributes": self.attributes,
            "provider": self.provider,
            "region": self.region,
        }


@dataclass
class TemplateResources:
    """All resources extracted from one template directory."""
    provider: str = ""
    region: str = ""
    resources: List[ResourceSpec] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "provider": self.provider,
            "region": self.region,
            "resources": [resource.to_dict() for resource in self.resources],
        }
