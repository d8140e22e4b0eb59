"""
Crisis Resource Models

Offline-cacheable resources: hotlines, text lines, grounding
scripts and static safety-plan content.

LEGAL_REVIEW_REQUIRED: Contact information must be verified for
accuracy in each jurisdiction before release.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CrisisResource:
    """
    A single offline-cacheable resource.

    Attributes:
        resource_id: Stable identifier
        resource_type: hotline, text, technique, safety-plan or page
        title: Display title
        description: Brief description
        content: Body shown to the user (number, script, template)
        language: Language code of the content
        priority: Display order, lower first
        crisis: Crisis-tagged resources are always cached
        features: Feature names this resource backs
        country_code: Jurisdiction, INTL when global
        available_24_7: Whether the service is always reachable
    """

    resource_id: str
    resource_type: str
    title: str
    description: str = ""
    content: str = ""
    language: str = "en"
    priority: int = 5
    crisis: bool = False
    features: tuple[str, ...] = field(default_factory=tuple)
    country_code: str = "INTL"
    available_24_7: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.resource_id,
            "type": self.resource_type,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "language": self.language,
            "priority": self.priority,
            "crisis": self.crisis,
            "features": list(self.features),
            "country_code": self.country_code,
            "available_24_7": self.available_24_7,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CrisisResource":
        return cls(
            resource_id=data["id"],
            resource_type=data["type"],
            title=data["title"],
            description=data.get("description", ""),
            content=data.get("content", ""),
            language=data.get("language", "en"),
            priority=int(data.get("priority", 5)),
            crisis=bool(data.get("crisis", False)),
            features=tuple(data.get("features", ())),
            country_code=data.get("country_code", "INTL"),
            available_24_7=bool(data.get("available_24_7", True)),
        )

    def estimated_size(self) -> int:
        """Approximate serialized size in bytes."""
        return len(self.title) + len(self.description) + len(self.content) + 64
