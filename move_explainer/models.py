"""
Explanation records and the acknowledgements returned by store mutations.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .address import Address
from .errors import ValidationError


def require_text(value: Any, field: str) -> str:
    """Return *value* if it is a non-empty string, else raise ValidationError."""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    if len(value) < 1:
        raise ValidationError(f"{field} must not be empty", field=field)
    return value


@dataclass
class Explanation:
    """A persisted explanation of one Move function."""
    id: str
    package_id: Address
    module_name: str
    function_name: str
    owner: Address
    content: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "package_id": self.package_id.as_str(),
            "module_name": self.module_name,
            "function_name": self.function_name,
            "owner": self.owner.as_str(),
            "content": self.content,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class CreateExplanationRequest:
    """Client-supplied fields for a new explanation, already validated."""
    package_id: Address
    module_name: str
    function_name: str
    owner: Address
    content: str

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CreateExplanationRequest":
        """Validate a JSON payload. Raises ValidationError on the first bad field."""
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")

        for name in ("package_id", "module_name", "function_name", "owner", "content"):
            if name not in data:
                raise ValidationError(f"Missing '{name}' field", field=name)

        package_id = data["package_id"]
        owner = data["owner"]
        if not isinstance(package_id, str):
            raise ValidationError("package_id must be a string", field="package_id")
        if not isinstance(owner, str):
            raise ValidationError("owner must be a string", field="owner")

        return cls(
            package_id=Address.parse(package_id, field="package_id"),
            module_name=require_text(data["module_name"], "module_name"),
            function_name=require_text(data["function_name"], "function_name"),
            owner=Address.parse(owner, field="owner"),
            content=require_text(data["content"], "content"),
        )


@dataclass
class InsertAck:
    inserted_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"inserted_id": self.inserted_id}


@dataclass
class UpdateAck:
    matched_count: int
    modified_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matched_count": self.matched_count,
            "modified_count": self.modified_count,
        }


@dataclass
class DeleteAck:
    deleted_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"deleted_count": self.deleted_count}
