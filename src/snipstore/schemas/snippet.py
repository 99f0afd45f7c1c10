"""
Snippet schemas — the stored record and the inputs that produce it.

Snippet is the persisted, immutable record. SnippetDraft carries the fields a
user supplies on create; SnippetPatch is the partial record used by update,
where an unset field means "keep the existing value".
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _require_text(value: str, name: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{name} must not be empty")
    return value


class Snippet(BaseModel):
    """
    A stored code snippet.

    Python attributes are snake_case; the wire format (backend slot and
    export) uses the camelCase aliases ``createdAt`` and ``updatedAt``.
    Timestamps stay as the ISO-8601 strings they were written with so a
    load/serialize cycle reproduces the slot byte for byte.
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Store-generated identifier, unique within the collection"
    )

    title: str = Field(..., description="Short human title")

    language: str = Field(
        ...,
        description="Free-form language identifier (e.g. 'python', 'css')"
    )

    tags: tuple[str, ...] = Field(
        default=(),
        description="Tags in user input order; duplicates allowed"
    )

    description: str = Field(default="", description="Optional longer text")

    code: str = Field(..., description="The snippet body")

    created_at: str = Field(
        ...,
        alias="createdAt",
        description="ISO-8601 creation time, set once"
    )

    updated_at: str | None = Field(
        default=None,
        alias="updatedAt",
        description="ISO-8601 time of the last update, absent until updated"
    )

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
    )

    def to_record(self) -> dict[str, Any]:
        """Wire representation (camelCase keys, ``updatedAt`` omitted when unset)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SnippetDraft(BaseModel):
    """
    Fields accepted when creating a snippet.

    Identity and timestamp keys in the input are ignored; the store assigns
    them.
    """

    title: str
    language: str
    tags: list[str] = Field(default_factory=list)
    description: str = ""
    code: str

    model_config = ConfigDict(extra="ignore")

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        return _require_text(v, "title").strip()

    @field_validator("language")
    @classmethod
    def language_not_blank(cls, v: str) -> str:
        return _require_text(v, "language").strip()

    @field_validator("code")
    @classmethod
    def code_not_blank(cls, v: str) -> str:
        return _require_text(v, "code")

    @field_validator("description", mode="before")
    @classmethod
    def description_defaults_empty(cls, v: Any) -> Any:
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v

    @field_validator("tags", mode="before")
    @classmethod
    def tags_default_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def to_snippet(self, snippet_id: str, created_at: str) -> Snippet:
        """Stamp the draft with identity and creation time."""
        return Snippet(
            id=snippet_id,
            title=self.title,
            language=self.language,
            tags=tuple(self.tags),
            description=self.description,
            code=self.code,
            created_at=created_at,
        )


class SnippetPatch(BaseModel):
    """
    Partial update for an existing snippet.

    Merge rules per field:
    - title, language, code: replaced when given, must not be blank
    - description: replaced when given (may be empty)
    - tags: the whole sequence is replaced when given
    - id, createdAt, updatedAt: never taken from the patch
    """

    title: str | None = None
    language: str | None = None
    tags: list[str] | None = None
    description: str | None = None
    code: str | None = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _require_text(v, "title").strip()

    @field_validator("language")
    @classmethod
    def language_not_blank(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _require_text(v, "language").strip()

    @field_validator("code")
    @classmethod
    def code_not_blank(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _require_text(v, "code")

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str | None) -> str | None:
        return v.strip() if v is not None else v

    def changes(self) -> dict[str, Any]:
        """Fields explicitly set on this patch, keyed by attribute name."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if getattr(self, name) is not None
        }

    def apply(self, snippet: Snippet, *, updated_at: str) -> Snippet:
        """Return a copy of ``snippet`` with this patch merged and ``updatedAt`` stamped."""
        update = self.changes()
        if "tags" in update:
            update["tags"] = tuple(update["tags"])
        update["updated_at"] = updated_at
        return snippet.model_copy(update=update)
