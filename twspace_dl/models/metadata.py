"""
Pydantic model for the Space metadata returned by the AudioSpaceById query.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field

RUNNING = "Running"
ENDED = "Ended"

# Fields that can be used as %{placeholders} in the filename template
TEMPLATE_FIELDS = (
    "title",
    "created_at",
    "ended_at",
    "rest_id",
    "started_at",
    "total_participated",
    "total_replay_watched",
    "updated_at",
)

Timestamp = Optional[Union[int, str]]


class SpaceMetadata(BaseModel):
    """
    Immutable snapshot of a Space's metadata.

    Only the fields the downloader relies on are declared; everything else the
    API returns is kept as extra attributes.
    """

    media_key: str = Field(..., min_length=1)
    rest_id: str = ""
    state: str = ""
    title: str = ""
    is_space_available_for_replay: bool = False
    created_at: Timestamp = None
    started_at: Timestamp = None
    ended_at: Timestamp = None
    updated_at: Timestamp = None
    total_participated: Optional[int] = None
    total_replay_watched: Optional[int] = None

    class Config:
        """Pydantic model configuration."""

        extra = "allow"
        frozen = True

    @classmethod
    def from_response(cls, document: dict[str, Any]) -> "SpaceMetadata":
        """
        Extracts the metadata object from a full AudioSpaceById response.

        Raises:
            KeyError, TypeError: If the document does not have the expected shape.
            pydantic.ValidationError: If required fields such as `media_key` are
            missing.
        """
        return cls.model_validate(document["data"]["audioSpace"]["metadata"])

    @property
    def is_running(self) -> bool:
        return self.state == RUNNING

    @property
    def is_ended(self) -> bool:
        return self.state == ENDED

    def template_vars(self) -> dict[str, str]:
        """Returns every template field as a string, empty when unset."""
        values = self.model_dump()
        return {
            key: "" if values.get(key) is None else str(values[key])
            for key in TEMPLATE_FIELDS
        }
