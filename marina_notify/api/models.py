"""Normalized request bodies for the notification functions.

Callers send either snake_case or camelCase keys; aliases are resolved here
once so the service only ever sees one field name.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, field_validator


def _coerce_optional_text(value: Any) -> str | None:
  """Accept strings and numbers; blank strings become None."""
  if value is None:
    return None
  if isinstance(value, bool):
    raise ValueError("must be a string")
  if isinstance(value, int | float):
    return str(value)
  if isinstance(value, str):
    stripped = value.strip()
    return stripped or None
  raise ValueError("must be a string")


OptionalText = Annotated[str | None, BeforeValidator(_coerce_optional_text)]


class _FunctionRequest(BaseModel):
  model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AdminBroadcastRequest(_FunctionRequest):
  title: OptionalText = None
  body: OptionalText = None
  data: dict[str, Any] | None = None


class LaunchRequestNotification(_FunctionRequest):
  marina_id: OptionalText = Field(default=None, validation_alias=AliasChoices("marina_id", "marinaId"))
  boat_id: OptionalText = Field(default=None, validation_alias=AliasChoices("boat_id", "boatId"))


class WallPostNotification(_FunctionRequest):
  marina_id: OptionalText = Field(default=None, validation_alias=AliasChoices("marina_id", "marinaId"))
  post_id: OptionalText = Field(default=None, validation_alias=AliasChoices("post_id", "postId"))
  title: OptionalText = None
  post_type: OptionalText = Field(default=None, validation_alias=AliasChoices("type", "post_type", "postType"))
  start_date: OptionalText = Field(default=None, validation_alias=AliasChoices("start_date", "startDate"))
  end_date: OptionalText = Field(default=None, validation_alias=AliasChoices("end_date", "endDate"))


class QueueStatusNotification(_FunctionRequest):
  entry_id: OptionalText = Field(default=None, validation_alias=AliasChoices("entry_id", "entryId", "queue_entry_id", "queueEntryId"))
  status: str | None = None

  @field_validator("status", mode="before")
  @classmethod
  def _normalize_status(cls, value: Any) -> str | None:
    text = _coerce_optional_text(value)
    return text.lower() if text else None
