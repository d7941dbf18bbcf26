"""Contracts for marina push notification dispatch."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
from typing import Any, Protocol


class EventKind(str, Enum):
  """Tag carried in every push data payload under the `event` key."""

  ADMIN_BROADCAST = "admin_broadcast"
  BOAT_LAUNCH_REQUEST = "boat_launch_request"
  MARINA_WALL_POST = "marina_wall_post"
  QUEUE_STATUS_UPDATE = "queue_status_update"


class QueueStatus(str, Enum):
  """Known launch-queue workflow states."""

  PENDING = "pending"
  IN_PROGRESS = "in_progress"
  IN_WATER = "in_water"
  COMPLETED = "completed"
  CANCELLED = "cancelled"


class CredentialEncoding(str, Enum):
  """How a service-account credential was supplied."""

  RAW = "raw"
  ENCODED = "encoded"
  MALFORMED = "malformed"


class CredentialErrorKind(str, Enum):
  MALFORMED = "malformed"
  EXCHANGE_FAILED = "exchange_failed"
  MALFORMED_RESPONSE = "malformed_response"


@dataclass(frozen=True)
class ServiceAccountCredential:
  """Signing identity used to mint delivery credentials."""

  issuer_email: str
  private_key_pem: str
  project_id: str | None = None


@dataclass(frozen=True)
class ParsedCredential:
  """Tagged result of parsing a service-account credential."""

  encoding: CredentialEncoding
  credential: ServiceAccountCredential | None = None
  error: str | None = None

  @property
  def is_valid(self) -> bool:
    return self.encoding is not CredentialEncoding.MALFORMED and self.credential is not None


@dataclass(frozen=True)
class AccessToken:
  """Short-lived bearer token for the push provider."""

  value: str
  expires_at: float


@dataclass(frozen=True)
class NotificationEvent:
  """One logical notification fanned out to many devices.

  `data` values are always strings and `data["event"]` always equals the
  event kind, whatever the caller supplied.
  """

  kind: EventKind
  title: str
  body: str
  data: Mapping[str, str] = field(default_factory=dict)

  def __post_init__(self) -> None:
    payload = {str(key): str(value) for key, value in self.data.items() if key and value is not None}
    payload["event"] = self.kind.value
    object.__setattr__(self, "data", payload)


@dataclass(frozen=True)
class DeliveryOutcome:
  """Aggregate result of one fan-out."""

  success_count: int
  failure_count: int

  @property
  def total(self) -> int:
    return self.success_count + self.failure_count


@dataclass(frozen=True)
class NotificationRecord:
  """One notification-history row for one recipient."""

  recipient: str
  title: str
  body: str
  data: Mapping[str, str]
  status: str = "pending"


@dataclass(frozen=True)
class BoatOwnership:
  """Boat row with its ownership links."""

  id: str
  name: str | None = None
  marina_id: str | None = None
  marina_name: str | None = None
  primary_owner_id: str | None = None
  co_owner_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class Marina:
  id: str
  name: str | None = None


@dataclass(frozen=True)
class QueueEntry:
  """Launch-queue entry as exposed by the queue view."""

  id: str
  status: str
  boat_id: str | None = None
  boat_name: str | None = None
  generic_boat_name: str | None = None
  marina_id: str | None = None
  marina_name: str | None = None


@dataclass(frozen=True)
class TransitionedEntry:
  """One row returned by the batch transition operation."""

  entry_id: str | None
  new_status: str

  @classmethod
  def from_row(cls, row: Mapping[str, Any]) -> TransitionedEntry:
    """Accept both the `entry_id/new_status` and the `id/status` row shapes."""
    entry_id = row.get("entry_id") or row.get("id")
    status = row.get("new_status") or row.get("status") or ""
    return cls(entry_id=str(entry_id) if entry_id else None, new_status=str(status))


@dataclass(frozen=True)
class DispatchResult:
  """Response model of one notification pipeline run."""

  delivered: int = 0
  failed: int = 0
  total_recipients: int | None = None
  targeted_devices: int | None = None
  message: str | None = None

  @classmethod
  def nothing_to_notify(cls, message: str, *, total_recipients: int | None = None) -> DispatchResult:
    return cls(message=message, total_recipients=total_recipients)

  def to_payload(self) -> dict[str, Any]:
    """Render the JSON response body."""
    if self.message is not None:
      payload: dict[str, Any] = {"message": self.message}
      if self.total_recipients is not None:
        payload["totalRecipients"] = self.total_recipients
      return payload

    payload = {"delivered": self.delivered, "failed": self.failed}
    if self.total_recipients is not None:
      payload["totalRecipients"] = self.total_recipients
    if self.targeted_devices is not None:
      payload["targetedDevices"] = self.targeted_devices
    return payload


@dataclass(frozen=True)
class QueueRunResult:
  processed: int
  notified: int
  failed_notifications: int
  max_batch: int

  def to_payload(self) -> dict[str, int]:
    return {"processed": self.processed, "notified": self.notified, "failed_notifications": self.failed_notifications, "max_batch": self.max_batch}


class NotificationError(Exception):
  """Base class for all notification pipeline failures.

  Every subclass maps to an HTTP status. Messages of 4xx errors are safe to
  return to callers; 5xx errors only ever expose `public_message`.
  """

  status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
  public_message: str = "Internal Server Error"

  @property
  def client_message(self) -> str:
    if self.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
      return self.public_message
    return str(self) or self.public_message


class ConfigurationError(NotificationError):
  """Required runtime configuration is missing or unusable."""

  public_message = "Push notifications are not configured correctly."

  def __init__(self, message: str, *, public_message: str | None = None) -> None:
    super().__init__(message)
    if public_message:
      self.public_message = public_message


class AuthorizationError(NotificationError):
  """Caller identity is missing or could not be verified."""

  status_code = HTTPStatus.UNAUTHORIZED
  public_message = "Unauthorized"


class PermissionDeniedError(AuthorizationError):
  """Caller is authenticated but lacks the required profile."""

  status_code = HTTPStatus.FORBIDDEN
  public_message = "Forbidden"


class NotFoundError(NotificationError):
  status_code = HTTPStatus.NOT_FOUND
  public_message = "Not found."


class InvalidRequestError(NotificationError):
  """Inbound payload is missing required fields."""

  status_code = HTTPStatus.BAD_REQUEST
  public_message = "Invalid request payload."


class CredentialError(NotificationError):
  """Delivery credential could not be parsed or exchanged."""

  public_message = "Failed to obtain push delivery credentials."

  def __init__(self, message: str, *, kind: CredentialErrorKind) -> None:
    super().__init__(message)
    self.kind = kind


class DeliveryError(NotificationError):
  """A single token could not be delivered; never surfaces to callers."""

  def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None) -> None:
    super().__init__(message)
    self.provider_status = status_code
    self.body = body


class StoreError(NotificationError):
  """Lookup against the relational store failed."""

  public_message = "Failed to load notification data."


class PersistenceError(StoreError):
  """Notification-history insert failed."""

  public_message = "Failed to persist notifications."


class TransitionError(NotificationError):
  public_message = "Failed to process queue transitions."


class PushSender(Protocol):
  """Delivery contract for sending one push message to one device."""

  async def send(self, *, token: str, event: NotificationEvent, access_token: str, project_id: str) -> None:
    """Send a push message, raising `DeliveryError` on any failure."""


class NotificationStore(Protocol):
  """Relational store operations consumed by the dispatch pipeline."""

  async def get_boat(self, boat_id: str) -> BoatOwnership | None: ...

  async def list_marina_boats(self, marina_id: str) -> Sequence[BoatOwnership]: ...

  async def get_marina(self, marina_id: str) -> Marina | None: ...

  async def get_queue_entry(self, entry_id: str) -> QueueEntry | None: ...

  async def list_marina_profile_user_ids(self, marina_id: str) -> Sequence[str]: ...

  async def is_administrator(self, user_id: str) -> bool: ...

  async def list_push_token_owner_ids(self) -> Sequence[str]: ...

  async def list_push_tokens(self, user_ids: Sequence[str]) -> Sequence[str | None]: ...

  async def process_launch_queue_transitions(self, max_batch: int) -> Sequence[TransitionedEntry]: ...

  async def insert_notifications(self, records: Iterable[NotificationRecord]) -> None: ...
