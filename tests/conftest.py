"""Test configuration for importing the application package."""

from __future__ import annotations

import json
import sys
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

import httpx  # noqa: E402
import pytest  # noqa: E402
from cryptography.hazmat.primitives import serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import rsa  # noqa: E402

from marina_notify.config import Settings  # noqa: E402
from marina_notify.notifications.contracts import BoatOwnership, Marina, NotificationRecord, QueueEntry, TransitionedEntry  # noqa: E402

SERVICE_ACCOUNT_EMAIL = "push-sender@marina-app.iam.gserviceaccount.com"
PROJECT_ID = "marina-app"


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture(scope="session")
def private_key_pem() -> str:
  key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
  return key.private_bytes(encoding=serialization.Encoding.PEM, format=serialization.PrivateFormat.PKCS8, encryption_algorithm=serialization.NoEncryption()).decode("utf-8")


@pytest.fixture(scope="session")
def service_account_json(private_key_pem: str) -> str:
  # Env vars usually carry the key with escaped newlines.
  return json.dumps({"type": "service_account", "project_id": PROJECT_ID, "client_email": SERVICE_ACCOUNT_EMAIL, "private_key": private_key_pem.replace("\n", "\\n")})


class FakeStore:
  """In-memory store that records every call made against it."""

  def __init__(self) -> None:
    self.boats: dict[str, BoatOwnership] = {}
    self.marinas: dict[str, Marina] = {}
    self.queue_entries: dict[str, QueueEntry] = {}
    self.marina_staff: dict[str, list[str]] = {}
    self.administrators: set[str] = set()
    self.tokens: dict[str, list[str | None]] = {}
    self.transitions: list[TransitionedEntry] = []
    self.transition_error: Exception | None = None
    self.insert_error: Exception | None = None
    self.inserted: list[NotificationRecord] = []
    self.calls: list[str] = []

  async def get_boat(self, boat_id: str) -> BoatOwnership | None:
    self.calls.append("get_boat")
    return self.boats.get(boat_id)

  async def list_marina_boats(self, marina_id: str) -> Sequence[BoatOwnership]:
    self.calls.append("list_marina_boats")
    return [boat for boat in self.boats.values() if boat.marina_id == marina_id]

  async def get_marina(self, marina_id: str) -> Marina | None:
    self.calls.append("get_marina")
    return self.marinas.get(marina_id)

  async def get_queue_entry(self, entry_id: str) -> QueueEntry | None:
    self.calls.append("get_queue_entry")
    return self.queue_entries.get(entry_id)

  async def list_marina_profile_user_ids(self, marina_id: str) -> Sequence[str]:
    self.calls.append("list_marina_profile_user_ids")
    return list(self.marina_staff.get(marina_id, []))

  async def is_administrator(self, user_id: str) -> bool:
    self.calls.append("is_administrator")
    return user_id in self.administrators

  async def list_push_token_owner_ids(self) -> Sequence[str]:
    self.calls.append("list_push_token_owner_ids")
    return [user_id for user_id, tokens in self.tokens.items() if tokens]

  async def list_push_tokens(self, user_ids: Sequence[str]) -> Sequence[str | None]:
    self.calls.append("list_push_tokens")
    return [token for user_id in user_ids for token in self.tokens.get(user_id, [])]

  async def process_launch_queue_transitions(self, max_batch: int) -> Sequence[TransitionedEntry]:
    self.calls.append("process_launch_queue_transitions")
    if self.transition_error is not None:
      raise self.transition_error
    return self.transitions[:max_batch]

  async def insert_notifications(self, records: Iterable[NotificationRecord]) -> None:
    self.calls.append("insert_notifications")
    if self.insert_error is not None:
      raise self.insert_error
    self.inserted.extend(records)


@pytest.fixture
def fake_store() -> FakeStore:
  return FakeStore()


@dataclass
class ProviderRecorder:
  """Captures OAuth exchanges and FCM sends seen by the mock transport."""

  failing_tokens: set[str] = field(default_factory=set)
  token_requests: list[dict[str, str]] = field(default_factory=list)
  sent: list[dict[str, Any]] = field(default_factory=list)
  access_token: str = "ya29.test-token"
  expires_in: int = 3600

  def handle(self, request: httpx.Request) -> httpx.Response:
    if request.url.host == "oauth2.googleapis.com":
      form = dict(httpx.QueryParams(request.content.decode("utf-8")))
      self.token_requests.append(form)
      return httpx.Response(200, json={"access_token": self.access_token, "expires_in": self.expires_in, "token_type": "Bearer"})

    payload = json.loads(request.content)
    self.sent.append({"url": str(request.url), "authorization": request.headers.get("authorization"), "payload": payload})
    if payload["message"]["token"] in self.failing_tokens:
      return httpx.Response(404, json={"error": {"status": "NOT_FOUND", "message": "Requested entity was not found."}})
    return httpx.Response(200, json={"name": f"projects/{PROJECT_ID}/messages/1"})


@pytest.fixture
def provider() -> ProviderRecorder:
  return ProviderRecorder()


@pytest.fixture
def http_client(provider: ProviderRecorder) -> httpx.AsyncClient:
  return httpx.AsyncClient(transport=httpx.MockTransport(provider.handle))


def make_settings(**overrides: Any) -> Settings:
  values: dict[str, Any] = {
    "environment": "test",
    "debug": False,
    "log_level": "INFO",
    "log_file": None,
    "log_max_bytes": 5242880,
    "log_backup_count": 5,
    "log_http_4xx": False,
    "allowed_origins": (),
    "pg_dsn": None,
    "pg_connect_timeout": 5,
    "pg_command_timeout": 15.0,
    "jwt_secret": "test-jwt-secret-with-enough-length",
    "fcm_service_account": None,
    "fcm_project_id": None,
    "queue_transitions_secret": None,
    "push_concurrency": 4,
    "push_timeout_seconds": 5.0,
    "oauth_timeout_seconds": 5.0,
    "token_refresh_margin_seconds": 60,
  }
  values.update(overrides)
  return Settings(**values)


@pytest.fixture
def settings_factory():
  return make_settings
