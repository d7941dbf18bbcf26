from __future__ import annotations

import pytest

from marina_notify.notifications.contracts import (
  BoatOwnership,
  ConfigurationError,
  CredentialError,
  DispatchResult,
  InvalidRequestError,
  Marina,
  NotFoundError,
  PermissionDeniedError,
  QueueEntry,
)
from marina_notify.notifications.factory import build_notification_components, build_notification_service
from marina_notify.notifications.service import (
  NO_BROADCAST_TOKENS_MESSAGE,
  NO_LAUNCH_RECIPIENTS_MESSAGE,
  NO_LAUNCH_TOKENS_MESSAGE,
  NO_QUEUE_BOAT_MESSAGE,
  NO_QUEUE_TOKENS_MESSAGE,
  NO_WALL_POST_RECIPIENTS_MESSAGE,
  require_broadcast_content,
  sanitize_data_payload,
)


@pytest.fixture
def service(fake_store, http_client, service_account_json, settings_factory):
  return build_notification_service(settings_factory(fcm_service_account=service_account_json), http_client=http_client, store=fake_store)


def _sent_tokens(provider) -> list[str]:
  return sorted(item["payload"]["message"]["token"] for item in provider.sent)


def test_sanitize_data_payload_stringifies_values():
  assert sanitize_data_payload({"url": "/fila", "count": 3, "urgent": True, "muted": False, "none": None, "nested": {"a": 1}, "": "dropped"}) == {
    "url": "/fila",
    "count": "3",
    "urgent": "true",
    "muted": "false",
    "none": "null",
    "nested": '{"a": 1}',
  }


@pytest.mark.anyio
async def test_admin_broadcast_reports_partial_failure(service, fake_store, provider):
  fake_store.administrators.add("admin-1")
  fake_store.tokens = {"user-1": ["A"], "user-2": ["B"], "user-3": ["C"]}
  provider.failing_tokens.add("B")

  result = await service.notify_admin_broadcast(caller_id="admin-1", title=" Manutenção ", body="Sistema indisponível", data={"event": "spoofed", "priority": 1})

  assert (result.delivered, result.failed, result.targeted_devices, result.total_recipients) == (2, 1, 3, 3)
  assert _sent_tokens(provider) == ["A", "B", "C"]
  message = provider.sent[0]["payload"]["message"]
  assert message["notification"] == {"title": "Manutenção", "body": "Sistema indisponível"}
  assert message["data"] == {"event": "admin_broadcast", "priority": "1"}
  assert sorted(record.recipient for record in fake_store.inserted) == ["user-1", "user-2", "user-3"]
  assert len(provider.token_requests) == 1


@pytest.mark.anyio
async def test_admin_broadcast_requires_title_and_body(service, fake_store):
  with pytest.raises(InvalidRequestError):
    await service.notify_admin_broadcast(caller_id="admin-1", title="  ", body="x")

  assert fake_store.calls == []


@pytest.mark.anyio
async def test_admin_broadcast_rejects_non_administrators(service, fake_store, provider):
  with pytest.raises(PermissionDeniedError):
    await service.notify_admin_broadcast(caller_id="user-1", title="Oi", body="Mensagem")

  assert provider.sent == []


@pytest.mark.anyio
async def test_admin_broadcast_without_tokens_is_a_no_op(service, fake_store, provider):
  fake_store.administrators.add("admin-1")

  result = await service.notify_admin_broadcast(caller_id="admin-1", title="Oi", body="Mensagem")

  assert result.to_payload() == {"message": NO_BROADCAST_TOKENS_MESSAGE}
  assert provider.token_requests == []
  assert "insert_notifications" not in fake_store.calls


@pytest.mark.anyio
async def test_launch_request_notifies_staff_and_owners(service, fake_store, provider):
  fake_store.boats["boat-1"] = BoatOwnership(id="boat-1", name="Aurora", marina_id="marina-1", marina_name="Marina Azul", primary_owner_id="owner-1")
  fake_store.marina_staff["marina-1"] = ["staff-1"]
  fake_store.tokens = {"owner-1": ["tok-owner"], "staff-1": ["tok-staff", "tok-owner"]}

  result = await service.notify_launch_request(marina_id="marina-1", boat_id="boat-1")

  assert result.to_payload() == {"delivered": 2, "failed": 0, "totalRecipients": 2, "targetedDevices": 2}
  message = provider.sent[0]["payload"]["message"]
  assert message["notification"] == {"title": "Solicitação de descida", "body": "A embarcação Aurora solicitou descida na Marina Azul."}
  assert message["data"] == {"event": "boat_launch_request", "marina_id": "marina-1", "boat_id": "boat-1"}


@pytest.mark.anyio
async def test_launch_request_validation_and_lookup_errors(service, fake_store):
  with pytest.raises(InvalidRequestError):
    await service.notify_launch_request(marina_id="marina-1", boat_id=None)

  with pytest.raises(NotFoundError):
    await service.notify_launch_request(marina_id="marina-1", boat_id="missing")


@pytest.mark.anyio
async def test_launch_request_no_op_messages(service, fake_store):
  fake_store.boats["boat-1"] = BoatOwnership(id="boat-1", marina_id="marina-1")

  assert (await service.notify_launch_request(marina_id="marina-1", boat_id="boat-1")).message == NO_LAUNCH_RECIPIENTS_MESSAGE

  fake_store.marina_staff["marina-1"] = ["staff-1"]
  result = await service.notify_launch_request(marina_id="marina-1", boat_id="boat-1")
  assert result.to_payload() == {"message": NO_LAUNCH_TOKENS_MESSAGE, "totalRecipients": 1}


@pytest.mark.anyio
async def test_wall_post_for_marina_without_boats(service, fake_store, provider):
  fake_store.marinas["marina-1"] = Marina(id="marina-1", name="Marina Azul")

  result = await service.notify_wall_post(marina_id="marina-1", post_id="post-1", title="Regata")

  assert result == DispatchResult.nothing_to_notify(NO_WALL_POST_RECIPIENTS_MESSAGE)
  assert "list_push_tokens" not in fake_store.calls
  assert provider.sent == []


@pytest.mark.anyio
async def test_wall_post_payload(service, fake_store, provider):
  fake_store.marinas["marina-1"] = Marina(id="marina-1", name="Marina Azul")
  fake_store.boats["boat-1"] = BoatOwnership(id="boat-1", marina_id="marina-1", primary_owner_id="owner-1", co_owner_ids=("owner-2",))
  fake_store.tokens = {"owner-1": ["tok-1"], "owner-2": ["tok-2"]}

  result = await service.notify_wall_post(marina_id="marina-1", post_id="post-1", title="Regata de verão", post_type="evento", start_date="2025-03-10", end_date="2025-03-12")

  assert (result.delivered, result.failed) == (2, 0)
  message = provider.sent[0]["payload"]["message"]
  assert message["notification"] == {"title": "Nova publicacao na Marina Azul", "body": "Evento · Regata de verão (10/03/2025 - 12/03/2025)"}
  assert message["data"] == {"event": "marina_wall_post", "marina_id": "marina-1", "post_id": "post-1", "type": "evento", "start_date": "2025-03-10", "end_date": "2025-03-12"}


@pytest.mark.anyio
async def test_wall_post_requires_known_marina(service):
  with pytest.raises(InvalidRequestError):
    await service.notify_wall_post(marina_id=None)

  with pytest.raises(NotFoundError):
    await service.notify_wall_post(marina_id="missing")


@pytest.mark.anyio
async def test_queue_status_without_boat_skips_lookups(service, fake_store, provider):
  fake_store.queue_entries["entry-1"] = QueueEntry(id="entry-1", status="in_water", marina_id="marina-1")

  result = await service.notify_queue_status_change(entry_id="entry-1", status="in_water")

  assert result.to_payload() == {"message": NO_QUEUE_BOAT_MESSAGE}
  assert fake_store.calls == ["get_queue_entry"]
  assert provider.sent == []


@pytest.mark.anyio
async def test_queue_status_uses_supplied_status_and_rings(service, fake_store, provider):
  fake_store.queue_entries["entry-1"] = QueueEntry(id="entry-1", status="pending", boat_id="boat-1", marina_id="marina-1", marina_name="Marina Azul")
  fake_store.boats["boat-1"] = BoatOwnership(id="boat-1", name="Aurora", primary_owner_id="owner-1")
  fake_store.tokens = {"owner-1": ["tok-1"]}

  result = await service.notify_queue_status_change(entry_id="entry-1", status="IN_WATER")

  assert (result.delivered, result.failed) == (1, 0)
  message = provider.sent[0]["payload"]["message"]
  assert message["notification"] == {"title": "Fila - Marina Azul", "body": "Status de Aurora: Na água."}
  assert message["data"] == {"event": "queue_status_update", "queue_entry_id": "entry-1", "marina_id": "marina-1", "boat_id": "boat-1", "status": "in_water"}
  assert message["android"] == {"notification": {"sound": "default"}}


@pytest.mark.anyio
async def test_queue_status_without_tokens(service, fake_store):
  fake_store.queue_entries["entry-1"] = QueueEntry(id="entry-1", status="pending", boat_id="boat-1")
  fake_store.boats["boat-1"] = BoatOwnership(id="boat-1", primary_owner_id="owner-1")

  result = await service.notify_queue_status_change(entry_id="entry-1")

  assert result.message == NO_QUEUE_TOKENS_MESSAGE


@pytest.mark.anyio
async def test_queue_status_errors(service, fake_store):
  with pytest.raises(InvalidRequestError):
    await service.notify_queue_status_change(entry_id="")

  with pytest.raises(NotFoundError):
    await service.notify_queue_status_change(entry_id="missing")

  fake_store.queue_entries["entry-1"] = QueueEntry(id="entry-1", status="pending", boat_id="boat-gone")
  with pytest.raises(NotFoundError):
    await service.notify_queue_status_change(entry_id="entry-1")


@pytest.mark.anyio
async def test_persistence_failure_does_not_fail_delivery(service, fake_store):
  fake_store.administrators.add("admin-1")
  fake_store.tokens = {"user-1": ["A"]}
  fake_store.insert_error = RuntimeError("insert failed")

  result = await service.notify_admin_broadcast(caller_id="admin-1", title="Oi", body="Mensagem")

  assert (result.delivered, result.failed) == (1, 0)


@pytest.mark.anyio
async def test_missing_service_account_is_a_configuration_error(fake_store, http_client, settings_factory):
  service = build_notification_service(settings_factory(), http_client=http_client, store=fake_store)
  fake_store.administrators.add("admin-1")
  fake_store.tokens = {"user-1": ["A"]}

  with pytest.raises(ConfigurationError) as exc_info:
    await service.notify_admin_broadcast(caller_id="admin-1", title="Oi", body="Mensagem")

  assert "FCM_SERVICE_ACCOUNT" in exc_info.value.client_message


@pytest.mark.anyio
async def test_malformed_service_account_is_a_credential_error(fake_store, http_client, settings_factory):
  service = build_notification_service(settings_factory(fcm_service_account="garbage"), http_client=http_client, store=fake_store)
  fake_store.administrators.add("admin-1")
  fake_store.tokens = {"user-1": ["A"]}

  with pytest.raises(CredentialError):
    await service.notify_admin_broadcast(caller_id="admin-1", title="Oi", body="Mensagem")


@pytest.mark.anyio
async def test_project_id_override_wins(fake_store, http_client, provider, service_account_json, settings_factory):
  service = build_notification_service(settings_factory(fcm_service_account=service_account_json, fcm_project_id="other-project"), http_client=http_client, store=fake_store)
  fake_store.administrators.add("admin-1")
  fake_store.tokens = {"user-1": ["A"]}

  await service.notify_admin_broadcast(caller_id="admin-1", title="Oi", body="Mensagem")

  assert "/projects/other-project/" in provider.sent[0]["url"]


def test_broadcast_content_is_trimmed():
  assert require_broadcast_content("  Oi ", "\tMensagem\n") == ("Oi", "Mensagem")

  with pytest.raises(InvalidRequestError):
    require_broadcast_content("Oi", "   ")


@pytest.mark.anyio
async def test_components_share_one_store(fake_store, http_client, service_account_json, settings_factory):
  components = build_notification_components(settings_factory(fcm_service_account=service_account_json), http_client=http_client, store=fake_store)
  fake_store.administrators.add("admin-1")

  result = await components.service.notify_admin_broadcast(caller_id="admin-1", title="Oi", body="Mensagem")
  run = await components.processor.run()

  assert result.message == NO_BROADCAST_TOKENS_MESSAGE
  assert run.processed == 0
  assert fake_store.calls == ["is_administrator", "list_push_token_owner_ids", "process_launch_queue_transitions"]
