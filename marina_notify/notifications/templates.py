"""Title and body templates for marina push notifications."""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any

from marina_notify.notifications.contracts import EventKind, QueueStatus


@dataclass(frozen=True)
class PushTemplate:
  """Define a push notification template."""

  kind: EventKind
  title_template: str
  body_template: str
  required_keys: frozenset[str]


TEMPLATES: dict[EventKind, PushTemplate] = {
  EventKind.BOAT_LAUNCH_REQUEST: PushTemplate(kind=EventKind.BOAT_LAUNCH_REQUEST, title_template="Solicitação de descida", body_template="A embarcação {{boat_name}} solicitou descida na {{marina_name}}.", required_keys=frozenset({"boat_name", "marina_name"})),
  EventKind.MARINA_WALL_POST: PushTemplate(kind=EventKind.MARINA_WALL_POST, title_template="Nova publicacao na {{marina_name}}", body_template="{{summary}}", required_keys=frozenset({"marina_name", "summary"})),
  EventKind.QUEUE_STATUS_UPDATE: PushTemplate(kind=EventKind.QUEUE_STATUS_UPDATE, title_template="Fila - {{marina_name}}", body_template="Status de {{boat_name}}: {{status_label}}.", required_keys=frozenset({"marina_name", "boat_name", "status_label"})),
}

QUEUE_STATUS_LABELS: dict[str, str] = {
  QueueStatus.PENDING.value: "Pendente",
  QueueStatus.IN_PROGRESS.value: "Em andamento",
  QueueStatus.IN_WATER.value: "Na água",
  QueueStatus.COMPLETED.value: "Concluído",
  QueueStatus.CANCELLED.value: "Cancelado",
}

WALL_POST_TYPE_LABELS: dict[str, str] = {"evento": "Evento", "aviso": "Aviso", "publicidade": "Publicidade"}

DEFAULT_MARINA_NAME = "marina"
DEFAULT_BOAT_NAME = "Embarcação"
UNKNOWN_STATUS_LABEL = "Atualizado"


def render_push_template(*, kind: EventKind, data: dict[str, Any]) -> tuple[str, str]:
  """Render a template into a title and body string."""
  template = TEMPLATES.get(kind)
  if template is None:
    raise ValueError(f"Unknown push template: {kind.value}")
  missing = sorted(template.required_keys - set(data.keys()))
  if missing:
    raise ValueError(f"Missing placeholders for template '{kind.value}': {', '.join(missing)}")
  title = template.title_template
  body = template.body_template
  for key, value in data.items():
    title = title.replace(f"{{{{{key}}}}}", str(value))
    body = body.replace(f"{{{{{key}}}}}", str(value))
  return title.strip(), body.strip()


def queue_status_label(status: str | None) -> str:
  """Human label for a queue status; unknown values are shown as-is."""
  normalized = (status or "").strip().lower()
  if not normalized:
    return UNKNOWN_STATUS_LABEL
  return QUEUE_STATUS_LABELS.get(normalized, normalized)


def wall_post_type_label(post_type: str | None) -> str:
  return WALL_POST_TYPE_LABELS.get((post_type or "").strip().lower(), "")


def _parse_date(raw: str | None) -> datetime.datetime | None:
  """Parse an ISO-8601 date or timestamp, reading naive values as UTC."""
  if not raw or not raw.strip():
    return None
  text = raw.strip()
  if text.endswith(("Z", "z")):
    text = f"{text[:-1]}+00:00"
  try:
    parsed = datetime.datetime.fromisoformat(text)
  except ValueError:
    return None
  if parsed.tzinfo is None:
    return parsed.replace(tzinfo=datetime.UTC)
  return parsed.astimezone(datetime.UTC)


def format_date(value: datetime.datetime) -> str:
  return value.strftime("%d/%m/%Y")


def format_date_range(start_date: str | None, end_date: str | None) -> str:
  """Render `dd/mm/yyyy` or `dd/mm/yyyy - dd/mm/yyyy` in UTC.

  A single date is shown when only one side parses or both fall on the
  same day. Returns an empty string when neither side parses.
  """
  start = _parse_date(start_date)
  end = _parse_date(end_date)
  if start is None:
    return format_date(end) if end is not None else ""
  if end is None or start.date() == end.date():
    return format_date(start)
  return f"{format_date(start)} - {format_date(end)}"


def compose_launch_request(*, boat_name: str | None, marina_name: str | None) -> tuple[str, str]:
  return render_push_template(kind=EventKind.BOAT_LAUNCH_REQUEST, data={"boat_name": boat_name or DEFAULT_BOAT_NAME, "marina_name": marina_name or DEFAULT_MARINA_NAME})


def compose_wall_post(*, marina_name: str | None, post_title: str | None, post_type: str | None, start_date: str | None, end_date: str | None) -> tuple[str, str]:
  """Title names the marina; body joins type label and post title, plus dates."""
  parts = [part for part in (wall_post_type_label(post_type), (post_title or "").strip()) if part]
  summary = " · ".join(parts)
  date_label = format_date_range(start_date, end_date)
  if date_label:
    summary = f"{summary} ({date_label})"
  title, body = render_push_template(kind=EventKind.MARINA_WALL_POST, data={"marina_name": marina_name or DEFAULT_MARINA_NAME, "summary": summary})
  return title, body or title


def compose_queue_status(*, marina_name: str | None, boat_name: str | None, status: str | None) -> tuple[str, str]:
  return render_push_template(kind=EventKind.QUEUE_STATUS_UPDATE, data={"marina_name": marina_name or DEFAULT_MARINA_NAME, "boat_name": boat_name or DEFAULT_BOAT_NAME, "status_label": queue_status_label(status)})
