from __future__ import annotations

import pytest

from marina_notify.notifications.contracts import EventKind
from marina_notify.notifications.templates import compose_launch_request, compose_queue_status, compose_wall_post, format_date_range, queue_status_label, render_push_template, wall_post_type_label


def test_launch_request_copy_falls_back_to_generic_names():
  assert compose_launch_request(boat_name="Aurora", marina_name="Marina Azul") == ("Solicitação de descida", "A embarcação Aurora solicitou descida na Marina Azul.")
  assert compose_launch_request(boat_name=None, marina_name=None) == ("Solicitação de descida", "A embarcação Embarcação solicitou descida na marina.")


@pytest.mark.parametrize(("status", "label"), [("pending", "Pendente"), ("IN_PROGRESS", "Em andamento"), ("in_water", "Na água"), ("completed", "Concluído"), ("cancelled", "Cancelado"), ("Docked", "docked"), (None, "Atualizado"), ("  ", "Atualizado")])
def test_queue_status_label(status, label):
  assert queue_status_label(status) == label


def test_queue_status_copy():
  assert compose_queue_status(marina_name="Marina Azul", boat_name="Aurora", status="in_water") == ("Fila - Marina Azul", "Status de Aurora: Na água.")
  assert compose_queue_status(marina_name=None, boat_name=None, status=None) == ("Fila - marina", "Status de Embarcação: Atualizado.")


def test_wall_post_type_labels():
  assert wall_post_type_label("evento") == "Evento"
  assert wall_post_type_label("AVISO") == "Aviso"
  assert wall_post_type_label("publicidade") == "Publicidade"
  assert wall_post_type_label("outro") == ""
  assert wall_post_type_label(None) == ""


@pytest.mark.parametrize(
  ("start", "end", "expected"),
  [
    ("2025-03-10", "2025-03-12", "10/03/2025 - 12/03/2025"),
    ("2025-03-10T08:00:00Z", "2025-03-10T20:00:00Z", "10/03/2025"),
    ("2025-03-10T23:30:00-03:00", None, "11/03/2025"),
    (None, "2025-03-12", "12/03/2025"),
    ("not-a-date", "2025-03-12", "12/03/2025"),
    (None, None, ""),
  ],
)
def test_format_date_range(start, end, expected):
  assert format_date_range(start, end) == expected


def test_wall_post_body_joins_label_title_and_dates():
  title, body = compose_wall_post(marina_name="Marina Azul", post_title="Regata de verão", post_type="evento", start_date="2025-03-10", end_date="2025-03-12")

  assert title == "Nova publicacao na Marina Azul"
  assert body == "Evento · Regata de verão (10/03/2025 - 12/03/2025)"


def test_wall_post_body_falls_back_to_title_when_empty():
  title, body = compose_wall_post(marina_name=None, post_title=None, post_type=None, start_date=None, end_date=None)

  assert title == "Nova publicacao na marina"
  assert body == title


def test_render_push_template_requires_every_placeholder():
  with pytest.raises(ValueError, match="boat_name"):
    render_push_template(kind=EventKind.BOAT_LAUNCH_REQUEST, data={"marina_name": "Marina Azul"})

  with pytest.raises(ValueError, match="Unknown push template"):
    render_push_template(kind=EventKind.ADMIN_BROADCAST, data={})
