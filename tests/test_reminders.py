import datetime

from medvault_pkg import db
from medvault_pkg.models import Appointment, Notification
from medvault_pkg.reminders.services import run_reminder_sweep
from medvault_pkg.repository import appointment_repository

TODAY = datetime.date(2024, 7, 10)


def _book(owner_id, date, **extra):
    payload = {"doctor_name": "Dr. House", "specialty": "Diagnostics",
               "date": date.isoformat(), "time": "14:00"}
    payload.update(extra)
    record, _ = appointment_repository.create(owner_id, payload)
    return record


def test_sweep_dispatches_once_and_sets_flag(app, make_user):
    patient = make_user()
    record = _book(patient.id, TODAY + datetime.timedelta(days=1))

    assert run_reminder_sweep(TODAY) == 1
    assert db.session.get(Appointment, record["id"]).reminder_sent is True
    assert appointment_repository.read_cached(patient.id)[0]["reminder_sent"] is True
    assert Notification.query.filter_by(recipient_user_id=patient.id,
                                        notification_type='APPOINTMENT_REMINDER').count() == 1

    assert run_reminder_sweep(TODAY) == 0
    assert Notification.query.filter_by(notification_type='APPOINTMENT_REMINDER').count() == 1


def test_sweep_only_targets_tomorrow(app, make_user):
    patient = make_user()
    _book(patient.id, TODAY)
    _book(patient.id, TODAY + datetime.timedelta(days=2))
    tomorrow = _book(patient.id, TODAY + datetime.timedelta(days=1))

    assert run_reminder_sweep(TODAY) == 1
    flagged = [a.id for a in Appointment.query.filter_by(reminder_sent=True).all()]
    assert flagged == [tomorrow["id"]]


def test_sweep_logs_the_reminder(app, make_user, caplog):
    patient = make_user()
    _book(patient.id, TODAY + datetime.timedelta(days=1), notes="Bring previous scans")

    with caplog.at_level('INFO'):
        run_reminder_sweep(TODAY)

    assert any("Dr. House" in message and "Bring previous scans" in message for message in caplog.messages)


def test_sweep_returns_zero_when_remote_read_fails(app, make_user, monkeypatch, remote_down):
    patient = make_user()
    _book(patient.id, TODAY + datetime.timedelta(days=1))

    class FailingQuery:
        def filter(self, *args, **kwargs):
            remote_down()

    monkeypatch.setattr(Appointment, 'query', FailingQuery())

    assert run_reminder_sweep(TODAY) == 0


def test_send_reminders_command(app, make_user):
    patient = make_user()
    _book(patient.id, TODAY + datetime.timedelta(days=1))

    result = app.test_cli_runner().invoke(args=['send-reminders', '--date', TODAY.isoformat()])

    assert result.exit_code == 0
    assert "Sent 1 reminder(s)." in result.output
