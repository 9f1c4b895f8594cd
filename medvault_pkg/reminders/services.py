# medvault_pkg/reminders/services.py
"""
Appointment reminder sweep.

A sweep finds appointments dated exactly one calendar day ahead whose reminder
has not gone out, dispatches one reminder each and sets `reminder_sent`.
The flag is written after dispatch, so a crash in between can repeat a
reminder on the next sweep (at-least-once).
"""
import datetime

import click
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .. import db
from ..models import Appointment
from ..repository import appointment_repository
from ..services import notify_appointment_reminder
from ..sockets import publish_change, socketio


def dispatch_reminder(appointment):
    """Side effect for one due appointment: a log record plus an in-app notification."""
    details = (
        f"Doctor: {appointment.doctor_name} | Specialty: {appointment.specialty} | "
        f"Date: {appointment.date.isoformat()} | Time: {appointment.time}"
    )
    if appointment.notes:
        details += f" | Notes: {appointment.notes}"
    current_app.logger.info(f"[ReminderSweep] Reminder for appointment tomorrow ({appointment.id}): {details}")
    notify_appointment_reminder(appointment)


def run_reminder_sweep(today=None):
    """Runs one sweep and returns the number of reminders dispatched."""
    today = today or datetime.date.today()
    target_date = today + datetime.timedelta(days=1)

    try:
        due = Appointment.query.filter(
            Appointment.date == target_date,
            Appointment.reminder_sent.isnot(True)
        ).order_by(Appointment.time.asc()).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"[ReminderSweep] Could not load appointments for {target_date}: {e}")
        return 0

    dispatched = 0
    for appointment in due:
        appointment_id, patient_id = appointment.id, appointment.patient_id
        dispatch_reminder(appointment)
        dispatched += 1
        updated = appointment_repository.update(appointment_id, {"reminder_sent": True}, owner_ref=patient_id)
        if updated is not None:
            publish_change('appointments', appointment_id, 'update',
                           [patient_id, updated.get('doctor_id')], updated)

    if dispatched:
        current_app.logger.info(f"[ReminderSweep] Sent {dispatched} reminder(s) for {target_date}")
    return dispatched


def start_reminder_service(app):
    """Runs a sweep now and then every REMINDER_CHECK_INTERVAL_SECONDS in a background task."""
    interval = app.config.get('REMINDER_CHECK_INTERVAL_SECONDS', 3600)

    def reminder_loop():
        while True:
            with app.app_context():
                try:
                    run_reminder_sweep()
                except Exception as e:
                    app.logger.error(f"[ReminderSweep] Error in reminder service: {e}", exc_info=True)
            socketio.sleep(interval)

    app.logger.info(f"[ReminderSweep] Reminder service started (every {interval}s)")
    return socketio.start_background_task(reminder_loop)


def register_reminder_commands(app):
    @app.cli.command('send-reminders')
    @click.option('--date', 'today', default=None, help="Treat this ISO date as today.")
    def send_reminders_command(today):
        """Send reminders for tomorrow's appointments once."""
        sweep_day = datetime.date.fromisoformat(today) if today else None
        count = run_reminder_sweep(sweep_day)
        click.echo(f"Sent {count} reminder(s).")
