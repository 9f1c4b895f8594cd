# medvault_pkg/repository.py
"""
Remote-then-local reads and writes for the patient-owned record families.

The database is the source of truth whenever it answers. The cache holds a JSON
mirror of the last list returned for each owner and is only read when the
database cannot be reached.
"""
import datetime
import json
import uuid

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import cache, db
from .errors import MalformedInput
from .models import Appointment, HealthMetric, Medication, Report


class ReconcilingRepository:

    def __init__(self, model, namespace, owner_field, order_field, descending=False):
        self.model = model
        self.namespace = namespace
        self.owner_field = owner_field
        self.order_field = order_field
        self.descending = descending

    @property
    def _unsynced(self):
        # owner_ref -> {record_id: record dict} for creates the database refused.
        # Never retried; kept so this process keeps showing them. An entry only leaves
        # when the database later holds the same id or the owner deletes it, so the map
        # can grow for as long as the process runs.
        pending = current_app.extensions.setdefault("medvault_unsynced", {})
        return pending.setdefault(self.namespace, {})

    # --- cache mirror ---

    def cache_key(self, owner_ref):
        return f"{self.namespace}:{owner_ref}"

    def read_cached(self, owner_ref):
        try:
            raw = cache.get(self.cache_key(owner_ref))
        except Exception as e:
            current_app.logger.error(f"[Repository:{self.namespace}] Cache read failed for owner {owner_ref}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            current_app.logger.warning(f"[Repository:{self.namespace}] Discarding unreadable cache entry for owner {owner_ref}")
            return None

    def write_cached(self, owner_ref, records):
        try:
            cache.set(self.cache_key(owner_ref), json.dumps(records))
        except Exception as e:
            current_app.logger.error(f"[Repository:{self.namespace}] Cache write failed for owner {owner_ref}: {e}")

    def patch_cached(self, owner_ref, record_id, changes):
        cached = self.read_cached(owner_ref)
        if cached is None:
            return
        for record in cached:
            if record.get('id') == record_id:
                record.update(changes)
        self.write_cached(owner_ref, cached)
        pending = self._unsynced.get(owner_ref, {})
        if record_id in pending:
            pending[record_id].update(changes)

    # --- ordering ---

    def _sort(self, records):
        return sorted(
            records,
            key=lambda r: (r.get(self.order_field) or '', r.get('created_at') or ''),
            reverse=self.descending
        )

    def _owner_column(self):
        return getattr(self.model, self.owner_field)

    # --- remote calls ---

    def _select_remote(self, owner_ref):
        order_column = getattr(self.model, self.order_field)
        if self.descending:
            ordering = (order_column.desc(), self.model.created_at.desc())
        else:
            ordering = (order_column.asc(), self.model.created_at.asc())
        rows = self.model.query.filter(self._owner_column() == owner_ref).order_by(*ordering).all()
        return [row.to_dict() for row in rows]

    def _insert_remote(self, record):
        db.session.add(record)
        db.session.commit()

    def _delete_remote(self, record_id, owner_ref):
        deleted = self.model.query.filter(
            self.model.id == record_id,
            self._owner_column() == owner_ref
        ).delete(synchronize_session=False)
        db.session.commit()
        return deleted

    # --- public operations ---

    def fetch(self, owner_ref):
        """Returns the owner's records; falls back to the cached mirror, then to []. Never raises."""
        try:
            records = self._select_remote(owner_ref)
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.warning(f"[Repository:{self.namespace}] Remote read failed for owner {owner_ref}, serving cache: {e}")
            cached = self.read_cached(owner_ref)
            return cached if cached is not None else []

        pending = self._unsynced.get(owner_ref)
        if pending:
            remote_ids = {r['id'] for r in records}
            for record_id in list(pending):
                if record_id in remote_ids:
                    del pending[record_id]
            records = self._sort(records + list(pending.values()))

        self.write_cached(owner_ref, records)
        return records

    def create(self, owner_ref, payload):
        """
        Validates and stores a new record. The id is assigned before the remote insert,
        and the record is added to the cache whether or not the database can be reached.
        A constraint violation is a rejection, not an outage: it raises MalformedInput
        and nothing is kept. Returns (record dict, synced flag).
        """
        record = self.model.from_payload(owner_ref, payload)
        record.id = str(uuid.uuid4())
        record.created_at = datetime.datetime.utcnow()
        data = record.to_dict()

        try:
            self._insert_remote(record)
            synced = True
        except IntegrityError as e:
            db.session.rollback()
            current_app.logger.warning(f"[Repository:{self.namespace}] Database rejected {data['id']}: {e.orig}")
            raise MalformedInput("The record was rejected by the database.")
        except SQLAlchemyError as e:
            db.session.rollback()
            synced = False
            self._unsynced.setdefault(owner_ref, {})[data['id']] = data
            current_app.logger.warning(f"[Repository:{self.namespace}] Remote insert failed for {data['id']}, kept locally: {e}")

        cached = self.read_cached(owner_ref) or []
        self.write_cached(owner_ref, self._sort([data] + [r for r in cached if r.get('id') != data['id']]))
        return data, synced

    def delete(self, record_id, owner_ref):
        """
        Best-effort remote delete scoped to the owner; local removal always happens.
        Returns False only when neither the database nor local state had the record.
        """
        try:
            remote_found = self._delete_remote(record_id, owner_ref) > 0
        except SQLAlchemyError as e:
            db.session.rollback()
            remote_found = None
            current_app.logger.warning(f"[Repository:{self.namespace}] Remote delete failed for {record_id}: {e}")

        local_found = self._unsynced.get(owner_ref, {}).pop(record_id, None) is not None
        cached = self.read_cached(owner_ref)
        if cached is not None:
            remaining = [r for r in cached if r.get('id') != record_id]
            local_found = local_found or len(remaining) != len(cached)
            self.write_cached(owner_ref, remaining)

        return bool(remote_found) or local_found or remote_found is None

    def update(self, record_id, changes, owner_ref=None):
        """
        Applies `changes` remotely (scoped to owner_ref when given) and to the cached copy.
        Returns the updated record dict, or None if the record could not be found.
        """
        data = None
        try:
            query = self.model.query.filter(self.model.id == record_id)
            if owner_ref is not None:
                query = query.filter(self._owner_column() == owner_ref)
            record = query.first()
            if record is not None:
                for field, value in changes.items():
                    setattr(record, field, value)
                db.session.commit()
                data = record.to_dict()
                owner_ref = getattr(record, self.owner_field)
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.warning(f"[Repository:{self.namespace}] Remote update failed for {record_id}: {e}")

        if owner_ref is None:
            return data
        serializable = {k: (v.isoformat() if hasattr(v, 'isoformat') else v) for k, v in changes.items()}
        self.patch_cached(owner_ref, record_id, serializable)
        if data is None:
            for record in self.read_cached(owner_ref) or []:
                if record.get('id') == record_id:
                    data = record
        return data


appointment_repository = ReconcilingRepository(Appointment, 'appointments', 'patient_id', 'date')
report_repository = ReconcilingRepository(Report, 'reports', 'owner_id', 'date', descending=True)
health_metric_repository = ReconcilingRepository(HealthMetric, 'health_metrics', 'owner_id', 'date', descending=True)
medication_repository = ReconcilingRepository(Medication, 'medications', 'owner_id', 'start_date', descending=True)
