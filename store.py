"""
Entity store: the in-memory collections of the ledger and their persistence.

One EntityStore is created per application. Each collection is a list of
immutable records kept in insertion order; every mutation writes the whole
collection through the persistence backend before it is considered done, and
a failed write puts the previous list back.
"""
import dataclasses
import logging
from datetime import datetime

from entities import (
    PAID, PENDING, STATUSES, CostCenter, ExpenseTransaction, IncomeItem,
    IncomeTransaction, Parent, Role, Section, Student, Teacher, User, new_id,
)
from errors import NotFoundError, PersistenceError, ValidationError
from reporting import filter_records

logger = logging.getLogger(__name__)

# Collection name -> (storage key, record type)
COLLECTIONS = {
    'parents': ('income_parents', Parent),
    'students': ('income_students', Student),
    'income_items': ('income_items', IncomeItem),
    'teachers': ('teachers', Teacher),
    'sections': ('sections', Section),
    'users': ('users', User),
    'roles': ('roles', Role),
    'cost_centers': ('cost_centers', CostCenter),
}

# Append-only ledgers
LEDGERS = {
    'income_transactions': ('income_transactions', IncomeTransaction),
    'expense_transactions': ('expense_transactions', ExpenseTransaction),
}

ALL_COLLECTIONS = {**COLLECTIONS, **LEDGERS}


class EntityStore:
    """Owns every collection and mirrors it to ``persistence``.

    ``seed`` maps collection names to lists of records used when a
    collection has never been stored.
    """

    def __init__(self, persistence, seed=None):
        self.persistence = persistence
        self.seed = seed or {}
        self._data = {name: [] for name in ALL_COLLECTIONS}
        self.hydrated = False

    def _lookup(self, collection):
        try:
            return ALL_COLLECTIONS[collection]
        except KeyError:
            raise ValidationError(f'Unknown collection {collection!r}', ['collection']) from None

    def _record_type(self, collection):
        return self._lookup(collection)[1]

    def hydrate(self):
        """Load every collection, writing seed data for the absent ones"""
        for collection, (key, record_type) in ALL_COLLECTIONS.items():
            stored = self.persistence.get(key)
            if stored is None:
                records = list(self.seed.get(collection, []))
                self._data[collection] = records
                if records:
                    self._commit(collection, None)
                    logger.info('Seeded %s with %d records', collection, len(records))
                continue

            try:
                self._data[collection] = [record_type.from_dict(item) for item in stored]
            except ValidationError as exc:
                raise PersistenceError(f'Corrupt record in {key}: {exc.message}') from exc

        self.hydrated = True
        logger.info('Store hydrated from %s backend', self.persistence.name)
        return self

    def all(self, collection):
        self._lookup(collection)
        return list(self._data[collection])

    def get(self, collection, record_id):
        self._lookup(collection)
        for record in self._data[collection]:
            if record.id == record_id:
                return record
        return None

    def require(self, collection, record_id):
        record = self.get(collection, record_id)
        if record is None:
            raise NotFoundError(collection, record_id)
        return record

    def find(self, collection, term):
        return filter_records(self.all(collection), term)

    def counts(self):
        return {name: len(records) for name, records in self._data.items()}

    def _commit(self, collection, previous):
        """Persist ``collection``; restore ``previous`` on failure"""
        key, _ = self._lookup(collection)
        try:
            self.persistence.set(key, [record.to_dict() for record in self._data[collection]])
        except PersistenceError:
            if previous is not None:
                self._data[collection] = previous
            logger.error('Failed to persist %s, in-memory change rolled back', collection)
            raise

    def _check_master(self, collection, record):
        if collection in LEDGERS:
            raise ValidationError(f'{collection} is append-only', ['collection'])
        self._check_type(collection, record)

    def _check_type(self, collection, record):
        record_type = self._record_type(collection)
        if not isinstance(record, record_type):
            raise ValidationError(
                f'{collection} holds {record_type.__name__} records', ['record'])

    def add(self, collection, record):
        """Append a master-data record, assigning an id when it has none"""
        self._check_master(collection, record)
        changes = {}
        if not record.id:
            changes['id'] = new_id()
        if 'created_at' in {f.name for f in dataclasses.fields(record)} and record.created_at is None:
            changes['created_at'] = datetime.now()
        if changes:
            record = dataclasses.replace(record, **changes)

        previous = self._data[collection]
        self._data[collection] = previous + [record]
        self._commit(collection, previous)
        logger.info('Added %s %s', collection, record.id)
        return record

    def update(self, collection, record):
        """Replace the record(s) carrying ``record.id``"""
        self._check_master(collection, record)
        previous = self._data[collection]
        if not any(item.id == record.id for item in previous):
            raise NotFoundError(collection, record.id)

        self._data[collection] = [record if item.id == record.id else item for item in previous]
        self._commit(collection, previous)
        logger.info('Updated %s %s', collection, record.id)
        return record

    def delete(self, collection, record_id):
        """Remove every record carrying ``record_id``"""
        self._lookup(collection)
        if collection in LEDGERS:
            raise ValidationError(f'{collection} is append-only', ['collection'])
        previous = self._data[collection]
        remaining = [item for item in previous if item.id != record_id]
        if len(remaining) == len(previous):
            raise NotFoundError(collection, record_id)

        self._data[collection] = remaining
        self._commit(collection, previous)
        logger.info('Deleted %s %s', collection, record_id)

    def append(self, ledger, transaction):
        if ledger not in LEDGERS:
            raise ValidationError(f'{ledger} is not a ledger', ['collection'])
        self._check_type(ledger, transaction)
        previous = self._data[ledger]
        self._data[ledger] = previous + [transaction]
        self._commit(ledger, previous)
        logger.info('Recorded %s %s total=%s', ledger, transaction.id, transaction.total)
        return transaction

    def set_income_status(self, transaction_id, status):
        """Mark an income transaction paid; paid never goes back to pending"""
        if status not in STATUSES:
            raise ValidationError(f'Unknown status {status!r}', ['status'])

        previous = self._data['income_transactions']
        current = self.require('income_transactions', transaction_id)
        if current.status == status:
            return current
        if not (current.status == PENDING and status == PAID):
            raise ValidationError(
                f'Cannot change status from {current.status} to {status}', ['status'])

        changed = dataclasses.replace(current, status=status)
        self._data['income_transactions'] = [
            changed if item.id == transaction_id else item for item in previous
        ]
        self._commit('income_transactions', previous)
        logger.info('Income transaction %s marked %s', transaction_id, status)
        return changed
