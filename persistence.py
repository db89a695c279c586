"""
Storage backends for the entity store.

Both backends implement the same two-call contract: ``get(key)`` returns the
stored collection (a list of JSON-ready dicts) or ``None`` when the key was
never written, and ``set(key, records)`` overwrites the whole collection.
"""
import json
import logging
import os
import tempfile
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from app_models import ROW_MODELS, StoredCollection, db
from errors import PersistenceError

logger = logging.getLogger(__name__)

KEYVALUE = 'keyvalue'
RELATIONAL = 'relational'
BACKENDS = (KEYVALUE, RELATIONAL)


class Persistence:
    """Key to JSON-collection storage"""
    name = None

    def get(self, key):
        raise NotImplementedError

    def set(self, key, records):
        raise NotImplementedError


class KeyValuePersistence(Persistence):
    """Collections serialised as JSON strings under their storage key.

    With a ``path`` the key space lives in a single JSON file which is read on
    first access and rewritten through a temporary file on every ``set``.
    Without a path nothing leaves memory.
    """
    name = KEYVALUE

    def __init__(self, path=None):
        self.path = path
        self._values = None

    def _load(self):
        if self._values is not None:
            return self._values

        self._values = {}
        if self.path and os.path.exists(self.path):
            try:
                with open(self.path, encoding='utf-8') as fh:
                    stored = json.load(fh)
            except (OSError, ValueError) as exc:
                raise PersistenceError(f'Cannot read {self.path}: {exc}') from exc
            if not isinstance(stored, dict):
                raise PersistenceError(f'{self.path} does not hold a key-value object')
            self._values = {key: json.dumps(value) for key, value in stored.items()}
            logger.info('Loaded %d collections from %s', len(self._values), self.path)
        return self._values

    def raw(self, key):
        """Serialised form of a collection, or None"""
        return self._load().get(key)

    def get(self, key):
        serialised = self._load().get(key)
        if serialised is None:
            return None
        return json.loads(serialised)

    def set(self, key, records):
        values = self._load()
        try:
            serialised = json.dumps(records)
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f'Cannot serialise {key}: {exc}') from exc

        previous = values.get(key)
        values[key] = serialised
        if self.path:
            try:
                self._write()
            except OSError as exc:
                if previous is None:
                    values.pop(key, None)
                else:
                    values[key] = previous
                raise PersistenceError(f'Cannot write {self.path}: {exc}') from exc

    def _write(self):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        document = '{' + ', '.join(
            f'{json.dumps(key)}: {value}' for key, value in self._values.items()
        ) + '}'

        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                fh.write(document)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class RelationalPersistence(Persistence):
    """Collections stored as rows of one table per entity.

    Needs an application context; the session is Flask-SQLAlchemy's.
    """
    name = RELATIONAL

    def __init__(self):
        self.db = db
        self.models = ROW_MODELS
        self.marker = StoredCollection

    def _model(self, key):
        try:
            return self.models[key]
        except KeyError:
            raise PersistenceError(f'No table for collection {key!r}') from None

    def get(self, key):
        model = self._model(key)
        try:
            if self.db.session.get(self.marker, key) is None:
                return None
            rows = model.query.order_by(model.position, model.row_id).all()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise PersistenceError(f'Cannot read {key}: {exc}') from exc
        return [row.to_record() for row in rows]

    def set(self, key, records):
        model = self._model(key)
        session = self.db.session
        try:
            model.query.delete()
            session.add_all(
                model.from_record(record, position)
                for position, record in enumerate(records)
            )
            marker = session.get(self.marker, key)
            if marker is None:
                session.add(self.marker(key=key, updated_at=datetime.utcnow()))
            else:
                marker.updated_at = datetime.utcnow()
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error('Rolled back write of %s: %s', key, exc)
            raise PersistenceError(f'Cannot write {key}: {exc}') from exc


def create_persistence(config):
    """Build the backend named by ``PERSISTENCE_BACKEND``"""
    backend = config.get('PERSISTENCE_BACKEND', KEYVALUE)
    if backend == KEYVALUE:
        return KeyValuePersistence(config.get('DATA_FILE'))
    if backend == RELATIONAL:
        return RelationalPersistence()
    raise ValueError(f'Unknown PERSISTENCE_BACKEND {backend!r}; expected one of {BACKENDS}')
