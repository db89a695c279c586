"""
Relational tables backing RelationalPersistence.

One table per collection, mirroring the JSON form of each record. List fields
(student ids, item snapshots, subjects, permissions) are JSON columns and the
collection order is kept in ``position``.
"""
import logging
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy

from entities import camel_case, parse_datetime
from errors import DateParseError

logger = logging.getLogger(__name__)

db = SQLAlchemy()


def _to_datetime(value):
    if value is None:
        return None
    try:
        return parse_datetime(value)
    except DateParseError:
        logger.warning('Storing NULL for unparseable date %r', value)
        return None


class RecordRow:
    """Maps a row to and from the camelCase JSON form of a record"""
    columns = ()
    datetime_columns = ()

    row_id = db.Column(db.Integer, primary_key=True)
    id = db.Column(db.String(64), nullable=False, index=True)  # Record id, not unique by contract
    position = db.Column(db.Integer, nullable=False, default=0)

    @classmethod
    def from_record(cls, record, position):
        row = cls(id=record.get('id') or '', position=position)
        for name in cls.columns:
            value = record.get(camel_case(name))
            if name in cls.datetime_columns:
                value = _to_datetime(value)
            setattr(row, name, value)
        return row

    def to_record(self):
        record = {'id': self.id}
        for name in self.columns:
            value = getattr(self, name)
            if name in self.datetime_columns and value is not None:
                value = value.isoformat()
            record[camel_case(name)] = value
        return record


class ParentRow(RecordRow, db.Model):
    __tablename__ = 'parents'
    columns = ('first_name', 'last_name', 'email', 'phone')

    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255))
    phone = db.Column(db.String(20))


class StudentRow(RecordRow, db.Model):
    __tablename__ = 'students'
    columns = ('first_name', 'last_name', 'parent_id', 'teacher', 'section')

    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    parent_id = db.Column(db.String(64), nullable=False)  # Dangling references are tolerated
    teacher = db.Column(db.String(100))
    section = db.Column(db.String(50))


class IncomeItemRow(RecordRow, db.Model):
    __tablename__ = 'income_items'
    columns = ('name', 'price', 'type', 'description')

    name = db.Column(db.String(200), nullable=False)
    price = db.Column(db.Float, nullable=False)
    type = db.Column(db.String(20), nullable=False)  # per_student or per_parent
    description = db.Column(db.Text)


class IncomeTransactionRow(RecordRow, db.Model):
    __tablename__ = 'income_transactions'
    columns = ('parent_id', 'student_ids', 'items', 'total', 'date', 'status',
               'receipt_image', 'logged_user', 'created_at')
    datetime_columns = ('date', 'created_at')

    parent_id = db.Column(db.String(64), nullable=False)
    student_ids = db.Column(db.JSON, nullable=False)
    items = db.Column(db.JSON, nullable=False)  # Item snapshots taken at recording time
    total = db.Column(db.Float, nullable=False)
    date = db.Column(db.DateTime)
    status = db.Column(db.String(20), nullable=False, default='pending')
    receipt_image = db.Column(db.Text)
    logged_user = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime)


class CostCenterRow(RecordRow, db.Model):
    __tablename__ = 'cost_centers'
    columns = ('name', 'code', 'description')

    name = db.Column(db.String(100), nullable=False)
    code = db.Column(db.String(20), nullable=False)
    description = db.Column(db.Text)


class ExpenseTransactionRow(RecordRow, db.Model):
    __tablename__ = 'expense_transactions'
    columns = ('items', 'total', 'date', 'receipt_image', 'logged_user',
               'created_at', 'description')
    datetime_columns = ('date', 'created_at')

    items = db.Column(db.JSON, nullable=False)
    total = db.Column(db.Float, nullable=False)
    date = db.Column(db.DateTime)
    receipt_image = db.Column(db.Text)
    logged_user = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime)
    description = db.Column(db.Text)


class TeacherRow(RecordRow, db.Model):
    __tablename__ = 'teachers'
    columns = ('first_name', 'last_name', 'email', 'phone', 'subjects', 'employee_id')

    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255))
    phone = db.Column(db.String(20))
    subjects = db.Column(db.JSON)
    employee_id = db.Column(db.String(50))


class SectionRow(RecordRow, db.Model):
    __tablename__ = 'sections'
    columns = ('name', 'grade', 'capacity', 'teacher_id', 'description')

    name = db.Column(db.String(100), nullable=False)
    grade = db.Column(db.String(50), nullable=False)
    capacity = db.Column(db.Integer, nullable=False)
    teacher_id = db.Column(db.String(64))
    description = db.Column(db.Text)


class RoleRow(RecordRow, db.Model):
    __tablename__ = 'roles'
    columns = ('name', 'description', 'permissions', 'is_active', 'created_at')
    datetime_columns = ('created_at',)

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    permissions = db.Column(db.JSON, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime)


class UserRow(RecordRow, db.Model):
    __tablename__ = 'users'
    columns = ('username', 'email', 'first_name', 'last_name', 'role_id',
               'is_active', 'last_login', 'created_at')
    datetime_columns = ('last_login', 'created_at')

    username = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    role_id = db.Column(db.String(64), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_login = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime)


class StoredCollection(db.Model):
    """Marks a collection as written, so an empty table is not read as absent"""
    __tablename__ = 'stored_collections'

    key = db.Column(db.String(50), primary_key=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# Storage key -> table
ROW_MODELS = {
    'income_parents': ParentRow,
    'income_students': StudentRow,
    'income_items': IncomeItemRow,
    'income_transactions': IncomeTransactionRow,
    'expense_transactions': ExpenseTransactionRow,
    'cost_centers': CostCenterRow,
    'teachers': TeacherRow,
    'sections': SectionRow,
    'roles': RoleRow,
    'users': UserRow,
}
