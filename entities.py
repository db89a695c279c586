"""
Domain records for parents, students, fee items, staff and transactions.

Records are immutable. The store replaces a record wholesale on update and the
ledgers only ever append, so nothing here exposes a setter. Every record has a
JSON form (``to_dict``/``from_dict``) with camelCase keys, which is what the
persistence backends store and what the HTTP API returns.
"""
import logging
import re
import uuid
from dataclasses import MISSING, dataclass, field, fields
from datetime import date, datetime
from typing import ClassVar, List, Optional

from errors import DateParseError, ValidationError

logger = logging.getLogger(__name__)

# Pricing rules for fee items
PER_STUDENT = 'per_student'
PER_PARENT = 'per_parent'
PRICING_TYPES = (PER_STUDENT, PER_PARENT)

# Income transaction statuses
PENDING = 'pending'
PAID = 'paid'
STATUSES = (PENDING, PAID)

# Placeholders rendered for dangling references
UNKNOWN_PARENT = 'Unknown Parent'
UNKNOWN_STUDENT = 'Unknown Student'
UNASSIGNED = 'Unassigned'


def new_id() -> str:
    """Generate a collision-free record identifier"""
    return str(uuid.uuid4())


def camel_case(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


def snake_case(name: str) -> str:
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()


def parse_datetime(value) -> datetime:
    """Parse a datetime, date or ISO-8601 string into a naive local datetime.

    Raises DateParseError for anything else.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, datetime.min.time())
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise DateParseError(value) from None
    else:
        raise DateParseError(value)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _dump(value):
    if isinstance(value, Record):
        return value.to_dict()
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_dump(item) for item in value]
    return value


@dataclass(frozen=True)
class Record:
    datetime_fields: ClassVar[tuple] = ()
    nested_fields: ClassVar[dict] = {}
    search_attrs: ClassVar[tuple] = ()

    def to_dict(self):
        return {camel_case(f.name): _dump(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise ValidationError(f'{cls.__name__} record must be an object')

        kwargs = {}
        missing = []
        for f in fields(cls):
            key = camel_case(f.name)
            if key in data:
                value = data[key]
            elif f.name in data:
                value = data[f.name]
            elif f.default is MISSING and f.default_factory is MISSING:
                missing.append(key)
                continue
            else:
                continue
            kwargs[f.name] = cls._load_value(f.name, value)

        if missing:
            raise ValidationError(
                f'{cls.__name__} is missing required fields: {", ".join(missing)}',
                missing,
            )
        return cls(**kwargs)

    @classmethod
    def _load_value(cls, name, value):
        if value is None:
            return None
        if name in cls.nested_fields:
            return [cls.nested_fields[name].from_dict(item) for item in value]
        if name in cls.datetime_fields:
            try:
                return parse_datetime(value)
            except DateParseError:
                # Kept raw so reporting can exclude it instead of failing hydration
                logger.warning('Keeping unparseable %s.%s value %r', cls.__name__, name, value)
                return value
        return value

    def search_fields(self):
        values = (getattr(self, attr) for attr in self.search_attrs)
        return [str(value) for value in values if value]


@dataclass(frozen=True)
class Person(Record):
    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'


@dataclass(frozen=True)
class Parent(Person):
    first_name: str
    last_name: str
    id: str = ''
    email: Optional[str] = None
    phone: Optional[str] = None

    search_attrs = ('first_name', 'last_name', 'email')


@dataclass(frozen=True)
class Student(Person):
    first_name: str
    last_name: str
    parent_id: str
    id: str = ''
    teacher: Optional[str] = None
    section: Optional[str] = None

    search_attrs = ('first_name', 'last_name', 'teacher', 'section')


@dataclass(frozen=True)
class IncomeItem(Record):
    name: str
    price: float
    type: str
    id: str = ''
    description: Optional[str] = None

    search_attrs = ('name', 'description')


@dataclass(frozen=True)
class IncomeTransaction(Record):
    parent_id: str
    student_ids: List[str]
    items: List[IncomeItem]
    total: float
    date: datetime
    logged_user: str
    created_at: datetime
    id: str = ''
    status: str = PENDING
    receipt_image: Optional[str] = None

    datetime_fields = ('date', 'created_at')
    nested_fields = {'items': IncomeItem}


@dataclass(frozen=True)
class CostCenter(Record):
    name: str
    code: str
    id: str = ''
    description: Optional[str] = None

    search_attrs = ('name', 'code', 'description')


@dataclass(frozen=True)
class ExpenseItem(Record):
    name: str
    amount: float
    id: str = ''
    cost_center_id: str = ''
    description: Optional[str] = None


@dataclass(frozen=True)
class ExpenseTransaction(Record):
    items: List[ExpenseItem]
    total: float
    date: datetime
    logged_user: str
    created_at: datetime
    id: str = ''
    receipt_image: Optional[str] = None
    description: Optional[str] = None

    datetime_fields = ('date', 'created_at')
    nested_fields = {'items': ExpenseItem}


@dataclass(frozen=True)
class Teacher(Person):
    first_name: str
    last_name: str
    id: str = ''
    email: Optional[str] = None
    phone: Optional[str] = None
    subjects: Optional[List[str]] = None
    employee_id: Optional[str] = None

    search_attrs = ('first_name', 'last_name', 'email', 'employee_id')


@dataclass(frozen=True)
class Section(Record):
    name: str
    grade: str
    capacity: int
    id: str = ''
    teacher_id: Optional[str] = None
    description: Optional[str] = None

    search_attrs = ('name', 'grade')


@dataclass(frozen=True)
class Role(Record):
    name: str
    id: str = ''
    description: Optional[str] = None
    permissions: List[str] = field(default_factory=list)
    is_active: bool = True
    created_at: Optional[datetime] = None

    datetime_fields = ('created_at',)
    search_attrs = ('name', 'description')


@dataclass(frozen=True)
class User(Person):
    username: str
    email: str
    first_name: str
    last_name: str
    role_id: str
    id: str = ''
    is_active: bool = True
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    datetime_fields = ('last_login', 'created_at')
    search_attrs = ('username', 'email', 'first_name', 'last_name')
