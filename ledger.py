"""
Transaction recording: totals, validation and appending to the ledgers.

An income transaction charges each ``per_student`` item once for every
selected student and each ``per_parent`` item once per transaction. Items are
copied into the transaction as they are at recording time, so later price
changes in the catalogue never alter recorded totals.
"""
import logging
import math
import numbers
from datetime import datetime

from entities import (
    PENDING, PER_PARENT, PER_STUDENT, PRICING_TYPES, ExpenseItem, ExpenseTransaction,
    IncomeItem, IncomeTransaction, new_id, parse_datetime,
)
from errors import DateParseError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_LOGGED_USER = 'Current User'


def _is_number(value):
    return (isinstance(value, numbers.Real) and not isinstance(value, bool)
            and math.isfinite(value))


def _is_id(value):
    return isinstance(value, str) and bool(value.strip())


def _selection_errors(parent_id, student_ids, items, items_field):
    invalid = []
    if not _is_id(parent_id):
        invalid.append('parentId')
    if (not student_ids or not isinstance(student_ids, (list, tuple))
            or not all(_is_id(student_id) for student_id in student_ids)):
        invalid.append('studentIds')
    if not items or not isinstance(items, (list, tuple)):
        invalid.append(items_field)
    return invalid


def check_income_selection(parent_id, student_ids, item_ids):
    """Raise ValidationError naming every missing or malformed request key"""
    invalid = _selection_errors(parent_id, student_ids, item_ids, 'itemIds')
    if 'itemIds' not in invalid and not all(_is_id(item_id) for item_id in item_ids):
        invalid.append('itemIds')
    if invalid:
        raise ValidationError(f'Missing or invalid fields: {", ".join(invalid)}', invalid)


def calculate_income_total(items, student_count):
    """Sum of item prices under their pricing rule"""
    total = 0
    for item in items:
        if item.type == PER_STUDENT:
            total += item.price * student_count
        elif item.type == PER_PARENT:
            total += item.price
    return total


def calculate_expense_total(items):
    return sum(item.amount for item in items)


def _resolve_date(value, now):
    if value is None or value == '':
        return now
    try:
        return parse_datetime(value)
    except DateParseError:
        raise ValidationError(f'Invalid date {value!r}', ['date']) from None


def _income_item(item):
    if isinstance(item, IncomeItem):
        return item
    return IncomeItem.from_dict(item)


def build_income_transaction(parent_id, student_ids, items, logged_user=None,
                             date=None, receipt_image=None, now=None):
    """Validate the selection and build a pending IncomeTransaction.

    Raises ValidationError naming every missing field when the parent, the
    students or the items are absent. Parent and student ids must be
    non-empty strings.
    """
    invalid = _selection_errors(parent_id, student_ids, items, 'items')
    if invalid:
        raise ValidationError(f'Missing or invalid fields: {", ".join(invalid)}', invalid)

    # Selection is a set; keep first-seen order
    unique_students = list(dict.fromkeys(student_ids))

    snapshots = [_income_item(item) for item in items]
    for item in snapshots:
        if item.type not in PRICING_TYPES:
            raise ValidationError(
                f'Item {item.name!r} has unknown pricing type {item.type!r}', ['items'])
        if not _is_number(item.price) or item.price <= 0:
            raise ValidationError(
                f'Item {item.name!r} must have a price greater than 0', ['items'])

    now = now or datetime.now()
    return IncomeTransaction(
        id=new_id(),
        parent_id=parent_id,
        student_ids=unique_students,
        items=snapshots,
        total=calculate_income_total(snapshots, len(unique_students)),
        date=_resolve_date(date, now),
        status=PENDING,
        receipt_image=receipt_image or None,
        logged_user=logged_user or DEFAULT_LOGGED_USER,
        created_at=now,
    )


def _expense_item(item):
    if isinstance(item, ExpenseItem):
        data = item.to_dict()
    elif isinstance(item, dict):
        data = dict(item)
    else:
        raise ValidationError('Expense items must be objects', ['items'])

    amount = data.get('amount')
    if not _is_number(amount) or amount < 0:
        raise ValidationError(
            f'Expense item {data.get("name")!r} needs an amount of 0 or more', ['items'])
    if not data.get('name'):
        raise ValidationError('Expense items need a name', ['items'])
    if not data.get('id'):
        data['id'] = new_id()
    return ExpenseItem.from_dict(data)


def build_expense_transaction(items, logged_user=None, description=None, date=None,
                              receipt_image=None, now=None):
    if not items:
        raise ValidationError('Missing required fields: items', ['items'])

    snapshots = [_expense_item(item) for item in items]
    now = now or datetime.now()
    return ExpenseTransaction(
        id=new_id(),
        items=snapshots,
        total=calculate_expense_total(snapshots),
        date=_resolve_date(date, now),
        receipt_image=receipt_image or None,
        logged_user=logged_user or DEFAULT_LOGGED_USER,
        created_at=now,
        description=description or None,
    )


def resolve_income_items(store, item_ids):
    """Catalogue items for ``item_ids`` in the order given"""
    items = []
    unknown = []
    for item_id in item_ids or []:
        item = store.get('income_items', item_id)
        if item is None:
            unknown.append(item_id)
        else:
            items.append(item)
    if unknown:
        raise ValidationError(f'Unknown income items: {", ".join(map(str, unknown))}', ['itemIds'])
    return items


def record_income(store, parent_id, student_ids, items, logged_user=None, date=None,
                  receipt_image=None, now=None):
    transaction = build_income_transaction(
        parent_id, student_ids, items, logged_user=logged_user, date=date,
        receipt_image=receipt_image, now=now,
    )
    if store.get('parents', parent_id) is None:
        # Dangling references are allowed and shown as placeholders
        logger.warning('Income transaction %s references unknown parent %s',
                       transaction.id, parent_id)
    return store.append('income_transactions', transaction)


def record_expense(store, items, logged_user=None, description=None, date=None,
                   receipt_image=None, now=None):
    transaction = build_expense_transaction(
        items, logged_user=logged_user, description=description, date=date,
        receipt_image=receipt_image, now=now,
    )
    return store.append('expense_transactions', transaction)
