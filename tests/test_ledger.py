import os, sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from datetime import datetime

import pytest

from entities import PENDING, PER_PARENT, PER_STUDENT, ExpenseItem, IncomeItem
from errors import ValidationError
from ledger import (
    DEFAULT_LOGGED_USER, build_expense_transaction, build_income_transaction,
    calculate_expense_total, calculate_income_total, check_income_selection,
    record_expense, record_income, resolve_income_items,
)

TUITION = IncomeItem(id='1', name='Tuition Fee', price=500, type=PER_STUDENT)
REGISTRATION = IncomeItem(id='2', name='Registration Fee', price=100, type=PER_PARENT)


def test_per_student_and_per_parent_pricing():
    assert calculate_income_total([TUITION, REGISTRATION], 2) == 1100
    assert calculate_income_total([TUITION, REGISTRATION], 1) == 600
    assert calculate_income_total([REGISTRATION], 5) == 100


def test_build_income_transaction(now):
    txn = build_income_transaction('1', ['1', '2'], [TUITION, REGISTRATION], now=now)
    assert txn.total == 1100
    assert txn.status == PENDING
    assert txn.created_at == now
    assert txn.date == now
    assert txn.logged_user == DEFAULT_LOGGED_USER
    assert txn.id


def test_income_date_override(now):
    txn = build_income_transaction('1', ['1'], [TUITION], date='2024-05-01T08:00:00', now=now)
    assert txn.date == datetime(2024, 5, 1, 8)
    assert txn.created_at == now


def test_invalid_income_date_is_rejected(now):
    with pytest.raises(ValidationError) as exc:
        build_income_transaction('1', ['1'], [TUITION], date='someday', now=now)
    assert exc.value.fields == ['date']


def test_duplicate_students_are_counted_once(now):
    txn = build_income_transaction('1', ['1', '1', '2'], [TUITION], now=now)
    assert txn.student_ids == ['1', '2']
    assert txn.total == 1000


def test_missing_fields_are_all_reported():
    with pytest.raises(ValidationError) as exc:
        build_income_transaction('', [], [])
    assert exc.value.fields == ['parentId', 'studentIds', 'items']


@pytest.mark.parametrize('parent_id, student_ids, field', [
    (['1'], ['1'], 'parentId'),
    (1, ['1'], 'parentId'),
    ('  ', ['1'], 'parentId'),
    ('1', [{'id': '1'}], 'studentIds'),
    ('1', ['1', 2], 'studentIds'),
    ('1', '12', 'studentIds'),
])
def test_malformed_ids_are_rejected(store, parent_id, student_ids, field):
    with pytest.raises(ValidationError) as exc:
        record_income(store, parent_id, student_ids, [TUITION])
    assert exc.value.fields == [field]
    assert store.all('income_transactions') == []


def test_income_selection_reports_every_request_key():
    with pytest.raises(ValidationError) as exc:
        check_income_selection(None, None, None)
    assert exc.value.fields == ['parentId', 'studentIds', 'itemIds']

    with pytest.raises(ValidationError) as exc:
        check_income_selection('1', ['1'], ['1', None])
    assert exc.value.fields == ['itemIds']

    check_income_selection('1', ['1', '2'], ['1'])


@pytest.mark.parametrize('item', [
    IncomeItem(id='x', name='Free', price=0, type=PER_STUDENT),
    IncomeItem(id='x', name='Negative', price=-5, type=PER_PARENT),
    IncomeItem(id='x', name='Odd', price=10, type='per_family'),
    IncomeItem(id='x', name='Unpriced', price=float('nan'), type=PER_STUDENT),
    IncomeItem(id='x', name='Boundless', price=float('inf'), type=PER_PARENT),
])
def test_invalid_items_are_rejected(item):
    with pytest.raises(ValidationError) as exc:
        build_income_transaction('1', ['1'], [item])
    assert exc.value.fields == ['items']


def test_items_are_snapshots(now):
    txn = build_income_transaction('1', ['1'], [TUITION.to_dict()], now=now)
    assert txn.items == [TUITION]


def test_record_income_rejects_empty_items_and_leaves_ledger_unchanged(store):
    before = store.all('income_transactions')
    with pytest.raises(ValidationError):
        record_income(store, '1', ['1', '2'], [])
    assert store.all('income_transactions') == before
    assert store.persistence.get('income_transactions') is None


def test_record_income_appends(store, now):
    txn = record_income(store, '1', ['1', '2'], [TUITION, REGISTRATION], now=now)
    assert store.all('income_transactions') == [txn]
    assert store.persistence.get('income_transactions')[0]['total'] == 1100


def test_record_income_tolerates_unknown_parent(store, now):
    txn = record_income(store, 'ghost', ['1'], [TUITION], now=now)
    assert store.get('income_transactions', txn.id) == txn


def test_resolve_income_items(store):
    items = resolve_income_items(store, ['2', '1'])
    assert [item.name for item in items] == ['Registration Fee', 'Tuition Fee']
    with pytest.raises(ValidationError) as exc:
        resolve_income_items(store, ['1', 'missing'])
    assert exc.value.fields == ['itemIds']


def test_expense_total_and_generated_item_ids(now):
    txn = build_expense_transaction(
        [{'name': 'Paper', 'amount': 120.5, 'costCenterId': '3'},
         ExpenseItem(id='e2', name='Cleaning', amount=80, cost_center_id='2')],
        description='Monthly supplies', now=now,
    )
    assert txn.total == 200.5
    assert calculate_expense_total(txn.items) == txn.total
    assert txn.items[0].id
    assert txn.items[0].cost_center_id == '3'
    assert txn.items[1].id == 'e2'
    assert txn.description == 'Monthly supplies'


def test_zero_amount_expense_is_allowed(now):
    assert build_expense_transaction([{'name': 'Donated chairs', 'amount': 0}], now=now).total == 0


@pytest.mark.parametrize('items', [
    [],
    [{'name': 'Refund', 'amount': -1}],
    [{'name': 'Text', 'amount': '12'}],
    [{'amount': 5}],
    [{'name': 'Paper', 'amount': float('nan')}],
    [{'name': 'Paper', 'amount': float('inf')}],
])
def test_invalid_expenses_are_rejected(items):
    with pytest.raises(ValidationError) as exc:
        build_expense_transaction(items)
    assert exc.value.fields == ['items']


def test_record_expense_appends(store, now):
    txn = record_expense(store, [{'name': 'Paper', 'amount': 40}], logged_user='admin', now=now)
    assert store.all('expense_transactions') == [txn]
    assert txn.logged_user == 'admin'
