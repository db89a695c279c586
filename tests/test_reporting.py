import os, sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import dataclasses
import random
from datetime import datetime, timedelta

import pytest

from entities import PAID, PER_STUDENT, CostCenter
from errors import ValidationError
from ledger import build_expense_transaction, build_income_transaction
from reporting import (
    SORT_FIELDS, NameIndex, expenses_by_cost_center, filter_by_date_range,
    filter_by_status, filter_records, financial_report, format_amount_text,
    growth_rate, income_history, kpi_dashboard, month_bounds, payment_rate,
    search_transactions, section_teacher_name, sort_transactions, summarize_income,
)
from sample_data import build_sample_data

NOW = datetime(2024, 6, 15, 12, 0, 0)
SAMPLE = build_sample_data(NOW)
NAMES = NameIndex(SAMPLE['parents'], SAMPLE['students'])
ITEMS = SAMPLE['income_items']


def income(parent_id='1', student_ids=('1',), items=None, days_ago=0, status=None, total=None):
    txn = build_income_transaction(
        parent_id, list(student_ids), items or [ITEMS[0]],
        date=NOW - timedelta(days=days_ago), now=NOW,
    )
    changes = {}
    if status:
        changes['status'] = status
    if total is not None:
        changes['total'] = total
    return dataclasses.replace(txn, **changes) if changes else txn


def random_ledger(seed, size=40):
    rng = random.Random(seed)
    parent_ids = [p.id for p in SAMPLE['parents']] + ['ghost']
    student_ids = [s.id for s in SAMPLE['students']]
    ledger = []
    for _ in range(size):
        txn = build_income_transaction(
            rng.choice(parent_ids),
            rng.sample(student_ids, rng.randint(1, 3)),
            rng.sample(ITEMS, rng.randint(1, 3)),
            date=NOW - timedelta(days=rng.randint(0, 400), hours=rng.randint(0, 23)),
            now=NOW,
        )
        if rng.random() < 0.5:
            txn = dataclasses.replace(txn, status=PAID)
        ledger.append(txn)
    return ledger


@pytest.mark.parametrize('seed', range(5))
def test_totals_follow_pricing_rule(seed):
    for txn in random_ledger(seed):
        expected = sum(
            item.price * len(txn.student_ids) if item.type == PER_STUDENT else item.price
            for item in txn.items
        )
        assert txn.total == expected


@pytest.mark.parametrize('seed', range(5))
def test_status_filters_partition_the_ledger(seed):
    ledger = random_ledger(seed)
    paid = filter_by_status(ledger, 'paid')
    pending = filter_by_status(ledger, 'pending')
    assert len(paid) + len(pending) == len(filter_by_status(ledger, 'all')) == len(ledger)
    assert not {t.id for t in paid} & {t.id for t in pending}


@pytest.mark.parametrize('seed', range(3))
@pytest.mark.parametrize('field', SORT_FIELDS)
def test_descending_is_reversed_ascending(seed, field):
    ledger = random_ledger(seed)
    ascending = sort_transactions(ledger, field, 'asc', NAMES)
    descending = sort_transactions(ledger, field, 'desc', NAMES)
    assert descending == list(reversed(ascending))


def test_ascending_sort_is_stable_on_insertion_order():
    first, second, third = income(total=100), income(total=50), income(total=100)
    ordered = sort_transactions([first, second, third], 'total', 'asc', NAMES)
    assert ordered == [second, first, third]


def test_sort_by_parent_name_puts_unknown_parent_in_place():
    john, mike, ghost = income('1'), income('3'), income('ghost')
    ordered = sort_transactions([john, mike, ghost], 'parent', 'asc', NAMES)
    assert ordered == [john, mike, ghost]


def test_invalid_dates_sort_first():
    good = income()
    bad = dataclasses.replace(income(), date='not a date')
    assert sort_transactions([good, bad], 'date', 'asc', NAMES) == [bad, good]


@pytest.mark.parametrize('term', ['smith', 'EMMA', 'tuition', '500', 'unknown parent', ''])
def test_search_is_idempotent(term):
    ledger = random_ledger(7)
    once = search_transactions(ledger, term, NAMES)
    assert search_transactions(once, term, NAMES) == once


def test_search_fields():
    emma = income('1', ['1'])
    noah = income('3', ['4'], items=[ITEMS[3]])
    ledger = [emma, noah]
    assert search_transactions(ledger, 'john smith', NAMES) == [emma]
    assert search_transactions(ledger, 'NOAH', NAMES) == [noah]
    assert search_transactions(ledger, 'transport', NAMES) == [noah]
    assert search_transactions(ledger, '200', NAMES) == [noah]
    assert search_transactions(ledger, 'nothing like this', NAMES) == []


def test_amount_text_drops_integral_fraction():
    assert format_amount_text(1100.0) == '1100'
    assert format_amount_text(12.5) == '12.5'
    assert format_amount_text(7) == '7'


def test_name_index_placeholders():
    assert NAMES.parent_name('1') == 'John Smith'
    assert NAMES.parent_name('ghost') == 'Unknown Parent'
    assert NAMES.student_names(['3', 'ghost']) == ['Olivia Johnson', 'Unknown Student']


def test_week_range_excludes_older_transactions():
    today, three_days, forty_days = income(days_ago=0), income(days_ago=3), income(days_ago=40)
    ledger = [today, three_days, forty_days]
    assert filter_by_date_range(ledger, 'week', NOW) == [today, three_days]
    assert filter_by_date_range(ledger, 'month', NOW) == [today, three_days]
    assert filter_by_date_range(ledger, 'year', NOW) == ledger


def test_today_range_is_a_calendar_day_match():
    early = dataclasses.replace(income(), date=datetime(2024, 6, 15, 0, 5))
    yesterday = dataclasses.replace(income(), date=datetime(2024, 6, 14, 23, 55))
    assert filter_by_date_range([early, yesterday], 'today', NOW) == [early]


def test_invalid_dates_only_survive_the_all_range():
    bad = dataclasses.replace(income(), date='garbage')
    assert filter_by_date_range([bad], 'all', NOW) == [bad]
    assert filter_by_date_range([bad], 'week', NOW) == []


def test_unknown_filter_values_are_rejected():
    with pytest.raises(ValidationError) as exc:
        filter_by_date_range([], 'decade', NOW)
    assert exc.value.fields == ['range']
    with pytest.raises(ValidationError):
        filter_by_status([], 'refunded')
    with pytest.raises(ValidationError):
        sort_transactions([], 'amount', 'asc')


def test_summary_of_paid_and_pending():
    ledger = [income(total=100, status=PAID), income(total=50)]
    assert summarize_income(ledger) == {
        'totalTransactions': 2,
        'totalAmount': 150,
        'paidAmount': 100,
        'pendingAmount': 50,
    }


def test_income_history_combines_filters():
    paid = income('1', ['1'], days_ago=1, status=PAID)
    old = income('1', ['2'], days_ago=90, status=PAID)
    pending = income('2', ['3'], days_ago=2)
    rows, summary = income_history(
        [paid, old, pending], NAMES, search='smith', status='paid', date_range='month', now=NOW)
    assert rows == [paid]
    assert summary['totalTransactions'] == 1

    rows, _ = income_history([paid, old, pending], NAMES, now=NOW)
    assert rows == [paid, pending, old]


def test_month_bounds_cross_year():
    last, this, following = month_bounds(datetime(2024, 1, 20, 8))
    assert last == datetime(2023, 12, 1)
    assert this == datetime(2024, 1, 1)
    assert following == datetime(2024, 2, 1)


def test_rates():
    assert growth_rate(150, 100) == 50
    assert growth_rate(150, 0) == 0
    students = SAMPLE['students']
    assert payment_rate([income(student_ids=['1', '2']), income(student_ids=['2'])], students) == 50
    assert payment_rate([income()], []) == 0


def test_kpi_dashboard():
    this_month = dataclasses.replace(
        income('1', ['1', '2'], items=[ITEMS[0], ITEMS[1]]), date=datetime(2024, 6, 10))
    last_month = dataclasses.replace(income('2', ['3']), date=datetime(2024, 5, 20), total=550)
    expense = build_expense_transaction(
        [{'name': 'Paper', 'amount': 200}], date=datetime(2024, 6, 2), now=NOW)

    kpi = kpi_dashboard([this_month, last_month], [expense], SAMPLE['students'], now=NOW)
    assert kpi['monthlyIncome'] == 1100
    assert kpi['lastMonthIncome'] == 550
    assert kpi['monthlyExpenses'] == 200
    assert kpi['totalIncome'] == 1650
    assert kpi['netIncome'] == 1450
    assert kpi['incomeGrowth'] == 100
    assert kpi['avgTransactionValue'] == 825
    assert kpi['activeParents'] == 2
    assert kpi['paidStudents'] == 3
    assert kpi['paymentRate'] == 75
    assert kpi['targetProgress'] == pytest.approx(2.2)
    assert kpi['recentTransactions'] == [last_month, this_month]


def test_kpi_recent_transactions_are_the_last_five_newest_first():
    ledger = [income(total=i) for i in range(1, 8)]
    recent = kpi_dashboard(ledger, [], [], now=NOW)['recentTransactions']
    assert [t.total for t in recent] == [7, 6, 5, 4, 3]


def test_kpi_on_empty_ledgers():
    kpi = kpi_dashboard([], [], [], now=NOW)
    assert kpi['avgTransactionValue'] == 0
    assert kpi['paymentRate'] == 0
    assert kpi['incomeGrowth'] == 0
    assert kpi['recentTransactions'] == []


def test_financial_report_type_filter_keeps_totals():
    recent = income(days_ago=1, total=300)
    old = income(days_ago=60, total=700)
    expense = build_expense_transaction([{'name': 'Paper', 'amount': 100}], now=NOW)

    report = financial_report([recent, old], [expense], 'month', 'income', NOW)
    assert report['income'] == [recent]
    assert report['expenses'] == []
    assert report['totalIncome'] == 300
    assert report['totalExpenses'] == 100
    assert report['netIncome'] == 200

    with pytest.raises(ValidationError):
        financial_report([], [], 'all', 'transfers', NOW)


def test_expenses_grouped_by_cost_center():
    centers = SAMPLE['cost_centers']
    expenses = [
        build_expense_transaction([
            {'name': 'Paper', 'amount': 100, 'costCenterId': '3'},
            {'name': 'Laptops', 'amount': 900, 'costCenterId': '4'},
        ], now=NOW),
        build_expense_transaction([
            {'name': 'Books', 'amount': 50, 'costCenterId': '3'},
            {'name': 'Mystery', 'amount': 5, 'costCenterId': 'gone'},
        ], now=NOW),
    ]
    groups = {g['name']: g for g in expenses_by_cost_center(expenses, centers)}
    assert groups['Education']['total'] == 150
    assert groups['Education']['itemCount'] == 2
    assert groups['Technology']['total'] == 900
    assert groups['Administration']['total'] == 0
    assert groups['Unassigned']['total'] == 5
    assert sum(g['total'] for g in groups.values()) == sum(e.total for e in expenses)


def test_expenses_without_cost_centers_have_no_unassigned_group():
    groups = expenses_by_cost_center([], [CostCenter(id='1', name='Admin', code='ADM')])
    assert [g['name'] for g in groups] == ['Admin']


def test_master_data_search_and_section_teacher():
    assert [p.id for p in filter_records(SAMPLE['parents'], 'EXAMPLE.COM')] == ['1', '2', '3']
    assert [i.id for i in filter_records(SAMPLE['income_items'], 'fee')] == ['1', '2', '3', '4']
    section = SAMPLE['sections'][1]
    assert section_teacher_name(section, SAMPLE['teachers']) == 'Bob Smith'
    orphan = dataclasses.replace(section, teacher_id=None)
    assert section_teacher_name(orphan, SAMPLE['teachers']) == 'Unassigned'


def test_reports_do_not_mutate_ledgers():
    ledger = random_ledger(3)
    snapshot = list(ledger)
    sort_transactions(ledger, 'total', 'desc', NAMES)
    income_history(ledger, NAMES, search='a', date_range='year', now=NOW)
    kpi_dashboard(ledger, [], SAMPLE['students'], now=NOW)
    assert ledger == snapshot
