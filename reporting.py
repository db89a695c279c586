"""
Reporting and aggregation over the income and expense ledgers.

Everything here is a pure function of its arguments: the ledgers are only
read, and the current time is passed in as ``now`` (defaulting to the local
clock) so results are reproducible. Malformed dates never abort a report;
the affected transaction is left out of date-bounded views and a warning is
logged.
"""
import logging
from datetime import datetime, timedelta

from entities import PAID, PENDING, UNASSIGNED, UNKNOWN_PARENT, UNKNOWN_STUDENT, parse_datetime
from errors import DateParseError, ValidationError

logger = logging.getLogger(__name__)

# Symbolic range -> look-back window; 'today' is a calendar-day match
DATE_RANGES = {
    'all': None,
    'today': None,
    'week': timedelta(days=7),
    'month': timedelta(days=30),
    'year': timedelta(days=365),
}
STATUS_FILTERS = ('all', PAID, PENDING)
SORT_FIELDS = ('date', 'parent', 'total', 'status', 'createdAt')
SORT_ORDERS = ('asc', 'desc')
TYPE_FILTERS = ('all', 'income', 'expenses')

MONTHLY_TARGET = 50000.0
RECENT_TRANSACTIONS = 5


def _check_choice(value, choices, field):
    if value not in choices:
        raise ValidationError(
            f'Invalid {field} {value!r}; expected one of {", ".join(choices)}', [field])


def _transaction_date(transaction, attr='date'):
    """The transaction's date, or None when it cannot be parsed"""
    value = getattr(transaction, attr)
    try:
        return parse_datetime(value)
    except DateParseError:
        logger.warning('Transaction %s has an invalid %s: %r', transaction.id, attr, value)
        return None


def filter_by_date_range(transactions, date_range='all', now=None):
    _check_choice(date_range, tuple(DATE_RANGES), 'range')
    if date_range == 'all':
        return list(transactions)

    now = now or datetime.now()
    window = DATE_RANGES[date_range]
    selected = []
    for transaction in transactions:
        when = _transaction_date(transaction)
        if when is None:
            continue
        if date_range == 'today':
            if when.date() == now.date():
                selected.append(transaction)
        elif now - window <= when <= now:
            selected.append(transaction)
    return selected


def filter_by_status(transactions, status='all'):
    _check_choice(status, STATUS_FILTERS, 'status')
    if status == 'all':
        return list(transactions)
    return [t for t in transactions if t.status == status]


class NameIndex:
    """Display names for parent and student ids, with placeholders"""

    def __init__(self, parents=(), students=()):
        self.parents = {}
        for parent in parents:
            self.parents.setdefault(parent.id, parent.full_name)
        self.students = {}
        for student in students:
            self.students.setdefault(student.id, student.full_name)

    def parent_name(self, parent_id):
        return self.parents.get(parent_id, UNKNOWN_PARENT)

    def student_names(self, student_ids):
        return [self.students.get(sid, UNKNOWN_STUDENT) for sid in student_ids]


def format_amount_text(value):
    """String form of an amount as searched: 1100.0 reads '1100', 12.5 reads '12.5'"""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _search_text(transaction, names):
    parts = [names.parent_name(transaction.parent_id)]
    parts.extend(names.student_names(transaction.student_ids))
    parts.extend(item.name for item in transaction.items)
    return ' '.join(parts).lower()


def search_transactions(transactions, term, names):
    """Case-insensitive substring search; an empty term matches everything"""
    if not term:
        return list(transactions)
    needle = term.lower()
    return [
        t for t in transactions
        if needle in _search_text(t, names) or term in format_amount_text(t.total)
    ]


def _sort_key(field, names):
    def date_key(attr):
        def key(transaction):
            when = _transaction_date(transaction, attr)
            # Invalid dates sort before every valid one
            return (0, datetime.min) if when is None else (1, when)
        return key

    if field == 'date':
        return date_key('date')
    if field == 'createdAt':
        return date_key('created_at')
    if field == 'parent':
        return lambda t: names.parent_name(t.parent_id).lower()
    if field == 'total':
        return lambda t: t.total
    return lambda t: t.status


def sort_transactions(transactions, field='date', order='desc', names=None):
    """Sort by ``field``.

    Ascending is stable on insertion order; descending is that exact list
    reversed.
    """
    _check_choice(field, SORT_FIELDS, 'sort')
    _check_choice(order, SORT_ORDERS, 'order')
    ordered = sorted(transactions, key=_sort_key(field, names or NameIndex()))
    if order == 'desc':
        ordered.reverse()
    return ordered


def summarize_income(transactions):
    transactions = list(transactions)
    return {
        'totalTransactions': len(transactions),
        'totalAmount': sum(t.total for t in transactions),
        'paidAmount': sum(t.total for t in transactions if t.status == PAID),
        'pendingAmount': sum(t.total for t in transactions if t.status == PENDING),
    }


def income_history(transactions, names, search='', status='all', date_range='all',
                   sort='date', order='desc', now=None):
    """Filtered and sorted income rows plus the summary of that filtered set"""
    rows = search_transactions(transactions, search, names)
    rows = filter_by_status(rows, status)
    rows = filter_by_date_range(rows, date_range, now)
    rows = sort_transactions(rows, sort, order, names)
    return rows, summarize_income(rows)


def _month_start(moment):
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def month_bounds(now):
    """(start of last month, start of this month, start of next month)"""
    this_month = _month_start(now)
    last_month = _month_start(this_month - timedelta(days=1))
    next_month = _month_start(this_month + timedelta(days=32))
    return last_month, this_month, next_month


def _total_between(transactions, start, end):
    total = 0
    for transaction in transactions:
        when = _transaction_date(transaction)
        if when is not None and start <= when < end:
            total += transaction.total
    return total


def growth_rate(current, previous):
    if not previous:
        return 0
    return (current - previous) / previous * 100


def payment_rate(transactions, students):
    """Percent of students appearing in at least one income transaction"""
    if not students:
        return 0
    paid = {sid for t in transactions for sid in t.student_ids}
    return len(paid) / len(students) * 100


def kpi_dashboard(income, expenses, students, now=None, monthly_target=MONTHLY_TARGET):
    now = now or datetime.now()
    income = list(income)
    expenses = list(expenses)
    last_month, this_month, next_month = month_bounds(now)

    monthly_income = _total_between(income, this_month, next_month)
    monthly_expenses = _total_between(expenses, this_month, next_month)
    last_month_income = _total_between(income, last_month, this_month)
    total_income = sum(t.total for t in income)
    total_expenses = sum(t.total for t in expenses)

    return {
        'monthlyIncome': monthly_income,
        'monthlyExpenses': monthly_expenses,
        'lastMonthIncome': last_month_income,
        'totalIncome': total_income,
        'totalExpenses': total_expenses,
        'netIncome': total_income - total_expenses,
        'incomeGrowth': growth_rate(monthly_income, last_month_income),
        'avgTransactionValue': total_income / len(income) if income else 0,
        'activeParents': len({t.parent_id for t in income}),
        'totalStudents': len(students),
        'paidStudents': len({sid for t in income for sid in t.student_ids}),
        'paymentRate': payment_rate(income, students),
        'monthlyTarget': monthly_target,
        'targetProgress': monthly_income / monthly_target * 100 if monthly_target else 0,
        'recentTransactions': income[-RECENT_TRANSACTIONS:][::-1],
    }


def financial_report(income, expenses, date_range='all', type_filter='all', now=None):
    """Date-filtered income and expense listings with totals.

    The type filter only hides a listing; totals always cover both ledgers.
    """
    _check_choice(type_filter, TYPE_FILTERS, 'type')
    income = filter_by_date_range(income, date_range, now)
    expenses = filter_by_date_range(expenses, date_range, now)
    total_income = sum(t.total for t in income)
    total_expenses = sum(t.total for t in expenses)
    return {
        'income': [] if type_filter == 'expenses' else income,
        'expenses': [] if type_filter == 'income' else expenses,
        'totalIncome': total_income,
        'totalExpenses': total_expenses,
        'netIncome': total_income - total_expenses,
    }


def expenses_by_cost_center(expenses, cost_centers):
    """Expense item amounts grouped per cost center.

    Every cost center is listed, including those with nothing booked; items
    pointing at no known cost center land in an 'Unassigned' group.
    """
    groups = {}
    for center in cost_centers:
        groups.setdefault(center.id, {
            'costCenterId': center.id,
            'name': center.name,
            'code': center.code,
            'total': 0,
            'itemCount': 0,
        })

    for transaction in expenses:
        for item in transaction.items:
            group = groups.get(item.cost_center_id)
            if group is None:
                group = groups.setdefault(None, {
                    'costCenterId': None,
                    'name': UNASSIGNED,
                    'code': None,
                    'total': 0,
                    'itemCount': 0,
                })
            group['total'] += item.amount
            group['itemCount'] += 1
    return list(groups.values())


def filter_records(records, term):
    """Master-data search over each record's searchable text fields"""
    if not term:
        return list(records)
    needle = term.lower()
    return [r for r in records if any(needle in value.lower() for value in r.search_fields())]


def section_teacher_name(section, teachers):
    for teacher in teachers:
        if teacher.id == section.teacher_id:
            return teacher.full_name
    return UNASSIGNED
