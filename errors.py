"""
Error kinds raised by the store, ledger and reporting layers
"""


class LedgerError(Exception):
    """Base class for all SchoolFee Ledger errors"""


class ValidationError(LedgerError):
    """Missing or invalid input in a create or query operation"""

    def __init__(self, message, fields=()):
        super().__init__(message)
        self.message = message
        self.fields = list(fields)

    def to_dict(self):
        return {'error': self.message, 'fields': self.fields}


class NotFoundError(LedgerError):
    """Update, delete or status change on an id that does not exist"""

    def __init__(self, collection, record_id):
        super().__init__(f'No record with id {record_id!r} in {collection}')
        self.collection = collection
        self.record_id = record_id


class PersistenceError(LedgerError):
    """Storage read or write failure"""


class DateParseError(LedgerError, ValueError):
    """Malformed date met while filtering or aggregating"""

    def __init__(self, value):
        super().__init__(f'Unparseable date: {value!r}')
        self.value = value
