from .accounts import Account
from .catalog import Item
from .customers import Customer
from .transactions import Transaction, TransactionLine
from .sync import SyncMetadata, VoucherSequence

__all__ = [
    'Account',
    'Item',
    'Customer',
    'Transaction', 'TransactionLine',
    'SyncMetadata', 'VoucherSequence',
]
