from .catalog import Item, ItemBarcode
from .transactions import Transaction, TransactionLine, Refund, Payment

__all__ = [
    'Item', 'ItemBarcode',
    'Transaction', 'TransactionLine', 'Refund', 'Payment',
]
