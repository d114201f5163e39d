from .parties import Supplier, Customer, Account
from .inventory import Product, ProductLot
from .cutoff import CutoffCycle
from .orders import SaleOrder, SaleOrderItem, PurchaseOrder, PurchaseOrderItem
from .ledgers import (
    PurchaseLedger,
    PurchaseLedgerItem,
    SaleLedger,
    SaleLedgerItem,
    SupplierPayout,
    CustomerCollection,
)
from .documents import DocumentSequence

__all__ = [
    'Supplier', 'Customer', 'Account',
    'Product', 'ProductLot',
    'CutoffCycle',
    'SaleOrder', 'SaleOrderItem', 'PurchaseOrder', 'PurchaseOrderItem',
    'PurchaseLedger', 'PurchaseLedgerItem', 'SaleLedger', 'SaleLedgerItem',
    'SupplierPayout', 'CustomerCollection',
    'DocumentSequence',
]
