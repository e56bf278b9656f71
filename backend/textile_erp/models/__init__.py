from .reference import Branch, Warehouse, ProductionCenter
from .customers import Customer
from .inventory import Product, InventoryPosition, StockTransaction
from .sales import SalesInvoice, InvoiceLine, CreditSale, CreditPayment
from .production import ProductionLog, ProductionOrder
from .documents import DocumentSequence

__all__ = [
    'Branch', 'Warehouse', 'ProductionCenter',
    'Customer',
    'Product', 'InventoryPosition', 'StockTransaction',
    'SalesInvoice', 'InvoiceLine', 'CreditSale', 'CreditPayment',
    'ProductionLog', 'ProductionOrder',
    'DocumentSequence',
]
