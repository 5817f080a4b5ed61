from ledgerbook.models.company_settings import CompanySettings
from ledgerbook.models.customer import Customer
from ledgerbook.models.invoice import Invoice, InvoiceItem
from ledgerbook.models.payment import Payment, PaymentApplication, PaymentDistribution
from ledgerbook.models.ledger import LedgerEntry
from ledgerbook.models.discount import Discount
from ledgerbook.models.product import Product

__all__ = [
    "CompanySettings",
    "Customer",
    "Invoice",
    "InvoiceItem",
    "Payment",
    "PaymentApplication",
    "PaymentDistribution",
    "LedgerEntry",
    "Discount",
    "Product",
]
