"""Custom exception classes for the Invoice Engine."""


class ConfigLoadError(Exception):
    """Raised when the business configuration file is missing or malformed."""
    pass


class InvalidInvoiceStructureError(Exception):
    """Raised when an invoice payload is missing a required section (invoice info or products)."""
    pass


class MissingInvoiceNumberError(Exception):
    """Raised when an invoice has no invoice number."""
    pass


class NoLineItemsError(Exception):
    """Raised when an invoice has zero line items."""
    pass


class ArithmeticMismatchError(Exception):
    """Raised when a computed line or invoice total breaks a tax invariant."""
    pass


class RenderError(Exception):
    """Raised when laying out a PDF, receipt or workbook fails."""
    pass


class SequenceAllocationError(Exception):
    """Raised when the remote sequence service cannot provide a next number."""
    pass


class CounterStorageError(Exception):
    """Raised when the local invoice counter cannot be read or written."""
    pass


class PrinterNotConnectedError(Exception):
    """Raised when the target printer was never connected before printing started."""
    pass


class PrinterDisconnectedError(Exception):
    """Raised when the printer drops its connection part-way through a receipt."""
    pass


class PrinterWriteError(Exception):
    """Raised when a write to a still-connected printer fails."""
    pass
