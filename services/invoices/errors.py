"""Exceptions raised while generating invoices."""


class InvoiceError(Exception):
    """Base class for invoice generation failures."""


class ValidationError(InvoiceError):
    """Request is missing required fields or carries an invalid value.

    Always caller-caused. Reported to the caller verbatim as a client error.
    """


class PersistenceError(InvoiceError):
    """The invoice store rejected the write or could not be reached."""
