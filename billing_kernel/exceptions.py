"""
Typed Exception Hierarchy for the Billing Kernel.

Every error the invoicing core can raise has its own class, a static
machine-readable ``code`` and structured attributes, so callers catch by
type and read data instead of parsing messages.

    BillingKernelError (base)
    |
    +-- InvoiceError
    |   +-- TargetDateTooFarInFutureError
    |   +-- InvalidDateSequenceError
    |
    +-- BillingModeError
    |   +-- UnsupportedBillingModeError
    |
    +-- CatalogError
    |   +-- InvalidBillingAlignmentError
    |   +-- CatalogEntryNotFoundError
    |
    +-- TimelineError
    |   +-- InvalidTimelineError
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- CurrencyMismatchError
    |
    +-- ConfigError
        +-- InvalidInvoiceConfigError

Category        | Code                           | When Raised
----------------|--------------------------------|--------------------------------------
Invoice         | TARGET_DATE_TOO_FAR_IN_FUTURE  | Target date beyond configured horizon
                | INVALID_DATE_SEQUENCE          | Segment end precedes segment start
----------------|--------------------------------|--------------------------------------
Billing mode    | UNSUPPORTED_BILLING_MODE       | No strategy registered for the mode
----------------|--------------------------------|--------------------------------------
Catalog         | INVALID_BILLING_ALIGNMENT      | Alignment policy yields no usable BCD
                | CATALOG_ENTRY_NOT_FOUND        | Plan, phase or subscription lookup miss
----------------|--------------------------------|--------------------------------------
Timeline        | INVALID_TIMELINE               | Timeline queried before any event
----------------|--------------------------------|--------------------------------------
Currency        | INVALID_CURRENCY               | Not a valid ISO 4217 code
                | CURRENCY_MISMATCH              | Mixed currencies in operation
----------------|--------------------------------|--------------------------------------
Config          | INVALID_INVOICE_CONFIG         | Invoice configuration rejected

None of these are retried inside the kernel. Every one of them aborts the
whole generation call; there is no partial invoice.
"""


class BillingKernelError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BILLING_KERNEL_ERROR"


# Invoice generation exceptions


class InvoiceError(BillingKernelError):
    """Base exception for invoice generation errors."""

    code: str = "INVOICE_ERROR"


class TargetDateTooFarInFutureError(InvoiceError):
    """Requested target date lies beyond the configured invoicing horizon."""

    code: str = "TARGET_DATE_TOO_FAR_IN_FUTURE"

    def __init__(self, target_date: str, max_months_in_future: int):
        self.target_date = target_date
        self.max_months_in_future = max_months_in_future
        super().__init__(
            f"Target date {target_date} is more than "
            f"{max_months_in_future} months in the future"
        )


class InvalidDateSequenceError(InvoiceError):
    """A billing segment ends before it starts."""

    code: str = "INVALID_DATE_SEQUENCE"

    def __init__(
        self,
        start_date: str,
        end_date: str,
        target_date: str | None = None,
    ):
        self.start_date = start_date
        self.end_date = end_date
        self.target_date = target_date
        msg = f"Invalid date sequence: end {end_date} precedes start {start_date}"
        if target_date is not None:
            msg += f" (target_date: {target_date})"
        super().__init__(msg)


# Billing mode exceptions


class BillingModeError(BillingKernelError):
    """Base exception for billing mode dispatch errors."""

    code: str = "BILLING_MODE_ERROR"


class UnsupportedBillingModeError(BillingModeError):
    """No strategy is registered for a billing mode.

    Treated as a configuration/programming error, never retried.
    """

    code: str = "UNSUPPORTED_BILLING_MODE"

    def __init__(self, billing_mode: str, registered_modes: list[str] | None = None):
        self.billing_mode = billing_mode
        self.registered_modes = registered_modes or []
        super().__init__(
            f"Unsupported billing mode: {billing_mode} "
            f"(registered: {self.registered_modes})"
        )


# Catalog exceptions


class CatalogError(BillingKernelError):
    """Base exception for catalog and alignment errors."""

    code: str = "CATALOG_ERROR"


class InvalidBillingAlignmentError(CatalogError):
    """Billing alignment resolution did not produce a usable billing cycle day."""

    code: str = "INVALID_BILLING_ALIGNMENT"

    def __init__(self, alignment: str, reason: str = ""):
        self.alignment = alignment
        self.reason = reason
        msg = f"Invalid billing alignment: {alignment}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class CatalogEntryNotFoundError(CatalogError):
    """A plan, phase or subscription could not be found."""

    code: str = "CATALOG_ENTRY_NOT_FOUND"

    def __init__(self, entry_type: str, name: str):
        self.entry_type = entry_type
        self.name = name
        super().__init__(f"{entry_type} not found: {name}")


# Timeline exceptions


class TimelineError(BillingKernelError):
    """Base exception for billing event timeline errors."""

    code: str = "TIMELINE_ERROR"


class InvalidTimelineError(TimelineError):
    """Timeline is not in a state that allows the requested operation."""

    code: str = "INVALID_TIMELINE"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid billing event timeline: {reason}")


# Currency exceptions


class CurrencyError(BillingKernelError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Invalid ISO 4217 currency code provided."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


class CurrencyMismatchError(CurrencyError):
    """Attempted operation on mismatched currencies."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, currency1: str, currency2: str):
        self.currency1 = currency1
        self.currency2 = currency2
        super().__init__(f"Currency mismatch: {currency1} vs {currency2}")


# Configuration exceptions


class ConfigError(BillingKernelError):
    """Base exception for configuration errors."""

    code: str = "CONFIG_ERROR"


class InvalidInvoiceConfigError(ConfigError):
    """Invoice configuration failed validation."""

    code: str = "INVALID_INVOICE_CONFIG"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid invoice config {field}={value!r}: {reason}")
