"""
Billing Kernel

Pure domain layer for subscription invoicing:
- Billing events and the per-account event timeline
- Catalog types used for billing-cycle-day alignment
- Immutable invoice and invoice item value objects
- Typed exceptions and structured logging shared by engines and services
"""

__version__ = "0.1.0"
