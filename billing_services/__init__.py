"""
billing_services -- Orchestration over the invoicing engines.

Services compose the pure engines in ``billing_engines`` with injected
collaborators (clock, configuration).  They perform no I/O of their own;
``init_invoicing`` is the one process-level entrypoint that reads
configuration and sets up logging.
"""

from billing_services.bootstrap import init_invoicing
from billing_services.invoice_assembler import InvoiceAssembler

__all__ = ["InvoiceAssembler", "init_invoicing"]
