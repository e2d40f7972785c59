"""Delivery collaborators: print surfaces and mailers."""

from tallyprint.delivery.mailer import Attachment, Mailer, SMTPMailer
from tallyprint.delivery.print_surface import (
    BrowserPrintSurface,
    FilePrintSurface,
    PrintSurface,
    document_filename,
)

__all__ = [
    "Attachment",
    "Mailer",
    "SMTPMailer",
    "PrintSurface",
    "FilePrintSurface",
    "BrowserPrintSurface",
    "document_filename",
]
