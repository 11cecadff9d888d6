"""
Tool servers exposed to the LLM host over stdio.

- translator: natural-language requests -> Leedz database API calls
- mailer: gmail_send tool backed by a browser-deposited OAuth token
"""

from .mailer import MailerServer, create_mailer
from .translator import TranslatorServer, create_translator

__all__ = [
    "MailerServer",
    "TranslatorServer",
    "create_mailer",
    "create_translator",
]
