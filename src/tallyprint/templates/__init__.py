"""Packaged templates: document templates and the print/email shells.

Document templates live in documents/ and use the tallyprint engine syntax.
The shells are Jinja2 templates rendered by PresentationRenderer.
"""

from tallyprint.templates.renderer import PresentationRenderer, is_full_document

__all__ = ["PresentationRenderer", "is_full_document"]
