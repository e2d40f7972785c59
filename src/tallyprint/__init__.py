"""tallyprint - Document templating for point-of-sale and back-office paperwork.

tallyprint turns orders, invoices and quotes into printable or emailable documents
(receipts on thermal rolls, A4 invoices and quotes) in left-to-right and
right-to-left locales.

Core principles:
- Deterministic: the same record and template always render the same text
- Total: a template never crashes a render, malformed spans stay literal
- No code execution: templates only interpolate, branch and iterate
- Explicit selection: template choice is a function of kind, locale and paper
"""

__version__ = "0.1.0"
__author__ = "tallyprint Contributors"
