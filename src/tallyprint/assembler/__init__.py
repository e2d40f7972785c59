"""Document assembler: domain entities in, (Template, Record) out."""

from tallyprint.assembler.assembler import AssembledDocument, DocumentAssembler
from tallyprint.assembler.compliance import (
    ComplianceFields,
    ComplianceImageProvider,
    StaticComplianceImage,
    compliance_fields,
)
from tallyprint.assembler.selection import (
    BuiltinTemplate,
    Template,
    TemplateDefaults,
    TemplateSource,
    builtin_template_name,
    list_builtin_templates,
    load_builtin,
    select_template,
)

__all__ = [
    "DocumentAssembler",
    "AssembledDocument",
    "ComplianceFields",
    "ComplianceImageProvider",
    "StaticComplianceImage",
    "compliance_fields",
    "Template",
    "TemplateDefaults",
    "TemplateSource",
    "BuiltinTemplate",
    "builtin_template_name",
    "list_builtin_templates",
    "load_builtin",
    "select_template",
]
