"""tallyprint utility modules.

- logging: Standardized logging with human/verbose/JSON modes
- preflight: Configuration, template and delivery checks
"""

from tallyprint.utils.logging import configure_from_cli, get_logger, setup_logging
from tallyprint.utils.preflight import PreflightChecker, PreflightResult, validate_template_text

__all__ = [
    "configure_from_cli",
    "get_logger",
    "setup_logging",
    "PreflightChecker",
    "PreflightResult",
    "validate_template_text",
]
