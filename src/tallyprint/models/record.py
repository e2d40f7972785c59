"""Record model fed into the template engine.

A Record maps field names to scalars (str, int, float, Decimal, bool) or to a
tuple of child Records. Child record fields are only visible inside the
iteration block for their list, so the assembler must keep top-level scalar
names distinct from child field names (see Record.check_scopes).
"""

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Union

from tallyprint.errors import RecordError
from tallyprint.models.kinds import DocumentKind

FIELD_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

Scalar = Union[str, int, float, Decimal, bool]
FieldValue = Union[Scalar, tuple["Record", ...]]

_SCALAR_TYPES = (str, int, float, Decimal, bool)


class Record(Mapping[str, FieldValue]):
    """Immutable mapping of field name to scalar or list of child records.

    Usage:
        record = Record.from_dict({"name": "Jane", "items": [{"qty": 2}]})
        record["items"][0]["qty"]  # 2
    """

    __slots__ = ("_fields",)

    def __init__(self, fields: Mapping[str, Any] | None = None) -> None:
        converted: dict[str, FieldValue] = {}
        for key, value in (fields or {}).items():
            if not isinstance(key, str) or not FIELD_NAME_RE.match(key):
                raise RecordError(f"Invalid field name: {key!r}")
            converted[key] = _convert_value(key, value)
        self._fields = converted

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Record":
        """Build a record from plain dicts and lists."""
        if isinstance(data, Record):
            return data
        return cls(data)

    def __getitem__(self, key: str) -> FieldValue:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"Record({self._fields!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Record):
            return self._fields == other._fields
        if isinstance(other, Mapping):
            return self._fields == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._fields)))

    def scalars(self) -> dict[str, Scalar]:
        """Return the scalar-valued fields."""
        return {k: v for k, v in self._fields.items() if not isinstance(v, tuple)}

    def lists(self) -> dict[str, tuple["Record", ...]]:
        """Return the list-valued fields."""
        return {k: v for k, v in self._fields.items() if isinstance(v, tuple)}

    def child_field_names(self) -> set[str]:
        """Return every field name used by any child record, at any depth."""
        names: set[str] = set()
        for children in self.lists().values():
            for child in children:
                names.update(child.keys())
                names.update(child.child_field_names())
        return names

    def scope_collisions(self) -> set[str]:
        """Return top-level scalar names that are reused inside a child scope."""
        return set(self.scalars()) & self.child_field_names()

    def check_scopes(self) -> None:
        """Raise RecordError if a top-level scalar name collides with a child field.

        Raises:
            RecordError: Listing the colliding names
        """
        collisions = self.scope_collisions()
        if collisions:
            raise RecordError(
                "Top-level fields collide with child record fields: "
                + ", ".join(sorted(collisions))
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert back to plain dicts and lists (for debugging and JSON output)."""
        result: dict[str, Any] = {}
        for key, value in self._fields.items():
            if isinstance(value, tuple):
                result[key] = [child.to_dict() for child in value]
            elif isinstance(value, Decimal):
                result[key] = str(value)
            else:
                result[key] = value
        return result


def _convert_value(key: str, value: Any) -> FieldValue:
    if value is None:
        raise RecordError(f"Field {key!r} is None; absent values must be normalized")
    if isinstance(value, _SCALAR_TYPES):
        return value
    if isinstance(value, (list, tuple)):
        children: list[Record] = []
        for index, child in enumerate(value):
            if isinstance(child, Record):
                children.append(child)
            elif isinstance(child, Mapping):
                children.append(Record(child))
            else:
                raise RecordError(
                    f"Element {index} of list field {key!r} is not a record: {child!r}"
                )
        return tuple(children)
    if isinstance(value, Mapping):
        raise RecordError(f"Field {key!r} is a nested mapping; only lists of records nest")
    raise RecordError(f"Field {key!r} has unsupported type {type(value).__name__}")


# =============================================================================
# Field sets per document kind
# =============================================================================


@dataclass(frozen=True)
class FieldSet:
    """Fields the assembler guarantees for one document kind.

    Attributes:
        kind: Document kind
        top: Top-level scalar and list field names
        lists: Child field names per list field
    """

    kind: DocumentKind
    top: frozenset[str]
    lists: Mapping[str, frozenset[str]] = field(default_factory=dict)

    def unknown_references(
        self,
        top: set[str],
        lists: Mapping[str, set[str]],
    ) -> list[str]:
        """Return references that are not part of this field set.

        Args:
            top: Top-level names referenced by a template
            lists: Child names referenced inside each iteration block

        Returns:
            Sorted list of unknown references (child names as "list.field")
        """
        unknown = {name for name in top if name not in self.top}
        for list_name, names in lists.items():
            allowed = self.lists.get(list_name)
            if allowed is None:
                unknown.add(list_name)
                continue
            unknown.update(f"{list_name}.{name}" for name in names if name not in allowed)
        return sorted(unknown)


ITEM_FIELDS = frozenset({"name", "description", "quantity", "unitPrice", "lineTotal"})
PAYMENT_FIELDS = frozenset({"paymentType", "amount"})

COMMON_FIELDS = frozenset(
    {
        "lang",
        "direction",
        "documentTitle",
        "currency",
        "companyName",
        "companyNameAr",
        "companyAddress",
        "companyPhone",
        "companyEmail",
        "companyVat",
        "companyLogo",
        "companyStamp",
        "subtotal",
        "taxRate",
        "taxAmount",
        "total",
        "totalQty",
        "notes",
        "includeQrImage",
        "qrImagePayload",
        "headingFont",
        "bodyFont",
        "lineSpacing",
        "customHeader",
        "customFooter",
        "items",
    }
)

PARTY_FIELDS = frozenset(
    {
        "partyName",
        "partyNameAr",
        "partyAddress",
        "partyEmail",
        "partyPhone",
        "partyVat",
        "partyLogo",
    }
)

RECEIPT_FIELDS = frozenset(
    {
        "orderNumber",
        "queueNumber",
        "orderType",
        "orderDate",
        "tableName",
        "customerName",
        "createdByName",
        "paymentMethod",
        "payments",
    }
)

INVOICE_FIELDS = frozenset(
    {"invoiceNumber", "invoiceDate", "dueDate", "status", "amountPaid", "amountDue", "payments"}
)

QUOTE_FIELDS = frozenset({"quoteNumber", "quoteDate", "validUntil", "status"})

FIELD_SETS: dict[DocumentKind, FieldSet] = {
    DocumentKind.RECEIPT: FieldSet(
        kind=DocumentKind.RECEIPT,
        top=COMMON_FIELDS | RECEIPT_FIELDS,
        lists={"items": ITEM_FIELDS, "payments": PAYMENT_FIELDS},
    ),
    DocumentKind.SALES_INVOICE: FieldSet(
        kind=DocumentKind.SALES_INVOICE,
        top=COMMON_FIELDS | INVOICE_FIELDS | PARTY_FIELDS,
        lists={"items": ITEM_FIELDS, "payments": PAYMENT_FIELDS},
    ),
    DocumentKind.PURCHASE_INVOICE: FieldSet(
        kind=DocumentKind.PURCHASE_INVOICE,
        top=COMMON_FIELDS | INVOICE_FIELDS | PARTY_FIELDS,
        lists={"items": ITEM_FIELDS, "payments": PAYMENT_FIELDS},
    ),
    DocumentKind.QUOTE: FieldSet(
        kind=DocumentKind.QUOTE,
        top=COMMON_FIELDS | QUOTE_FIELDS | PARTY_FIELDS,
        lists={"items": ITEM_FIELDS},
    ),
}


def field_set_for(kind: DocumentKind) -> FieldSet:
    """Return the field set the assembler produces for a document kind."""
    return FIELD_SETS[kind]
