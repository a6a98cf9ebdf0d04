# dbforge/services/samples.py
"""Deterministic sample values used to seed one record per provisioned data source."""
from __future__ import annotations

from datetime import date
from typing import Any, Callable, Dict, Iterable, Optional

from dbforge.codec.properties import encode_value
from dbforge.models.properties import PropertyDescriptor, PropertyKind

SAMPLE_TITLES = {
    "Products": {"Name": "Wireless Bluetooth Headphones", "Title": "Wireless Bluetooth Headphones", "Product": "Wireless Bluetooth Headphones"},
    "Orders": {"Order_ID": "ORD-2025-001", "Title": "Order #ORD-2025-001", "Name": "Order #ORD-2025-001"},
    "Customers": {"Name": "John Smith", "Title": "John Smith", "Customer": "John Smith"},
}
SAMPLE_TEXT = {
    "Products": {"Description": "High-quality wireless headphones with noise cancellation", "Category": "Electronics", "Brand": "TechBrand"},
    "Orders": {"Status": "Processing", "Payment_Method": "Credit Card", "Notes": "Customer requested express shipping"},
    "Customers": {"Email": "john.smith@email.com", "Phone": "+1-555-0123", "Address": "123 Main St, City, State 12345"},
}
SAMPLE_NUMBERS = {
    "Products": {"Price": 199.99, "Stock": 50, "Weight": 0.5},
    "Orders": {"Total": 199.99, "Quantity": 1, "Tax": 15.99},
    "Customers": {"Age": 35, "Orders_Count": 5, "Credit_Score": 750},
}
SAMPLE_SELECTS = {
    "Products": {"Category": "Electronics", "Status": "Active", "Condition": "New"},
    "Orders": {"Status": "Processing", "Priority": "Normal", "Payment_Status": "Paid"},
    "Customers": {"Type": "Premium", "Status": "Active", "Tier": "Gold"},
}
SAMPLE_CHECKBOXES = {
    "Products": {"In_Stock": True, "Featured": False, "Available": True},
    "Orders": {"Shipped": False, "Paid": True, "Completed": False},
    "Customers": {"Verified": True, "Newsletter": True, "VIP": False},
}


def sample_title(source: str, prop: str) -> str:
    return SAMPLE_TITLES.get(source, {}).get(prop) or f"{source} Sample"


def sample_text(source: str, prop: str) -> str:
    return SAMPLE_TEXT.get(source, {}).get(prop) or "Sample text"


def sample_number(source: str, prop: str) -> float:
    return SAMPLE_NUMBERS.get(source, {}).get(prop) or 0


def sample_select(source: str, prop: str) -> str:
    return SAMPLE_SELECTS.get(source, {}).get(prop) or "Default"


def sample_checkbox(source: str, prop: str) -> bool:
    return SAMPLE_CHECKBOXES.get(source, {}).get(prop) or False


def sample_record(
    source: str,
    props: Iterable[PropertyDescriptor],
    *,
    key_for: Callable[[PropertyDescriptor], str] = lambda d: d.name,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Wire-ready property values for one sample record. Only title, text, number,
    select, checkbox and date properties are filled; at most one title is set.
    """
    today = today or date.today()
    values: Dict[str, Any] = {}
    has_title = False
    for d in props:
        v: Any
        if d.kind == PropertyKind.TITLE:
            if has_title:
                continue
            v = sample_title(source, d.name)
            has_title = True
        elif d.kind == PropertyKind.TEXT:
            v = sample_text(source, d.name)
        elif d.kind == PropertyKind.NUMBER:
            v = sample_number(source, d.name)
        elif d.kind == PropertyKind.SINGLE_CHOICE:
            v = sample_select(source, d.name)
        elif d.kind == PropertyKind.BOOLEAN:
            v = sample_checkbox(source, d.name)
        elif d.kind == PropertyKind.DATE:
            v = today.isoformat()
        else:
            continue
        values[key_for(d)] = encode_value(d, v)
    return values
