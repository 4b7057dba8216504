"""CRM payload normalizer.

Detects the CRM vendor from marker fields and maps vendor-specific fields
into a canonical DealContext. Detection walks ``CRM_PARSERS`` in order and
the first predicate that matches wins; several vendors share marker fields,
so the order is part of the contract:

    1. ``properties`` object          -> HubSpot
    2. ``StageName`` or ``Name``      -> Salesforce
    3. ``attributes`` object          -> Attio
    4. ``current`` object             -> Pipedrive
    5. ``lead`` or ``status_label``   -> Close
    6. anything else                  -> generic

Payloads may arrive wrapped one level deep under ``body`` (workflow tools
do this). Normalization never raises: unknown shapes and wrong types fall
back to field defaults.

Exports:
    parse_crm_payload: Normalize a raw payload into a DealContext.
    detect_crm: Return the CrmType a payload would be parsed as.
    unwrap_payload: Strip the optional ``body`` wrapper.
    CRM_PARSERS: Ordered (CrmType, predicate, mapper) dispatch table.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Mapping
from typing import Any

from src.enablement.deals.schemas import (
    DEFAULT_COMPANY_NAME,
    DEFAULT_COMPETITOR,
    DEFAULT_DEAL_NAME,
    DEFAULT_INDUSTRY,
    CrmType,
    DealContext,
)

Payload = Mapping[str, Any]
Predicate = Callable[[Payload], bool]
Mapper = Callable[[Payload], dict[str, Any]]

_NUMERIC_PREFIX = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


# ── Coercion helpers ───────────────────────────────────────────────────────


def _str(value: Any, fallback: str = "") -> str:
    """Non-empty strings pass through; everything else becomes ``fallback``."""
    if isinstance(value, str) and value:
        return value
    return fallback


def _num(value: Any) -> float:
    """Coerce an amount field to a non-negative finite float.

    Numbers pass through; strings are parsed from their leading numeric
    prefix (``"50000.00 USD"`` -> 50000.0); anything else is 0.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = _NUMERIC_PREFIX.match(value)
        if not match:
            return 0.0
        try:
            number = float(match.group(0))
        except ValueError:
            return 0.0
    else:
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def _first(*values: Any) -> Any:
    """Return the first truthy value, or None."""
    for value in values:
        if value:
            return value
    return None


def _obj(data: Payload, key: str) -> Mapping[str, Any]:
    value = data.get(key)
    return value if isinstance(value, Mapping) else {}


def _is_obj(data: Payload, key: str) -> bool:
    return isinstance(data.get(key), Mapping)


def unwrap_payload(raw: Any) -> Payload:
    """Return the payload, unwrapping a ``body`` object if present."""
    if not isinstance(raw, Mapping):
        return {}
    body = raw.get("body")
    if isinstance(body, Mapping):
        return body
    return raw


# ── Vendor mappers ─────────────────────────────────────────────────────────


def _fields(
    *,
    name: Any,
    stage: Any,
    company: Any,
    notes: Any,
    product_interest: Any,
    industry: Any,
    competitor: Any,
    amount: Any,
    email: Any,
    messaging_id: Any,
) -> dict[str, Any]:
    return {
        "deal_name": _str(name, DEFAULT_DEAL_NAME),
        "deal_stage": _str(stage),
        "company_name": _str(company, DEFAULT_COMPANY_NAME),
        "deal_notes": _str(notes),
        "product_interest": _str(product_interest),
        "industry": _str(industry, DEFAULT_INDUSTRY),
        "competitor": _str(competitor, DEFAULT_COMPETITOR),
        "deal_size": _num(amount),
        "rep_email": _str(email),
        "rep_messaging_id": _str(messaging_id),
    }


def _map_hubspot(data: Payload) -> dict[str, Any]:
    props = _obj(data, "properties")
    return _fields(
        name=props.get("dealname"),
        stage=props.get("dealstage"),
        company=props.get("company"),
        notes=props.get("notes"),
        product_interest=props.get("product_interest"),
        industry=props.get("industry"),
        competitor=_first(props.get("competitor"), props.get("hs_competitor")),
        amount=props.get("amount"),
        email=props.get("hubspot_owner_email"),
        messaging_id=props.get("rep_slack_id"),
    )


def _map_salesforce(data: Payload) -> dict[str, Any]:
    return _fields(
        name=data.get("Name"),
        stage=data.get("StageName"),
        company=_obj(data, "Account").get("Name"),
        notes=data.get("Description"),
        product_interest=data.get("Product_Interest__c"),
        industry=data.get("Industry__c"),
        competitor=data.get("Competitor__c"),
        amount=data.get("Amount"),
        email=_obj(data, "Owner").get("Email"),
        messaging_id=data.get("Rep_Slack_ID__c"),
    )


def _map_attio(data: Payload) -> dict[str, Any]:
    attrs = _obj(data, "attributes")
    return _fields(
        name=_first(attrs.get("name"), attrs.get("title")),
        stage=_first(attrs.get("stage"), attrs.get("status")),
        company=attrs.get("company"),
        notes=_first(attrs.get("notes"), attrs.get("description")),
        product_interest=attrs.get("product_interest"),
        industry=attrs.get("industry"),
        competitor=attrs.get("competitor"),
        amount=_first(attrs.get("value"), attrs.get("amount")),
        email=attrs.get("owner_email"),
        messaging_id=attrs.get("rep_slack_id"),
    )


def _map_pipedrive(data: Payload) -> dict[str, Any]:
    current = _obj(data, "current")
    return _fields(
        name=current.get("title"),
        stage=_first(current.get("stage_name"), current.get("status")),
        company=current.get("org_name"),
        notes=current.get("notes"),
        product_interest=current.get("product_interest"),
        industry=current.get("industry"),
        competitor=current.get("competitor"),
        amount=current.get("value"),
        email=current.get("owner_email"),
        messaging_id=current.get("rep_slack_id"),
    )


def _map_close(data: Payload) -> dict[str, Any]:
    lead = _obj(data, "lead")
    return _fields(
        name=_first(lead.get("display_name"), data.get("lead_name")),
        stage=_first(data.get("status_label"), data.get("status_type")),
        company=_first(lead.get("name"), lead.get("display_name")),
        notes=data.get("note"),
        product_interest=data.get("product_interest"),
        industry=data.get("industry"),
        competitor=data.get("competitor"),
        amount=_first(data.get("value"), data.get("annualized_value")),
        email=data.get("user_email"),
        messaging_id=data.get("rep_slack_id"),
    )


def _map_generic(data: Payload) -> dict[str, Any]:
    return _fields(
        name=data.get("deal_name"),
        stage=data.get("deal_stage"),
        company=data.get("company_name"),
        notes=data.get("deal_notes"),
        product_interest=data.get("product_interest"),
        industry=data.get("industry"),
        competitor=data.get("competitor"),
        amount=data.get("deal_size"),
        email=data.get("rep_email"),
        messaging_id=data.get("rep_slack_id"),
    )


# ── Dispatch table ─────────────────────────────────────────────────────────

CRM_PARSERS: tuple[tuple[CrmType, Predicate, Mapper], ...] = (
    (CrmType.hubspot, lambda d: _is_obj(d, "properties"), _map_hubspot),
    (CrmType.salesforce, lambda d: bool(d.get("StageName") or d.get("Name")), _map_salesforce),
    (CrmType.attio, lambda d: _is_obj(d, "attributes"), _map_attio),
    (CrmType.pipedrive, lambda d: _is_obj(d, "current"), _map_pipedrive),
    (CrmType.close, lambda d: bool(d.get("lead") or d.get("status_label")), _map_close),
    (CrmType.generic, lambda d: True, _map_generic),
)


def _select(data: Payload) -> tuple[CrmType, Mapper]:
    for crm_type, matches, mapper in CRM_PARSERS:
        if matches(data):
            return crm_type, mapper
    return CrmType.generic, _map_generic


def detect_crm(raw: Any) -> CrmType:
    """Return which vendor shape ``raw`` matches."""
    crm_type, _ = _select(unwrap_payload(raw))
    return crm_type


def parse_crm_payload(raw: Any) -> DealContext:
    """Normalize any CRM webhook payload into a DealContext.

    Never raises. A non-object input yields an all-default generic deal.
    """
    data = unwrap_payload(raw)
    crm_type, mapper = _select(data)
    return DealContext(
        **mapper(data),
        source_crm=crm_type,
        raw=dict(raw) if isinstance(raw, Mapping) else {},
    )
