"""Encode EV ``COMMAND`` documents and decode the gateway's replies."""

from __future__ import annotations

from collections.abc import Mapping

from lxml import etree

from app.domain import GatewayOutcome

from .errors import EvResponseError


PREPAID_TOPUP = "EXRCTRFREQ"
POSTPAID_BILL_PAY = "EXPPBREQ"
BALANCE_INQUIRY = "EXUSRBALREQ"

RECHARGE_FIELDS = (
    "TYPE",
    "DATE",
    "EXTNWCODE",
    "MSISDN",
    "PIN",
    "LOGINID",
    "PASSWORD",
    "EXTCODE",
    "EXTREFNUM",
    "MSISDN2",
    "AMOUNT",
    "LANGUAGE1",
    "LANGUAGE2",
    "SELECTOR",
)
BALANCE_FIELDS = (
    "TYPE",
    "DATE",
    "EXTNWCODE",
    "MSISDN",
    "PIN",
    "LOGINID",
    "PASSWORD",
    "EXTCODE",
    "EXTREFNUM",
)


def build_command_xml(fields: Mapping[str, str | None], order: tuple[str, ...] = RECHARGE_FIELDS) -> bytes:
    """Serialize a ``COMMAND`` element with children in the gateway's expected order."""

    root = etree.Element("COMMAND")
    for name in order:
        child = etree.SubElement(root, name)
        value = fields.get(name)
        child.text = "" if value is None else str(value)
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8")


def _child_text(root: etree._Element, tag: str) -> str | None:
    node = root.find(tag)
    if node is None:
        node = root.find(f".//{tag}")
    if node is None or node.text is None:
        return None
    return node.text.strip()


def parse_command_response(payload: bytes | str) -> GatewayOutcome:
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    if not payload or not payload.strip():
        raise EvResponseError("EV gateway returned an empty response")
    try:
        root = etree.fromstring(payload)
    except etree.XMLSyntaxError as exc:
        raise EvResponseError(f"Invalid EV response XML: {exc}") from exc

    # Tag case is not consistent across EV deployments.
    for element in root.iter():
        if isinstance(element.tag, str):
            element.tag = element.tag.upper()

    return GatewayOutcome(
        gateway="ev",
        status_code=_child_text(root, "TXNSTATUS") or "",
        message=_child_text(root, "MESSAGE") or "",
        transaction_id=_child_text(root, "TXNID"),
        timestamp=_child_text(root, "DATE"),
    )


__all__ = [
    "BALANCE_FIELDS",
    "BALANCE_INQUIRY",
    "POSTPAID_BILL_PAY",
    "PREPAID_TOPUP",
    "RECHARGE_FIELDS",
    "build_command_xml",
    "parse_command_response",
]
