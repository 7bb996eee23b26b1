from __future__ import annotations

import pytest

from app.domain import OfferClass, RawOfferEntry
from gateways.normalize import classify, normalize_offer, normalize_offers, parse_offer_list
from gateways.offer_parsing import OfferParsingRules, parse_offer_text


RULES = OfferParsingRules()


def _entry(display_name: str, *, offer_name: str = "Pack", commission: str = "1", amount: str = "10") -> RawOfferEntry:
    return RawOfferEntry(
        sequence="1",
        offer_id="OF1",
        offer_name=offer_name,
        display_name=display_name,
        commission=commission,
        recharge_amount=amount,
    )


def test_normalize_offers_handles_catalog_payload(sample_offers_payload):
    reply = sample_offers_payload["response"]
    entries = parse_offer_list(reply["OffersList"])

    batch = normalize_offers(
        entries,
        transaction_id=reply["transactionID"],
        status_code=reply["statusCode"],
        status_message=reply["statusMessage"],
        rules=RULES,
    )

    assert len(entries) == 7
    assert [offer.offer_id for offer in batch.offers] == ["OF100", "OF101", "OF102", "OF106"]
    assert batch.has_pack_status is True
    assert batch.status_message == "Your pack is active until tomorrow"

    data, combo, voice, sms = batch.offers
    assert data.offer_class is OfferClass.DATA
    assert data.offer_type == "IRIS Data"
    assert data.amount == 500
    assert data.commission == 12
    assert data.has_wildcard_marker is True
    assert combo.offer_class is OfferClass.COMBO
    assert combo.amount == 29
    assert voice.offer_class is OfferClass.VOICE
    assert sms.offer_class is OfferClass.SMS
    for offer in batch.offers:
        assert offer.transaction_id == reply["transactionID"]


@pytest.mark.parametrize("display_name", ["Special bundle", "tk gb min", "*star*"])
def test_entries_without_digits_are_dropped(display_name):
    batch = normalize_offers(
        [_entry(display_name)],
        transaction_id="T1",
        status_code="0",
        status_message="",
        rules=RULES,
    )

    assert batch.offers == []
    assert batch.has_pack_status is False


def test_blank_display_name_is_dropped():
    batch = normalize_offers(
        [_entry("   ")], transaction_id=None, status_code="0", status_message="ok", rules=RULES
    )

    assert batch.offers == []
    assert batch.status_message == "ok"


def test_pack_status_requires_zero_commission_and_amount():
    entry = _entry("Pop Up: 1 pack active", commission="5", amount="0")

    batch = normalize_offers(
        [entry], transaction_id=None, status_code="0", status_message="ok", rules=RULES
    )

    assert batch.has_pack_status is False
    assert len(batch.offers) == 1


def test_flags_follow_numeric_fields():
    offer = normalize_offer(_entry("99tk 1gb 40min 20sms 7days"), "T1", RULES)

    assert offer.offer_class is OfferClass.COMBO
    assert offer.has_data_pack and offer.data_mb == 1024
    assert offer.has_voice_pack and offer.voice_minutes == 40
    assert offer.has_sms_pack and offer.sms_count == 20
    assert not offer.has_streaming_pack and offer.streaming_mb == 0


def test_rate_cutter_without_minutes_is_tagged():
    parsed = parse_offer_text("49tk rate cutter 30days", RULES)

    assert classify(parsed) is OfferClass.RATE_CUTTER


def test_unparseable_entry_still_normalizes():
    offer = normalize_offer(_entry("", amount="", commission=""), None, RULES)

    assert offer.amount == 0
    assert offer.offer_class is OfferClass.UNCLASSIFIED
    assert offer.offer_type == "IRIS"


def test_parse_offer_list_tolerates_bad_payloads():
    assert parse_offer_list("not json") == []
    assert parse_offer_list(None) == []
    assert parse_offer_list('[1, {"offerID": "X"}]')[0].offer_id == "X"
