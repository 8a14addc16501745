from pathlib import Path

import pytest
from openpyxl import Workbook

from src.luxroute.config import Settings
from src.luxroute.data.hub_price_book import HubPriceBook
from src.luxroute.models.domain import Hub, HubFees, HubSnapshot


def _fees(**overrides) -> HubFees:
    values = dict(
        tier2_auth_fee=100.0,
        tier3_auth_fee=140.0,
        sewing_fee=120.0,
        qa_fee=15.0,
        tag_unit_cost=3.0,
        nfc_unit_cost=18.0,
        internal_rollout_cost=20.0,
    )
    values.update(overrides)
    return HubFees(**values)


def _write_workbook(path: Path, header: list, rows: list[list]) -> Path:
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(header)
    for row in rows:
        sheet.append(row)
    workbook.save(path)
    return path


def test_default_book_has_builtin_hubs():
    book = HubPriceBook()

    assert len(book) == 4
    assert "LONDON_HUB1" in book
    assert book.get("PARIS_HUB1").currency == "EUR"
    assert [hub.hub_id for hub in book.last_resort_hubs()] == ["LONDON_HUB1", "PARIS_HUB1"]


def test_get_unknown_hub_raises_value_error():
    with pytest.raises(ValueError):
        HubPriceBook().get("NOWHERE")


def test_hubs_handed_out_are_copies():
    book = HubPriceBook()

    hub = book.get("MILAN_HUB1")
    hub.fees.sewing_fee = 1.0
    hub.capacity.auth_available = 0

    assert book.get("MILAN_HUB1").fees.sewing_fee == 140.0
    assert book.get("MILAN_HUB1").capacity.auth_available == 50


def test_service_fee_by_service_and_tier():
    book = HubPriceBook()

    assert book.service_fee("LONDON_HUB1", "authentication", 2) == 150.0
    assert book.service_fee("LONDON_HUB1", "authentication", 3) == 200.0
    assert book.service_fee("PARIS_HUB1", "nfc", 3) == 25.0
    with pytest.raises(ValueError):
        book.service_fee("PARIS_HUB1", "gift-wrap", 3)


def test_reference_currency_conversion():
    book = HubPriceBook()

    assert book.to_reference_currency(100.0, "GBP") == pytest.approx(117.0)
    assert book.to_reference_currency(100.0, "eur") == 100.0
    with pytest.raises(ValueError):
        book.to_reference_currency(10.0, "JPY")


def test_add_hub_and_update_pricing():
    book = HubPriceBook(hubs=[])
    book.add_hub(Hub("GVA_HUB1", "GVA1", "Geneva Hub", "Geneva", "CH", "CHF", _fees(), has_sewing_capability=True))

    updated = book.update_pricing("GVA_HUB1", sewing_fee=99)

    assert updated.fees.sewing_fee == 99.0
    assert updated.fees.qa_fee == 15.0
    with pytest.raises(ValueError):
        book.update_pricing("GVA_HUB1", discount=5)
    with pytest.raises(ValueError):
        book.add_hub(Hub("BAD", "BAD", "Bad", "Tokyo", "JP", "JPY", _fees()))
    with pytest.raises(ValueError):
        book.add_hub(Hub("NEG", "NEG", "Neg", "Geneva", "CH", "CHF", _fees(qa_fee=-1)))


def test_merge_snapshot_overlays_counters_and_keeps_defaults():
    book = HubPriceBook()

    hubs = {
        hub.hub_id: hub
        for hub in book.merge_snapshot(
            [
                HubSnapshot("PARIS_HUB1", auth_available=3, nfc_stock=0),
                HubSnapshot("MILAN_HUB1", active=False),
                HubSnapshot("UNKNOWN_HUB"),
            ]
        )
    }

    assert set(hubs) == {"LONDON_HUB1", "PARIS_HUB1", "MILAN_HUB1", "FRANKFURT_HUB1"}
    assert hubs["PARIS_HUB1"].capacity.auth_available == 3
    assert hubs["PARIS_HUB1"].capacity.auth_total == 100
    assert hubs["PARIS_HUB1"].inventory.nfc_stock == 0
    assert hubs["PARIS_HUB1"].inventory.tag_stock == 200
    assert hubs["MILAN_HUB1"].active is False
    assert book.get("PARIS_HUB1").capacity.auth_available == 50


def test_load_workbook_updates_existing_and_adds_new_hubs(tmp_path: Path):
    header = ["Hub_ID", "City", "Country", "Currency", "sewing_fee", "tier2_auth_fee", "tier3_auth_fee",
              "qa_fee", "tag_unit_cost", "nfc_unit_cost", "internal_rollout_cost", "has_sewing_capability"]
    path = _write_workbook(
        tmp_path / "hubs.xlsx",
        header,
        [
            ["PARIS_HUB1", "Paris", "FR", "EUR", 175, None, None, None, None, None, None, None],
            ["ZURICH_HUB1", "Zurich", "CH", "CHF", 130, 105, 145, 16, 4, 21, 27, "yes"],
            [None, None, None, None, None, None, None, None, None, None, None, None],
        ],
    )
    book = HubPriceBook()

    applied = book.load_workbook(path)

    assert applied == 2
    assert book.get("PARIS_HUB1").fees.sewing_fee == 175.0
    assert book.get("PARIS_HUB1").fees.qa_fee == 20.0
    zurich = book.get("ZURICH_HUB1")
    assert zurich.currency == "CHF"
    assert zurich.has_sewing_capability is True
    assert zurich.fees.tier3_auth_fee == 145.0


def test_load_workbook_rejects_missing_columns(tmp_path: Path):
    path = _write_workbook(tmp_path / "bad.xlsx", ["hub_id", "city"], [["X", "Paris"]])

    with pytest.raises(ValueError):
        HubPriceBook().load_workbook(path)


def test_from_settings_loads_configured_workbook(tmp_path: Path):
    path = _write_workbook(
        tmp_path / "hubs.xlsx",
        ["hub_id", "city", "country", "currency", "active"],
        [["FRANKFURT_HUB1", "Frankfurt", "DE", "EUR", "no"]],
    )

    book = HubPriceBook.from_settings(Settings(hub_price_book_file=str(path)))

    assert book.get("FRANKFURT_HUB1").active is False
    assert len(book.active_hubs()) == 3


def test_from_workbook_starts_from_builtin_hubs(tmp_path: Path):
    path = _write_workbook(
        tmp_path / "hubs.xlsx",
        ["hub_id", "city", "country", "currency", "qa_fee"],
        [["MILAN_HUB1", "Milan", "IT", "EUR", 21]],
    )

    book = HubPriceBook.from_workbook(path, Settings())

    assert len(book) == 4
    assert book.get("MILAN_HUB1").fees.qa_fee == 21.0
    assert book.get("MILAN_HUB1").fees.sewing_fee == 140.0
