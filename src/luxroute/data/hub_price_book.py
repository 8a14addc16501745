"""Hub registry: built-in defaults, runtime overrides and workbook loading."""

from __future__ import annotations

import logging
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Iterable, Sequence

from openpyxl import load_workbook

from ..config import Settings, settings as default_settings
from ..models.domain import Hub, HubCapacity, HubFees, HubInventory, HubSnapshot

logger = logging.getLogger(__name__)

FEE_FIELDS = tuple(f.name for f in fields(HubFees))
REQUIRED_WORKBOOK_COLUMNS = {"hub_id", "city", "country", "currency"}


def _default_hubs() -> list[Hub]:
    return [
        Hub(
            hub_id="LONDON_HUB1",
            code="LDN1",
            name="London Authentication Hub",
            city="London",
            country="GB",
            currency="GBP",
            fees=HubFees(
                tier2_auth_fee=150.0,
                tier3_auth_fee=200.0,
                sewing_fee=180.0,
                qa_fee=25.0,
                tag_unit_cost=4.0,
                nfc_unit_cost=20.0,
                internal_rollout_cost=35.0,
                last_mile_base=15.0,
            ),
            has_sewing_capability=True,
            capacity_multiplier=1.0,
            latitude=51.5074,
            longitude=-0.1278,
        ),
        Hub(
            hub_id="PARIS_HUB1",
            code="PAR1",
            name="Paris Authentication Hub",
            city="Paris",
            country="FR",
            currency="EUR",
            fees=HubFees(
                tier2_auth_fee=120.0,
                tier3_auth_fee=160.0,
                sewing_fee=150.0,
                qa_fee=20.0,
                tag_unit_cost=5.0,
                nfc_unit_cost=25.0,
                internal_rollout_cost=25.0,
                last_mile_base=12.0,
            ),
            has_sewing_capability=True,
            capacity_multiplier=1.2,
            latitude=48.8566,
            longitude=2.3522,
        ),
        Hub(
            hub_id="MILAN_HUB1",
            code="MLN1",
            name="Milan Authentication Hub",
            city="Milan",
            country="IT",
            currency="EUR",
            fees=HubFees(
                tier2_auth_fee=110.0,
                tier3_auth_fee=150.0,
                sewing_fee=140.0,
                qa_fee=18.0,
                tag_unit_cost=5.0,
                nfc_unit_cost=25.0,
                internal_rollout_cost=30.0,
                last_mile_base=14.0,
            ),
            has_sewing_capability=True,
            capacity_multiplier=0.8,
            latitude=45.4642,
            longitude=9.1900,
        ),
        Hub(
            hub_id="FRANKFURT_HUB1",
            code="FRA1",
            name="Frankfurt Authentication Hub",
            city="Frankfurt",
            country="DE",
            currency="EUR",
            fees=HubFees(
                tier2_auth_fee=125.0,
                tier3_auth_fee=165.0,
                sewing_fee=160.0,
                qa_fee=22.0,
                tag_unit_cost=5.0,
                nfc_unit_cost=24.0,
                internal_rollout_cost=28.0,
                last_mile_base=13.0,
            ),
            has_sewing_capability=False,
            capacity_multiplier=1.1,
            latitude=50.1109,
            longitude=8.6821,
        ),
    ]


def _copy_hub(hub: Hub) -> Hub:
    return replace(
        hub,
        fees=replace(hub.fees),
        capacity=replace(hub.capacity),
        inventory=replace(hub.inventory),
    )


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y"}
    return bool(value)


class HubPriceBook:
    """Registry of hub fees, capabilities and default counters.

    The book itself is mutable (admins add hubs and override fees) but every
    hub handed to a calculation is a copy, so planning never writes back.
    """

    def __init__(
        self,
        hubs: Iterable[Hub] | None = None,
        config: Settings | None = None,
    ) -> None:
        self.settings = config or default_settings
        source = _default_hubs() if hubs is None else list(hubs)
        self._hubs: dict[str, Hub] = {hub.hub_id: _copy_hub(hub) for hub in source}

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "HubPriceBook":
        config = config or default_settings
        if config.hub_price_book_file:
            return cls.from_workbook(config.hub_price_book_file, config)
        return cls(config=config)

    @classmethod
    def from_workbook(cls, source: Path, config: Settings | None = None) -> "HubPriceBook":
        """Built-in hubs with the workbook rows applied on top."""
        book = cls(config=config)
        book.load_workbook(source)
        return book

    def __contains__(self, hub_id: object) -> bool:
        return hub_id in self._hubs

    def __len__(self) -> int:
        return len(self._hubs)

    def get(self, hub_id: str) -> Hub:
        try:
            return _copy_hub(self._hubs[hub_id])
        except KeyError as exc:
            raise ValueError(f"Unknown hub '{hub_id}'.") from exc

    def all_hubs(self) -> list[Hub]:
        return [_copy_hub(hub) for hub in self._hubs.values()]

    def active_hubs(self) -> list[Hub]:
        return [_copy_hub(hub) for hub in self._hubs.values() if hub.active]

    def last_resort_hubs(self) -> list[Hub]:
        hubs = []
        for hub_id in self.settings.last_resort_hub_ids:
            hub = self._hubs.get(hub_id)
            if hub is not None:
                hubs.append(_copy_hub(hub))
        return hubs

    def add_hub(self, hub: Hub) -> None:
        if not hub.hub_id or not hub.city or not hub.country:
            raise ValueError("Hub requires hub_id, city and country.")
        if hub.currency.upper() not in self.settings.fx_rates_to_reference:
            raise ValueError(f"Hub '{hub.hub_id}' uses unsupported currency '{hub.currency}'.")
        for name in FEE_FIELDS:
            if getattr(hub.fees, name) < 0:
                raise ValueError(f"Hub '{hub.hub_id}' has a negative {name}.")
        self._hubs[hub.hub_id] = _copy_hub(hub)
        logger.info(f"Registered hub {hub.hub_id} ({hub.city})")

    def update_pricing(self, hub_id: str, **fee_updates: float) -> Hub:
        """Override individual fees for a hub, keeping the rest of its schedule."""
        if hub_id not in self._hubs:
            raise ValueError(f"Unknown hub '{hub_id}'.")
        unknown = set(fee_updates) - set(FEE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown fee fields: {', '.join(sorted(unknown))}")
        hub = self._hubs[hub_id]
        hub.fees = replace(hub.fees, **{name: float(value) for name, value in fee_updates.items()})
        logger.info(f"Updated pricing for hub {hub_id}: {sorted(fee_updates)}")
        return _copy_hub(hub)

    def service_fee(self, hub_id: str, service: str, tier: int) -> float:
        """Fee for one hub service in the hub's own currency."""
        if hub_id not in self._hubs:
            raise ValueError(f"Unknown hub '{hub_id}'.")
        return self._hubs[hub_id].service_fee(service, tier)

    def to_reference_currency(self, amount: float, currency: str) -> float:
        rate = self.settings.fx_rates_to_reference.get(currency.upper())
        if rate is None:
            raise ValueError(f"No FX rate configured for currency '{currency}'.")
        return amount * rate

    def merge_snapshot(self, snapshot: Sequence[HubSnapshot] | None) -> list[Hub]:
        """Hubs for one calculation: registry attributes plus snapshot counters.

        Hubs missing from the snapshot, and fields the snapshot leaves empty,
        keep their built-in default counters.
        """
        hubs = {hub_id: _copy_hub(hub) for hub_id, hub in self._hubs.items()}
        for entry in snapshot or ():
            hub = hubs.get(entry.hub_id)
            if hub is None:
                logger.warning(f"Ignoring snapshot for unknown hub '{entry.hub_id}'")
                continue
            hub.capacity = HubCapacity(
                auth_available=_pick(entry.auth_available, hub.capacity.auth_available),
                auth_total=_pick(entry.auth_total, hub.capacity.auth_total),
                sewing_available=_pick(entry.sewing_available, hub.capacity.sewing_available),
                sewing_total=_pick(entry.sewing_total, hub.capacity.sewing_total),
            )
            hub.inventory = HubInventory(
                nfc_stock=_pick(entry.nfc_stock, hub.inventory.nfc_stock),
                tag_stock=_pick(entry.tag_stock, hub.inventory.tag_stock),
            )
            if entry.active is not None:
                hub.active = entry.active
        return list(hubs.values())

    def load_workbook(self, source: Path) -> int:
        """Apply hub rows from an .xlsx workbook. Returns the number of rows applied."""
        rows = _load_hub_rows_from_file(source)
        for row in rows:
            hub_id = str(row["hub_id"]).strip()
            if hub_id in self._hubs:
                self._apply_row(self._hubs[hub_id], row)
            else:
                self.add_hub(_hub_from_row(hub_id, row))
        logger.info(f"Loaded {len(rows)} hub rows from {source}")
        return len(rows)

    def _apply_row(self, hub: Hub, row: dict[str, Any]) -> None:
        fee_updates = {name: float(row[name]) for name in FEE_FIELDS if row.get(name) is not None}
        if fee_updates:
            hub.fees = replace(hub.fees, **fee_updates)
        for name in ("code", "name", "city", "country", "currency"):
            if row.get(name) is not None:
                setattr(hub, name, str(row[name]).strip())
        for name in ("capacity_multiplier", "latitude", "longitude"):
            if row.get(name) is not None:
                setattr(hub, name, float(row[name]))
        if row.get("has_sewing_capability") is not None:
            hub.has_sewing_capability = _as_bool(row["has_sewing_capability"])
        if row.get("active") is not None:
            hub.active = _as_bool(row["active"])


def _pick(value: int | None, default: int) -> int:
    return default if value is None else int(value)


def _hub_from_row(hub_id: str, row: dict[str, Any]) -> Hub:
    missing = [name for name in FEE_FIELDS if name != "last_mile_base" and row.get(name) is None]
    if missing:
        raise ValueError(f"Hub row '{hub_id}' is missing fees: {', '.join(missing)}")
    return Hub(
        hub_id=hub_id,
        code=str(row.get("code") or hub_id),
        name=str(row.get("name") or hub_id),
        city=str(row["city"]).strip(),
        country=str(row["country"]).strip(),
        currency=str(row["currency"]).strip().upper(),
        fees=HubFees(**{name: float(row.get(name) or 0.0) for name in FEE_FIELDS}),
        has_sewing_capability=_as_bool(row.get("has_sewing_capability")),
        active=True if row.get("active") is None else _as_bool(row["active"]),
        capacity_multiplier=float(row.get("capacity_multiplier") or 1.0),
        latitude=float(row["latitude"]) if row.get("latitude") is not None else None,
        longitude=float(row["longitude"]) if row.get("longitude") is not None else None,
    )


def _load_hub_rows_from_file(source: Path) -> list[dict[str, Any]]:
    if not source.exists():
        raise FileNotFoundError(f"Hub price book workbook not found: {source}")

    wb = load_workbook(source, data_only=True, read_only=True)
    try:
        sheet = wb.active
        rows = sheet.iter_rows(min_row=1, values_only=True)
        header = next(rows, None)
        if header is None:
            raise ValueError(f"Hub price book '{source}' is empty.")

        header_map = {str(name).strip().lower(): idx for idx, name in enumerate(header) if name is not None}
        missing_columns = REQUIRED_WORKBOOK_COLUMNS - set(header_map)
        if missing_columns:
            raise ValueError(f"Hub price book missing columns: {', '.join(sorted(missing_columns))}")

        records: list[dict[str, Any]] = []
        for row in rows:
            if not row or row[header_map["hub_id"]] in (None, ""):
                continue
            records.append({name: row[idx] if idx < len(row) else None for name, idx in header_map.items()})
        return records
    finally:
        wb.close()
