from dataclasses import replace
from datetime import datetime, timedelta, timezone

from src.luxroute.config import Settings
from src.luxroute.data.hub_price_book import HubPriceBook
from src.luxroute.models.domain import Party, Shipment
from src.luxroute.services.routing.leg_builder import LegBuilder
from src.luxroute.services.routing.models import LegPlan, RouteTemplate, Segment, SelectedHubs, TransportMode
from src.luxroute.services.routing.scheduler import Scheduler

TUESDAY_MORNING = datetime(2025, 3, 4, 9, tzinfo=timezone.utc)


def _shipment(sla: datetime | None = datetime(2025, 3, 20, tzinfo=timezone.utc), priority: bool = False) -> Shipment:
    return Shipment(
        tier=3,
        sender=Party(city="London", country="GB"),
        buyer=Party(city="Nice", country="FR"),
        declared_value=5000.0,
        sla_target_date=sla,
        pickup_window_start=TUESDAY_MORNING,
        priority=priority,
    )


def _hubs() -> SelectedHubs:
    book = HubPriceBook()
    return SelectedHubs(hub=book.get("PARIS_HUB1"), hub_cou=book.get("MILAN_HUB1"))


def _plan(order: int, minutes: float) -> LegPlan:
    return LegPlan(order, TransportMode.GROUND, 0.0, [Segment("ground", TransportMode.GROUND, "a", "b", minutes)], [])


def _legs(template: RouteTemplate, shipment: Shipment, minutes: tuple[float, ...]):
    legs = LegBuilder().build(template, shipment, _hubs())
    for leg, duration in zip(legs, minutes):
        leg.plan = _plan(leg.order, duration)
    return legs


def test_full_white_glove_timeline_waits_for_rollout_cutoff():
    shipment = _shipment()
    legs = _legs(RouteTemplate.FULL_WG, shipment, (300, 1440, 120))

    schedule = Scheduler(Settings()).build_schedule(legs, shipment, _hubs())

    first, rollout, last = schedule.windows
    assert first.arrival == datetime(2025, 3, 4, 14, tzinfo=timezone.utc)
    assert first.processing_end == datetime(2025, 3, 4, 18, tzinfo=timezone.utc)
    assert rollout.departure == datetime(2025, 3, 5, 14, tzinfo=timezone.utc)
    assert rollout.processing_end == datetime(2025, 3, 6, 20, tzinfo=timezone.utc)
    assert last.arrival == datetime(2025, 3, 6, 22, tzinfo=timezone.utc)
    assert schedule.estimated_delivery == last.arrival
    assert schedule.total_hours == 61.0
    assert schedule.total_days == 3
    assert schedule.feasible
    assert legs[1].window is rollout


def test_milestones_track_both_hubs():
    shipment = _shipment()
    legs = _legs(RouteTemplate.FULL_WG, shipment, (300, 1440, 120))

    milestones = Scheduler(Settings()).build_schedule(legs, shipment, _hubs()).milestones

    assert milestones["pickup"] == TUESDAY_MORNING
    assert milestones["hub_id_arrival"] == datetime(2025, 3, 4, 14, tzinfo=timezone.utc)
    assert milestones["hub_id_processed"] == datetime(2025, 3, 4, 18, tzinfo=timezone.utc)
    assert milestones["hub_cou_arrival"] == datetime(2025, 3, 6, 14, tzinfo=timezone.utc)
    assert milestones["hub_cou_processed"] == datetime(2025, 3, 6, 20, tzinfo=timezone.utc)
    assert milestones["delivery"] == datetime(2025, 3, 6, 22, tzinfo=timezone.utc)


def test_dhl_leg_waits_for_handover_buffer():
    standard = _shipment()
    express = _shipment(priority=True)
    scheduler = Scheduler(Settings())

    slow = scheduler.build_schedule(_legs(RouteTemplate.HYBRID_WG_DHL, standard, (300, 1440, 2880)), standard)
    fast = scheduler.build_schedule(_legs(RouteTemplate.HYBRID_WG_DHL, express, (300, 1440, 2880)), express)

    assert slow.windows[2].departure - slow.windows[1].processing_end == timedelta(hours=4)
    assert fast.windows[2].departure - fast.windows[1].processing_end == timedelta(hours=2)


def test_rollout_departs_same_day_when_ready_before_cutoff():
    scheduler = Scheduler(Settings())

    assert scheduler.next_rollout_departure(datetime(2025, 3, 4, 13, tzinfo=timezone.utc)) == datetime(
        2025, 3, 4, 14, tzinfo=timezone.utc
    )
    assert scheduler.next_rollout_departure(datetime(2025, 3, 4, 14, tzinfo=timezone.utc)) == datetime(
        2025, 3, 4, 14, tzinfo=timezone.utc
    )
    assert scheduler.next_rollout_departure(datetime(2025, 3, 4, 14, 1, tzinfo=timezone.utc)) == datetime(
        2025, 3, 5, 14, tzinfo=timezone.utc
    )


def test_missed_sla_is_infeasible_with_negative_buffer():
    shipment = _shipment(sla=datetime(2025, 3, 5, tzinfo=timezone.utc))
    legs = _legs(RouteTemplate.FULL_WG, shipment, (300, 1440, 120))

    schedule = Scheduler(Settings()).build_schedule(legs, shipment, _hubs())

    assert not schedule.feasible
    assert schedule.sla_buffer_hours < 0


def test_start_time_uses_clock_when_no_pickup_window():
    shipment = replace(_shipment(), pickup_window_start=None)
    scheduler = Scheduler(Settings(), clock=lambda: TUESDAY_MORNING)

    assert scheduler.start_time(shipment) == TUESDAY_MORNING + timedelta(hours=2)


def test_naive_pickup_window_is_read_as_utc():
    shipment = replace(_shipment(), pickup_window_start=datetime(2025, 3, 4, 9))

    assert Scheduler(Settings()).start_time(shipment) == TUESDAY_MORNING


def test_short_trip_counts_as_one_day():
    shipment = Shipment(
        tier=2,
        sender=Party(city="Paris", country="FR"),
        buyer=Party(city="Suresnes", country="FR"),
        declared_value=900.0,
        sla_target_date=None,
        pickup_window_start=TUESDAY_MORNING,
    )
    hubs = SelectedHubs(hub=HubPriceBook().get("PARIS_HUB1"))
    legs = LegBuilder().build(RouteTemplate.WG_END_TO_END, shipment, hubs)
    for leg in legs:
        leg.plan = _plan(leg.order, 60)

    schedule = Scheduler(Settings()).build_schedule(legs, shipment, hubs)

    assert schedule.total_days == 1
    assert schedule.feasible
    assert schedule.sla_buffer_hours is None
