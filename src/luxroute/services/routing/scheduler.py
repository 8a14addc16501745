"""Leg timeline construction and SLA feasibility."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Sequence

from ...config import Settings, settings as default_settings
from ...models.domain import Shipment
from .models import EndpointKind, Leg, LegType, LegWindow, ProcessingStep, Schedule, SelectedHubs

PROCESSING_DWELL_HOURS = {
    ProcessingStep.AUTHENTICATION: 4.0,
    ProcessingStep.SEWING: 6.0,
    ProcessingStep.TAGGING: 2.0,
    ProcessingStep.QA: 0.0,
}
DHL_BUFFER_HOURS = {"express": 2.0, "standard": 4.0}


def _utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class Scheduler:
    def __init__(self, config: Settings | None = None, clock: Callable[[], datetime] | None = None) -> None:
        self.settings = config or default_settings
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def start_time(self, shipment: Shipment) -> datetime:
        if shipment.pickup_window_start is not None:
            return _utc(shipment.pickup_window_start)
        return self._clock() + timedelta(hours=self.settings.default_pickup_lead_hours)

    def next_rollout_departure(self, ready: datetime) -> datetime:
        """Inter-hub rollouts leave once a day at the cutoff hour (UTC)."""
        cutoff = ready.replace(hour=self.settings.internal_rollout_cutoff_hour, minute=0, second=0, microsecond=0)
        if cutoff < ready:
            cutoff += timedelta(days=1)
        return cutoff

    def leg_departure(self, leg: Leg, ready: datetime) -> datetime:
        """When a leg actually leaves, given the shipment is ready at ``ready``."""
        match leg.type:
            case LegType.INTERNAL_ROLLOUT:
                return self.next_rollout_departure(ready)
            case LegType.DHL:
                return ready + timedelta(hours=DHL_BUFFER_HOURS.get(leg.service, DHL_BUFFER_HOURS["standard"]))
            case _:
                return ready

    @staticmethod
    def processing_hours(leg: Leg) -> float:
        return sum(PROCESSING_DWELL_HOURS[step] for step in leg.processing)

    def build_schedule(
        self,
        legs: Sequence[Leg],
        shipment: Shipment,
        hubs: SelectedHubs | None = None,
    ) -> Schedule:
        start = self.start_time(shipment)
        cursor = start
        windows: list[LegWindow] = []
        milestones: dict[str, datetime] = {}

        for leg in legs:
            travel = timedelta(minutes=leg.plan.travel_minutes if leg.plan else 0.0)
            departure = self.leg_departure(leg, cursor)
            arrival = departure + travel
            dwell = timedelta(hours=self.processing_hours(leg))
            processing_end = arrival + dwell
            window = LegWindow(leg.order, departure, arrival, processing_end)
            windows.append(window)
            leg.window = window
            cursor = processing_end

            if leg.destination.kind is EndpointKind.HUB and leg.destination.hub is not None:
                self._record_hub_milestones(milestones, leg, hubs, arrival, processing_end)

        estimated_delivery = cursor
        total_hours = (estimated_delivery - start).total_seconds() / 3600.0
        total_days = max(1, math.ceil(total_hours / 24.0))
        sla_target = _utc(shipment.sla_target_date) if shipment.sla_target_date else None
        feasible = sla_target is None or estimated_delivery <= sla_target
        buffer_hours = (sla_target - estimated_delivery).total_seconds() / 3600.0 if sla_target else None
        milestones["pickup"] = start
        milestones["delivery"] = estimated_delivery

        return Schedule(
            start=start,
            estimated_delivery=estimated_delivery,
            total_hours=round(total_hours, 2),
            total_days=total_days,
            sla_target=sla_target,
            feasible=feasible,
            sla_buffer_hours=round(buffer_hours, 2) if buffer_hours is not None else None,
            windows=windows,
            milestones=milestones,
        )

    @staticmethod
    def _record_hub_milestones(
        milestones: dict[str, datetime],
        leg: Leg,
        hubs: SelectedHubs | None,
        arrival: datetime,
        processed: datetime,
    ) -> None:
        hub_id = leg.destination.hub.hub_id
        if hubs is None or hub_id == hubs.hub_id:
            milestones.setdefault("hub_id_arrival", arrival)
            milestones.setdefault("hub_id_processed", processed)
        if hubs is not None and hub_id == hubs.hub_cou_id:
            milestones["hub_cou_arrival"] = arrival
            milestones["hub_cou_processed"] = processed
