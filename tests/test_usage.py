"""Tests for water usage estimation."""

import pytest

from agents.schedule.models import SprinklerZone, SystemStatus
from agents.schedule.usage import calculate_water_usage, daily_water_usage, plan_water_usage, zone_gpm


class TestZoneFlow:
    def test_spray_arcs_are_prorated(self, zones):
        # 10 half-circle + 5 quarter-circle spray heads
        assert zone_gpm(zones[0]) == pytest.approx(9.375)

    def test_rotor_heads(self, zones):
        # 4 full-circle + 4 half-circle rotors at 2.0 GPM
        assert zone_gpm(zones[3]) == pytest.approx(12.0)

    def test_drip_uses_flow_rate(self, zones):
        assert zone_gpm(zones[1]) == pytest.approx(20 / 60)

    def test_legacy_rates(self):
        rotor = SprinklerZone(id=9, name="Old", relay=9, sprinkler_type="Rotor", head_count=3)
        drip = SprinklerZone(id=8, name="Old drip", relay=8, sprinkler_type="Drip")
        assert zone_gpm(rotor) == pytest.approx(2.1)
        assert zone_gpm(drip) == pytest.approx(0.2)


class TestPlanUsage:
    def test_event_usage_and_unknown_zone(self, make_plan, zones):
        plan = make_plan({1: [(1, "05:00", 20), (2, "05:25", 15), (7, "06:00", 10)]})

        sized = calculate_water_usage(plan, zones)
        assert [e.water_usage for e in sized.schedule[1].events] == [187.5, 5.0, 0.0]
        assert plan.schedule[1].events[0].water_usage is None

    def test_canceled_events_are_excluded(self, make_plan, zones):
        plan = calculate_water_usage(make_plan({1: [(1, "05:00", 20), (4, "05:30", 10, True)]}), zones)
        assert daily_water_usage(plan.schedule[1], SystemStatus.AI_SCHEDULE_ACTIVE) == pytest.approx(187.5)

    def test_disabled_system_uses_nothing(self, make_plan, zones):
        plan = calculate_water_usage(make_plan({1: [(1, "05:00", 20)]}), zones)

        summary = plan_water_usage(plan, SystemStatus.DISABLED)
        assert summary.total_gallons == 0
        assert all(d.gallons == 0 for d in summary.days)
        assert summary.by_zone == {}

    def test_summary(self, make_plan, zones):
        plan = calculate_water_usage(make_plan({0: [(4, "06:00", 10)], 2: [(1, "05:00", 20)]}), zones)

        summary = plan_water_usage(plan, SystemStatus.IDLE)
        assert [d.gallons for d in summary.days] == [120.0, 0, 187.5, 0, 0, 0, 0]
        assert summary.total_gallons == 307.5
        assert summary.by_zone == {4: 120.0, 1: 187.5}
