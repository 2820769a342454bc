"""
Planner service - reply validation and forecast change detection
"""
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from agents.planner.models import PlanContext
from agents.weather.models import ForecastDay, WeatherData
from core.exceptions import SchemaError

logger = logging.getLogger(__name__)

ReplyType = TypeVar("ReplyType", bound=BaseModel)


class PlannerService:
    """Stateless helpers used by the planner agent"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config

    def parse_reply(self, schema: Type[ReplyType], raw: Any) -> ReplyType:
        """Validate an untrusted generation reply; structural problems raise SchemaError"""
        if not isinstance(raw, dict):
            raise SchemaError(f"{schema.__name__} reply must be a JSON object")
        try:
            return schema.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Generation reply failed {schema.__name__} validation: {e.error_count()} error(s)")
            raise SchemaError(f"Invalid {schema.__name__} from generation backend: {e.errors()[0]['msg']}") from e

    def fixture_context(self, ctx: PlanContext, days: List[str], **extra) -> Dict[str, Any]:
        """Structured context passed alongside the prompt"""
        payload = {
            "days": days,
            "today": ctx.local_date,
            "now_time": ctx.local_time,
            "zones": [{"id": z.id, "name": z.name} for z in ctx.zones if z.enabled],
            "plan": ctx.plan.model_dump(by_alias=True) if ctx.plan else None,
        }
        payload.update(extra)
        return payload

    def detect_significant_changes(self, assumed: List[ForecastDay], latest: WeatherData,
                                   today: str) -> List[str]:
        """
        Compare the forecast a plan was built on with the latest one

        Returns one human-readable reason per significant change; an empty
        list means the plan still stands.
        """
        cfg = self.config
        reasons: List[str] = []
        previous = {f.date: f for f in assumed}

        for now in latest.forecast:
            if now.date < today:
                continue
            before = previous.get(now.date)
            if before is None:
                continue

            jump = now.precip_probability - before.precip_probability
            if jump >= cfg.get("precip_jump_points", 30):
                reasons.append(
                    f"{now.date}: rain chance rose from {before.precip_probability:g}% to {now.precip_probability:g}%"
                )

            swing = now.temp_high - before.temp_high
            if abs(swing) > cfg.get("temp_swing_f", 10):
                reasons.append(f"{now.date}: high temperature moved {swing:+g}°F to {now.temp_high:g}°F")

            if (before.precip_amount < cfg.get("dry_day_max_in", 0.01)
                    and now.precip_amount > cfg.get("new_rain_min_in", 0.25)):
                reasons.append(f"{now.date}: previously dry, now {now.precip_amount:g}\" of rain expected")

        storm_miss = self._storm_not_materialized(assumed, latest, today)
        if storm_miss:
            reasons.append(storm_miss)
        return reasons

    def _storm_not_materialized(self, assumed: List[ForecastDay], latest: WeatherData,
                                today: str) -> Optional[str]:
        cfg = self.config
        stormy = [
            f for f in assumed
            if f.date <= today and (
                f.precip_probability >= cfg.get("storm_probability", 70)
                or f.precip_amount >= cfg.get("storm_amount_in", 0.5)
            )
        ]
        if not stormy or latest.recent_rainfall >= cfg.get("storm_miss_rainfall_in", 0.1):
            return None

        todays = latest.forecast_for(today)
        hottest = max(latest.current.temp, todays.temp_high if todays else latest.current.temp)
        if hottest < cfg.get("high_temp_f", 85):
            return None
        return (
            f"Expected storm on {stormy[-1].date} did not materialize "
            f"({latest.recent_rainfall:g}\" fell) and it is {hottest:g}°F"
        )
