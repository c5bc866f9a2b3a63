"""Storage access for weekly availability rules."""

from sqlalchemy.orm import Session

from biolink_booking.models.availability import AvailabilityRule


class RuleRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_rule(self, provider_id: int, day_of_week: int) -> AvailabilityRule | None:
        # Several rules may exist for one day; the earliest inserted wins.
        return self.db.query(AvailabilityRule).filter(
            AvailabilityRule.provider_id == provider_id,
            AvailabilityRule.day_of_week == day_of_week,
        ).order_by(AvailabilityRule.id.asc()).first()

    def list_rules(self, provider_id: int) -> list[AvailabilityRule]:
        return self.db.query(AvailabilityRule).filter(
            AvailabilityRule.provider_id == provider_id,
        ).order_by(AvailabilityRule.day_of_week.asc(), AvailabilityRule.id.asc()).all()

    def replace_rule(
        self,
        provider_id: int,
        day_of_week: int,
        *,
        start_time: str,
        end_time: str,
        is_enabled: bool,
        slot_duration_minutes: int,
        buffer_minutes: int,
    ) -> AvailabilityRule:
        rule = self.get_rule(provider_id, day_of_week)
        if rule is None:
            rule = AvailabilityRule(provider_id=provider_id, day_of_week=day_of_week)
            self.db.add(rule)

        rule.start_time = start_time
        rule.end_time = end_time
        rule.is_enabled = is_enabled
        rule.slot_duration_minutes = slot_duration_minutes
        rule.buffer_minutes = buffer_minutes

        self.db.commit()
        self.db.refresh(rule)
        return rule
