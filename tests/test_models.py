"""Tests for service scheduling helpers on the models."""

from appointease.models import Service, ServiceType


def make_service(**kwargs):
    defaults = dict(name="Pilates", duration_minutes=55, capacity=6, service_type=ServiceType.CLASS)
    defaults.update(kwargs)
    return Service(**defaults)


class TestEffectiveCapacity:
    def test_individual_is_always_one(self):
        assert make_service(service_type=ServiceType.INDIVIDUAL, capacity=5).effective_capacity == 1

    def test_class_uses_capacity(self):
        assert make_service().effective_capacity == 6

    def test_class_capacity_never_below_one(self):
        assert make_service(capacity=0).effective_capacity == 1


class TestSessionsInMonth:
    def test_counts_weekdays_times_sessions(self):
        """March 2026 has five Mondays and four Wednesdays."""
        service = make_service(recurring_days=[1, 3], recurring_times=["09:00", "18:00"])
        assert service.sessions_in_month(2026, 3) == (5 + 4) * 2

    def test_capped_by_sessions_per_month(self):
        service = make_service(recurring_days=[1, 3], recurring_times=["09:00"], sessions_per_month=8)
        assert service.sessions_in_month(2026, 3) == 8

    def test_sunday_is_day_zero(self):
        """February 2026 starts on a Sunday and has four of them."""
        service = make_service(recurring_days=[0], recurring_times=["10:00"])
        assert service.sessions_in_month(2026, 2) == 4

    def test_individual_has_no_sessions(self):
        service = make_service(service_type=ServiceType.INDIVIDUAL, recurring_days=[1], recurring_times=["10:00"])
        assert service.sessions_in_month(2026, 3) == 0

    def test_session_times_are_sorted(self):
        service = make_service(recurring_days=[3, 1, 1], recurring_times=["18:00", "07:30"])
        assert service.session_days == [1, 3]
        assert [t.strftime("%H:%M") for t in service.session_times] == ["07:30", "18:00"]
