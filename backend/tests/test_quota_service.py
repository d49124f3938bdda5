"""Tests for the daily quota ledger."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch
from zoneinfo import ZoneInfo

from sqlalchemy.exc import OperationalError

from app.models.limit_override import LimitOverride
from app.services.quota_service import QuotaService, day_window
from tests.conftest import FINGERPRINT, create_generation

IP = "10.0.0.1"
WARSAW = ZoneInfo("Europe/Warsaw")


class TestDayWindow:
    def test_window_starts_at_local_midnight(self):
        now = datetime(2026, 3, 14, 15, 30, tzinfo=UTC).astimezone()
        start, reset_at = day_window(now)

        assert start.hour == 0
        assert start.minute == 0
        assert start.date() == now.date()
        assert reset_at - start == timedelta(days=1)
        assert start <= now < reset_at

    def test_window_is_timezone_aware(self):
        start, reset_at = day_window()
        assert start.tzinfo is not None
        assert reset_at.tzinfo is not None


class TestDayWindowAcrossDst:
    def test_autumn_change_day_starts_at_summer_offset(self, warsaw_tz):
        now = datetime(2026, 10, 25, 12, 0, tzinfo=WARSAW)
        start, reset_at = day_window(now)

        assert start == datetime(2026, 10, 25, 0, 0, tzinfo=WARSAW)
        assert start.utcoffset() == timedelta(hours=2)
        assert reset_at.utcoffset() == timedelta(hours=1)
        assert reset_at - start == timedelta(hours=25)

    def test_spring_change_day_is_23_hours(self, warsaw_tz):
        now = datetime(2026, 3, 29, 12, 0, tzinfo=WARSAW)
        start, reset_at = day_window(now)

        assert start == datetime(2026, 3, 29, 0, 0, tzinfo=WARSAW)
        assert reset_at == datetime(2026, 3, 30, 0, 0, tzinfo=WARSAW)
        assert reset_at - start == timedelta(hours=23)

    def test_record_in_first_hour_counts(self, db_session, warsaw_tz):
        # 00:30 local on the autumn change day, still summer time
        create_generation(db_session, created_at=datetime(2026, 10, 24, 22, 30, tzinfo=UTC))
        create_generation(db_session, created_at=datetime(2026, 10, 24, 21, 30, tzinfo=UTC))

        now = datetime(2026, 10, 25, 12, 0, tzinfo=WARSAW)
        status = QuotaService(db_session).check_quota(FINGERPRINT, IP, now=now)

        assert status.remaining == 2


class TestCheckQuota:
    def test_fresh_identity_has_full_quota(self, db_session):
        status = QuotaService(db_session).check_quota(FINGERPRINT, IP)

        assert status.allowed is True
        assert status.remaining == 3
        assert status.effective_limit == 3
        assert status.bonus == 0

    def test_counts_records_of_every_status(self, db_session):
        create_generation(db_session, status="completed")
        create_generation(db_session, status="error")
        create_generation(db_session, status="generating")

        status = QuotaService(db_session).check_quota(FINGERPRINT, IP)

        assert status.allowed is False
        assert status.remaining == 0

    def test_uses_larger_of_fingerprint_and_ip_counts(self, db_session):
        # Same IP, rotating fingerprints
        for i in range(2):
            create_generation(db_session, fingerprint=f"rotated-fp-{i}")

        status = QuotaService(db_session).check_quota("brand-new-fp", IP)

        assert status.remaining == 1

    def test_fingerprint_counts_across_ips(self, db_session):
        for i in range(3):
            create_generation(db_session, ip=f"10.0.1.{i}")

        status = QuotaService(db_session).check_quota(FINGERPRINT, "10.9.9.9")

        assert status.allowed is False

    def test_records_before_today_do_not_count(self, db_session):
        start_of_day, _ = day_window()
        for _ in range(3):
            create_generation(db_session, created_at=start_of_day - timedelta(minutes=1))

        status = QuotaService(db_session).check_quota(FINGERPRINT, IP)

        assert status.remaining == 3

    def test_positive_bonus_extends_limit(self, db_session):
        db_session.add(LimitOverride(ip=IP, bonus=5))
        db_session.commit()
        for _ in range(3):
            create_generation(db_session)

        status = QuotaService(db_session).check_quota(FINGERPRINT, IP)

        assert status.allowed is True
        assert status.effective_limit == 8
        assert status.remaining == 5
        assert status.bonus == 5

    def test_negative_bonus_blocks(self, db_session):
        db_session.add(LimitOverride(ip=IP, bonus=-3))
        db_session.commit()

        status = QuotaService(db_session).check_quota(FINGERPRINT, IP)

        assert status.allowed is False
        assert status.effective_limit == 0
        assert status.remaining == 0

    def test_remaining_never_negative(self, db_session):
        for _ in range(5):
            create_generation(db_session)

        assert QuotaService(db_session).check_quota(FINGERPRINT, IP).remaining == 0

    def test_base_limit_override(self, db_session):
        status = QuotaService(db_session, base_limit=10).check_quota(FINGERPRINT, IP)
        assert status.effective_limit == 10

    def test_reset_at_is_next_local_midnight(self, db_session):
        _, expected = day_window()
        status = QuotaService(db_session).check_quota(FINGERPRINT, IP)
        assert status.reset_at == expected


class TestOverrideLookupFailure:
    def test_lookup_failure_counts_as_no_bonus(self, db_session):
        service = QuotaService(db_session)
        with patch.object(
            service.override_repo,
            "get_by_ip",
            side_effect=OperationalError("SELECT", {}, Exception("no such table")),
        ):
            status = service.check_quota(FINGERPRINT, IP)

        assert status.allowed is True
        assert status.bonus == 0
        assert status.effective_limit == 3
