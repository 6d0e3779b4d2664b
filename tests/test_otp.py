"""Тесты одноразового кода."""
import random
from datetime import datetime, timedelta

from tablebot.otp import (
    OTP_LENGTH,
    OtpIssuer,
    format_countdown,
    generate_code,
    is_well_formed,
)


NOW = datetime(2025, 3, 14, 19, 0, 0)


class TestCode:

    def test_generated_code_is_six_digits(self):
        rng = random.Random(1)
        for _ in range(50):
            code = generate_code(rng)
            assert len(code) == OTP_LENGTH
            assert code.isdigit()

    def test_leading_zero_allowed(self):
        rng = random.Random()
        rng.randrange = lambda n: 0
        assert generate_code(rng) == "000000"

    def test_is_well_formed(self):
        assert is_well_formed("012345")
        assert not is_well_formed("12345")
        assert not is_well_formed("1234567")
        assert not is_well_formed("12a456")
        assert not is_well_formed("")

    def test_format_countdown(self):
        assert format_countdown(300) == "5:00"
        assert format_countdown(65) == "1:05"
        assert format_countdown(9) == "0:09"
        assert format_countdown(-3) == "0:00"


class TestOtpIssuer:

    def test_issue_sets_expiry(self):
        issuer = OtpIssuer(ttl_seconds=300, rng=random.Random(7))
        challenge = issuer.issue(NOW)
        assert challenge.issued_at == NOW
        assert challenge.expires_at == NOW + timedelta(seconds=300)
        assert issuer.challenge is challenge

    def test_matches_current_code(self):
        issuer = OtpIssuer(rng=random.Random(7))
        challenge = issuer.issue(NOW)
        assert issuer.matches(challenge.code)
        assert issuer.failed_attempts == 0

    def test_no_challenge_never_matches(self):
        assert not OtpIssuer().matches("123456")

    def test_resend_invalidates_previous(self):
        issuer = OtpIssuer(rng=random.Random(7))
        first = issuer.issue(NOW)
        second = issuer.issue(NOW + timedelta(seconds=301))
        assert first.code != second.code
        assert not issuer.matches(first.code)
        assert issuer.matches(second.code)

    def test_countdown_and_resend(self):
        issuer = OtpIssuer(ttl_seconds=300, rng=random.Random(7))
        issuer.issue(NOW)
        assert issuer.seconds_left(NOW) == 300
        assert issuer.seconds_left(NOW + timedelta(seconds=299, milliseconds=500)) == 1
        assert not issuer.can_resend(NOW + timedelta(seconds=10))
        assert issuer.seconds_left(NOW + timedelta(seconds=300)) == 0
        assert issuer.can_resend(NOW + timedelta(seconds=300))

    def test_can_resend_without_challenge(self):
        assert OtpIssuer().can_resend(NOW)

    def test_unlimited_attempts(self):
        issuer = OtpIssuer(max_attempts=0, rng=random.Random(7))
        issuer.issue(NOW)
        for _ in range(20):
            issuer.matches("xxxxxx")
        assert issuer.attempts_left is None
        assert not issuer.is_locked

    def test_attempt_limit(self):
        issuer = OtpIssuer(max_attempts=3, rng=random.Random(7))
        issuer.issue(NOW)
        issuer.matches("xxxxxx")
        assert issuer.attempts_left == 2
        issuer.matches("xxxxxx")
        issuer.matches("xxxxxx")
        assert issuer.attempts_left == 0
        assert issuer.is_locked

    def test_issue_resets_attempts(self):
        issuer = OtpIssuer(max_attempts=1, rng=random.Random(7))
        issuer.issue(NOW)
        issuer.matches("xxxxxx")
        assert issuer.is_locked
        issuer.issue(NOW)
        assert not issuer.is_locked
        assert issuer.failed_attempts == 0
