"""Unit tests for the donation eligibility rule."""

from datetime import UTC, datetime, timedelta

from lostfound.lifecycle import (
    EligibilityAnomaly,
    ItemStatus,
    donation_eligibility,
)
from tests.helpers.factories import make_item
from tests.helpers.time import FIXED_NOW


class TestDonationEligibility:
    """Tests for donation_eligibility()."""

    def test_old_active_item_eligible(self) -> None:
        """Test an item past the threshold is eligible."""
        decision = donation_eligibility(make_item(age_days=366), FIXED_NOW)
        assert decision.eligible
        assert decision.age_days == 366
        assert decision.anomaly is None

    def test_young_item_not_eligible(self) -> None:
        """Test an item under the threshold is not eligible."""
        decision = donation_eligibility(make_item(age_days=364), FIXED_NOW)
        assert not decision.eligible
        assert decision.age_days == 364

    def test_exact_threshold_eligible(self) -> None:
        """Test the threshold itself counts as eligible."""
        assert donation_eligibility(make_item(age_days=365), FIXED_NOW).eligible

    def test_non_active_never_eligible(self) -> None:
        """Test only ACTIVE items qualify."""
        for status in ItemStatus:
            if status == ItemStatus.ACTIVE:
                continue
            item = make_item(status=status, age_days=1000)
            assert not donation_eligibility(item, FIXED_NOW).eligible

    def test_future_timestamp_is_anomaly(self) -> None:
        """Test report times in the future fail closed."""
        item = make_item(age_days=-3)
        decision = donation_eligibility(item, FIXED_NOW)
        assert not decision.eligible
        assert decision.anomaly == EligibilityAnomaly.FUTURE_TIMESTAMP
        assert decision.age_days is None

    def test_epoch_timestamp_is_anomaly(self) -> None:
        """Test unset report times fail closed."""
        item = make_item().model_copy(
            update={"reported_at": datetime(1970, 1, 1, tzinfo=UTC)}
        )
        decision = donation_eligibility(item, FIXED_NOW)
        assert not decision.eligible
        assert decision.anomaly == EligibilityAnomaly.INVALID_TIMESTAMP

    def test_custom_threshold(self) -> None:
        """Test the threshold is configurable."""
        item = make_item(age_days=31)
        assert donation_eligibility(item, FIXED_NOW, timedelta(days=30)).eligible
