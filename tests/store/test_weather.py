"""Weather oracle: seeded per event and hour."""

from datetime import timedelta

from launchday.contracts.weather import CriterionStatus, RangeStatus
from launchday.store.weather import WeatherOracle, site_profile, range_status_for, DEFAULT_SITE
from tests.fixtures import NOW


def comparable(report):
    data = report.to_dict()
    data.pop('generated_at')
    return data


class TestWeatherOracle:

    def test_same_hour_same_report(self):
        oracle = WeatherOracle()
        a = oracle.report("evt", "Cape Canaveral", NOW)
        b = oracle.report("evt", "Cape Canaveral", NOW + timedelta(minutes=45))
        assert comparable(a) == comparable(b)

    def test_range_status_follows_criteria(self):
        oracle = WeatherOracle()
        for hour in range(48):
            report = oracle.report("evt", "Vandenberg", NOW + timedelta(hours=hour))
            assert report.range_status == range_status_for(report.criteria)
            statuses = {c.status for c in report.criteria}
            if CriterionStatus.NO_GO in statuses:
                assert report.range_status == RangeStatus.RED

    def test_values_in_range(self):
        report = WeatherOracle().report("evt", None, NOW)
        assert 0 <= report.cloud_cover_pct <= 100
        assert report.wind_direction in ('N', 'NE', 'E', 'SE', 'S', 'SW', 'W', 'NW')
        assert len(report.criteria) == 8

    def test_site_profiles(self):
        assert site_profile("Vandenberg SFB, California").base_temp_f == 62
        assert site_profile("Starbase, TX").base_wind_kts == 14
        assert site_profile("Kennedy LC-39A").storm_chance == 0.25
        assert site_profile(None) == DEFAULT_SITE
        assert site_profile("Baikonur") == DEFAULT_SITE
