import pytest

from feature_reacher.trend import (
    calculate_direction,
    generate_trend_data,
    get_feature_trend,
    sort_audits,
    sparkline,
)


@pytest.fixture
def history(make_persisted):
    jan = make_persisted("AUD-00000A", "2024-01-01T00:00:00+00:00", [
        ("audit log", "critical", "undiscoverable"),
        ("Bulk Editing", "medium", None),
    ])
    feb = make_persisted("AUD-00000B", "2024-02-01T00:00:00+00:00", [
        ("Audit Log", "high", "likely_invisible"),
    ])
    mar = make_persisted("AUD-00000C", "2024-03-01T00:00:00+00:00", [
        ("Audit Log", "medium", "likely_invisible"),
        ("Dashboard", "low", "healthy"),
        ("Saved Views", "high", "likely_invisible"),
    ])
    apr = make_persisted("AUD-00000D", "2024-04-01T00:00:00+00:00", [
        ("Audit Log", "low", "healthy"),
        ("Smart Filters", "critical", "likely_invisible"),
        ("Dashboard", "high", "likely_invisible"),
        ("Saved Views", "high", "likely_invisible"),
    ])
    # deliberately out of order
    return [mar, jan, apr, feb]


def test_improving_feature(history):
    trend = get_feature_trend("Audit Log", history)

    assert trend.direction == "improving"
    assert trend.risk_level_changes == 3
    assert trend.diagnosis_changes == 2
    assert trend.current_risk_level == "low"
    assert trend.current_diagnosis == "healthy"
    assert [p.risk_level for p in trend.points] == ["critical", "high", "medium", "low"]
    assert trend.first_seen == "2024-01-01T00:00:00+00:00"
    assert trend.last_seen == "2024-04-01T00:00:00+00:00"
    assert sparkline(trend.points) == "▓▒░·"


def test_trend_name_comes_from_latest_audit(history):
    assert get_feature_trend("AUDIT LOG", history).feature_name == "Audit Log"
    assert get_feature_trend("Nonexistent", history) is None


def test_summary_counts_and_order(history):
    summary = generate_trend_data(history)

    assert summary.audits_analyzed == 4
    assert summary.date_from == "2024-01-01T00:00:00+00:00"
    assert summary.date_to == "2024-04-01T00:00:00+00:00"
    assert [t.feature_name for t in summary.feature_trends] == [
        "Smart Filters", "Dashboard", "Saved Views", "Bulk Editing", "Audit Log",
    ]
    assert (summary.improving, summary.worsening, summary.stable) == (1, 1, 3)
    assert summary.new_features == 1


def test_worsening_direction(history):
    trend = get_feature_trend("Dashboard", history)
    assert trend.direction == "worsening"
    assert trend.risk_level_changes == 1


def test_empty_history():
    summary = generate_trend_data([])
    assert summary.audits_analyzed == 0
    assert summary.feature_trends == []
    assert summary.to_dict()["date_range"] == {"from": "", "to": ""}


def test_single_point_is_stable(history):
    trend = get_feature_trend("Bulk Editing", history)
    assert trend.direction == "stable"
    assert calculate_direction(trend.points) == "stable"


def test_sort_audits_puts_unparseable_last(make_persisted):
    good = make_persisted("AUD-00000A", "2024-01-01T00:00:00+00:00", [])
    bad = make_persisted("AUD-00000B", "someday", [])
    assert [a.audit_id for a in sort_audits([bad, good])] == ["AUD-00000A", "AUD-00000B"]
