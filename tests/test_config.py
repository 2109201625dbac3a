import logging
from datetime import timezone
from pathlib import Path

from config import ChartConfig
from headroom.models import Series, TimeRange


def test_chart_config_defaults_when_missing(tmp_path: Path):
    cfg = ChartConfig.load(tmp_path / "missing.ini")
    assert cfg.poll_interval_s == 30.0
    assert cfg.selected_time_range() is TimeRange.DAY
    assert cfg.visible_series() == (Series.FIVE_HOUR, Series.SEVEN_DAY)
    assert cfg.tzinfo() is timezone.utc
    assert cfg.gap_threshold_ms() == 300_000


def test_chart_config_parse(tmp_path: Path):
    ini_path = tmp_path / "config.ini"
    ini_path.write_text(
        """
[polling]
interval_s = 600

[chart]
time_range = 7d
width = 320
height = 90
seven_day_visible = false

[segments]
reset_jitter_tolerance_ms = 30000
min_segment_duration_ms = 120000

[slope]
window_s = 600
flat_threshold = 0.25
steep_threshold = 2.0
""".strip()
    )

    cfg = ChartConfig.load(ini_path)
    assert cfg.gap_threshold_ms() == 900_000
    assert cfg.selected_time_range() is TimeRange.WEEK
    assert cfg.display_size() == (320.0, 90.0)
    assert cfg.visible_series() == (Series.FIVE_HOUR,)
    assert cfg.reset_policy().jitter_tolerance_ms == 30_000
    assert cfg.slope_thresholds().flat == 0.25

    options = cfg.chart_options()
    assert options.time_range is TimeRange.WEEK
    assert options.slope_window_ms == 600_000
    assert options.min_segment_duration_ms == 120_000
    assert not options.both_visible


def test_chart_config_rejects_bad_values(tmp_path: Path, caplog):
    ini_path = tmp_path / "config.ini"
    ini_path.write_text(
        """
[polling]
interval_s = -5

[chart]
time_range = fortnight
timezone = Mars/Olympus_Mons

[slope]
flat_threshold = 3.0
steep_threshold = 1.0
""".strip()
    )

    with caplog.at_level(logging.WARNING):
        cfg = ChartConfig.load(ini_path)
        tz = cfg.tzinfo()
    assert cfg.poll_interval_s == 30.0
    assert cfg.time_range == "24h"
    assert cfg.slope_flat_threshold == 0.5
    assert cfg.slope_steep_threshold == 1.5
    assert tz is timezone.utc
    assert len(caplog.records) >= 4


def test_chart_config_save_round_trip(tmp_path: Path):
    ini_path = tmp_path / "config.ini"
    cfg = ChartConfig.load(ini_path)
    cfg.time_range = "30d"
    cfg.five_hour_visible = False
    cfg.reset_drop_pct = 40.0
    cfg.save()

    written = ini_path.read_text()
    assert "time_range = 30d" in written
    assert "five_hour_visible = false" in written

    reloaded = ChartConfig.load(ini_path)
    assert reloaded.selected_time_range() is TimeRange.MONTH
    assert reloaded.visible_series() == (Series.SEVEN_DAY,)
    assert reloaded.reset_policy().drop_fallback_pct == 40.0


def test_chart_config_malformed_value_keeps_later_settings(tmp_path: Path, caplog):
    ini_path = tmp_path / "config.ini"
    ini_path.write_text(
        """
[chart]
width = wide
height = 90
seven_day_visible = maybe

[segments]
min_segment_duration_ms = 120000

[slope]
window_s = 600
""".strip()
    )

    with caplog.at_level(logging.WARNING):
        cfg = ChartConfig.load(ini_path)
    assert cfg.width == 600.0
    assert cfg.height == 90.0
    assert cfg.seven_day_visible is True
    assert cfg.min_segment_duration_ms == 120_000
    assert cfg.slope_window_s == 600.0
    messages = [record.getMessage() for record in caplog.records]
    assert any("width" in message for message in messages)
    assert any("seven_day_visible" in message for message in messages)
