from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timezone, tzinfo
from pathlib import Path

from headroom.charts import ChartOptions
from headroom.merge import MIN_SEGMENT_DURATION_MS
from headroom.models import Series, TimeRange
from headroom.segments import (
    RESET_DROP_FALLBACK_PCT,
    RESET_JITTER_TOLERANCE_MS,
    ResetPolicy,
    gap_threshold_ms,
)
from headroom.slope import DEFAULT_SLOPE_WINDOW_MS, SlopeThresholds

LOG = logging.getLogger(__name__)


@dataclass
class ChartConfig:
    poll_interval_s: float = 30.0
    time_range: str = TimeRange.DAY.value
    width: float = 600.0
    height: float = 200.0
    five_hour_visible: bool = True
    seven_day_visible: bool = True
    timezone: str = "UTC"
    reset_jitter_tolerance_ms: int = RESET_JITTER_TOLERANCE_MS
    reset_drop_pct: float = RESET_DROP_FALLBACK_PCT
    min_segment_duration_ms: int = MIN_SEGMENT_DURATION_MS
    slope_window_s: float = DEFAULT_SLOPE_WINDOW_MS / 1000.0
    slope_flat_threshold: float = 0.5
    slope_steep_threshold: float = 1.5
    ini_path: Path | None = None

    @classmethod
    def load(cls, ini_path: str | Path | None = None) -> "ChartConfig":
        cfg = cls()
        path = Path(ini_path or "config.ini")
        if path.exists():
            import configparser

            parser = configparser.ConfigParser()
            parser.read(path)
            cfg._read_sections(parser)
        cfg.ini_path = path
        return cfg

    def _read_sections(self, parser) -> None:
        polling = parser["polling"] if "polling" in parser else None
        if polling:
            interval = _get(polling, "interval_s", self.poll_interval_s)
            if interval > 0:
                self.poll_interval_s = interval
            else:
                LOG.warning("Poll interval must be positive; keeping %.1fs", self.poll_interval_s)

        chart = parser["chart"] if "chart" in parser else None
        if chart:
            raw_range = chart.get("time_range", fallback=self.time_range)
            try:
                self.time_range = TimeRange.from_label(raw_range).value
            except ValueError:
                LOG.warning("Unknown time range %r; keeping %s", raw_range, self.time_range)
            self.width = _get(chart, "width", self.width)
            self.height = _get(chart, "height", self.height)
            self.five_hour_visible = _get(
                chart, "five_hour_visible", self.five_hour_visible, kind="boolean"
            )
            self.seven_day_visible = _get(
                chart, "seven_day_visible", self.seven_day_visible, kind="boolean"
            )
            self.timezone = chart.get("timezone", fallback=self.timezone).strip() or "UTC"

        segments = parser["segments"] if "segments" in parser else None
        if segments:
            self.reset_jitter_tolerance_ms = _get(
                segments, "reset_jitter_tolerance_ms", self.reset_jitter_tolerance_ms, kind="int"
            )
            self.reset_drop_pct = _get(segments, "reset_drop_pct", self.reset_drop_pct)
            self.min_segment_duration_ms = _get(
                segments, "min_segment_duration_ms", self.min_segment_duration_ms, kind="int"
            )

        slope = parser["slope"] if "slope" in parser else None
        if slope:
            self.slope_window_s = _get(slope, "window_s", self.slope_window_s)
            flat = _get(slope, "flat_threshold", self.slope_flat_threshold)
            steep = _get(slope, "steep_threshold", self.slope_steep_threshold)
            if steep >= flat:
                self.slope_flat_threshold = flat
                self.slope_steep_threshold = steep
            else:
                LOG.warning("Slope thresholds out of order (flat=%s, steep=%s); ignoring", flat, steep)

    def selected_time_range(self) -> TimeRange:
        return TimeRange.from_label(self.time_range)

    def display_size(self) -> tuple[float, float]:
        return (max(0.0, float(self.width)), max(0.0, float(self.height)))

    def visible_series(self) -> tuple[Series, ...]:
        flags = {
            Series.FIVE_HOUR: self.five_hour_visible,
            Series.SEVEN_DAY: self.seven_day_visible,
        }
        return tuple(series for series in Series if flags[series])

    def tzinfo(self) -> tzinfo:
        name = self.timezone.strip()
        if not name or name.upper() == "UTC":
            return timezone.utc
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            LOG.warning("Unknown timezone %r; using UTC", name)
            return timezone.utc

    def gap_threshold_ms(self) -> int:
        return gap_threshold_ms(self.poll_interval_s)

    def reset_policy(self) -> ResetPolicy:
        return ResetPolicy(
            jitter_tolerance_ms=self.reset_jitter_tolerance_ms,
            drop_fallback_pct=self.reset_drop_pct,
        )

    def slope_thresholds(self) -> SlopeThresholds:
        return SlopeThresholds(flat=self.slope_flat_threshold, steep=self.slope_steep_threshold)

    def chart_options(self) -> ChartOptions:
        return ChartOptions(
            size=self.display_size(),
            poll_interval_s=self.poll_interval_s,
            time_range=self.selected_time_range(),
            visible_series=self.visible_series(),
            tz=self.tzinfo(),
            reset_policy=self.reset_policy(),
            slope_thresholds=self.slope_thresholds(),
            slope_window_ms=int(self.slope_window_s * 1000),
            min_segment_duration_ms=self.min_segment_duration_ms,
        )

    def save(self) -> None:
        if self.ini_path is None:
            return
        import configparser

        parser = configparser.ConfigParser()
        parser["polling"] = {
            "interval_s": f"{self.poll_interval_s:.3f}",
        }
        parser["chart"] = {
            "time_range": self.time_range,
            "width": f"{self.width:.1f}",
            "height": f"{self.height:.1f}",
            "five_hour_visible": "true" if self.five_hour_visible else "false",
            "seven_day_visible": "true" if self.seven_day_visible else "false",
            "timezone": self.timezone,
        }
        parser["segments"] = {
            "reset_jitter_tolerance_ms": str(int(self.reset_jitter_tolerance_ms)),
            "reset_drop_pct": f"{self.reset_drop_pct:.3f}",
            "min_segment_duration_ms": str(int(self.min_segment_duration_ms)),
        }
        parser["slope"] = {
            "window_s": f"{self.slope_window_s:.3f}",
            "flat_threshold": f"{self.slope_flat_threshold:.3f}",
            "steep_threshold": f"{self.slope_steep_threshold:.3f}",
        }
        with self.ini_path.open("w") as fh:
            parser.write(fh)


def _get(section, key: str, fallback, *, kind: str = "float"):
    """Read one typed value, keeping ``fallback`` when the stored text does not parse."""
    getter = getattr(section, f"get{kind}")
    try:
        return getter(key, fallback=fallback)
    except ValueError:
        LOG.warning(
            "Ignoring malformed [%s] %s = %r; keeping %r",
            section.name,
            key,
            section.get(key),
            fallback,
        )
        return fallback
