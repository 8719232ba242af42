"""
Solar Anomaly Detectors
=======================
Heuristic detectors applied to a unit's per-day energy totals.

Every detector is a pure function of ``(aggregates, profile)`` returning a list
of :class:`~app.domain.anomaly.AnomalyFinding`. Detectors never touch the
database and never mutate their inputs, which lets the orchestrator run them
concurrently over the same series.

Detection methods:
- Mechanical failure: abrupt day-over-day production collapse
- Temperature derating: sustained underperformance against rated output
- Shading/obstruction: persistent output below the best observed days
- Sensor error: physically impossible values and IQR outliers
"""

from __future__ import annotations

import math
from typing import Callable

from app.domain.anomaly import AnomalyFinding
from app.domain.energy import DailyAggregate, UnitProfile, energy_totals, mean
from app.enums import AnomalySeverity, AnomalyType, SensorErrorType

DetectorFn = Callable[[tuple[DailyAggregate, ...], UnitProfile], list[AnomalyFinding]]

# Minimum number of days each detector needs before it says anything
MECHANICAL_MIN_DAYS = 2
TEMPERATURE_MIN_DAYS = 7
SHADING_MIN_DAYS = 5
SENSOR_ERROR_MIN_DAYS = 3

# Mechanical
ZERO_DAY_PREV_AVG_RATIO = 0.3
DROP_PREV_RATIO = 0.3
DROP_AVG_RATIO = 0.5
CRITICAL_DROP_PERCENT = 80.0

# Temperature
TEMPERATURE_WINDOW_DAYS = 7
UNDERPERFORMANCE_RATIO = 0.6
LOW_EFFICIENCY_PERCENT = 40.0

# Shading
PEAK_DAYS = 3
SHADED_AVG_RATIO = 0.7
LOW_DAY_RATIO = 0.75
MIN_LOW_DAYS = 3
SHADING_WARNING_PERCENT = 40.0

# Sensor error
MAXIMUM_TOLERANCE = 1.2
IQR_MULTIPLIER = 1.5


def detect_mechanical_anomalies(
    aggregates: tuple[DailyAggregate, ...], profile: UnitProfile | None = None
) -> list[AnomalyFinding]:
    """Flag sudden or complete production collapse between consecutive days.

    A healthy unit's day-to-day variation tracks the weather; a collapse that
    is also far below the running average points at hardware instead.
    """
    findings: list[AnomalyFinding] = []
    if len(aggregates) < MECHANICAL_MIN_DAYS:
        return findings

    avg_production = mean(energy_totals(aggregates))

    for prev, curr in zip(aggregates, aggregates[1:]):
        prev_energy = prev.total_energy
        curr_energy = curr.total_energy

        if curr_energy == 0 and prev_energy > avg_production * ZERO_DAY_PREV_AVG_RATIO:
            findings.append(
                AnomalyFinding(
                    anomaly_type=AnomalyType.MECHANICAL,
                    severity=AnomalySeverity.CRITICAL,
                    description=(
                        f"Complete production failure detected. Previous day: {prev_energy:.2f} kWh, "
                        f"Current: 0 kWh. Possible equipment malfunction."
                    ),
                    affected_start_date=curr.day,
                    affected_end_date=curr.day,
                    metadata={
                        "previous_energy": prev_energy,
                        "current_energy": curr_energy,
                        "drop_percentage": 100,
                    },
                )
            )
        elif (
            prev_energy > 0
            and curr_energy < prev_energy * DROP_PREV_RATIO
            and curr_energy < avg_production * DROP_AVG_RATIO
        ):
            drop_percent = (prev_energy - curr_energy) / prev_energy * 100
            findings.append(
                AnomalyFinding(
                    anomaly_type=AnomalyType.MECHANICAL,
                    severity=(
                        AnomalySeverity.CRITICAL if drop_percent > CRITICAL_DROP_PERCENT else AnomalySeverity.WARNING
                    ),
                    description=(
                        f"Significant production drop detected: {drop_percent:.1f}% decrease from "
                        f"{prev_energy:.2f} kWh to {curr_energy:.2f} kWh. Possible mechanical issue."
                    ),
                    affected_start_date=curr.day,
                    affected_end_date=curr.day,
                    metadata={
                        "previous_energy": prev_energy,
                        "current_energy": curr_energy,
                        "drop_percentage": drop_percent,
                    },
                )
            )

    return findings


def detect_temperature_anomalies(
    aggregates: tuple[DailyAggregate, ...], profile: UnitProfile
) -> list[AnomalyFinding]:
    """Flag a week of output stuck at a low fraction of rated capacity.

    Panels lose efficiency when hot; sustained underperformance without the
    sharp drop pattern of a failure matches thermal derating.
    """
    if len(aggregates) < TEMPERATURE_MIN_DAYS:
        return []

    expected_daily = profile.expected_daily_energy
    window = aggregates[-TEMPERATURE_WINDOW_DAYS:]
    avg_recent = mean(energy_totals(window))

    if not 0 < avg_recent < expected_daily * UNDERPERFORMANCE_RATIO:
        return []

    efficiency_percent = avg_recent / expected_daily * 100
    return [
        AnomalyFinding(
            anomaly_type=AnomalyType.TEMPERATURE,
            severity=AnomalySeverity.WARNING if efficiency_percent < LOW_EFFICIENCY_PERCENT else AnomalySeverity.INFO,
            description=(
                f"Consistent underperformance detected. Average production: {avg_recent:.2f} kWh "
                f"({efficiency_percent:.1f}% of expected {expected_daily:.2f} kWh). "
                f"Possible temperature-related efficiency loss."
            ),
            affected_start_date=window[0].day,
            affected_end_date=window[-1].day,
            metadata={
                "average_production": avg_recent,
                "expected_production": expected_daily,
                "efficiency_percent": efficiency_percent,
                "days_analyzed": len(window),
            },
        )
    ]


def detect_shading_anomalies(
    aggregates: tuple[DailyAggregate, ...], profile: UnitProfile | None = None
) -> list[AnomalyFinding]:
    """Flag many days moderately below the best observed days.

    The top days stand in for unobstructed capability, so persistent partial
    shading shows up as a depressed overall average with several low days.
    """
    if len(aggregates) < SHADING_MIN_DAYS:
        return []

    totals = energy_totals(aggregates)
    by_energy = sorted(totals, reverse=True)
    peak_avg = sum(by_energy[:PEAK_DAYS]) / PEAK_DAYS
    overall_avg = mean(totals)

    if not (peak_avg > 0 and overall_avg < peak_avg * SHADED_AVG_RATIO):
        return []

    reduction_percent = (peak_avg - overall_avg) / peak_avg * 100
    low_days = [a for a in aggregates if a.total_energy < peak_avg * LOW_DAY_RATIO]
    if len(low_days) < MIN_LOW_DAYS:
        return []

    return [
        AnomalyFinding(
            anomaly_type=AnomalyType.SHADING,
            severity=(
                AnomalySeverity.WARNING if reduction_percent > SHADING_WARNING_PERCENT else AnomalySeverity.INFO
            ),
            description=(
                f"Possible shading or obstruction detected. Production consistently {reduction_percent:.1f}% "
                f"below peak performance. Peak: {peak_avg:.2f} kWh, Average: {overall_avg:.2f} kWh."
            ),
            affected_start_date=low_days[0].day,
            affected_end_date=low_days[-1].day,
            metadata={
                "peak_production": peak_avg,
                "average_production": overall_avg,
                "reduction_percent": reduction_percent,
                "affected_days": len(low_days),
            },
        )
    ]


def detect_sensor_errors(aggregates: tuple[DailyAggregate, ...], profile: UnitProfile) -> list[AnomalyFinding]:
    """Flag impossible readings (critical) and statistical outliers (warning).

    Both passes run independently, so a single day can produce a finding from
    each.
    """
    if len(aggregates) < SENSOR_ERROR_MIN_DAYS:
        return []

    findings = _check_physical_bounds(aggregates, profile)
    findings.extend(_check_iqr_outliers(aggregates))
    return findings


def _check_physical_bounds(aggregates: tuple[DailyAggregate, ...], profile: UnitProfile) -> list[AnomalyFinding]:
    max_possible = profile.theoretical_max_daily_energy
    findings: list[AnomalyFinding] = []

    for aggregate in aggregates:
        energy = aggregate.total_energy
        if energy < 0:
            findings.append(
                AnomalyFinding(
                    anomaly_type=AnomalyType.SENSOR_ERROR,
                    severity=AnomalySeverity.CRITICAL,
                    description=(
                        f"Invalid sensor reading detected: {energy} kWh (negative value). "
                        f"Sensor malfunction likely."
                    ),
                    affected_start_date=aggregate.day,
                    affected_end_date=aggregate.day,
                    metadata={
                        "invalid_value": energy,
                        "error_type": SensorErrorType.NEGATIVE_VALUE.value,
                    },
                )
            )
        elif energy > max_possible * MAXIMUM_TOLERANCE:
            overshoot_percent = (energy / max_possible - 1) * 100
            findings.append(
                AnomalyFinding(
                    anomaly_type=AnomalyType.SENSOR_ERROR,
                    severity=AnomalySeverity.CRITICAL,
                    description=(
                        f"Impossible sensor reading detected: {energy:.2f} kWh exceeds theoretical maximum "
                        f"of {max_possible:.2f} kWh by {overshoot_percent:.1f}%."
                    ),
                    affected_start_date=aggregate.day,
                    affected_end_date=aggregate.day,
                    metadata={
                        "invalid_value": energy,
                        "theoretical_max": max_possible,
                        "overshoot_percent": overshoot_percent,
                        "error_type": SensorErrorType.EXCEEDS_MAXIMUM.value,
                    },
                )
            )

    return findings


def iqr_bounds(values: list[float]) -> tuple[float, float, float, float]:
    """Return ``(q1, q3, lower, upper)`` using index-based quartiles.

    Quartiles are taken at ``floor(n * 0.25)`` and ``floor(n * 0.75)`` of the
    ascending values, without interpolation.
    """
    ordered = sorted(values)
    n = len(ordered)
    q1 = ordered[math.floor(n * 0.25)]
    q3 = ordered[math.floor(n * 0.75)]
    iqr = q3 - q1
    return q1, q3, q1 - IQR_MULTIPLIER * iqr, q3 + IQR_MULTIPLIER * iqr


def _check_iqr_outliers(aggregates: tuple[DailyAggregate, ...]) -> list[AnomalyFinding]:
    q1, q3, lower, upper = iqr_bounds(energy_totals(aggregates))
    findings: list[AnomalyFinding] = []

    for aggregate in aggregates:
        energy = aggregate.total_energy
        if lower <= energy <= upper:
            continue
        findings.append(
            AnomalyFinding(
                anomaly_type=AnomalyType.SENSOR_ERROR,
                severity=AnomalySeverity.WARNING,
                description=(
                    f"Outlier reading detected: {energy:.2f} kWh. Expected range: "
                    f"{lower:.2f} - {upper:.2f} kWh. Possible sensor error."
                ),
                affected_start_date=aggregate.day,
                affected_end_date=aggregate.day,
                metadata={
                    "outlier_value": energy,
                    "expected_range": {"lower": lower, "upper": upper},
                    "q1": q1,
                    "q3": q3,
                    "error_type": SensorErrorType.STATISTICAL_OUTLIER.value,
                },
            )
        )

    return findings


# Execution order is also the order findings are persisted in
DETECTORS: tuple[tuple[str, DetectorFn], ...] = (
    ("mechanical", detect_mechanical_anomalies),
    ("temperature", detect_temperature_anomalies),
    ("shading", detect_shading_anomalies),
    ("sensor_error", detect_sensor_errors),
)
