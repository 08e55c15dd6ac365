from __future__ import annotations

from typing import Iterable

import pandas as pd

from emergency_coord.models import Emergency, EmergencyStatus, Responder, Severity

EMERGENCY_COLUMNS = [
    "emergency_id",
    "reporter",
    "location",
    "severity",
    "status",
    "reported_at",
    "assigned_responder",
    "response_started_at",
    "verified",
]

RESPONDER_COLUMNS = [
    "address",
    "name",
    "specialty",
    "is_active",
    "total_responses",
    "average_response_minutes",
]


def emergency_frame(emergencies: Iterable[Emergency]) -> pd.DataFrame:
    rows = [
        {
            "emergency_id": e.emergency_id,
            "reporter": e.reporter,
            "location": e.location,
            "severity": e.severity.name,
            "status": e.status.value,
            "reported_at": e.reported_at,
            "assigned_responder": e.assigned_responder,
            "response_started_at": e.response_started_at,
            "verified": e.verified,
        }
        for e in emergencies
    ]
    return pd.DataFrame(rows, columns=EMERGENCY_COLUMNS)


def status_distribution(emergencies: Iterable[Emergency]) -> dict[str, int]:
    """Count per lifecycle status, every status present even when zero."""
    df = emergency_frame(emergencies)
    counts = df["status"].value_counts()
    return {s.value: int(counts.get(s.value, 0)) for s in EmergencyStatus}


def severity_distribution(emergencies: Iterable[Emergency]) -> dict[str, int]:
    df = emergency_frame(emergencies)
    counts = df["severity"].value_counts()
    return {s.name: int(counts.get(s.name, 0)) for s in Severity}


def responder_performance(responders: Iterable[Responder]) -> pd.DataFrame:
    rows = [
        {
            "address": r.address,
            "name": r.name,
            "specialty": r.specialty,
            "is_active": r.is_active,
            "total_responses": r.total_responses,
            "average_response_minutes": round(r.average_response_time / 60, 2),
        }
        for r in responders
    ]
    df = pd.DataFrame(rows, columns=RESPONDER_COLUMNS)
    return df.sort_values(["total_responses", "address"], ascending=[False, True]).reset_index(drop=True)
