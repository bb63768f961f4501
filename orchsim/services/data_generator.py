# orchsim/services/data_generator.py
import copy
import logging
import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from dateutil import parser as dtp
from dateutil.relativedelta import relativedelta

from orchsim.config import PREVIEW_SIZE, SIMULATOR_SOURCE
from orchsim.services.distributions import sample_amount, sample_duration
from orchsim.store import db

LOG = logging.getLogger(__name__)

TRANSACTION_TYPES = ["payment", "refund", "transfer", "deposit", "withdrawal"]
PAYMENT_METHODS = ["credit_card", "debit_card", "pix", "boleto", "cash"]
TRANSACTION_CHANNELS = ["web", "mobile", "pos", "api"]
FAILURE_STATUSES = ["failed", "error", "timeout", "cancelled"]

OPERATIONS = [
    "customer_service_call",
    "ticket_created",
    "ticket_resolved",
    "chat_session",
    "email_response",
    "callback_scheduled",
]
EVENT_CHANNELS = ["phone", "chat", "email", "social"]
EVENT_RESULTS = ["success", "partial", "failed", "escalated"]

INVALID_STATUS = "INVALID_STATUS"
DEFAULT_ANOMALY_KINDS = ["outlier"]

# Fields each anomaly kind touches, per target table
ANOMALY_FIELDS = {
    "transactions": {"numeric": "amount", "reference": "customer_id", "enum": "status"},
    "operational_events": {"numeric": "duration_sec", "reference": "agent", "enum": "result"},
}

# How far back each table's timestamps reach
LOOKBACK = {
    "transactions": relativedelta(months=6),
    "operational_events": relativedelta(months=3),
}

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _new_id() -> str:
    return str(uuid.uuid4())


def pick(rng: random.Random, options: Sequence[Any]) -> Any:
    return options[rng.randrange(len(options))]


# ----------------------------- timestamps ----------------------------------

def generate_timestamp(start: datetime, end: datetime, seasonality: bool, rng: random.Random) -> datetime:
    """
    Uniform instant in [start, end]. With seasonality, night hours are moved into
    08:00-19:59 of the same day and weekend days are pushed to Monday 70% of the time.
    This only biases the draw toward business hours; results may land past `end`.
    """
    span = (end - start).total_seconds()
    ts = start + timedelta(seconds=rng.random() * span)

    if seasonality:
        if ts.hour < 8 or ts.hour > 20:
            ts = ts.replace(hour=8 + rng.randrange(12))
        weekday = ts.weekday()  # Saturday=5, Sunday=6
        if weekday in (5, 6) and rng.random() > 0.3:
            ts = ts + timedelta(days=1 if weekday == 6 else 2)
    return ts


# ------------------------------ row builders --------------------------------

def _metadata(batch_id: str, now: datetime) -> Dict[str, Any]:
    return {"source": SIMULATOR_SOURCE, "generated_at": _iso(now), "batch_id": batch_id}


def generate_status(anomalies_enabled: bool, rng: random.Random) -> str:
    r = rng.random()
    if anomalies_enabled and r > 0.95:
        return pick(rng, FAILURE_STATUSES)
    if r > 0.85:
        return "pending"
    if r > 0.80:
        return "cancelled"
    return "completed"


def build_transactions(rows: int, distributions: Dict[str, Any], seasonality: bool,
                       anomalies_enabled: bool, rng: random.Random, now: datetime,
                       batch_id: str) -> List[Dict[str, Any]]:
    start = now - LOOKBACK["transactions"]
    out = []
    for _ in range(rows):
        ts = generate_timestamp(start, now, seasonality, rng)
        out.append({
            "id": _new_id(),
            "ts": _iso(ts),
            "type": pick(rng, TRANSACTION_TYPES),
            "amount": sample_amount(distributions.get("amount"), rng),
            "payment_method": pick(rng, PAYMENT_METHODS),
            "customer_id": _new_id(),
            "contract_id": _new_id() if rng.random() > 0.3 else None,
            "status": generate_status(anomalies_enabled, rng),
            "channel": pick(rng, TRANSACTION_CHANNELS),
            "metadata": _metadata(batch_id, now),
        })
    return out


def build_operational_events(rows: int, distributions: Dict[str, Any], seasonality: bool,
                             rng: random.Random, now: datetime, batch_id: str) -> List[Dict[str, Any]]:
    start = now - LOOKBACK["operational_events"]
    out = []
    for _ in range(rows):
        ts = generate_timestamp(start, now, seasonality, rng)
        out.append({
            "id": _new_id(),
            "operation": pick(rng, OPERATIONS),
            "ts": _iso(ts),
            "duration_sec": sample_duration(distributions.get("duration"), rng),
            "agent": f"agent_{rng.randrange(50)}",
            "channel": pick(rng, EVENT_CHANNELS),
            "sla_hit": rng.random() > 0.15,
            "result": pick(rng, EVENT_RESULTS),
            "metadata": _metadata(batch_id, now),
        })
    return out


# ------------------------------- anomalies ----------------------------------

def _tag(record: Dict[str, Any], kind: str) -> None:
    meta = dict(record.get("metadata") or {})
    meta["anomaly_injected"] = kind
    meta["anomalies"] = list(meta.get("anomalies") or []) + [kind]
    record["metadata"] = meta


def inject_anomalies(records: List[Dict[str, Any]], count: int, kinds: Sequence[str],
                     fields: Dict[str, str], rng: random.Random,
                     new_id: Callable[[], str] = _new_id) -> int:
    """
    Apply `count` anomalies in place. Each round picks a record and a kind
    independently, so one record can collect several anomalies and duplicates
    can themselves be picked later. Returns the number of rounds applied.
    """
    kinds = list(kinds) or DEFAULT_ANOMALY_KINDS
    applied = 0
    for _ in range(count):
        if not records:
            break
        record = records[rng.randrange(len(records))]
        kind = pick(rng, kinds)

        if kind == "outlier":
            value = record.get(fields["numeric"])
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                scaled = value * (10 + rng.random() * 90)
                record[fields["numeric"]] = round(scaled, 2) if isinstance(value, float) else int(round(scaled))
        elif kind == "duplicate":
            dup = copy.deepcopy(record)
            dup["id"] = new_id()
            records.append(dup)
            record = dup
        elif kind == "null_value":
            record[fields["reference"]] = None
        elif kind == "invalid_status":
            record[fields["enum"]] = INVALID_STATUS
        else:
            LOG.debug("Unknown anomaly kind %r, tagging only", kind)

        _tag(record, kind)
        applied += 1
    return applied


# ------------------------------- pipeline -----------------------------------

def generate(
    target_table: str,
    rows: int,
    distributions: Optional[Dict[str, Any]] = None,
    seasonality: bool = False,
    anomalies: Optional[Dict[str, Any]] = None,
    rng: Optional[random.Random] = None,
    now: Optional[Clock] = None,
) -> Dict[str, Any]:
    """
    Build `rows` synthetic records, optionally inject anomalies, bulk insert them
    in one round trip and return {"generated_rows", "preview_sample"}.
    Storage errors propagate to the caller untouched.
    """
    if target_table not in ANOMALY_FIELDS:
        raise ValueError(f"Unsupported target table: {target_table}")
    rng = rng or random.Random()
    current = (now or _utcnow)()
    distributions = distributions or {}
    anomalies = anomalies or {}
    anomalies_enabled = bool(anomalies.get("enabled"))
    batch_id = _new_id()

    if target_table == "transactions":
        records = build_transactions(rows, distributions, seasonality, anomalies_enabled, rng, current, batch_id)
    else:
        records = build_operational_events(rows, distributions, seasonality, rng, current, batch_id)

    count = anomalies.get("count") or 0
    if anomalies_enabled and count > 0:
        injected = inject_anomalies(records, count, anomalies.get("types") or DEFAULT_ANOMALY_KINDS,
                                    ANOMALY_FIELDS[target_table], rng)
        LOG.info("Injected %d anomalies into %s batch %s", injected, target_table, batch_id)

    if target_table == "transactions":
        inserted = db.insert_transactions(records)
    else:
        inserted = db.insert_operational_events(records)

    LOG.info("Generated %d %s rows (batch %s)", inserted, target_table, batch_id)
    return {"generated_rows": inserted, "preview_sample": records[:PREVIEW_SIZE]}


def _to_utc_iso(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    parsed = dtp.isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return _iso(parsed)


def clear(target_table: str, only_simulator_data: bool = False,
          from_date: Optional[str] = None, to_date: Optional[str] = None) -> Dict[str, int]:
    """Filtered bulk delete of generated rows; `target_table` may be 'all'."""
    tables = list(ANOMALY_FIELDS) if target_table == "all" else [target_table]
    from_ts, to_ts = _to_utc_iso(from_date), _to_utc_iso(to_date)
    result = {"transactions_deleted": 0, "operational_events_deleted": 0}
    for table in tables:
        deleted = db.delete_generated(table, only_simulator_data, from_ts, to_ts)
        result[f"{table}_deleted"] = deleted
        LOG.info("Deleted %d rows from %s (only_simulator_data=%s)", deleted, table, only_simulator_data)
    return result
