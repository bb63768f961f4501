# orchsim/store/db.py
import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from orchsim.config import DB_PATH, SIMULATOR_SOURCE

# -------------------- internal connection helpers -----------------------------

def _connect() -> sqlite3.Connection:
    # check_same_thread=False so FastAPI worker thread(s) can use the same file DB
    conn = sqlite3.connect(DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn

def _exec(conn: sqlite3.Connection, sql: str, args: tuple = ()) -> sqlite3.Cursor:
    cur = conn.cursor()
    cur.execute(sql, args)
    return cur

def _fetchall(conn: sqlite3.Connection, sql: str, args: tuple = ()) -> List[sqlite3.Row]:
    cur = conn.cursor()
    cur.execute(sql, args)
    return cur.fetchall()

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")

def _dumps(value: Any) -> str:
    return json.dumps(value, default=str)

def _decode(row: sqlite3.Row, json_cols: Iterable[str] = (), bool_cols: Iterable[str] = ()) -> Dict[str, Any]:
    out = dict(row)
    for col in json_cols:
        if out.get(col) is not None:
            out[col] = json.loads(out[col])
    for col in bool_cols:
        if out.get(col) is not None:
            out[col] = bool(out[col])
    return out

def _update(conn: sqlite3.Connection, table: str, row_id: str, fields: Dict[str, Any],
            allowed: Iterable[str], json_cols: Iterable[str] = (), not_null: Iterable[str] = ()) -> None:
    """Partial update restricted to the whitelisted columns. A null for a NOT NULL column is ignored."""
    allowed = set(allowed)
    json_cols = set(json_cols)
    not_null = set(not_null)
    sets, args = [], []
    for col, val in fields.items():
        if col not in allowed or (val is None and col in not_null):
            continue
        sets.append(f"{col}=?")
        args.append(_dumps(val) if col in json_cols and val is not None else val)
    if not sets:
        return
    args.append(row_id)
    _exec(conn, f"UPDATE {table} SET {', '.join(sets)} WHERE id=?", tuple(args))

# ------------------------------- schema ---------------------------------------

DDL = [
    """CREATE TABLE IF NOT EXISTS environments (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        code TEXT NOT NULL UNIQUE,
        orchestrator_base_url TEXT,
        worker_base_url TEXT,
        auth_type TEXT,
        auth_config TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL
    );""",
    # Virtual endpoints served under /sim-proxy
    """CREATE TABLE IF NOT EXISTS sim_endpoints (
        id TEXT PRIMARY KEY,
        environment_id TEXT,
        method TEXT NOT NULL,
        path TEXT NOT NULL,
        response_template TEXT NOT NULL DEFAULT '{}',
        status_code INTEGER NOT NULL DEFAULT 200,
        latency_ms INTEGER NOT NULL DEFAULT 0,
        error_rate REAL NOT NULL DEFAULT 0,
        script TEXT,
        enabled INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL
    );""",
    # Append-only, one row per proxied invocation
    """CREATE TABLE IF NOT EXISTS sim_call_logs (
        id TEXT PRIMARY KEY,
        endpoint_id TEXT NOT NULL,
        request_method TEXT,
        request_path TEXT,
        request_headers TEXT,
        request_body TEXT,
        request_query TEXT,
        response_status INTEGER,
        response_body TEXT,
        latency_ms INTEGER,
        error_injected INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    );""",
    """CREATE TABLE IF NOT EXISTS transactions (
        id TEXT PRIMARY KEY,
        ts TEXT NOT NULL,
        type TEXT,
        amount REAL,
        payment_method TEXT,
        customer_id TEXT,
        contract_id TEXT,
        status TEXT,
        channel TEXT,
        metadata TEXT NOT NULL DEFAULT '{}'
    );""",
    """CREATE TABLE IF NOT EXISTS operational_events (
        id TEXT PRIMARY KEY,
        operation TEXT,
        ts TEXT NOT NULL,
        duration_sec INTEGER,
        agent TEXT,
        channel TEXT,
        sla_hit INTEGER,
        result TEXT,
        metadata TEXT NOT NULL DEFAULT '{}'
    );""",
    # Chat sessions against an environment's orchestrator
    """CREATE TABLE IF NOT EXISTS chat_sessions (
        id TEXT PRIMARY KEY,
        environment_id TEXT NOT NULL,
        external_session_id TEXT,
        status TEXT NOT NULL DEFAULT 'active',
        metadata TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );""",
    """CREATE TABLE IF NOT EXISTS chat_messages (
        id TEXT PRIMARY KEY,
        session_id TEXT NOT NULL,
        direction TEXT NOT NULL,
        type TEXT NOT NULL DEFAULT 'text',
        content TEXT,
        payload TEXT NOT NULL DEFAULT '{}',
        correlation_id TEXT,
        orchestrator_run_id TEXT,
        created_at TEXT NOT NULL
    );""",
    """CREATE TABLE IF NOT EXISTS orchestrator_calls (
        id TEXT PRIMARY KEY,
        environment_id TEXT,
        session_id TEXT,
        direction TEXT NOT NULL,
        endpoint TEXT,
        method TEXT,
        request_headers TEXT,
        request_body TEXT,
        response_status INTEGER,
        response_body TEXT,
        latency_ms INTEGER,
        error_flag INTEGER NOT NULL DEFAULT 0,
        correlation_id TEXT,
        created_at TEXT NOT NULL
    );""",
]

GENERATED_TABLES = ("transactions", "operational_events")

def init() -> None:
    """Initialize DB file and ensure tables exist."""
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)
    conn = _connect()
    try:
        cur = conn.cursor()
        for stmt in DDL:
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()

# ------------------------------ environments ----------------------------------

ENV_JSON = ("auth_config",)
ENV_COLUMNS = ("name", "code", "orchestrator_base_url", "worker_base_url", "auth_type", "auth_config")
ENV_NOT_NULL = ("name", "code", "auth_config")

def create_environment(data: Dict[str, Any]) -> Dict[str, Any]:
    env_id = str(uuid.uuid4())
    conn = _connect()
    try:
        _exec(
            conn,
            "INSERT INTO environments (id, name, code, orchestrator_base_url, worker_base_url, "
            "auth_type, auth_config, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                env_id,
                data["name"],
                data["code"],
                data.get("orchestrator_base_url"),
                data.get("worker_base_url"),
                data.get("auth_type"),
                _dumps(data.get("auth_config") or {}),
                _now_iso(),
            ),
        )
        conn.commit()
    finally:
        conn.close()
    return get_environment(env_id)

def list_environments() -> List[Dict[str, Any]]:
    conn = _connect()
    try:
        rows = _fetchall(conn, "SELECT * FROM environments ORDER BY created_at DESC, rowid DESC")
        return [_decode(r, ENV_JSON) for r in rows]
    finally:
        conn.close()

def get_environment(env_id: str) -> Optional[Dict[str, Any]]:
    conn = _connect()
    try:
        rows = _fetchall(conn, "SELECT * FROM environments WHERE id=?", (env_id,))
        return _decode(rows[0], ENV_JSON) if rows else None
    finally:
        conn.close()

def get_environment_by_code(code: str) -> Optional[Dict[str, Any]]:
    conn = _connect()
    try:
        rows = _fetchall(conn, "SELECT * FROM environments WHERE code=?", (code,))
        return _decode(rows[0], ENV_JSON) if rows else None
    finally:
        conn.close()

def update_environment(env_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    conn = _connect()
    try:
        _update(conn, "environments", env_id, fields, ENV_COLUMNS, ENV_JSON, ENV_NOT_NULL)
        conn.commit()
    finally:
        conn.close()
    return get_environment(env_id)

def delete_environment(env_id: str) -> None:
    conn = _connect()
    try:
        _exec(conn, "DELETE FROM environments WHERE id=?", (env_id,))
        conn.commit()
    finally:
        conn.close()

# --------------------------- simulated endpoints ------------------------------

ENDPOINT_JSON = ("response_template",)
ENDPOINT_BOOL = ("enabled",)
ENDPOINT_COLUMNS = ("method", "path", "response_template", "status_code", "latency_ms",
                    "error_rate", "script", "enabled")
ENDPOINT_NOT_NULL = ("method", "path", "response_template", "status_code", "latency_ms", "error_rate", "enabled")

def create_endpoint(data: Dict[str, Any]) -> Dict[str, Any]:
    endpoint_id = str(uuid.uuid4())
    conn = _connect()
    try:
        _exec(
            conn,
            "INSERT INTO sim_endpoints (id, environment_id, method, path, response_template, "
            "status_code, latency_ms, error_rate, script, enabled, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                endpoint_id,
                data.get("environment_id"),
                data["method"].upper(),
                data["path"],
                _dumps(data.get("response_template") or {}),
                data.get("status_code") or 200,
                data.get("latency_ms") or 0,
                data.get("error_rate") or 0,
                data.get("script"),
                1,
                _now_iso(),
            ),
        )
        conn.commit()
    finally:
        conn.close()
    return get_endpoint(endpoint_id)

def list_endpoints(environment_id: Optional[str] = None) -> List[Dict[str, Any]]:
    conn = _connect()
    try:
        rows = _fetchall(
            conn,
            "SELECT e.*, (SELECT COUNT(1) FROM sim_call_logs l WHERE l.endpoint_id = e.id) AS call_count "
            "FROM sim_endpoints e WHERE (? IS NULL OR e.environment_id = ?) "
            "ORDER BY e.created_at DESC, e.rowid DESC",
            (environment_id, environment_id),
        )
        return [_decode(r, ENDPOINT_JSON, ENDPOINT_BOOL) for r in rows]
    finally:
        conn.close()

def get_endpoint(endpoint_id: str) -> Optional[Dict[str, Any]]:
    conn = _connect()
    try:
        rows = _fetchall(conn, "SELECT * FROM sim_endpoints WHERE id=?", (endpoint_id,))
        return _decode(rows[0], ENDPOINT_JSON, ENDPOINT_BOOL) if rows else None
    finally:
        conn.close()

def find_endpoint(method: str, path: str) -> Optional[Dict[str, Any]]:
    """First enabled endpoint matching (method, path); None if nothing is configured."""
    conn = _connect()
    try:
        rows = _fetchall(
            conn,
            "SELECT * FROM sim_endpoints WHERE method=? AND path=? AND enabled=1 "
            "ORDER BY created_at ASC, rowid ASC LIMIT 1",
            (method.upper(), path),
        )
        return _decode(rows[0], ENDPOINT_JSON, ENDPOINT_BOOL) if rows else None
    finally:
        conn.close()

def update_endpoint(endpoint_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if fields.get("method"):
        fields = {**fields, "method": fields["method"].upper()}
    if "enabled" in fields and fields["enabled"] is not None:
        fields = {**fields, "enabled": int(bool(fields["enabled"]))}
    conn = _connect()
    try:
        _update(conn, "sim_endpoints", endpoint_id, fields, ENDPOINT_COLUMNS, ENDPOINT_JSON, ENDPOINT_NOT_NULL)
        conn.commit()
    finally:
        conn.close()
    return get_endpoint(endpoint_id)

def delete_endpoint(endpoint_id: str) -> None:
    conn = _connect()
    try:
        _exec(conn, "DELETE FROM sim_endpoints WHERE id=?", (endpoint_id,))
        conn.commit()
    finally:
        conn.close()

# ------------------------------- call logs ------------------------------------

CALL_LOG_JSON = ("request_headers", "request_body", "request_query", "response_body")

def insert_call_log(row: Dict[str, Any]) -> str:
    log_id = str(uuid.uuid4())
    conn = _connect()
    try:
        _exec(
            conn,
            "INSERT INTO sim_call_logs (id, endpoint_id, request_method, request_path, request_headers, "
            "request_body, request_query, response_status, response_body, latency_ms, error_injected, "
            "created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                log_id,
                row["endpoint_id"],
                row.get("request_method"),
                row.get("request_path"),
                _dumps(row.get("request_headers") or {}),
                _dumps(row.get("request_body") or {}),
                _dumps(row.get("request_query") or {}),
                row.get("response_status"),
                _dumps(row.get("response_body")),
                row.get("latency_ms"),
                1 if row.get("error_injected") else 0,
                _now_iso(),
            ),
        )
        conn.commit()
        return log_id
    finally:
        conn.close()

def get_call_logs(endpoint_id: str, limit: int = 50) -> List[Dict[str, Any]]:
    conn = _connect()
    try:
        rows = _fetchall(
            conn,
            "SELECT * FROM sim_call_logs WHERE endpoint_id=? ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (endpoint_id, limit),
        )
        return [_decode(r, CALL_LOG_JSON, ("error_injected",)) for r in rows]
    finally:
        conn.close()

def call_log_stats() -> Dict[str, int]:
    conn = _connect()
    try:
        rows = _fetchall(
            conn,
            "SELECT COUNT(1) AS total, COALESCE(SUM(error_injected), 0) AS injected FROM sim_call_logs",
        )
        return {"total": rows[0]["total"], "injected": rows[0]["injected"]}
    finally:
        conn.close()

# ---------------------------- generated records -------------------------------

def insert_transactions(rows: List[Dict[str, Any]]) -> int:
    """Bulk insert in a single transaction; returns number of inserted rows."""
    if not rows:
        return 0
    conn = _connect()
    try:
        payload = [
            (
                r["id"],
                r["ts"],
                r.get("type"),
                r.get("amount"),
                r.get("payment_method"),
                r.get("customer_id"),
                r.get("contract_id"),
                r.get("status"),
                r.get("channel"),
                _dumps(r.get("metadata") or {}),
            )
            for r in rows
        ]
        conn.executemany(
            "INSERT INTO transactions (id, ts, type, amount, payment_method, customer_id, contract_id, "
            "status, channel, metadata) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            payload,
        )
        conn.commit()
        return len(rows)
    finally:
        conn.close()

def insert_operational_events(rows: List[Dict[str, Any]]) -> int:
    if not rows:
        return 0
    conn = _connect()
    try:
        payload = [
            (
                r["id"],
                r.get("operation"),
                r["ts"],
                r.get("duration_sec"),
                r.get("agent"),
                r.get("channel"),
                None if r.get("sla_hit") is None else int(bool(r["sla_hit"])),
                r.get("result"),
                _dumps(r.get("metadata") or {}),
            )
            for r in rows
        ]
        conn.executemany(
            "INSERT INTO operational_events (id, operation, ts, duration_sec, agent, channel, sla_hit, "
            "result, metadata) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            payload,
        )
        conn.commit()
        return len(rows)
    finally:
        conn.close()

def delete_generated(table: str, only_simulator_data: bool = False,
                     from_ts: Optional[str] = None, to_ts: Optional[str] = None) -> int:
    """
    Filtered bulk delete over a generated-records table.
      - only_simulator_data: restrict to rows carrying the simulator-origin marker
      - from_ts / to_ts: inclusive ISO-8601 bounds on ts
    """
    if table not in GENERATED_TABLES:
        raise ValueError(f"Unsupported table: {table}")
    q = f"DELETE FROM {table} WHERE 1=1"
    params: list[Any] = []
    if only_simulator_data:
        q += " AND json_extract(metadata, '$.source') = ?"
        params.append(SIMULATOR_SOURCE)
    if from_ts:
        q += " AND ts >= ?"
        params.append(from_ts)
    if to_ts:
        q += " AND ts <= ?"
        params.append(to_ts)
    conn = _connect()
    try:
        cur = _exec(conn, q, tuple(params))
        conn.commit()
        return cur.rowcount
    finally:
        conn.close()

def count_rows(table: str) -> int:
    if table not in GENERATED_TABLES:
        raise ValueError(f"Unsupported table: {table}")
    conn = _connect()
    try:
        rows = _fetchall(conn, f"SELECT COUNT(1) AS cnt FROM {table}")
        return rows[0]["cnt"]
    finally:
        conn.close()

# ----------------------------- chat sessions ----------------------------------

SESSION_JSON = ("metadata",)
MESSAGE_JSON = ("payload",)

def create_chat_session(environment_id: str, external_session_id: Optional[str] = None,
                        metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    sid = str(uuid.uuid4())
    now = _now_iso()
    conn = _connect()
    try:
        _exec(
            conn,
            "INSERT INTO chat_sessions (id, environment_id, external_session_id, status, metadata, "
            "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (sid, environment_id, external_session_id or str(uuid.uuid4()), "active",
             _dumps(metadata or {}), now, now),
        )
        conn.commit()
    finally:
        conn.close()
    return get_chat_session(sid)

def list_chat_sessions(environment_id: Optional[str] = None) -> List[Dict[str, Any]]:
    conn = _connect()
    try:
        rows = _fetchall(
            conn,
            "SELECT s.*, (SELECT COUNT(1) FROM chat_messages m WHERE m.session_id = s.id) AS message_count "
            "FROM chat_sessions s WHERE (? IS NULL OR s.environment_id = ?) "
            "ORDER BY s.updated_at DESC, s.rowid DESC",
            (environment_id, environment_id),
        )
        return [_decode(r, SESSION_JSON) for r in rows]
    finally:
        conn.close()

def get_chat_session(session_id: str) -> Optional[Dict[str, Any]]:
    conn = _connect()
    try:
        rows = _fetchall(conn, "SELECT * FROM chat_sessions WHERE id=?", (session_id,))
        return _decode(rows[0], SESSION_JSON) if rows else None
    finally:
        conn.close()

def find_chat_session(any_id: str) -> Optional[Dict[str, Any]]:
    """Resolve a session by simulator id or by the id the orchestrator knows it by."""
    conn = _connect()
    try:
        rows = _fetchall(
            conn,
            "SELECT * FROM chat_sessions WHERE id=? OR external_session_id=? LIMIT 1",
            (any_id, any_id),
        )
        return _decode(rows[0], SESSION_JSON) if rows else None
    finally:
        conn.close()

def close_chat_session(session_id: str) -> None:
    conn = _connect()
    try:
        _exec(conn, "UPDATE chat_sessions SET status='closed', updated_at=? WHERE id=?",
              (_now_iso(), session_id))
        conn.commit()
    finally:
        conn.close()

def add_message(session_id: str, direction: str, content: Optional[str], payload: Optional[Dict[str, Any]] = None,
                msg_type: str = "text", correlation_id: Optional[str] = None,
                run_id: Optional[str] = None) -> Dict[str, Any]:
    """Store a chat message and bump the session's updated_at."""
    msg_id = str(uuid.uuid4())
    now = _now_iso()
    conn = _connect()
    try:
        _exec(
            conn,
            "INSERT INTO chat_messages (id, session_id, direction, type, content, payload, correlation_id, "
            "orchestrator_run_id, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (msg_id, session_id, direction, msg_type, content, _dumps(payload or {}),
             correlation_id, run_id, now),
        )
        _exec(conn, "UPDATE chat_sessions SET updated_at=? WHERE id=?", (now, session_id))
        conn.commit()
        rows = _fetchall(conn, "SELECT * FROM chat_messages WHERE id=?", (msg_id,))
        return _decode(rows[0], MESSAGE_JSON)
    finally:
        conn.close()

def get_messages(session_id: str) -> List[Dict[str, Any]]:
    conn = _connect()
    try:
        rows = _fetchall(
            conn,
            "SELECT * FROM chat_messages WHERE session_id=? ORDER BY created_at ASC, rowid ASC",
            (session_id,),
        )
        return [_decode(r, MESSAGE_JSON) for r in rows]
    finally:
        conn.close()

# --------------------------- orchestrator calls -------------------------------

ORCH_JSON = ("request_headers", "request_body", "response_body")

def insert_orchestrator_call(row: Dict[str, Any]) -> str:
    call_id = str(uuid.uuid4())
    conn = _connect()
    try:
        _exec(
            conn,
            "INSERT INTO orchestrator_calls (id, environment_id, session_id, direction, endpoint, method, "
            "request_headers, request_body, response_status, response_body, latency_ms, error_flag, "
            "correlation_id, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                call_id,
                row.get("environment_id"),
                row.get("session_id"),
                row["direction"],
                row.get("endpoint"),
                row.get("method"),
                _dumps(row.get("request_headers") or {}),
                _dumps(row.get("request_body") or {}),
                row.get("response_status"),
                _dumps(row.get("response_body") or {}),
                row.get("latency_ms"),
                1 if row.get("error_flag") else 0,
                row.get("correlation_id"),
                _now_iso(),
            ),
        )
        conn.commit()
        return call_id
    finally:
        conn.close()

def list_orchestrator_calls(environment_id: Optional[str] = None, session_id: Optional[str] = None,
                            correlation_id: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
    q = "SELECT * FROM orchestrator_calls WHERE 1=1"
    params: list[Any] = []
    if environment_id:
        q += " AND environment_id = ?"
        params.append(environment_id)
    if session_id:
        q += " AND session_id = ?"
        params.append(session_id)
    if correlation_id:
        q += " AND correlation_id = ?"
        params.append(correlation_id)
    q += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
    params.append(limit)
    conn = _connect()
    try:
        rows = _fetchall(conn, q, tuple(params))
        return [_decode(r, ORCH_JSON, ("error_flag",)) for r in rows]
    finally:
        conn.close()

def orchestrator_call_stats(environment_id: Optional[str] = None) -> Dict[str, Any]:
    conn = _connect()
    try:
        rows = _fetchall(
            conn,
            "SELECT COUNT(1) AS total, COALESCE(SUM(error_flag), 0) AS errors, "
            "AVG(latency_ms) AS avg_latency, MAX(latency_ms) AS max_latency, MIN(latency_ms) AS min_latency "
            "FROM orchestrator_calls WHERE (? IS NULL OR environment_id = ?)",
            (environment_id, environment_id),
        )
        return dict(rows[0])
    finally:
        conn.close()
