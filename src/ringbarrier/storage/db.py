"""Version: 0.1.0
License: MIT
Code generated with support from CODEX and CODEX CLI.
Owner / Idea / Management: Dr. Babak Sorkhpour (https://x.com/Drbabakskr)
Author: Dr. Babak Sorkhpour with support from ChatGPT
"""

from __future__ import annotations

import json
import sqlite3
import time
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class DB:
    conn: sqlite3.Connection


def connect(db_path: str) -> DB:
    conn = sqlite3.connect(db_path)
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS controller_snapshot(
            intersection_id TEXT PRIMARY KEY,
            schema_version INTEGER NOT NULL,
            sim_time INTEGER NOT NULL DEFAULT 0,
            payload TEXT NOT NULL,
            updated_at INTEGER NOT NULL DEFAULT 0
        )
        """
    )
    conn.commit()
    return DB(conn=conn)


def save_snapshot(db: DB, intersection_id: str, snapshot: dict[str, Any]) -> None:
    controller = snapshot.get("controller", {})
    db.conn.execute(
        """
        INSERT INTO controller_snapshot(intersection_id,schema_version,sim_time,payload,updated_at)
        VALUES(?,?,?,?,?)
        ON CONFLICT(intersection_id)
        DO UPDATE SET schema_version=excluded.schema_version, sim_time=excluded.sim_time, payload=excluded.payload, updated_at=excluded.updated_at
        """,
        (
            intersection_id,
            int(snapshot["schema_version"]),
            int(controller.get("now", 0)),
            json.dumps(snapshot, ensure_ascii=False),
            int(time.time()),
        ),
    )
    db.conn.commit()


def load_snapshot(db: DB, intersection_id: str) -> Optional[dict[str, Any]]:
    cur = db.conn.cursor()
    cur.execute("SELECT payload FROM controller_snapshot WHERE intersection_id=?", (intersection_id,))
    row = cur.fetchone()
    return json.loads(row[0]) if row else None


def list_intersections(db: DB) -> list[str]:
    cur = db.conn.cursor()
    cur.execute("SELECT intersection_id FROM controller_snapshot ORDER BY intersection_id")
    return [str(r[0]) for r in cur.fetchall()]


def retention_cleanup(db: DB, retention_days: int) -> int:
    cutoff = int(time.time()) - (retention_days * 86400)
    cur = db.conn.cursor()
    try:
        cur.execute("DELETE FROM controller_snapshot WHERE updated_at > 0 AND updated_at < ?", (cutoff,))
        affected = cur.rowcount
        db.conn.commit()
        return max(affected, 0)
    except sqlite3.Error:
        return 0
