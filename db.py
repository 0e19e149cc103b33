import json, sqlite3, time
from pathlib import Path

def init_db(db_path: str):
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    con = sqlite3.connect(str(db_path))
    con.executescript("""
    CREATE TABLE IF NOT EXISTS sessions (
        id TEXT PRIMARY KEY,
        user TEXT,
        created_at INTEGER,
        expires_at INTEGER
    );
    """)
    con.commit()
    return con

def save_session(con, sid: str, user: dict, ttl_seconds: int):
    now = int(time.time())
    con.execute(
        "INSERT OR REPLACE INTO sessions (id, user, created_at, expires_at) VALUES (?, ?, ?, ?)",
        (sid, json.dumps(user), now, now + int(ttl_seconds))
    )
    con.commit()

def load_session(con, sid: str) -> dict | None:
    row = con.execute("SELECT user, expires_at FROM sessions WHERE id=?", (sid,)).fetchone()
    if row is None:
        return None
    user, expires_at = row
    if expires_at <= int(time.time()):
        purge_expired(con)
        return None
    return json.loads(user)

def delete_session(con, sid: str):
    con.execute("DELETE FROM sessions WHERE id=?", (sid,))
    con.commit()

def purge_expired(con) -> int:
    cur = con.execute("DELETE FROM sessions WHERE expires_at <= ?", (int(time.time()),))
    con.commit()
    return cur.rowcount
