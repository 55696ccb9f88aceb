"""
auth/denylist.py -- SQLite-backed denylist of revoked session tokens.

Session tokens are stateless: the server never stores issued tokens. Logging
out therefore records the token's identifier (jti claim) here until the token
would have expired on its own. After that instant the expiry check rejects
the token anyway, so the row can be purged.

Usage:
    denylist = RevokedTokenStore()
    denylist.add(claims.token_id, claims.expires_at.timestamp())
    denylist.contains(claims.token_id)   # True until expires_at
    denylist.purge_expired()             # call periodically to trim old rows
"""

import sqlite3
import time
from pathlib import Path
from typing import Optional

_DEFAULT_DB = Path(__file__).parent / "revoked_tokens.db"

_DDL = """
CREATE TABLE IF NOT EXISTS revoked_tokens (
    jti         TEXT PRIMARY KEY,
    expires_at  REAL NOT NULL
);
"""


class RevokedTokenStore:
    def __init__(self, db_path: Path | str = _DEFAULT_DB) -> None:
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.commit()

    def add(self, jti: str, expires_at: float) -> None:
        """Revoke jti until expires_at (epoch seconds). Re-adding extends the entry."""
        self._conn.execute(
            "INSERT OR REPLACE INTO revoked_tokens (jti, expires_at) VALUES (?, ?)",
            (jti, expires_at),
        )
        self._conn.commit()

    def contains(self, jti: str, now: Optional[float] = None) -> bool:
        """Return True if jti is revoked and the entry has not yet expired."""
        row = self._conn.execute(
            "SELECT expires_at FROM revoked_tokens WHERE jti = ?",
            (jti,),
        ).fetchone()
        if row is None:
            return False
        current = time.time() if now is None else now
        return current < row[0]

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Delete entries whose token has already expired. Returns number of rows removed."""
        cutoff = time.time() if now is None else now
        cursor = self._conn.execute("DELETE FROM revoked_tokens WHERE expires_at <= ?", (cutoff,))
        self._conn.commit()
        return cursor.rowcount

    def count(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM revoked_tokens").fetchone()[0]

    def close(self) -> None:
        self._conn.close()
