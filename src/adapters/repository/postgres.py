"""
PostgreSQL repository adapters - Implement CodeStore and RegistrationRepository.

This module provides the PostgreSQL implementation of the domain's
repository ports using psycopg3 with raw SQL.

Atomicity Design:
-----------------
1. **Advisory lock per phone number**: issue() and consume() both start
   with pg_advisory_xact_lock(hashtext(phone_number)), serializing every
   transaction that touches codes for one number while leaving other
   numbers unaffected.

2. **Partial unique index**: verification_codes_one_active guarantees at
   most one ISSUED row per phone number even if a writer skipped the lock.

3. **Supersede then insert in one transaction**: there is no window where
   two codes for the same number are ISSUED.

4. **Shared adjudication**: the decision for one attempt is
   src.domain.verification.adjudicate(), identical to the in-memory store.
"""

import logging
from datetime import datetime
from pathlib import Path

from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from src.domain.exceptions import RegistrationAlreadyPersisted
from src.domain.models import RegistrationSnapshot, VerificationCode
from src.domain.ports import CodeState, VerifyResult
from src.domain.verification import adjudicate, code_matches

logger = logging.getLogger(__name__)

_CODE_COLUMNS = "code_id, phone_number, code_hash, issued_at, expires_at, state, attempts"


def _row_to_code(row: tuple) -> VerificationCode:
    return VerificationCode(
        code_id=row[0],
        phone_number=row[1],
        code_hash=row[2],
        issued_at=row[3],
        expires_at=row[4],
        state=CodeState(row[5]),
        attempts=row[6],
    )


def _is_live_superseded_match(code: VerificationCode, submitted: str, now: datetime) -> bool:
    return (
        code.state == CodeState.SUPERSEDED
        and code.expires_at > now
        and code_matches(code, submitted)
    )


class PostgresCodeStore:
    """
    Implements CodeStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize store with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def issue(self, code: VerificationCode) -> None:
        """
        Supersede any active code for the number and insert the new one.

        Args:
            code: Freshly generated code in ISSUED state
        """
        supersede_sql = """
            UPDATE verification_codes
            SET state = %s
            WHERE phone_number = %s AND state = %s
        """
        insert_sql = f"""
            INSERT INTO verification_codes ({_CODE_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s)
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (code.phone_number,))
            cursor.execute(
                supersede_sql,
                (CodeState.SUPERSEDED.value, code.phone_number, CodeState.ISSUED.value),
            )
            if cursor.rowcount:
                logger.debug(f"Superseded {cursor.rowcount} code(s) for {code.phone_number}")
            cursor.execute(
                insert_sql,
                (
                    code.code_id,
                    code.phone_number,
                    code.code_hash,
                    code.issued_at,
                    code.expires_at,
                    code.state.value,
                    code.attempts,
                ),
            )
            conn.commit()

    def consume(
        self, phone_number: str, submitted: str, now: datetime, max_attempts: int
    ) -> VerifyResult:
        """
        Adjudicate a submitted value against the active code for a number.

        Args:
            phone_number: Normalized phone number
            submitted: Code value typed by the user
            now: Evaluation time (expiry is checked against it)
            max_attempts: Mismatch cap per issued code

        Returns:
            VerifyResult indicating success or specific failure reason
        """
        select_sql = f"""
            SELECT {_CODE_COLUMNS}, issued_seq
            FROM verification_codes
            WHERE phone_number = %s AND state = %s
            FOR UPDATE
        """
        # Only the code issued directly before the active one is checked.
        replaced_sql = f"""
            SELECT {_CODE_COLUMNS}
            FROM verification_codes
            WHERE phone_number = %s AND issued_seq < %s
            ORDER BY issued_seq DESC
            LIMIT 1
        """
        update_sql = """
            UPDATE verification_codes
            SET state = %s, attempts = %s
            WHERE code_id = %s AND state = %s
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (phone_number,))
            cursor.execute(select_sql, (phone_number, CodeState.ISSUED.value))
            row = cursor.fetchone()
            if row is None:
                conn.commit()
                return VerifyResult.NOT_FOUND

            result, updated = adjudicate(_row_to_code(row), submitted, now, max_attempts)

            if result == VerifyResult.MISMATCH:
                cursor.execute(replaced_sql, (phone_number, row[7]))
                previous = cursor.fetchone()
                if previous is not None and _is_live_superseded_match(
                    _row_to_code(previous), submitted, now
                ):
                    conn.commit()
                    return VerifyResult.SUPERSEDED

            cursor.execute(
                update_sql,
                (updated.state.value, updated.attempts, updated.code_id, CodeState.ISSUED.value),
            )
            conn.commit()
            return result

    def purge(self, before: datetime) -> int:
        """Delete codes whose expiry passed before the cutoff."""
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM verification_codes WHERE expires_at < %s", (before,))
            removed = cursor.rowcount
            conn.commit()
        if removed:
            logger.info(f"Purged {removed} stale verification code(s)")
        return removed


class PostgresRegistrationRepository:
    """
    Implements RegistrationRepository protocol via psycopg3.

    The submitted registration is stored as a JSONB document.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def save(self, snapshot: RegistrationSnapshot) -> None:
        """
        Persist a submitted registration.

        Uses INSERT ... ON CONFLICT DO NOTHING; a zero rowcount means the
        registration id was already stored.

        Raises:
            RegistrationAlreadyPersisted: If the id already exists
        """
        sql = """
            INSERT INTO registrations (registration_id, phone_number, document_id, payload, submitted_at)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (registration_id) DO NOTHING
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                sql,
                (
                    snapshot.registration_id,
                    snapshot.verified_phone_number,
                    snapshot.document_id,
                    Jsonb(snapshot.to_dict()),
                    snapshot.submitted_at,
                ),
            )
            conn.commit()
            if cursor.rowcount != 1:
                raise RegistrationAlreadyPersisted(snapshot.registration_id)

    def get_payload(self, registration_id: str) -> dict | None:
        """Return the stored JSON document for a registration, or None."""
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "SELECT payload FROM registrations WHERE registration_id = %s",
                (registration_id,),
            )
            row = cursor.fetchone()
        return row[0] if row else None


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
