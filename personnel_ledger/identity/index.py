"""IdentityIndex: durable store of canonical identities and their aliases.

Alias keys are the PRIMARY KEY of the aliases table, so binding an alias
is a conditional write and a key can point at only one identity. Merges
re-point the source's aliases to the target, which keeps every alias on a
live identity. Identities are never deleted.
"""

import logging
import sqlite3
from collections.abc import Iterable
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from personnel_ledger.audit.events import AuditEvent, AuditEventType
from personnel_ledger.audit.store import AuditLog
from personnel_ledger.db.database import Database, Transaction
from personnel_ledger.db.retry import retry_on_conflict
from personnel_ledger.errors import (
    AliasCollision,
    ConcurrentModification,
    DuplicateEmployeeNumber,
    IdentityNotFound,
    InvalidStatusTransition,
)
from personnel_ledger.identity.cache import TTLCache
from personnel_ledger.identity.schemas import (
    FieldConflict,
    FuzzyCandidate,
    Identity,
    IdentityStatus,
    MergePreview,
)
from personnel_ledger.identity.similarity import (
    LevenshteinScorer,
    SimilarityScorer,
    display_name,
    normalize_name,
)
from personnel_ledger.money import to_decimal, to_text

logger = logging.getLogger(__name__)

_COLUMNS = """id, canonical_name, employee_number, hourly_rate, overtime_rate,
    status, merged_into_id, version, last_active_at, last_project_id,
    created_at, updated_at"""

Executor = Database | Transaction


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _rank_key(candidate: FuzzyCandidate) -> tuple:
    """Score descending, then most recently active, then oldest, then id."""
    last_active = candidate.identity.last_active_at
    return (
        -candidate.score,
        last_active is None,
        -last_active.timestamp() if last_active else 0.0,
        candidate.identity.created_at,
        candidate.identity.id,
    )


class IdentityIndex:
    """Repository for canonical identities and alias bindings.

    Reads go through a bounded TTL cache; every write goes to the database
    and invalidates the keys it touched. Uniqueness checks never consult
    the cache.
    """

    def __init__(
        self,
        db: Database,
        audit: AuditLog,
        scorer: SimilarityScorer | None = None,
        cache_ttl_seconds: float = 300.0,
        cache_max_size: int = 1024,
        overtime_multiplier: Decimal | float = Decimal("1.5"),
    ):
        """Initialize index.

        Args:
            db: Database client
            audit: Audit log that records every write
            scorer: Name similarity capability (default LevenshteinScorer)
            cache_ttl_seconds: Lifetime of cached reads
            cache_max_size: Maximum cached entries per cache
            overtime_multiplier: Default overtime rate = hourly * multiplier
        """
        self._db = db
        self._audit = audit
        self._scorer = scorer or LevenshteinScorer()
        self._overtime_multiplier = Decimal(str(overtime_multiplier))
        self.cache: TTLCache[Identity] = TTLCache(cache_max_size, cache_ttl_seconds)
        self.key_cache: TTLCache[str] = TTLCache(cache_max_size, cache_ttl_seconds)

    async def initialize(self) -> None:
        """Create identity and alias tables if not exists."""
        await self._db.execute_batch(
            [
                """
            CREATE TABLE IF NOT EXISTS identities (
                id TEXT PRIMARY KEY,
                canonical_name TEXT NOT NULL,
                name_key TEXT NOT NULL,
                employee_number TEXT,
                hourly_rate TEXT,
                overtime_rate TEXT,
                status TEXT NOT NULL DEFAULT 'incomplete',
                merged_into_id TEXT REFERENCES identities(id),
                version INTEGER NOT NULL DEFAULT 0,
                last_active_at TEXT,
                last_project_id TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_identities_name_key
            ON identities(name_key)
            """,
                """
            CREATE UNIQUE INDEX IF NOT EXISTS idx_identities_employee_number
            ON identities(employee_number)
            WHERE employee_number IS NOT NULL AND status != 'merged'
            """,
                """
            CREATE TABLE IF NOT EXISTS aliases (
                alias_key TEXT PRIMARY KEY,
                identity_id TEXT NOT NULL REFERENCES identities(id),
                created_at TEXT NOT NULL,
                created_by TEXT
            )
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_aliases_identity
            ON aliases(identity_id)
            """,
            ]
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _aliases_by_identity(
        self,
        identity_ids: list[str] | None,
        executor: Executor | None = None,
    ) -> dict[str, list[str]]:
        executor = executor or self._db
        if identity_ids is None:
            result = await executor.execute(
                "SELECT alias_key, identity_id FROM aliases ORDER BY rowid"
            )
        else:
            placeholders = ", ".join("?" for _ in identity_ids)
            result = await executor.execute(
                f"""SELECT alias_key, identity_id FROM aliases
                    WHERE identity_id IN ({placeholders})
                    ORDER BY rowid""",
                identity_ids,
            )
        grouped: dict[str, list[str]] = {}
        for row in result.rows:
            grouped.setdefault(row["identity_id"], []).append(row["alias_key"])
        return grouped

    @staticmethod
    def _to_identity(row: Any, aliases: list[str]) -> Identity:
        return Identity(
            id=row["id"],
            canonical_name=row["canonical_name"],
            employee_number=row["employee_number"],
            hourly_rate=row["hourly_rate"],
            overtime_rate=row["overtime_rate"],
            status=IdentityStatus(row["status"]),
            merged_into_id=row["merged_into_id"],
            aliases=aliases,
            version=row["version"],
            last_active_at=row["last_active_at"],
            last_project_id=row["last_project_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def _load(
        self,
        identity_id: str,
        executor: Executor | None = None,
    ) -> Identity | None:
        executor = executor or self._db
        result = await executor.execute(
            f"SELECT {_COLUMNS} FROM identities WHERE id = ?",
            [identity_id],
        )
        if not result.rows:
            return None
        aliases = await self._aliases_by_identity([identity_id], executor)
        return self._to_identity(result.rows[0], aliases.get(identity_id, []))

    async def _load_many(self, where: str, params: list[Any]) -> list[Identity]:
        result = await self._db.execute(
            f"SELECT {_COLUMNS} FROM identities WHERE {where} ORDER BY canonical_name, id",
            params,
        )
        ids = [row["id"] for row in result.rows]
        if not ids:
            return []
        aliases = await self._aliases_by_identity(ids)
        return [self._to_identity(row, aliases.get(row["id"], [])) for row in result.rows]

    async def get(self, identity_id: str, fresh: bool = False) -> Identity | None:
        """Get an identity (merged tombstones included) by id.

        Args:
            identity_id: Identity id
            fresh: Bypass the read cache

        Returns:
            Identity or None if unknown
        """
        if fresh:
            identity = await self._load(identity_id)
            if identity is not None:
                self.cache.put(identity_id, identity)
            return identity
        return await self.cache.get_or_load(identity_id, lambda: self._load(identity_id))

    async def require(self, identity_id: str, fresh: bool = False) -> Identity:
        identity = await self.get(identity_id, fresh=fresh)
        if identity is None:
            raise IdentityNotFound(identity_id)
        return identity

    async def _lookup_key(self, cache_key: tuple[str, str], sql: str, value: str) -> Identity | None:
        async def load_id() -> str | None:
            result = await self._db.execute(sql, [value])
            return result.rows[0][0] if result.rows else None

        identity_id = await self.key_cache.get_or_load(cache_key, load_id)
        if identity_id is None:
            return None
        return await self.get(identity_id)

    async def lookup_by_canonical_name(self, name: str) -> Identity | None:
        """Exact, case-insensitive canonical name lookup over live identities."""
        key = normalize_name(name)
        if not key:
            return None
        return await self._lookup_key(
            ("name", key),
            """SELECT id FROM identities
               WHERE name_key = ? AND status != 'merged'
               ORDER BY created_at, id LIMIT 1""",
            key,
        )

    async def lookup_by_alias(self, alias: str) -> Identity | None:
        """Exact lookup on the normalized alias key."""
        key = normalize_name(alias)
        if not key:
            return None
        return await self._lookup_key(
            ("alias", key),
            "SELECT identity_id FROM aliases WHERE alias_key = ?",
            key,
        )

    async def lookup_by_employee_number(self, employee_number: str) -> Identity | None:
        number = employee_number.strip()
        if not number:
            return None
        return await self._lookup_key(
            ("employee_number", number),
            """SELECT id FROM identities
               WHERE employee_number = ? AND status != 'merged'""",
            number,
        )

    async def list_active(self) -> list[Identity]:
        """All Active identities, by canonical name."""
        return await self._load_many("status = ?", [IdentityStatus.ACTIVE.value])

    async def list_live(self) -> list[Identity]:
        """All non-Merged identities, by canonical name."""
        return await self._load_many("status != ?", [IdentityStatus.MERGED.value])

    async def candidates_by_fuzzy(
        self,
        name: str,
        threshold: float,
        restrict_to: Iterable[str] | None = None,
    ) -> list[FuzzyCandidate]:
        """Live identities whose canonical name or any alias scores >= threshold.

        Args:
            name: Spoken name
            threshold: Minimum similarity in [0, 1]
            restrict_to: Optional identity ids to narrow the pool to

        Returns:
            Candidates by score descending; ties go to the most recently
            active identity, then the oldest, then the lowest id
        """
        pool = await self.list_live()
        if restrict_to is not None:
            allowed = set(restrict_to)
            pool = [identity for identity in pool if identity.id in allowed]

        candidates = []
        for identity in pool:
            best_score, best_label = 0.0, identity.canonical_name
            for label in [identity.canonical_name, *identity.aliases]:
                score = self._scorer.score(name, label)
                if score > best_score:
                    best_score, best_label = score, label
            if best_score >= threshold:
                candidates.append(
                    FuzzyCandidate(identity=identity, score=best_score, matched_on=best_label)
                )
        candidates.sort(key=_rank_key)
        return candidates

    async def merged_sources(self, identity_id: str) -> list[str]:
        """Ids of every identity merged (directly or transitively) into identity_id."""
        result = await self._db.execute(
            """
            WITH RECURSIVE merged(id) AS (
                SELECT id FROM identities WHERE merged_into_id = ?
                UNION
                SELECT i.id FROM identities i JOIN merged m ON i.merged_into_id = m.id
            )
            SELECT id FROM merged ORDER BY id
            """,
            [identity_id],
        )
        return [row[0] for row in result.rows]

    async def resolve_live(self, identity_id: str) -> Identity:
        """Follow merge tombstones to the surviving identity."""
        identity = await self.require(identity_id, fresh=True)
        seen = {identity.id}
        while not identity.is_live and identity.merged_into_id:
            identity = await self.require(identity.merged_into_id, fresh=True)
            if identity.id in seen:
                msg = f"Merge cycle detected at identity {identity.id}"
                raise InvalidStatusTransition(msg)
            seen.add(identity.id)
        return identity

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _invalidate(self, *identities: Identity, alias_keys: Iterable[str] = ()) -> None:
        for identity in identities:
            self.cache.invalidate(identity.id)
            self.key_cache.invalidate(
                ("name", normalize_name(identity.canonical_name)),
                *(("alias", key) for key in identity.aliases),
            )
            if identity.employee_number:
                self.key_cache.invalidate(("employee_number", identity.employee_number))
        self.key_cache.invalidate(*(("alias", key) for key in alias_keys))

    @staticmethod
    async def _alias_owner(tx: Transaction, alias_key: str) -> str | None:
        result = await tx.execute(
            "SELECT identity_id FROM aliases WHERE alias_key = ?",
            [alias_key],
        )
        return result.rows[0][0] if result.rows else None

    async def _insert_alias(
        self,
        tx: Transaction,
        alias_key: str,
        identity_id: str,
        actor: str,
    ) -> None:
        try:
            await tx.execute(
                """INSERT INTO aliases (alias_key, identity_id, created_at, created_by)
                   VALUES (?, ?, ?, ?)""",
                [alias_key, identity_id, _now(), actor],
            )
        except sqlite3.IntegrityError as e:
            owner = await self._alias_owner(tx, alias_key)
            raise AliasCollision(alias_key, owner or "unknown") from e

    @staticmethod
    async def _cas_update(
        tx: Transaction,
        identity: Identity,
        assignments: dict[str, Any],
    ) -> None:
        """Apply assignments only if the identity is still at identity.version."""
        parts = [f"{column} = ?" for column in assignments]
        parts += ["version = version + 1", "updated_at = ?"]
        result = await tx.execute(
            f"UPDATE identities SET {', '.join(parts)} WHERE id = ? AND version = ?",
            [*assignments.values(), _now(), identity.id, identity.version],
        )
        if result.rows_affected == 0:
            msg = f"Identity {identity.id} changed since version {identity.version}"
            raise ConcurrentModification(msg)

    async def bind_alias(
        self,
        identity_id: str,
        alias: str,
        expected_version: int | None = None,
        actor: str = "system",
    ) -> Identity:
        """Bind an alias key to a live identity.

        Binding a key the identity already owns is a no-op.

        Args:
            identity_id: Identity to bind to
            alias: Alias text (normalized before binding)
            expected_version: Version the caller last read; checked when given
            actor: Who bound the alias

        Returns:
            The refreshed identity

        Raises:
            AliasCollision: If the key belongs to a different identity
            IdentityNotFound: If the identity is unknown
            InvalidStatusTransition: If the identity is merged
            ConcurrentModification: If the identity moved past expected_version
        """
        key = normalize_name(alias)
        if not key:
            raise ValueError("Alias must not be blank")

        async with self._db.transaction() as tx:
            identity = await self._load(identity_id, tx)
            if identity is None:
                raise IdentityNotFound(identity_id)
            if not identity.is_live:
                msg = f"Identity {identity_id} is merged into {identity.merged_into_id}"
                raise InvalidStatusTransition(msg)
            if expected_version is not None and identity.version != expected_version:
                msg = f"Identity {identity_id} is at version {identity.version}, expected {expected_version}"
                raise ConcurrentModification(msg)

            owner = await self._alias_owner(tx, key)
            if owner is not None and owner != identity_id:
                raise AliasCollision(key, owner)
            if owner is None:
                await self._insert_alias(tx, key, identity_id, actor)
                await self._cas_update(tx, identity, {})
                await self._audit.append(
                    AuditEvent(
                        event_type=AuditEventType.ALIAS_BOUND,
                        aggregate_type="identity",
                        aggregate_id=identity_id,
                        actor=actor,
                        data={"alias_key": key},
                    ),
                    tx,
                )

        self._invalidate(identity, alias_keys=[key])
        if owner is None:
            logger.info(f"Bound alias '{key}' to identity {identity_id}")
        return await self.require(identity_id, fresh=True)

    async def create_identity(
        self,
        name: str,
        seed_aliases: Iterable[str],
        actor: str = "system",
    ) -> Identity:
        """Create an Incomplete identity and bind its seed aliases atomically.

        Either the identity and every seed alias are written, or nothing is.

        Args:
            name: Spoken name; becomes the canonical name
            seed_aliases: Aliases to bind with the create
            actor: Who created the identity

        Returns:
            The new identity

        Raises:
            AliasCollision: If any seed alias is already bound
        """
        canonical = display_name(name)
        if not canonical:
            raise ValueError("Identity name must not be blank")
        keys = list(dict.fromkeys(key for key in map(normalize_name, seed_aliases) if key))
        identity = Identity(canonical_name=canonical, aliases=keys)

        async with self._db.transaction() as tx:
            for key in keys:
                owner = await self._alias_owner(tx, key)
                if owner is not None:
                    raise AliasCollision(key, owner)
            await tx.execute(
                """INSERT INTO identities
                   (id, canonical_name, name_key, status, version, created_at, updated_at)
                   VALUES (?, ?, ?, ?, 0, ?, ?)""",
                [
                    identity.id,
                    identity.canonical_name,
                    normalize_name(identity.canonical_name),
                    identity.status.value,
                    identity.created_at.isoformat(),
                    identity.updated_at.isoformat(),
                ],
            )
            for key in keys:
                await self._insert_alias(tx, key, identity.id, actor)
            await self._audit.append(
                AuditEvent(
                    event_type=AuditEventType.IDENTITY_CREATED,
                    aggregate_type="identity",
                    aggregate_id=identity.id,
                    actor=actor,
                    data={"canonical_name": canonical, "aliases": keys},
                ),
                tx,
            )

        logger.info(f"Created identity {identity.id} ({canonical}) with aliases {keys}")
        return identity

    def _merged_fields(self, source: Identity, target: Identity) -> dict[str, Any]:
        """Target fields filled from the source where the target has none."""
        fields: dict[str, Any] = {}
        number = target.employee_number or source.employee_number
        hourly = target.hourly_rate if target.hourly_rate is not None else source.hourly_rate
        overtime = (
            target.overtime_rate if target.overtime_rate is not None else source.overtime_rate
        )
        if number != target.employee_number:
            fields["employee_number"] = number
        if hourly != target.hourly_rate:
            fields["hourly_rate"] = to_text(hourly)
        if overtime != target.overtime_rate:
            fields["overtime_rate"] = to_text(overtime)
        if source.last_active_at and (
            target.last_active_at is None or source.last_active_at > target.last_active_at
        ):
            fields["last_active_at"] = source.last_active_at.isoformat()
            fields["last_project_id"] = source.last_project_id
        if (
            target.status == IdentityStatus.INCOMPLETE
            and number
            and hourly is not None
            and overtime is not None
        ):
            fields["status"] = IdentityStatus.ACTIVE.value
        return fields

    async def _merge_pair(self, source_id: str, target_id: str) -> tuple[Identity, Identity]:
        if source_id == target_id:
            raise InvalidStatusTransition("Cannot merge an identity into itself")
        source = await self.require(source_id, fresh=True)
        target = await self.require(target_id, fresh=True)
        if not source.is_live:
            msg = f"Identity {source_id} is already merged into {source.merged_into_id}"
            raise InvalidStatusTransition(msg)
        if not target.is_live:
            msg = f"Merge target {target_id} is itself merged"
            raise InvalidStatusTransition(msg)
        return source, target

    async def preview_merge(self, source_id: str, target_id: str) -> MergePreview:
        """Report field conflicts and aliases that would move, without writing."""
        source, target = await self._merge_pair(source_id, target_id)
        conflicts = []
        for field in ("employee_number", "hourly_rate", "overtime_rate"):
            source_value = getattr(source, field)
            target_value = getattr(target, field)
            if source_value is not None and target_value is not None and source_value != target_value:
                conflicts.append(
                    FieldConflict(
                        field=field,
                        source_value=str(source_value),
                        target_value=str(target_value),
                    )
                )
        return MergePreview(
            source=source,
            target=target,
            conflicts=conflicts,
            aliases_to_move=source.aliases,
        )

    @retry_on_conflict
    async def merge_identity(self, source_id: str, target_id: str, actor: str) -> Identity:
        """Merge source into target.

        Source's aliases are re-pointed to target, missing target fields are
        filled from source (target wins conflicts), and source becomes a
        Merged tombstone that stays readable for historical entries.

        Raises:
            IdentityNotFound: If either id is unknown
            InvalidStatusTransition: If either identity is already merged
            ConcurrentModification: If a concurrent write wins twice
        """
        source, target = await self._merge_pair(source_id, target_id)
        fields = self._merged_fields(source, target)

        async with self._db.transaction() as tx:
            await self._cas_update(
                tx,
                source,
                {"status": IdentityStatus.MERGED.value, "merged_into_id": target.id},
            )
            await tx.execute(
                "UPDATE aliases SET identity_id = ? WHERE identity_id = ?",
                [target.id, source.id],
            )
            await self._cas_update(tx, target, fields)
            await self._audit.append(
                AuditEvent(
                    event_type=AuditEventType.IDENTITY_MERGED,
                    aggregate_type="identity",
                    aggregate_id=source.id,
                    actor=actor,
                    data={
                        "merged_into_id": target.id,
                        "aliases_moved": source.aliases,
                        "fields_filled": sorted(fields),
                    },
                ),
                tx,
            )

        self._invalidate(source, target)
        logger.info(f"Merged identity {source.id} into {target.id} by {actor}")
        return await self.require(target.id, fresh=True)

    async def _write_profile(
        self,
        identity: Identity,
        employee_number: str | None,
        hourly_rate: Decimal | None,
        overtime_rate: Decimal | None,
        actor: str,
    ) -> Identity:
        for rate in (hourly_rate, overtime_rate):
            if rate is not None and rate < 0:
                raise ValueError("Rates must not be negative")

        status = identity.status
        if (
            status == IdentityStatus.INCOMPLETE
            and employee_number
            and hourly_rate is not None
            and overtime_rate is not None
        ):
            status = IdentityStatus.ACTIVE

        async with self._db.transaction() as tx:
            if employee_number and employee_number != identity.employee_number:
                result = await tx.execute(
                    """SELECT id FROM identities
                       WHERE employee_number = ? AND status != 'merged' AND id != ?""",
                    [employee_number, identity.id],
                )
                if result.rows:
                    raise DuplicateEmployeeNumber(employee_number, result.rows[0][0])
            try:
                await self._cas_update(
                    tx,
                    identity,
                    {
                        "employee_number": employee_number,
                        "hourly_rate": to_text(hourly_rate),
                        "overtime_rate": to_text(overtime_rate),
                        "status": status.value,
                    },
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateEmployeeNumber(employee_number or "", "unknown") from e
            await self._audit.append(
                AuditEvent(
                    event_type=AuditEventType.IDENTITY_UPDATED,
                    aggregate_type="identity",
                    aggregate_id=identity.id,
                    actor=actor,
                    data={
                        "employee_number": employee_number,
                        "hourly_rate": to_text(hourly_rate),
                        "overtime_rate": to_text(overtime_rate),
                        "status": status.value,
                    },
                ),
                tx,
            )

        self._invalidate(identity)
        logger.info(f"Updated profile of identity {identity.id} (status {status.value})")
        return await self.require(identity.id, fresh=True)

    async def _require_live(self, identity_id: str) -> Identity:
        identity = await self.require(identity_id, fresh=True)
        if not identity.is_live:
            msg = f"Identity {identity_id} is merged into {identity.merged_into_id}"
            raise InvalidStatusTransition(msg)
        return identity

    @retry_on_conflict
    async def complete_profile(
        self,
        identity_id: str,
        employee_number: str | None = None,
        hourly_rate: Decimal | float | str | None = None,
        overtime_rate: Decimal | float | str | None = None,
        actor: str = "system",
    ) -> Identity:
        """Fill in employee number and rates.

        An Incomplete identity becomes Active once it has an employee
        number and both rates. With only an hourly rate, the overtime rate
        defaults to hourly * overtime_multiplier.

        Raises:
            DuplicateEmployeeNumber: If another identity holds the number
        """
        identity = await self._require_live(identity_id)
        number = (employee_number or "").strip() or identity.employee_number
        hourly = to_decimal(hourly_rate) if hourly_rate is not None else identity.hourly_rate
        if overtime_rate is not None:
            overtime = to_decimal(overtime_rate)
        elif identity.overtime_rate is not None:
            overtime = identity.overtime_rate
        elif hourly is not None:
            overtime = to_decimal(hourly * self._overtime_multiplier)
        else:
            overtime = None
        return await self._write_profile(identity, number, hourly, overtime, actor)

    @retry_on_conflict
    async def update_rates(
        self,
        identity_id: str,
        hourly_rate: Decimal | float | str,
        overtime_rate: Decimal | float | str | None = None,
        actor: str = "system",
    ) -> Identity:
        """Change default rates. Existing ledger entries keep their snapshots."""
        identity = await self._require_live(identity_id)
        hourly = to_decimal(hourly_rate)
        overtime = (
            to_decimal(overtime_rate)
            if overtime_rate is not None
            else to_decimal(hourly * self._overtime_multiplier)
        )
        return await self._write_profile(
            identity, identity.employee_number, hourly, overtime, actor
        )

    @retry_on_conflict
    async def deactivate(self, identity_id: str, actor: str) -> Identity:
        """Mark an identity Inactive. Inactive identities still resolve."""
        identity = await self._require_live(identity_id)
        if identity.status == IdentityStatus.INACTIVE:
            return identity

        async with self._db.transaction() as tx:
            await self._cas_update(tx, identity, {"status": IdentityStatus.INACTIVE.value})
            await self._audit.append(
                AuditEvent(
                    event_type=AuditEventType.IDENTITY_DEACTIVATED,
                    aggregate_type="identity",
                    aggregate_id=identity.id,
                    actor=actor,
                    data={"previous_status": identity.status.value},
                ),
                tx,
            )

        self._invalidate(identity)
        logger.info(f"Deactivated identity {identity.id} by {actor}")
        return await self.require(identity.id, fresh=True)

    async def record_activity(
        self,
        tx: Transaction,
        identity_id: str,
        project_id: str | None,
        at: datetime,
    ) -> None:
        """Record that identity worked on project_id at `at`.

        Never moves last_active_at backwards and does not bump the version,
        so activity never conflicts with profile edits.
        """
        stamp = at.isoformat()
        await tx.execute(
            """UPDATE identities SET last_active_at = ?, last_project_id = ?
               WHERE id = ? AND (last_active_at IS NULL OR last_active_at <= ?)""",
            [stamp, project_id, identity_id, stamp],
        )
        self.cache.invalidate(identity_id)
