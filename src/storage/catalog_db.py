# src/storage/catalog_db.py

"""SQLite-backed store for markets, products, price records and sync runs."""

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, cast

from src.config.settings import Settings
from src.errors import StoreError, SyncAlreadyRunningError
from src.models.market import Market
from src.models.price_record import PriceRecord
from src.models.product import Product
from src.models.sync_run import SyncRun

logger = logging.getLogger("price_sync.store")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS markets (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    name       TEXT    NOT NULL,
    legal_name TEXT,
    location   TEXT
);

CREATE TABLE IF NOT EXISTS products (
    id      INTEGER PRIMARY KEY AUTOINCREMENT,
    name    TEXT    NOT NULL,
    barcode TEXT
);

CREATE TABLE IF NOT EXISTS price_records (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id  INTEGER NOT NULL
                REFERENCES products(id) ON DELETE CASCADE,
    market_id   INTEGER NOT NULL
                REFERENCES markets(id) ON DELETE CASCADE,
    price       REAL    NOT NULL,
    record_date TEXT    NOT NULL,
    notes       TEXT    NOT NULL DEFAULT ''
);

CREATE INDEX IF NOT EXISTS idx_price_records_pair_date
    ON price_records(product_id, market_id, record_date);

CREATE TABLE IF NOT EXISTS sync_runs (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    status          TEXT    NOT NULL,
    started_at      TEXT    NOT NULL,
    finished_at     TEXT,
    prices_recorded INTEGER NOT NULL DEFAULT 0,
    report_json     TEXT
);
"""


def to_db_timestamp(moment: datetime) -> str:
    """Render a datetime as a sortable UTC string.

    Naive datetimes are taken to be UTC already.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(
        timespec="microseconds"
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _pick(row: dict[str, Any], *keys: str) -> Any:
    """Return the first present, non-empty value among *keys*."""
    for key in keys:
        value = row.get(key)
        if value not in (None, ""):
            return value
    return None


class CatalogDB:
    """SQLite store behind the price sync job."""

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(
                str(path), check_same_thread=False,
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise StoreError(
                f"Cannot open store at {path}: {exc}"
            ) from exc
        logger.debug("CatalogDB opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        """Translate sqlite failures into ``StoreError``."""
        try:
            yield
        except sqlite3.Error as exc:
            logger.error(
                "Store failure during %s: %s",
                operation,
                exc,
                exc_info=True,
            )
            raise StoreError(f"{operation} failed: {exc}") from exc

    # ── Catalogue ────────────────────────────────────────

    def add_market(
        self,
        name: str,
        legal_name: str | None = None,
        location: str | None = None,
    ) -> Market:
        """Insert a market and return it."""
        with self._guard("add market"):
            cur = self._conn.execute(
                "INSERT INTO markets (name, legal_name, location) "
                "VALUES (?, ?, ?)",
                (name, legal_name, location),
            )
            self._conn.commit()
        return Market(
            id=cast(int, cur.lastrowid),
            name=name,
            legal_name=legal_name,
            location=location,
        )

    def add_product(
        self, name: str, barcode: str | None = None,
    ) -> Product:
        """Insert a product and return it."""
        with self._guard("add product"):
            cur = self._conn.execute(
                "INSERT INTO products (name, barcode) VALUES (?, ?)",
                (name, barcode),
            )
            self._conn.commit()
        return Product(
            id=cast(int, cur.lastrowid), name=name, barcode=barcode,
        )

    def eligible_markets(self) -> list[Market]:
        """Markets with a legal name, in insertion order."""
        with self._guard("load markets"):
            rows = self._conn.execute(
                "SELECT id, name, legal_name, location FROM markets "
                "WHERE legal_name IS NOT NULL AND legal_name != '' "
                "ORDER BY id",
            ).fetchall()
        return [
            Market(id=r[0], name=r[1], legal_name=r[2], location=r[3])
            for r in rows
        ]

    def eligible_products(self) -> list[Product]:
        """Products with a barcode, in insertion order."""
        with self._guard("load products"):
            rows = self._conn.execute(
                "SELECT id, name, barcode FROM products "
                "WHERE barcode IS NOT NULL AND barcode != '' "
                "ORDER BY id",
            ).fetchall()
        return [
            Product(id=r[0], name=r[1], barcode=r[2]) for r in rows
        ]

    def import_catalog(self, filepath: Path) -> tuple[int, int]:
        """Load markets and products from a JSON file.

        The file holds ``{"markets": [...], "products": [...]}``; keys
        may be snake_case or camelCase (``legalName``).  Entries without
        a name are skipped.  Returns ``(markets, products)`` inserted.
        """
        try:
            with open(filepath, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            raise StoreError(
                f"Cannot read catalog {filepath}: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise StoreError(
                f"Catalog {filepath} must be a JSON object"
            )

        payload = cast(dict[str, Any], data)
        market_rows = [
            m for m in payload.get("markets", []) if isinstance(m, dict)
        ]
        product_rows = [
            p for p in payload.get("products", []) if isinstance(p, dict)
        ]

        markets = 0
        for row in market_rows:
            name = _pick(row, "name")
            if not name:
                continue
            self.add_market(
                str(name),
                legal_name=_pick(row, "legal_name", "legalName"),
                location=_pick(row, "location"),
            )
            markets += 1

        products = 0
        for row in product_rows:
            name = _pick(row, "name")
            if not name:
                continue
            barcode = _pick(row, "barcode")
            self.add_product(
                str(name),
                barcode=str(barcode) if barcode is not None else None,
            )
            products += 1

        logger.info(
            "Catalog import: %d markets, %d products from %s",
            markets,
            products,
            filepath,
        )
        return markets, products

    # ── Price records ────────────────────────────────────

    def latest_price_since(
        self,
        product_id: int,
        market_id: int,
        since: datetime,
    ) -> PriceRecord | None:
        """Most recent record for the pair dated at or after *since*."""
        with self._guard("dedup lookup"):
            row = self._conn.execute(
                "SELECT id, product_id, market_id, price, "
                "       record_date, notes "
                "FROM price_records "
                "WHERE product_id = ? AND market_id = ? "
                "  AND record_date >= ? "
                "ORDER BY record_date DESC, id DESC LIMIT 1",
                (product_id, market_id, to_db_timestamp(since)),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_record(row)

    def insert_price_record(
        self,
        product_id: int,
        market_id: int,
        price: float,
        record_date: datetime,
        notes: str = "",
    ) -> int:
        """Insert one price record and return its id."""
        with self._guard("insert price record"):
            cur = self._conn.execute(
                "INSERT INTO price_records "
                "(product_id, market_id, price, record_date, notes) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    product_id,
                    market_id,
                    price,
                    to_db_timestamp(record_date),
                    notes,
                ),
            )
            self._conn.commit()
        return cast(int, cur.lastrowid)

    def price_history(
        self,
        product_id: int,
        market_id: int | None = None,
    ) -> list[PriceRecord]:
        """All records for a product (optionally one market), oldest first."""
        query = (
            "SELECT id, product_id, market_id, price, record_date, notes "
            "FROM price_records WHERE product_id = ?"
        )
        params: list[object] = [product_id]
        if market_id is not None:
            query += " AND market_id = ?"
            params.append(market_id)
        query += " ORDER BY record_date ASC, id ASC"
        with self._guard("price history"):
            rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_record(r) for r in rows]

    @staticmethod
    def _row_to_record(row: tuple[Any, ...]) -> PriceRecord:
        return PriceRecord(
            id=row[0],
            product_id=row[1],
            market_id=row[2],
            price=row[3],
            record_date=datetime.fromisoformat(row[4]),
            notes=row[5],
        )

    # ── Run lock / history ───────────────────────────────

    def acquire_run_lock(
        self,
        ttl_seconds: float | None = None,
        now: datetime | None = None,
    ) -> int:
        """Open a ``running`` sync_runs row and return its id.

        Raises ``SyncAlreadyRunningError`` if another run holds a lock
        younger than *ttl_seconds*; older locks are marked
        ``abandoned`` and taken over.
        """
        ttl = Settings.RUN_LOCK_TTL if ttl_seconds is None else ttl_seconds
        moment = now or _utcnow()
        stale_before = to_db_timestamp(moment - timedelta(seconds=ttl))
        stamp = to_db_timestamp(moment)

        with self._guard("acquire run lock"):
            if self._conn.in_transaction:
                self._conn.commit()
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                running = self._conn.execute(
                    "SELECT id, started_at FROM sync_runs "
                    "WHERE status = 'running' ORDER BY id",
                ).fetchall()
                for run_id, started_at in running:
                    if started_at >= stale_before:
                        raise SyncAlreadyRunningError(run_id, started_at)
                    logger.warning(
                        "Taking over stale sync run %d (started %s)",
                        run_id,
                        started_at,
                    )
                    self._conn.execute(
                        "UPDATE sync_runs SET status = 'abandoned', "
                        "finished_at = ? WHERE id = ?",
                        (stamp, run_id),
                    )
                cur = self._conn.execute(
                    "INSERT INTO sync_runs (status, started_at) "
                    "VALUES ('running', ?)",
                    (stamp,),
                )
                self._conn.commit()
            except BaseException:
                self._conn.rollback()
                raise
        run_id = cast(int, cur.lastrowid)
        logger.debug("Acquired run lock %d", run_id)
        return run_id

    def finish_run(
        self,
        run_id: int,
        success: bool,
        prices_recorded: int,
        report: dict[str, Any],
    ) -> None:
        """Release the run lock, storing the final report."""
        status = "completed" if success else "failed"
        with self._guard("finish run"):
            self._conn.execute(
                "UPDATE sync_runs SET status = ?, finished_at = ?, "
                "prices_recorded = ?, report_json = ? WHERE id = ?",
                (
                    status,
                    to_db_timestamp(_utcnow()),
                    prices_recorded,
                    json.dumps(report, ensure_ascii=False),
                    run_id,
                ),
            )
            self._conn.commit()
        logger.debug("Run %d finished as %s", run_id, status)

    def list_runs(self, limit: int = 20) -> list[SyncRun]:
        """Most recent sync runs first."""
        with self._guard("list runs"):
            rows = self._conn.execute(
                "SELECT id, status, started_at, finished_at, "
                "       prices_recorded, report_json "
                "FROM sync_runs ORDER BY id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [
            SyncRun(
                id=r[0],
                status=r[1],
                started_at=r[2],
                finished_at=r[3],
                prices_recorded=r[4],
                report_json=r[5],
            )
            for r in rows
        ]
