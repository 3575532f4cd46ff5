"""SQLite-backed knowledge store.

Persists crops, crop details, diseases, run histories, garden profiles,
garden crops and planting guides to a local SQLite database at ``data/knowledge.db`` using ``aiosqlite``.

Records are stored as a JSON ``document`` column next to the columns that
are queried directly (identity keys, slugs, detail status).  Each record
also keeps a lower-cased ``search_text`` column, the concatenation of its
searchable fields, which backs the token relevance search.

Every transaction opens its own connection and starts with
``BEGIN IMMEDIATE``, so the write lock is taken up front and a
get-or-create inside one run cannot race with another run's insert.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

import aiosqlite
import structlog

from src.interfaces.knowledge_store import IKnowledgeStore, IKnowledgeTransaction
from src.models.garden import GardenCrop, GardenCropStatus, PlantingGuide, PlantingStep
from src.models.history import (
    CropSuggestionHistory,
    DetectedDiseaseRef,
    DiseaseDetectionHistory,
    GardenProfile,
    HostedImage,
)
from src.models.knowledge import (
    Crop,
    CropDetails,
    CropDetailsRef,
    CropSummary,
    DetailStatus,
    Disease,
    DiseaseProfile,
)
from src.models.weather import Coordinates, WeatherAverages
from src.utils.errors import PersistenceError
from src.utils.text_normalizer import normalize_identity, slugify, tokenize

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/knowledge.db")
_PROFILE_FIELDS = set(DiseaseProfile.model_fields)
_GARDEN_CROP_DOCUMENT_FIELDS = {"crop_name", "scientific_name", "description", "image_url"}
_PROVIDER_NAME = "sqlite"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS crops (
    id              TEXT PRIMARY KEY,
    identity_key    TEXT NOT NULL UNIQUE,
    slug            TEXT NOT NULL UNIQUE,
    document        TEXT NOT NULL,
    search_text     TEXT NOT NULL,
    embedding       TEXT,
    details_status  TEXT NOT NULL DEFAULT 'pending',
    details_id      TEXT,
    created_at      TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS crop_details (
    id          TEXT PRIMARY KEY,
    crop_id     TEXT NOT NULL UNIQUE REFERENCES crops(id),
    document    TEXT NOT NULL,
    created_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS diseases (
    id            TEXT PRIMARY KEY,
    identity_key  TEXT NOT NULL UNIQUE,
    document      TEXT NOT NULL,
    search_text   TEXT NOT NULL,
    embedding     TEXT,
    created_at    TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS crop_suggestion_history (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    document    TEXT NOT NULL,
    created_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS disease_detection_history (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    disease_id  TEXT NOT NULL REFERENCES diseases(id),
    document    TEXT NOT NULL,
    created_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS garden_profiles (
    user_id     TEXT PRIMARY KEY,
    document    TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS planting_guides (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    crop_id     TEXT NOT NULL REFERENCES crops(id),
    document    TEXT NOT NULL,
    created_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS garden_crops (
    id                 TEXT PRIMARY KEY,
    user_id            TEXT NOT NULL,
    crop_id            TEXT NOT NULL REFERENCES crops(id),
    planting_guide_id  TEXT NOT NULL REFERENCES planting_guides(id),
    status             TEXT NOT NULL DEFAULT 'pending',
    document           TEXT NOT NULL,
    created_at         TEXT NOT NULL
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_csh_user ON crop_suggestion_history(user_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_ddh_user ON disease_detection_history(user_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_gc_user ON garden_crops(user_id, created_at);",
]

_CROP_COLUMNS = "id, slug, document, embedding, details_status, details_id, created_at"
_DISEASE_COLUMNS = "id, document, embedding, created_at"

_INSERT_CROP_SQL = """\
INSERT INTO crops (id, identity_key, slug, document, search_text, embedding, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?);
"""

_INSERT_DISEASE_SQL = """\
INSERT INTO diseases (id, identity_key, document, search_text, embedding, created_at)
VALUES (?, ?, ?, ?, ?, ?);
"""

_INSERT_CSH_SQL = """\
INSERT INTO crop_suggestion_history (id, user_id, document, created_at)
VALUES (?, ?, ?, ?);
"""

_INSERT_DDH_SQL = """\
INSERT INTO disease_detection_history (id, user_id, disease_id, document, created_at)
VALUES (?, ?, ?, ?, ?);
"""

_INSERT_GUIDE_SQL = """\
INSERT INTO planting_guides (id, user_id, crop_id, document, created_at)
VALUES (?, ?, ?, ?, ?);
"""

_INSERT_GARDEN_CROP_SQL = """\
INSERT INTO garden_crops (id, user_id, crop_id, planting_guide_id, status, document, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?);
"""

_GARDEN_CROP_COLUMNS = "id, user_id, crop_id, planting_guide_id, status, document, created_at"

_UPSERT_GARDEN_SQL = """\
INSERT INTO garden_profiles (user_id, document, updated_at)
VALUES (?, ?, ?)
ON CONFLICT(user_id) DO UPDATE SET document = excluded.document, updated_at = excluded.updated_at;
"""

_MARK_DETAILS_FAILED_SQL = """\
UPDATE crops SET details_status = 'failed'
WHERE id = ? AND details_status != 'success';
"""

_MARK_DETAILS_SUCCESS_SQL = """\
UPDATE crops SET details_status = 'success', details_id = ?
WHERE id = ?;
"""


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _crop_search_text(summary: CropSummary) -> str:
    fields: list[str] = [
        summary.name,
        summary.scientific_name,
        summary.description,
        summary.planting_season,
        summary.sunlight,
        summary.water_need,
        summary.soil_type.value,
        *summary.features,
    ]
    return " ".join(f for f in fields if f).lower()


def _disease_search_text(profile: DiseaseProfile) -> str:
    fields: list[str] = [
        profile.disease_name,
        profile.crop_name,
        profile.description,
        *profile.symptoms,
        *profile.causes,
        *profile.treatment,
        *profile.preventive_tips,
    ]
    return " ".join(f for f in fields if f).lower()


def _disease_identity(disease_name: str, crop_name: str) -> str:
    return f"{normalize_identity(disease_name)}|{normalize_identity(crop_name)}"


def _row_to_crop(row: aiosqlite.Row) -> Crop:
    document = json.loads(row["document"])
    return Crop(
        **document,
        id=row["id"],
        slug=row["slug"],
        details=CropDetailsRef(status=row["details_status"], details_id=row["details_id"]),
        embedding=json.loads(row["embedding"]) if row["embedding"] else None,
        created_at=row["created_at"],
    )


def _row_to_disease(row: aiosqlite.Row) -> Disease:
    document = json.loads(row["document"])
    return Disease(
        **document,
        id=row["id"],
        embedding=json.loads(row["embedding"]) if row["embedding"] else None,
        created_at=row["created_at"],
    )


def _row_to_garden_crop(row: aiosqlite.Row) -> GardenCrop:
    return GardenCrop(
        **json.loads(row["document"]),
        id=row["id"],
        user_id=row["user_id"],
        crop_id=row["crop_id"],
        planting_guide_id=row["planting_guide_id"],
        status=row["status"],
        created_at=row["created_at"],
    )


def _rank_by_tokens(rows: Iterable[aiosqlite.Row], tokens: list[str]) -> list[aiosqlite.Row]:
    """Order rows by the number of distinct tokens in ``search_text``, best first.

    Rows arrive in insertion order and the sort is stable, so equal scores
    keep insertion order.
    """
    scored = []
    for row in rows:
        text = row["search_text"]
        score = sum(1 for token in tokens if token in text)
        if score > 0:
            scored.append((score, row))
    scored.sort(key=lambda pair: -pair[0])
    return [row for _, row in scored]


def _distinct_tokens(query: str) -> list[str]:
    seen: dict[str, None] = {}
    for token in tokenize(query):
        seen.setdefault(token, None)
    return list(seen)


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------

class _SQLiteKnowledgeTransaction(IKnowledgeTransaction):
    """Writes bound to one open ``BEGIN IMMEDIATE`` connection."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db
        self._closed = False

    def _ensure_open(self) -> None:
        if self._closed:
            raise PersistenceError(
                message="Transaction already finished",
                provider_name=_PROVIDER_NAME,
            )

    async def _unique_slug(self, base: str) -> str:
        cursor = await self._db.execute(
            "SELECT slug FROM crops WHERE slug = ? OR slug LIKE ?;",
            (base, f"{base}-%"),
        )
        taken = {row["slug"] for row in await cursor.fetchall()}
        if base not in taken:
            return base
        suffix = 1
        while f"{base}-{suffix}" in taken:
            suffix += 1
        return f"{base}-{suffix}"

    async def get_or_create_crop(
        self,
        summary: CropSummary,
        embedding: list[float] | None = None,
        image_url: str | None = None,
    ) -> tuple[Crop, bool]:
        self._ensure_open()
        identity_key = normalize_identity(summary.scientific_name)
        try:
            cursor = await self._db.execute(
                f"SELECT {_CROP_COLUMNS} FROM crops WHERE identity_key = ?;",
                (identity_key,),
            )
            row = await cursor.fetchone()
            if row is not None:
                return _row_to_crop(row), False

            crop = Crop(
                **summary.model_dump(include=set(CropSummary.model_fields)),
                id=uuid4().hex,
                slug=await self._unique_slug(slugify(summary.name)),
                image_url=image_url,
                embedding=embedding,
                created_at=_now(),
            )
            document = crop.model_dump(
                mode="json", exclude={"id", "slug", "details", "embedding", "created_at"}
            )
            await self._db.execute(
                _INSERT_CROP_SQL,
                (
                    crop.id,
                    identity_key,
                    crop.slug,
                    _dump(document),
                    _crop_search_text(crop),
                    _dump(embedding) if embedding else None,
                    crop.created_at.isoformat(),
                ),
            )
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Failed to store crop {summary.scientific_name!r}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        logger.info("crop_created", crop_id=crop.id, slug=crop.slug)
        return crop, True

    async def get_or_create_disease(
        self,
        profile: DiseaseProfile,
        embedding: list[float] | None = None,
    ) -> tuple[Disease, bool]:
        self._ensure_open()
        identity_key = _disease_identity(profile.disease_name, profile.crop_name)
        try:
            cursor = await self._db.execute(
                f"SELECT {_DISEASE_COLUMNS} FROM diseases WHERE identity_key = ?;",
                (identity_key,),
            )
            row = await cursor.fetchone()
            if row is not None:
                return _row_to_disease(row), False

            disease = Disease(
                **profile.model_dump(include=_PROFILE_FIELDS),
                id=uuid4().hex,
                embedding=embedding,
                created_at=_now(),
            )
            await self._db.execute(
                _INSERT_DISEASE_SQL,
                (
                    disease.id,
                    identity_key,
                    _dump(profile.model_dump(mode="json", include=_PROFILE_FIELDS)),
                    _disease_search_text(profile),
                    _dump(embedding) if embedding else None,
                    disease.created_at.isoformat(),
                ),
            )
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Failed to store disease {profile.disease_name!r}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        logger.info("disease_created", disease_id=disease.id)
        return disease, True

    async def create_crop_suggestion_history(
        self,
        user_id: str,
        inputs: dict[str, Any],
        crop_ids: list[str],
        coordinates: Coordinates | None = None,
        weather: WeatherAverages | None = None,
        image: HostedImage | None = None,
    ) -> CropSuggestionHistory:
        self._ensure_open()
        history = CropSuggestionHistory(
            id=uuid4().hex,
            user_id=user_id,
            inputs=inputs,
            coordinates=coordinates,
            weather=weather,
            image=image,
            crop_ids=crop_ids,
            created_at=_now(),
        )
        try:
            await self._db.execute(
                _INSERT_CSH_SQL,
                (
                    history.id,
                    user_id,
                    _dump(history.model_dump(mode="json", exclude={"id", "user_id", "created_at"})),
                    history.created_at.isoformat(),
                ),
            )
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Failed to store crop suggestion history: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        return history

    async def create_disease_detection_history(
        self,
        user_id: str,
        crop_name: str,
        disease_id: str,
        description: str | None = None,
        image: HostedImage | None = None,
    ) -> DiseaseDetectionHistory:
        self._ensure_open()
        history = DiseaseDetectionHistory(
            id=uuid4().hex,
            user_id=user_id,
            crop_name=crop_name,
            description=description,
            image=image,
            detected_disease=DetectedDiseaseRef(status=DetailStatus.SUCCESS, id=disease_id),
            created_at=_now(),
        )
        try:
            await self._db.execute(
                _INSERT_DDH_SQL,
                (
                    history.id,
                    user_id,
                    disease_id,
                    _dump(history.model_dump(mode="json", exclude={"id", "user_id", "created_at"})),
                    history.created_at.isoformat(),
                ),
            )
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Failed to store disease detection history: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        return history

    async def create_garden_crop(
        self,
        user_id: str,
        crop: Crop,
        steps: list[PlantingStep],
    ) -> tuple[GardenCrop, PlantingGuide]:
        self._ensure_open()
        created_at = _now()
        guide = PlantingGuide(
            id=uuid4().hex,
            user_id=user_id,
            crop_id=crop.id,
            steps=steps,
            created_at=created_at,
        )
        garden_crop = GardenCrop(
            id=uuid4().hex,
            user_id=user_id,
            crop_id=crop.id,
            crop_name=crop.name,
            scientific_name=crop.scientific_name,
            description=crop.description,
            image_url=crop.image_url,
            planting_guide_id=guide.id,
            created_at=created_at,
        )
        try:
            await self._db.execute(
                _INSERT_GUIDE_SQL,
                (
                    guide.id,
                    user_id,
                    crop.id,
                    _dump(guide.model_dump(mode="json", exclude={"id", "user_id", "crop_id", "created_at"})),
                    created_at.isoformat(),
                ),
            )
            await self._db.execute(
                _INSERT_GARDEN_CROP_SQL,
                (
                    garden_crop.id,
                    user_id,
                    crop.id,
                    guide.id,
                    garden_crop.status.value,
                    _dump(garden_crop.model_dump(mode="json", include=_GARDEN_CROP_DOCUMENT_FIELDS)),
                    created_at.isoformat(),
                ),
            )
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Failed to add crop {crop.id!r} to the garden: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc

        logger.info("garden_crop_created", garden_crop_id=garden_crop.id, guide_id=guide.id, steps=len(steps))
        return garden_crop, guide

    def close(self) -> None:
        self._closed = True


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class SQLiteKnowledgeStore(IKnowledgeStore):
    """SQLite-backed knowledge persistence.

    Parameters
    ----------
    db_path:
        Database file location; parent directories are created on
        :meth:`initialize`.
    busy_timeout:
        Seconds a connection waits for another writer's lock.
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH, busy_timeout: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._busy_timeout = busy_timeout

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connection() as db:
            await db.execute("PRAGMA journal_mode = WAL;")
            for sql in _CREATE_TABLES_SQL:
                await db.execute(sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
        logger.info("knowledge_db_initialized", path=str(self._db_path))

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Autocommit connection; sqlite errors surface as PersistenceError."""
        try:
            async with aiosqlite.connect(
                str(self._db_path), timeout=self._busy_timeout, isolation_level=None
            ) as db:
                db.row_factory = aiosqlite.Row
                await db.execute("PRAGMA foreign_keys = ON;")
                yield db
        except aiosqlite.Error as exc:
            raise PersistenceError(message=str(exc), provider_name=_PROVIDER_NAME) from exc

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[IKnowledgeTransaction]:
        async with self._connection() as db:
            await db.execute("BEGIN IMMEDIATE;")
            tx = _SQLiteKnowledgeTransaction(db)
            try:
                yield tx
            except BaseException:
                tx.close()
                await self._rollback(db)
                raise
            tx.close()
            await db.execute("COMMIT;")

    @staticmethod
    async def _rollback(db: aiosqlite.Connection) -> None:
        if not db.in_transaction:
            return
        try:
            await db.execute("ROLLBACK;")
            logger.info("transaction_rolled_back")
        except aiosqlite.Error as exc:
            # The original exception is already propagating.
            logger.error("transaction_rollback_failed", error=str(exc))

    # -- Crops -----------------------------------------------------------

    async def find_crop_by_scientific_name(self, scientific_name: str) -> Crop | None:
        return await self._fetch_crop("identity_key = ?", normalize_identity(scientific_name))

    async def get_crop(self, crop_id: str) -> Crop | None:
        return await self._fetch_crop("id = ?", crop_id)

    async def get_crop_by_slug(self, slug: str) -> Crop | None:
        return await self._fetch_crop("slug = ?", slug)

    async def _fetch_crop(self, where: str, value: str) -> Crop | None:
        async with self._connection() as db:
            cursor = await db.execute(f"SELECT {_CROP_COLUMNS} FROM crops WHERE {where};", (value,))
            row = await cursor.fetchone()
        return _row_to_crop(row) if row is not None else None

    async def search_crops(self, query: str, limit: int = 50) -> list[Crop]:
        rows = await self._search("crops", _CROP_COLUMNS, query)
        return [_row_to_crop(row) for row in rows[:limit]]

    async def save_crop_details(self, crop_id: str, data: dict[str, Any]) -> CropDetails:
        async with self._connection() as db:
            await db.execute("BEGIN IMMEDIATE;")
            try:
                details = await self._insert_crop_details(db, crop_id, data)
            except BaseException:
                await self._rollback(db)
                raise
            await db.execute("COMMIT;")
        logger.info("crop_details_saved", crop_id=crop_id, details_id=details.id)
        return details

    async def _insert_crop_details(
        self, db: aiosqlite.Connection, crop_id: str, data: dict[str, Any]
    ) -> CropDetails:
        cursor = await db.execute(f"SELECT {_CROP_COLUMNS} FROM crops WHERE id = ?;", (crop_id,))
        row = await cursor.fetchone()
        if row is None:
            raise PersistenceError(
                message=f"Unknown crop {crop_id!r}",
                provider_name=_PROVIDER_NAME,
            )
        crop = _row_to_crop(row)

        cursor = await db.execute(
            "SELECT id, document, created_at FROM crop_details WHERE crop_id = ?;",
            (crop_id,),
        )
        existing = await cursor.fetchone()
        if existing is not None:
            await db.execute(_MARK_DETAILS_SUCCESS_SQL, (existing["id"], crop_id))
            return CropDetails(
                id=existing["id"],
                crop_id=crop_id,
                slug=crop.slug,
                scientific_name=crop.scientific_name,
                data=json.loads(existing["document"]),
                created_at=existing["created_at"],
            )

        details = CropDetails(
            id=uuid4().hex,
            crop_id=crop_id,
            slug=crop.slug,
            scientific_name=crop.scientific_name,
            data=data,
            created_at=_now(),
        )
        await db.execute(
            "INSERT INTO crop_details (id, crop_id, document, created_at) VALUES (?, ?, ?, ?);",
            (details.id, crop_id, _dump(data), details.created_at.isoformat()),
        )
        await db.execute(_MARK_DETAILS_SUCCESS_SQL, (details.id, crop_id))
        return details

    async def mark_crop_details_failed(self, crop_id: str) -> bool:
        async with self._connection() as db:
            cursor = await db.execute(_MARK_DETAILS_FAILED_SQL, (crop_id,))
            changed = cursor.rowcount > 0
        if changed:
            logger.info("crop_details_marked_failed", crop_id=crop_id)
        return changed

    async def get_crop_details_by_slug(self, slug: str) -> CropDetails | None:
        async with self._connection() as db:
            cursor = await db.execute(
                """\
SELECT d.id, d.crop_id, d.document, d.created_at, c.slug, c.document AS crop_document
FROM crop_details d JOIN crops c ON c.id = d.crop_id
WHERE c.slug = ?;
""",
                (slug,),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return CropDetails(
            id=row["id"],
            crop_id=row["crop_id"],
            slug=row["slug"],
            scientific_name=json.loads(row["crop_document"])["scientific_name"],
            data=json.loads(row["document"]),
            created_at=row["created_at"],
        )

    # -- Diseases --------------------------------------------------------

    async def find_disease_by_identity(self, disease_name: str, crop_name: str) -> Disease | None:
        return await self._fetch_disease(
            "identity_key = ?", _disease_identity(disease_name, crop_name)
        )

    async def get_disease(self, disease_id: str) -> Disease | None:
        return await self._fetch_disease("id = ?", disease_id)

    async def _fetch_disease(self, where: str, value: str) -> Disease | None:
        async with self._connection() as db:
            cursor = await db.execute(
                f"SELECT {_DISEASE_COLUMNS} FROM diseases WHERE {where};", (value,)
            )
            row = await cursor.fetchone()
        return _row_to_disease(row) if row is not None else None

    async def search_diseases(self, query: str, limit: int = 50) -> list[Disease]:
        rows = await self._search("diseases", _DISEASE_COLUMNS, query)
        return [_row_to_disease(row) for row in rows[:limit]]

    async def _search(self, table: str, columns: str, query: str) -> list[aiosqlite.Row]:
        """Return rows containing any query token, ranked by tokens matched."""
        tokens = _distinct_tokens(query)
        if not tokens:
            return []
        where = " OR ".join("instr(search_text, ?) > 0" for _ in tokens)
        async with self._connection() as db:
            cursor = await db.execute(
                f"SELECT {columns}, search_text FROM {table} WHERE {where} ORDER BY rowid;",
                tokens,
            )
            rows = await cursor.fetchall()
        ranked = _rank_by_tokens(rows, tokens)
        logger.debug("knowledge_search", table=table, tokens=tokens, matches=len(ranked))
        return ranked

    # -- Histories -------------------------------------------------------

    async def list_crop_suggestion_history(
        self, user_id: str, page: int = 1, limit: int = 10
    ) -> tuple[list[CropSuggestionHistory], int]:
        rows, total = await self._page("crop_suggestion_history", user_id, page, limit)
        return [self._row_to_csh(row) for row in rows], total

    async def get_crop_suggestion_history(
        self, user_id: str, history_id: str
    ) -> CropSuggestionHistory | None:
        row = await self._history_row("crop_suggestion_history", user_id, history_id)
        return self._row_to_csh(row) if row is not None else None

    async def list_disease_detection_history(
        self, user_id: str, page: int = 1, limit: int = 10
    ) -> tuple[list[DiseaseDetectionHistory], int]:
        rows, total = await self._page("disease_detection_history", user_id, page, limit)
        return [self._row_to_ddh(row) for row in rows], total

    async def get_disease_detection_history(
        self, user_id: str, history_id: str
    ) -> DiseaseDetectionHistory | None:
        row = await self._history_row("disease_detection_history", user_id, history_id)
        return self._row_to_ddh(row) if row is not None else None

    async def _page(
        self, table: str, user_id: str, page: int, limit: int
    ) -> tuple[list[aiosqlite.Row], int]:
        page = max(1, page)
        limit = max(1, min(100, limit))
        async with self._connection() as db:
            cursor = await db.execute(f"SELECT COUNT(*) FROM {table} WHERE user_id = ?;", (user_id,))
            total = (await cursor.fetchone())[0]
            cursor = await db.execute(
                f"SELECT id, user_id, document, created_at FROM {table} WHERE user_id = ? "
                "ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?;",
                (user_id, limit, (page - 1) * limit),
            )
            rows = await cursor.fetchall()
        return list(rows), total

    async def _history_row(self, table: str, user_id: str, history_id: str) -> aiosqlite.Row | None:
        async with self._connection() as db:
            cursor = await db.execute(
                f"SELECT id, user_id, document, created_at FROM {table} WHERE id = ? AND user_id = ?;",
                (history_id, user_id),
            )
            return await cursor.fetchone()

    @staticmethod
    def _row_to_csh(row: aiosqlite.Row) -> CropSuggestionHistory:
        return CropSuggestionHistory(
            **json.loads(row["document"]),
            id=row["id"],
            user_id=row["user_id"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_ddh(row: aiosqlite.Row) -> DiseaseDetectionHistory:
        return DiseaseDetectionHistory(
            **json.loads(row["document"]),
            id=row["id"],
            user_id=row["user_id"],
            created_at=row["created_at"],
        )

    # -- Garden profiles -------------------------------------------------

    async def save_garden_profile(self, profile: GardenProfile) -> GardenProfile:
        profile = profile.model_copy(update={"updated_at": _now()})
        async with self._connection() as db:
            await db.execute(
                _UPSERT_GARDEN_SQL,
                (
                    profile.user_id,
                    _dump(profile.model_dump(mode="json", exclude={"user_id", "updated_at"})),
                    profile.updated_at.isoformat(),
                ),
            )
        logger.info("garden_profile_saved", user_id=profile.user_id)
        return profile

    async def get_garden_profile(self, user_id: str) -> GardenProfile | None:
        async with self._connection() as db:
            cursor = await db.execute(
                "SELECT user_id, document, updated_at FROM garden_profiles WHERE user_id = ?;",
                (user_id,),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return GardenProfile(
            **json.loads(row["document"]),
            user_id=row["user_id"],
            updated_at=row["updated_at"],
        )

    # -- Garden crops ----------------------------------------------------

    async def list_garden_crops(self, user_id: str, include_removed: bool = False) -> list[GardenCrop]:
        sql = f"SELECT {_GARDEN_CROP_COLUMNS} FROM garden_crops WHERE user_id = ?"
        params: list[str] = [user_id]
        if not include_removed:
            sql += " AND status != ?"
            params.append(GardenCropStatus.REMOVED.value)
        async with self._connection() as db:
            cursor = await db.execute(f"{sql} ORDER BY created_at DESC, rowid DESC;", params)
            rows = await cursor.fetchall()
        return [_row_to_garden_crop(row) for row in rows]

    async def get_planting_guide(self, user_id: str, guide_id: str) -> PlantingGuide | None:
        async with self._connection() as db:
            cursor = await db.execute(
                "SELECT id, user_id, crop_id, document, created_at FROM planting_guides "
                "WHERE id = ? AND user_id = ?;",
                (guide_id, user_id),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return PlantingGuide(
            **json.loads(row["document"]),
            id=row["id"],
            user_id=row["user_id"],
            crop_id=row["crop_id"],
            created_at=row["created_at"],
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def get_stats(self) -> dict[str, int]:
        """Row counts per table, plus crops by detail status."""
        stats: dict[str, int] = {}
        async with self._connection() as db:
            for table in (
                "crops",
                "crop_details",
                "diseases",
                "crop_suggestion_history",
                "disease_detection_history",
                "garden_profiles",
                "planting_guides",
                "garden_crops",
            ):
                cursor = await db.execute(f"SELECT COUNT(*) FROM {table};")  # noqa: S608
                row = await cursor.fetchone()
                stats[table] = row[0]
            cursor = await db.execute(
                "SELECT details_status, COUNT(*) FROM crops GROUP BY details_status;"
            )
            for status, count in await cursor.fetchall():
                stats[f"crops_{status}"] = count
        return stats
