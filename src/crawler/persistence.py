"""Write normalized records to dated JSON files and the record store.

Each cycle for a source produces
``<output>/<source>/<YYYY>/<MM>/<DD>/<source>_<timestamp>.json`` and
overwrites ``<output>/<source>.json`` with the same records. File and store
failures are logged independently; neither undoes the other and the
in-memory records are always returned.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from src import config

from .normalization import NormalizedRecord, sanitize, utcnow

logger = logging.getLogger(__name__)


def _slug(source: str) -> str:
    return source.strip().lower()


def structured_output_path(output_dir: str | Path, source: str, when: datetime) -> Path:
    """Dated archive path for one cycle's output."""
    if when.tzinfo is not None:
        when = when.astimezone(timezone.utc)
    slug = _slug(source)
    stamp = when.strftime("%Y-%m-%dT%H-%M-%S")
    return (
        Path(output_dir)
        / slug
        / when.strftime("%Y")
        / when.strftime("%m")
        / when.strftime("%d")
        / f"{slug}_{stamp}.json"
    )


def latest_output_path(output_dir: str | Path, source: str) -> Path:
    return Path(output_dir) / f"{_slug(source)}.json"


def _write_json(path: Path, payload) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)


def write_results(
    records: Sequence[NormalizedRecord],
    source: str,
    output_dir: str | Path | None = None,
    now: datetime | None = None,
) -> tuple[Path, Path]:
    """Write the archive file and the rolling latest file; returns both paths."""
    output_dir = output_dir or config.OUTPUT_DIR
    payload = [sanitize(record) for record in records]

    archive = structured_output_path(output_dir, source, now or utcnow())
    latest = latest_output_path(output_dir, source)
    _write_json(archive, payload)
    _write_json(latest, payload)
    return archive, latest


class PersistenceAdapter:
    """Persist a source's records to files and, when configured, the store."""

    def __init__(self, output_dir: str | Path | None = None, repository=None):
        self.output_dir = output_dir or config.OUTPUT_DIR
        self.repository = repository

    def persist(
        self,
        source: str,
        records: Sequence[NormalizedRecord],
        now: datetime | None = None,
    ) -> list[NormalizedRecord]:
        records = list(records)

        try:
            archive, _ = write_results(records, source, self.output_dir, now)
            logger.info("[%s] saved %d record(s) to %s", source, len(records), archive)
        except OSError as exc:
            logger.error("[%s] failed to write output files: %s", source, exc)

        if self.repository is not None and records:
            try:
                written = self.repository.upsert(records)
                logger.info("[%s] upserted %d record(s) into the store", source, written)
            except Exception as exc:
                logger.error("[%s] failed to save records to the store: %s", source, exc)

        return records
