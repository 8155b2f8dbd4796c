"""
This module loads the IMDb TSV dumps (https://developer.imdb.com/non-commercial-datasets/)
into the collections served by the API.
Files are streamed line by line, converted to the stored document shape and
inserted in batches; rows already present are skipped.
imdb_api.ingest.py
"""
import gzip
import json
from enum import Enum
from pathlib import Path
from typing import Annotated, Optional

import typer
from loguru import logger
from pymongo.errors import BulkWriteError
from tqdm import tqdm

from imdb_api import db
from imdb_api.logger import configure_logging

NULL = "\\N"
DUPLICATE_KEY = 11000
BATCH_SIZE = 1000


def _text(value):
    return None if value == NULL else value


def _int(value):
    return None if value in (NULL, "") else int(value)


def _bool(value):
    return value == "1"


def _list(value):
    return [] if value in (NULL, "") else value.split(",")


def _characters(value):
    if value in (NULL, ""):
        return []
    decoded = json.loads(value)
    return decoded if isinstance(decoded, list) else [decoded]


def convert_basics(row: dict) -> dict:
    return {
        "tconst": row["tconst"],
        "titleType": row["titleType"],
        "primaryTitle": _text(row["primaryTitle"]),
        "originalTitle": _text(row["originalTitle"]),
        "isAdult": _bool(row["isAdult"]),
        "startYear": _int(row["startYear"]),
        "endYear": _int(row["endYear"]),
        "runtimeMinutes": _int(row["runtimeMinutes"]),
        "genres": ",".join(genre.strip().lower() for genre in _list(row["genres"])),
    }


def convert_names(row: dict) -> dict:
    return {
        "nconst": row["nconst"],
        "primaryName": _text(row["primaryName"]),
        "birthYear": _int(row["birthYear"]),
        "deathYear": _int(row["deathYear"]),
        "primaryProfession": _list(row["primaryProfession"]),
        "knownForTitles": _list(row["knownForTitles"]),
    }


def convert_principals(row: dict) -> dict:
    return {
        "tconst": row["tconst"],
        "ordering": _int(row["ordering"]),
        "nconst": row["nconst"],
        "category": row["category"],
        "job": _text(row["job"]),
        "characters": _characters(row["characters"]),
    }


def convert_crews(row: dict) -> dict:
    return {
        "tconst": row["tconst"],
        "directors": _list(row["directors"]),
        "writers": _list(row["writers"]),
    }


def convert_akas(row: dict) -> dict:
    types = _list(row["types"])
    attributes = _list(row["attributes"])
    return {
        "titleId": row["titleId"],
        "ordering": _int(row["ordering"]),
        "title": _text(row["title"]),
        "region": _text(row["region"]),
        "language": _text(row["language"]),
        "types": types or None,
        "attributes": attributes or None,
        "isOriginalTitle": _bool(row["isOriginalTitle"]),
    }


def convert_episodes(row: dict) -> dict:
    return {
        "tconst": row["tconst"],
        "parentTconst": row["parentTconst"],
        "seasonNumber": _int(row["seasonNumber"]),
        "episodeNumber": _int(row["episodeNumber"]),
    }


CONVERTERS = {
    db.BASICS: convert_basics,
    db.NAMES: convert_names,
    db.PRINCIPALS: convert_principals,
    db.CREWS: convert_crews,
    db.AKAS: convert_akas,
    db.EPISODES: convert_episodes,
}


def read_rows(path: Path):
    """Yield one dict per data line, keyed by the header columns."""
    open_fn = gzip.open if path.suffix == ".gz" else open
    with open_fn(path, "rt", encoding="utf-8") as f:
        header = next(f).rstrip("\n").split("\t")
        for line in f:
            parts = line.rstrip("\n").split("\t")
            if len(parts) == len(header):
                yield dict(zip(header, parts))


def insert_batch(collection, batch) -> int:
    """Insert ``batch`` and return how many documents were new."""
    try:
        return len(collection.insert_many(batch, ordered=False).inserted_ids)
    except BulkWriteError as exc:
        errors = exc.details.get("writeErrors", [])
        if any(error.get("code") != DUPLICATE_KEY for error in errors):
            raise
        return exc.details.get("nInserted", 0)


def ingest(dataset: str, path: Path, batch_size: int = BATCH_SIZE, limit: int = None) -> dict:
    if dataset not in CONVERTERS:
        raise ValueError(f"Unknown dataset {dataset}, expected one of {', '.join(CONVERTERS)}")
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    convert = CONVERTERS[dataset]
    collection = db.get_collection(dataset)
    read, inserted, batch = 0, 0, []

    for row in tqdm(read_rows(path), desc=f"Loading {dataset}", unit=" rows", total=limit):
        batch.append(convert(row))
        read += 1
        if len(batch) >= batch_size:
            inserted += insert_batch(collection, batch)
            batch = []
        if limit and read >= limit:
            break
    if batch:
        inserted += insert_batch(collection, batch)

    logger.info("{}: read {} rows, inserted {}, skipped {}", dataset, read, inserted, read - inserted)
    return {"read": read, "inserted": inserted, "skipped": read - inserted}


class Dataset(str, Enum):
    basics = db.BASICS
    names = db.NAMES
    principals = db.PRINCIPALS
    crews = db.CREWS
    akas = db.AKAS
    episodes = db.EPISODES


app = typer.Typer(help="Load an IMDb TSV dump into MongoDB", add_completion=False)


@app.command()
def main(
    dataset: Annotated[Dataset, typer.Argument(help="Collection the rows are loaded into")],
    file: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="A .tsv or .tsv.gz dump")],
    batch_size: Annotated[int, typer.Option("--batch-size", min=1, help="Rows per insert_many call")] = BATCH_SIZE,
    limit: Annotated[Optional[int], typer.Option("--limit", min=1, help="Stop after this many rows")] = None,
) -> None:
    """Stream FILE into the DATASET collection, skipping rows already stored."""
    configure_logging()
    db.ensure_indexes()
    try:
        summary = ingest(dataset.value, file, batch_size, limit)
    finally:
        db.close_client()
    typer.echo(f"{dataset.value}: read {summary['read']}, inserted {summary['inserted']}, skipped {summary['skipped']}")


if __name__ == "__main__":
    app()
