from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

import psycopg
import yaml

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_PLACES_FILE = PROJECT_ROOT / "docs" / "places.yaml"
MIGRATIONS_DIR = PROJECT_ROOT / "apps" / "api" / "migrations"
DEFAULT_EMBEDDING_MODEL = "textembedding-gecko@003"


@dataclass
class PlaceRecord:
    ref: str
    name: str
    known_for: str
    country: str | None = None
    continent: str | None = None
    tags: list[str] = field(default_factory=list)
    image_url: str | None = None

    def as_params(self) -> dict:
        return {
            "ref": self.ref,
            "name": self.name,
            "country": self.country,
            "continent": self.continent,
            "known_for": self.known_for,
            "tags": self.tags,
            "image_url": self.image_url,
        }


def _optional_str(value) -> str | None:
    return str(value).strip() if value else None


def load_places(places_file: Path) -> list[PlaceRecord]:
    if not places_file.exists():
        raise FileNotFoundError(f"Missing places file: {places_file}")
    raw = yaml.safe_load(places_file.read_text(encoding="utf-8")) or {}
    items = raw.get("places", [])
    if not isinstance(items, list):
        raise ValueError("places file must contain top-level `places` list")

    places: list[PlaceRecord] = []
    seen: set[str] = set()
    for item in items:
        if not isinstance(item, dict):
            continue
        tags = item.get("tags") or []
        if not isinstance(tags, list):
            raise ValueError(f"tags must be a list for place {item.get('ref')!r}")
        place = PlaceRecord(
            ref=str(item.get("ref", "")).strip(),
            name=str(item.get("name", "")).strip(),
            known_for=str(item.get("knownFor", "")).strip(),
            country=_optional_str(item.get("country")),
            continent=_optional_str(item.get("continent")),
            tags=[str(tag).strip() for tag in tags if str(tag).strip()],
            image_url=_optional_str(item.get("imageUrl")),
        )
        if not place.ref:
            raise ValueError("Each place must include ref")
        if not place.name or not place.known_for:
            raise ValueError(f"Place {place.ref} must include name and knownFor")
        if place.ref in seen:
            raise ValueError(f"Duplicate place ref: {place.ref}")
        seen.add(place.ref)
        places.append(place)
    return places


def run_migrations(database_url: str) -> None:
    files = sorted([p for p in MIGRATIONS_DIR.glob("*.sql") if p.is_file()])
    with psycopg.connect(database_url, autocommit=False) as conn:
        with conn.cursor() as cur:
            cur.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                  version TEXT PRIMARY KEY,
                  applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
            """)
            for file in files:
                version = file.name
                cur.execute("SELECT 1 FROM schema_migrations WHERE version = %s", (version,))
                if cur.fetchone():
                    continue
                sql = file.read_text(encoding="utf-8")
                for statement in [s.strip() for s in sql.split(";") if s.strip()]:
                    cur.execute(statement)
                cur.execute("INSERT INTO schema_migrations (version) VALUES (%s)", (version,))
        conn.commit()


UPSERT_PLACE_SQL = """
    INSERT INTO places (ref, name, country, continent, known_for, tags, image_url, embedding, updated_at)
    VALUES (
      %(ref)s, %(name)s, %(country)s, %(continent)s, %(known_for)s, %(tags)s, %(image_url)s,
      CAST(embedding(%(model)s, %(known_for)s) AS vector), NOW()
    ) ON CONFLICT (ref) DO UPDATE SET
      name = EXCLUDED.name,
      country = EXCLUDED.country,
      continent = EXCLUDED.continent,
      known_for = EXCLUDED.known_for,
      tags = EXCLUDED.tags,
      image_url = EXCLUDED.image_url,
      embedding = EXCLUDED.embedding,
      updated_at = NOW()
"""


def load_to_postgres(database_url: str, places: list[PlaceRecord], embedding_model: str) -> dict:
    if not places:
        return {"places_upserted": 0}
    run_migrations(database_url)
    with psycopg.connect(database_url, autocommit=False) as conn:
        with conn.cursor() as cur:
            for place in places:
                cur.execute(UPSERT_PLACE_SQL, {**place.as_params(), "model": embedding_model})
        conn.commit()
    return {"places_upserted": len(places)}


def verify_seed(database_url: str) -> int:
    run_migrations(database_url)
    with psycopg.connect(database_url, autocommit=True) as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT COUNT(*) FROM places")
            places_count = int(cur.fetchone()[0])
            cur.execute("SELECT COUNT(*) FROM places WHERE embedding IS NULL")
            missing_embeddings = int(cur.fetchone()[0])

    print(f"places={places_count}")
    print(f"missing_embeddings={missing_embeddings}")

    if places_count == 0:
        print("verify_failed: places == 0", file=sys.stderr)
        return 1
    if missing_embeddings:
        print("verify_failed: some places have no embedding", file=sys.stderr)
        return 1
    return 0


def command_load(args: argparse.Namespace) -> int:
    if not args.database_url:
        raise RuntimeError("--database-url (or DATABASE_URL env) is required for load")
    places = load_places(args.places_file)
    summary = load_to_postgres(args.database_url, places, args.embedding_model)
    print(json.dumps(summary, ensure_ascii=True))
    return 0


def command_verify(args: argparse.Namespace) -> int:
    if not args.database_url:
        raise RuntimeError("--database-url (or DATABASE_URL env) is required for verify")
    return verify_seed(args.database_url)


def command_seed(args: argparse.Namespace) -> int:
    command_load(args)
    return verify_seed(args.database_url)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seed and verify the Compass places table in Postgres")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(cmd: argparse.ArgumentParser, include_places: bool) -> None:
        cmd.add_argument("--database-url", default=None)
        if include_places:
            cmd.add_argument("--places-file", type=Path, default=DEFAULT_PLACES_FILE)
            cmd.add_argument("--embedding-model", default=DEFAULT_EMBEDDING_MODEL)

    load_cmd = subparsers.add_parser("load", help="upsert places and embed knownFor")
    add_common(load_cmd, include_places=True)

    verify_cmd = subparsers.add_parser("verify", help="verify seeded db")
    add_common(verify_cmd, include_places=False)

    seed_cmd = subparsers.add_parser("seed", help="load + verify")
    add_common(seed_cmd, include_places=True)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.database_url = args.database_url or os.environ.get("DATABASE_URL")
    if hasattr(args, "places_file"):
        args.places_file = args.places_file.resolve()

    if args.command == "load":
        return command_load(args)
    if args.command == "verify":
        return command_verify(args)
    if args.command == "seed":
        return command_seed(args)
    parser.error(f"Unknown command {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
