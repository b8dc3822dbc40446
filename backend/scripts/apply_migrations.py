"""Apply pending SQL migrations from backend/migrations in version order.

Usage: python scripts/apply_migrations.py (from the backend directory).
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from powsync.infra.postgres import close_pool, get_pool  # noqa: E402

MIGRATIONS_DIR = BACKEND_ROOT / "migrations"


async def main() -> None:
	paths = sorted(MIGRATIONS_DIR.glob("*.sql"))
	if not paths:
		raise SystemExit("no migration files found")

	pool = await get_pool()
	try:
		async with pool.acquire() as conn:
			await conn.execute(
				"""
				CREATE TABLE IF NOT EXISTS schema_migrations (
					version TEXT PRIMARY KEY,
					applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
				)
				"""
			)
			applied = {row["version"] for row in await conn.fetch("SELECT version FROM schema_migrations")}
			for path in paths:
				version = path.name.split("_", 1)[0]
				if version in applied:
					continue
				async with conn.transaction():
					await conn.execute(path.read_text())
					await conn.execute(
						"""
						INSERT INTO schema_migrations (version)
						VALUES ($1)
						ON CONFLICT (version) DO UPDATE SET applied_at = NOW()
						""",
						version,
					)
				print(f"Applied {path.name}")
	finally:
		await close_pool()


if __name__ == "__main__":
	if sys.platform == "win32":
		asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
	asyncio.run(main())
