"""Initialize local development data"""
import asyncio
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from liveroom.core.database import engine, get_db
from liveroom.domains.activations.logic import ActivationKind
from liveroom.domains.activations.repository import create_template
from liveroom.domains.activations.schemas import OptionIn, TemplateCreate
from liveroom.domains.rooms.repository import create_room, get_room_by_code
from liveroom.shared.utils.logger import get_logger

logger = get_logger(__name__)

DEMO_CODE = "DEMO01"


async def check_and_run_migrations():
    """Run migrations when the schema is missing"""
    async with engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    if "alembic_version" not in tables or "game_sessions" not in tables:
        logger.info("Running database migrations...")
        alembic_cfg = Config("alembic.ini")
        await asyncio.to_thread(command.upgrade, alembic_cfg, "head")
        logger.info("✅ Migrations completed")
    else:
        logger.info("Database schema is up to date")


async def seed_demo_room():
    async with get_db() as db:
        if await get_room_by_code(db, DEMO_CODE):
            logger.info(f"Demo room {DEMO_CODE} already exists")
            return

    room = await create_room("Demo room", DEMO_CODE)
    templates = [
        TemplateCreate(
            room_id=room.id,
            kind=ActivationKind.POLL,
            title="Warm-up poll",
            question="Where are you joining from?",
            options=[OptionIn(text="Office"), OptionIn(text="Home"), OptionIn(text="On the road")],
        ),
        TemplateCreate(
            room_id=room.id,
            kind=ActivationKind.MULTIPLE_CHOICE,
            title="Quiz",
            question="What is 6 x 7?",
            options=[OptionIn(text="42"), OptionIn(text="36"), OptionIn(text="48")],
            correct_answer="42",
            time_limit=20,
        ),
        TemplateCreate(
            room_id=room.id,
            kind=ActivationKind.TEXT_ANSWER,
            title="Capital",
            question="Capital of France?",
            exact_answer="Paris",
            time_limit=30,
        ),
        TemplateCreate(room_id=room.id, kind=ActivationKind.LEADERBOARD, title="Standings"),
    ]
    for data in templates:
        await create_template(data)
    logger.info(f"✅ Seeded room {DEMO_CODE} ({room.id}) with {len(templates)} templates")


async def main():
    await check_and_run_migrations()
    await seed_demo_room()


if __name__ == "__main__":
    asyncio.run(main())
