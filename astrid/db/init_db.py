import asyncio
from astrid.db.session import engine
from astrid.db.base import Base

async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

async def drop_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

def main():
    asyncio.run(init_db())

if __name__ == "__main__":
    main()
