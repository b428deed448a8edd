#!/usr/bin/env python3
"""
Initialize the Cosmos DB Emulator with the RoomVote database and containers.

Creates the users, username-lookup, rooms, ballots and notifications
containers in the local emulator. Run it once after starting the emulator.

Prerequisites:
1. Install Cosmos DB Emulator: https://aka.ms/cosmosdb-emulator
2. Start the emulator (it runs on https://localhost:8081)
3. Run this script: python scripts/init-cosmos-emulator.py [--seed]

``--seed`` also writes a few demo users so that invitations by username work
against a fresh emulator.

The emulator uses a well-known key that is safe for local development only.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add backend to path
backend_path = Path(__file__).parent.parent / "src" / "backend"
sys.path.insert(0, str(backend_path))

from azure.cosmos import PartitionKey  # noqa: E402
from azure.cosmos.aio import CosmosClient  # noqa: E402

from db.cosmos_session import (  # noqa: E402
    CONTAINER_DEFINITIONS,
    USERNAME_LOOKUP_CONTAINER,
    USERS_CONTAINER,
)
from models.cosmos_documents import UserDocument, UsernameLookupDocument  # noqa: E402

# Cosmos DB Emulator connection details (well-known credentials)
EMULATOR_ENDPOINT = "https://localhost:8081"
EMULATOR_KEY = "C2y6yDjf5/R+ob0N8A7Cgv30VRDJIWEHLM+4QDU5DE2nQ9nDuVTqobD4b8mGGyPMbIZnqyMsEcaGQy67XIw/Jw=="
DATABASE_NAME = "roomvote"

DEMO_USERS = [
    ("demo-alice", "alice", "Alice"),
    ("demo-bob", "bob", "Bob"),
    ("demo-carol", "carol", None),
]


async def seed_users(database) -> None:
    users = database.get_container_client(USERS_CONTAINER)
    lookup = database.get_container_client(USERNAME_LOOKUP_CONTAINER)
    for user_id, username, display_name in DEMO_USERS:
        user = UserDocument(id=user_id, username=username, display_name=display_name)
        await users.upsert_item(user.to_item())
        await lookup.upsert_item(UsernameLookupDocument(id=username.lower(), user_id=user_id).to_item())
        print(f"   👤 @{username} -> {user_id}")


async def init_emulator(seed: bool = False):
    """Initialize the Cosmos DB Emulator with required database and containers."""
    print(f"🚀 Connecting to Cosmos DB Emulator at {EMULATOR_ENDPOINT}...")

    # Disable SSL verification for emulator's self-signed certificate
    client = CosmosClient(
        url=EMULATOR_ENDPOINT,
        credential=EMULATOR_KEY,
        connection_verify=False,
    )

    try:
        print(f"\n📁 Creating database: {DATABASE_NAME}")
        database = await client.create_database_if_not_exists(id=DATABASE_NAME)
        print(f"   ✅ Database '{DATABASE_NAME}' ready")

        print("\n📦 Creating containers...")
        for container_def in CONTAINER_DEFINITIONS:
            container_name = container_def["name"]
            partition_key = container_def["partition_key"]
            await database.create_container_if_not_exists(
                id=container_name,
                partition_key=PartitionKey(path=partition_key),
            )
            print(f"   ✅ Container '{container_name}' (partition: {partition_key})")

        if seed:
            print("\n🌱 Seeding demo users...")
            await seed_users(database)

        print("\n✨ Cosmos DB Emulator initialization complete!")
        print("\n📋 Next steps:")
        print("   1. Set AZURE_COSMOS_CONNECTION_STRING and AZURE_COSMOS_DISABLE_SSL=true")
        print("   2. Start the backend: cd src/backend && uvicorn main:app --reload")

    except Exception as e:
        print(f"\n❌ Error: {e}")
        print("\n🔧 Troubleshooting:")
        print("   1. Make sure Cosmos DB Emulator is running")
        print("   2. Open https://localhost:8081/_explorer/index.html in browser")
        print("   3. If certificate error, add exception or install emulator cert")
        raise
    finally:
        await client.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Initialize the RoomVote Cosmos DB emulator")
    parser.add_argument("--seed", action="store_true", help="also create demo users")
    args = parser.parse_args()

    print("=" * 60)
    print("RoomVote - Cosmos DB Emulator Initialization")
    print("=" * 60)
    asyncio.run(init_emulator(seed=args.seed))
