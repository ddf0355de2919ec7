#!/usr/bin/env python3
"""
Initialize database with sample data for development.

Usage:
    python scripts/init_db.py
"""

import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from gestioncartes.config import get_settings
from gestioncartes.db.session import Database
from gestioncartes.services import ActionRecorder, Actor, CarteService

SEED_ACTOR = Actor(
    user_id="seed",
    user_name="seed",
    full_name="Development seed",
    role="Administrateur",
)


async def init_db():
    """Create tables and a sample card."""
    database = Database.from_settings(get_settings())
    try:
        await database.create_all()
        async with database.session_factory() as db:
            service = CarteService(db, ActionRecorder(database.session_factory))
            carte = await service.create(
                {
                    "LIEU D'ENROLEMENT": "Abidjan Plateau",
                    "SITE DE RETRAIT": "Cocody",
                    "RANGEMENT": "A-01",
                    "NOM": "KOUAME",
                    "PRENOMS": "Yao Marc",
                    "DATE DE NAISSANCE": "1990-04-12",
                    "LIEU NAISSANCE": "Bouake",
                    "CONTACT": "0102030405",
                },
                SEED_ACTOR,
            )

        print(f"✓ Created card: {carte.nom} {carte.prenoms} (ID: {carte.id})")
        print("\nDatabase initialized successfully!")

    except Exception as e:
        print(f"✗ Error initializing database: {e}")
        raise
    finally:
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(init_db())
