#!/usr/bin/env python3
"""
Development seed data script.

Creates a demo school to import into:
- 1 tenant (code DEMO001)
- the subjects staff designations are checked against
- the class sections student rows are checked against

Usage:
    python scripts/seed.py
"""

import asyncio
import sys
from datetime import date
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from app.database import async_session_factory, engine, init_db
from app.models import SchoolClass, Subject, Tenant

TENANT_CODE = "DEMO001"

SUBJECTS = [
    ("English", "ENG"),
    ("Mathematics", "MATH"),
    ("Science", "SCI"),
    ("Social Studies", "SST"),
    ("Hindi", "HIN"),
    ("Computer Science", "CS"),
    ("Physical Education", "PE"),
]

CLASSES = [str(grade) for grade in range(1, 11)]
SECTIONS = ["A", "B"]


async def seed_database():
    """Seed the database with a demo school."""
    print("\n" + "=" * 50)
    print("Rollbook - Seeding Development Data")
    print("=" * 50 + "\n")

    await init_db()

    async with async_session_factory() as session:
        result = await session.execute(select(Tenant).where(Tenant.code == TENANT_CODE))
        if result.scalar_one_or_none():
            print(f"Seed data already exists (tenant '{TENANT_CODE}' found).")
            return True

        print(f"Creating tenant: {TENANT_CODE}...")
        tenant = Tenant(name="Demo Public School", code=TENANT_CODE, email="office@demo-school.example")
        session.add(tenant)
        await session.flush()

        print(f"Creating {len(SUBJECTS)} subjects...")
        for name, code in SUBJECTS:
            session.add(Subject(tenant_id=tenant.id, name=name, code=code))

        academic_year = str(date.today().year)
        print(f"Creating {len(CLASSES) * len(SECTIONS)} class sections for {academic_year}...")
        for class_name in CLASSES:
            for section in SECTIONS:
                session.add(
                    SchoolClass(
                        tenant_id=tenant.id,
                        class_name=class_name,
                        section=section,
                        academic_year=academic_year,
                    )
                )

        await session.commit()

        print("\n" + "=" * 50)
        print("Seed Data Created Successfully!")
        print("=" * 50)
        print(f"  School code: {tenant.code}")
        print(f"  ID: {tenant.id}")
        print("=" * 50 + "\n")

        return True


async def main():
    """Main entry point."""
    try:
        success = await seed_database()
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\n\nAborted by user.")
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
