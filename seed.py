"""
Seed script -- populates the station table with sample Hong Kong stations.

Run after migrations:
    python seed.py

Creates 10 stations around Hong Kong Island and Kowloon, one of which
is a virtual-car station (vehicle already on site, no dispatch leg).
"""

import asyncio

from sqlalchemy import text

from rental.infrastructure.database import async_session_factory, engine
from rental.infrastructure.repositories import StationRepository


STATIONS = [
    {"name": "Central Pier", "address": "Man Kwong St, Central", "lat": 22.2870, "lng": 114.1610, "wait": 5, "spots": 6, "total": 10, "power": 50.0},
    {"name": "Admiralty Centre", "address": "18 Harcourt Rd, Admiralty", "lat": 22.2790, "lng": 114.1650, "wait": 8, "spots": 3, "total": 8, "power": 22.0},
    {"name": "Wan Chai Ferry", "address": "Convention Ave, Wan Chai", "lat": 22.2835, "lng": 114.1750, "wait": 10, "spots": 4, "total": 6, "power": 22.0},
    {"name": "Causeway Bay Plaza", "address": "Hennessy Rd, Causeway Bay", "lat": 22.2800, "lng": 114.1840, "wait": 12, "spots": 2, "total": 12, "power": 120.0},
    {"name": "Sheung Wan Market", "address": "Morrison St, Sheung Wan", "lat": 22.2860, "lng": 114.1500, "wait": 6, "spots": 5, "total": 8, "power": 50.0},
    {"name": "Tsim Sha Tsui Harbour", "address": "Canton Rd, Tsim Sha Tsui", "lat": 22.2950, "lng": 114.1690, "wait": 15, "spots": 7, "total": 15, "power": 120.0},
    {"name": "Mong Kok East", "address": "Argyle St, Mong Kok", "lat": 22.3190, "lng": 114.1720, "wait": 9, "spots": 1, "total": 6, "power": 22.0},
    {"name": "Kowloon Tong", "address": "Suffolk Rd, Kowloon Tong", "lat": 22.3370, "lng": 114.1760, "wait": 7, "spots": 4, "total": 10, "power": 50.0},
    {"name": "Hung Hom Station", "address": "Cheong Wan Rd, Hung Hom", "lat": 22.3030, "lng": 114.1820, "wait": 11, "spots": 6, "total": 12, "power": 50.0},
    # Vehicle parked on site
    {"name": "Kennedy Town Virtual", "address": "Catchick St, Kennedy Town", "lat": 22.2810, "lng": 114.1280, "wait": 0, "spots": 1, "total": 1, "power": None, "virtual": True},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM stations"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        repo = StationRepository(session)
        for s in STATIONS:
            await repo.create_station(
                name=s["name"],
                address=s["address"],
                lat=s["lat"],
                lng=s["lng"],
                wait_time_minutes=s["wait"],
                available_spots=s["spots"],
                total_spots=s["total"],
                max_power_kw=s["power"],
                virtual_car=s.get("virtual", False),
            )
        print(f"  Created {len(STATIONS)} stations")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
