"""
Demo Data Loader

Seeds Faker-generated users and walks requests through every state so the
client has something to show.
Usage: python -m swap.scripts.load_demo [--users 6] [--seed 42]
"""
import asyncio
import argparse
import random
from datetime import timedelta
from faker import Faker

from swap.database import engine, utcnow
from swap.models.request import RequestStatus
from swap.services.exchange_engine import get_exchange_engine
from swap.services.ledger import admin_adjust
from swap.services.ratings import get_rating_service
from swap.services.user_service import get_user_service

COURSES = ["CS101", "MATH221", "PHYS150", "CHEM110", "ECON201", "STAT230", "Guitar", "Spanish"]


async def create_users(fake: Faker, count: int):
    users = []
    service = get_user_service()
    for _ in range(count):
        user = await service.upsert(
            fake.unique.email(),
            name=fake.name(),
            university=f"University of {fake.city()}",
            timezone=random.choice(["UTC", "America/New_York", "Europe/Paris", "Asia/Tokyo"]),
            image=fake.image_url(),
        )
        # Enough tokens to send a few requests each
        await admin_adjust(user.email, 3, note="demo top-up")
        users.append(user)
    print(f"  Created {len(users)} users")
    return users


async def load_exchange_scenario(users):
    """One request in each lifecycle state, plus a scheduled and a rated completed session"""
    exchange = get_exchange_engine()
    ratings = get_rating_service()
    now = utcnow()
    counts = {status.value: 0 for status in RequestStatus}
    rated = 0

    pairs = [(users[i], users[(i + 1) % len(users)]) for i in range(len(users))]
    for i, (learner, teacher) in enumerate(pairs):
        request = await exchange.send_request(
            learner.email, teacher.email, random.choice(COURSES), random.choice([60, 90, 120]),
            note="Could you walk me through the problem set?",
        )
        step = i % 5
        if step == 0:
            counts[RequestStatus.PENDING.value] += 1
        elif step == 1:
            await exchange.decline_request(request.id, teacher.email)
            counts[RequestStatus.DECLINED.value] += 1
        elif step == 2:
            await exchange.cancel_request(request.id, learner.email)
            counts[RequestStatus.CANCELLED.value] += 1
        else:
            acceptance = await exchange.accept_request(request.id, teacher.email)
            start_at = now + timedelta(hours=random.randint(2, 72))
            await exchange.schedule_session(acceptance.session.id, learner.email, start_at)
            if step == 4:
                await exchange.complete_session(acceptance.session.id, teacher.email)
                await ratings.create_rating(
                    acceptance.session.id, learner.email, random.randint(3, 5),
                    review=random.choice([None, "Very patient, thanks!", "Explained it clearly"]),
                )
                rated += 1
            counts[RequestStatus.ACCEPTED.value] += 1

    print(f"  Requests by status: {counts}")
    print(f"  Rated {rated} completed session(s)")


async def main(user_count: int, seed: int):
    print("\nLoading Swap demo data...")
    Faker.seed(seed)
    random.seed(seed)
    fake = Faker()

    users = await create_users(fake, max(user_count, 2))
    await load_exchange_scenario(users)
    await engine.dispose()
    print("  ✓ Demo data loaded")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Load Swap demo data")
    parser.add_argument("--users", type=int, default=6, help="Number of demo users")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()
    asyncio.run(main(args.users, args.seed))
