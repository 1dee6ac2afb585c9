#!/usr/bin/env python
import asyncio
import random
from typing import List, Optional

from faker import Faker
from sqlmodel import select

from leadconvert import scores
from leadconvert.agents.lead_scoring import score_lead
from leadconvert.auth import hash_password
from leadconvert.db import LEAD_SOURCES, Interaction, Lead, User, get_session, init_db
from leadconvert.integrations.whatsapp import normalize_phone

DEMO_PASSWORD = "demo-password"
DEMO_USERS = (
    ("Demo Admin", "admin@example.com", "admin"),
    ("Demo Manager", "manager@example.com", "manager"),
    ("Demo Agent", "agent@example.com", "agent"),
)
OPENING_MESSAGES = (
    "I am interested in your pricing for the premium plan.",
    "What does it cost to get started? Is the service available in my area?",
    "Just browsing for now, no thanks to calls please.",
    "Looking to buy soon, can you share a quote?",
    "Seems a bit expensive compared to others.",
)


async def seed_users() -> List[User]:
    users = []
    async with get_session() as session:
        for name, email, role in DEMO_USERS:
            user = (await session.exec(select(User).where(User.email == email))).first()
            if not user:
                user = User(name=name, email=email, password_hash=hash_password(DEMO_PASSWORD), role=role)
                session.add(user)
                await session.commit()
                await session.refresh(user)
            users.append(user)
    return users


async def seed_lead(fake: Faker, owner: User) -> Optional[int]:
    source = random.choice(LEAD_SOURCES)
    async with get_session() as session:
        email = fake.unique.email()
        if (await session.exec(select(Lead).where(Lead.email == email))).first():
            return None
        lead = Lead(
            name=fake.name(),
            email=email,
            phone=normalize_phone(fake.msisdn()),
            source=source,
            initial_message=random.choice(OPENING_MESSAGES),
            tags=random.sample(["demo", "priority", "newsletter", "referral"], k=2),
            created_by=owner.id,
        )
        session.add(lead)
        await session.commit()
        await session.refresh(lead)

        for _ in range(random.randint(0, 3)):
            session.add(
                Interaction(
                    lead_id=lead.id,
                    channel=random.choice(("email", "whatsapp", "phone", "web")),
                    direction=random.choice(("inbound", "outbound")),
                    content=fake.sentence(nb_words=12),
                    sentiment=random.choice(("positive", "negative", "neutral", None)),
                    intent_score=round(random.uniform(0, 100), 1),
                    created_by=owner.id,
                )
            )
        await session.commit()
        lead_id = lead.id

    await score_lead(lead_id)
    await scores.add_activity(owner.id, "create_lead", f"Seeded lead {lead_id}")
    return lead_id


async def main(total: int = 20, seed: Optional[int] = None) -> List[int]:
    await init_db()
    fake = Faker()
    if seed is not None:
        Faker.seed(seed)
        random.seed(seed)
    users = await seed_users()
    created = []
    for _ in range(total):
        lead_id = await seed_lead(fake, random.choice(users))
        if lead_id is not None:
            created.append(lead_id)
    print(f"Seeded {len(created)} demo leads across {len(users)} users.")
    return created


if __name__ == "__main__":
    asyncio.run(main())
