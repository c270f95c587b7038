"""Database seeder for Conduit benchmark testing."""
import argparse
import asyncio
import random
import time
from datetime import datetime, timedelta, timezone

from sqlalchemy import insert

from conduit.database import Base, async_session, engine
from conduit.models import Article, User, user_favorites
from conduit.security import hash_password
from conduit.services.article_service import generate_slug

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "kubernetes",
        "react", "typescript", "aws", "devops", "testing", "performance",
        "security", "microservices", "graphql", "rest-api"]


async def seed(small: bool = False):
    num_users = 10 if small else 50
    num_articles = 100 if small else 10000
    max_favorites_per_article = 3 if small else 10

    print(f"Seeding: {num_users} users, {num_articles} articles")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # Every seeded account shares one password; hashing per user is slow.
    password_hash = hash_password("password")

    async with async_session() as session:
        users = []
        for i in range(num_users):
            user = User(
                username=f"user_{i:04d}",
                email=f"user_{i:04d}@example.com",
                password_hash=password_hash,
                bio=f"I am test user number {i}. I write about technology.",
            )
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users")

        batch_size = 500
        total_favorites = 0
        for batch_start in range(0, num_articles, batch_size):
            batch_end = min(batch_start + batch_size, num_articles)
            batch = []
            for i in range(batch_start, batch_end):
                created = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365))
                title = f"Article {i}: How to optimize {random.choice(TAGS)} applications"
                fans = random.sample(users, k=random.randint(0, max_favorites_per_article))
                article = Article(
                    slug=generate_slug(title),
                    title=title,
                    description=f"A guide to optimizing {random.choice(TAGS)} applications for production.",
                    body=f"This is the full content of article {i}. " * 20,
                    tag_list=random.sample(TAGS, k=random.randint(0, 4)),
                    favorites_count=len(fans),
                    created_at=created,
                    author_id=random.choice(users).id,
                )
                session.add(article)
                batch.append((article, fans))
            await session.flush()

            # favorites_count above matches the membership rows inserted here.
            rows = [
                {"user_id": fan.id, "article_id": article.id}
                for article, fans in batch
                for fan in fans
            ]
            if rows:
                await session.execute(insert(user_favorites), rows)
            total_favorites += len(rows)

            print(f"  Batch {batch_start}-{batch_end}: articles created")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users}")
    print(f"  Articles: {num_articles}")
    print(f"  Favorites: {total_favorites}")


def main():
    parser = argparse.ArgumentParser(description="Seed the Conduit database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
