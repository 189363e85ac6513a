"""Seed a development database with users, follows, articles, comments and favorites.

Writes go through the service layer so passwords are hashed, slugs are
generated and favorite counters are recomputed exactly as the API would.
"""
import argparse
import asyncio
import logging
import random
import time

from app.database import Base, async_session, engine
from app.schemas import ArticleCreate, CommentCreate, UserRegistration
from app.services import article_service, comment_service, relation_service, user_service

logger = logging.getLogger("seed")

TAGS = ["python", "fastapi", "postgresql", "docker", "testing", "security",
        "async", "devops", "web", "api"]

PASSWORD = "password1"


async def seed(small: bool = False) -> None:
    num_users = 5 if small else 25
    num_articles = 20 if small else 500
    comments_per_article = 2 if small else 5

    logger.info("Seeding %d users, %d articles", num_users, num_articles)
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        users = []
        for i in range(num_users):
            users.append(await user_service.register(session, UserRegistration(
                username=f"user{i:03d}",
                email=f"user{i:03d}@example.com",
                password=PASSWORD,
            )))
        viewers = [await relation_service.load_viewer(session, u.id) for u in users]

        for i, viewer in enumerate(viewers):
            for target in random.sample(users, k=min(3, num_users)):
                if target.id != viewer.id:
                    viewers[i] = await relation_service.follow(session, viewers[i], target)

        for n in range(num_articles):
            author = random.choice(users)
            article = await article_service.create_article(session, author, ArticleCreate(
                title=f"How to ship {random.choice(TAGS)} services, part {n}",
                description="Notes from production",
                body="Lorem ipsum dolor sit amet. " * 20,
                tagList=random.sample(TAGS, k=random.randint(1, 3)),
            ))
            for c in range(comments_per_article):
                await comment_service.add_comment(
                    session, random.choice(users), article, CommentCreate(body=f"Comment {c}")
                )
            for i in random.sample(range(num_users), k=random.randint(0, num_users // 2)):
                viewers[i] = await relation_service.favorite(session, viewers[i], article)

        await session.commit()

    logger.info("Done in %.1fs (login with any userNNN@example.com / %s)",
                time.perf_counter() - start, PASSWORD)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Conduit database")
    parser.add_argument("--small", action="store_true", help="Seed a small dataset")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    asyncio.run(seed(small=args.small))
