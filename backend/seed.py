#!/usr/bin/env python3
"""Seed a published test version with sample questions."""

import argparse
import asyncio
from datetime import UTC, datetime

from dotenv import load_dotenv
from sqlalchemy import select

from proctor.core.logging import get_logger, setup_logging
from proctor.db.session import init_models, make_session_factory
from proctor.models.assessment import TestQuestion, TestVersion

logger = get_logger(__name__)

SAMPLE_QUESTIONS = [
    (
        "An officer observes a vehicle weaving between lanes late at night. What is the most appropriate first action?",
        ["Ignore it unless it causes a collision", "Initiate a traffic stop when safe", "Call for backup and wait", "Record the plate for follow-up"],
        1,
    ),
    (
        "Which document sets out the rights of a person under arrest?",
        ["The Highway Traffic Act", "The Charter of Rights and Freedoms", "The Municipal Act", "The Police Services Board bylaws"],
        1,
    ),
    (
        "A witness statement should be recorded:",
        ["Only if the witness asks", "As soon as practicable, in the witness's own words", "After the suspect is charged", "From memory at the end of the shift"],
        1,
    ),
    (
        "If 3 officers can canvass 60 homes in 4 hours, how many homes can 5 officers canvass in the same time?",
        ["80", "90", "100", "120"],
        2,
    ),
    (
        "Choose the correctly spelled word.",
        ["Recieve", "Receive", "Receeve", "Receve"],
        1,
    ),
]


async def seed_test_version(subject: str, title: str) -> None:
    """Create the sample version unless one with the same subject/title exists."""
    await init_models()
    session_factory = make_session_factory()

    async with session_factory() as db:
        existing = await db.execute(
            select(TestVersion).where(TestVersion.subject == subject, TestVersion.title == title)
        )
        if existing.scalar_one_or_none():
            logger.info(f"Test version already seeded: subject={subject} title={title}")
            return

        version = TestVersion(
            subject=subject,
            title=title,
            published_at=datetime.now(UTC),
            is_active=True,
        )
        db.add(version)
        await db.flush()

        for order_index, (prompt, choices, correct_index) in enumerate(SAMPLE_QUESTIONS):
            db.add(
                TestQuestion(
                    version_id=version.id,
                    order_index=order_index,
                    prompt=prompt,
                    choices=choices,
                    correct_index=correct_index,
                )
            )

        await db.commit()
        logger.info(f"Seeded test version {version.id} with {len(SAMPLE_QUESTIONS)} questions")


def main() -> None:
    load_dotenv()
    setup_logging()

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--subject", default="oacp", help="Application step key")
    parser.add_argument("--title", default="OACP Sample Test", help="Version title")
    args = parser.parse_args()

    asyncio.run(seed_test_version(args.subject, args.title))


if __name__ == "__main__":
    main()
