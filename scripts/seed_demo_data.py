#!/usr/bin/env python
import asyncio
import random
from datetime import datetime, timedelta

from faker import Faker

from scorecard.db import init_db
from scorecard.lead_scoring import calculate_lead_quality
from scorecard.scoring import calculate_scores
from scorecard.submissions import persist_submission
from scorecard.taxonomy import all_questions

COMPANY_SUFFIXES = ["Tech", "Software", "Health", "Bank", "Shop", "Logistics", "Media"]


def random_answers() -> dict:
    answers = {}
    for question in all_questions():
        if question.multi_select:
            picked = random.sample(question.options, k=random.randint(0, len(question.options)))
            answers[question.id] = [option.points for option in picked]
        else:
            answers[question.id] = random.choice(question.options).points
    return answers


async def seed_submission(fake: Faker, max_days_ago: int) -> None:
    answers = random_answers()
    score = calculate_scores(answers)
    lead = calculate_lead_quality(score, answers)
    company = f"{fake.last_name()} {random.choice(COMPANY_SUFFIXES)}"
    created_at = datetime.utcnow() - timedelta(days=random.randint(0, max_days_ago), minutes=random.randint(0, 1440))

    await persist_submission(
        email=fake.company_email(),
        company=company,
        answers=answers,
        score=score,
        lead=lead,
        created_at=created_at,
    )


async def main(total: int = 40, max_days_ago: int = 60) -> None:
    await init_db()
    fake = Faker()
    for _ in range(total):
        await seed_submission(fake, max_days_ago)
    print(f"Seeded {total} demo scorecard submissions over the last {max_days_ago} days.")


if __name__ == "__main__":
    asyncio.run(main())
