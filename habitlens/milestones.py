"""Milestones — badge thresholds for streaks and total green days.

Pure evaluation against a StreakSnapshot. The caller owns the set of
already-achieved milestone ids and persists whatever comes back in
`newly_achieved`.
"""

from dataclasses import dataclass

from habitlens.models import StreakSnapshot

STREAK = "streak"
GREEN_TOTAL = "green_total"
PERSONAL_BEST = "personal_best"


@dataclass(frozen=True)
class Milestone:
    id: str
    title: str
    message: str
    threshold: int
    type: str


STREAK_MILESTONES = (
    Milestone("streak-3", "On Fire", "3 green days in a row. The habit is forming.", 3, STREAK),
    Milestone("streak-7", "One Week", "A full week of consistency. That's rare.", 7, STREAK),
    Milestone("streak-14", "Two Weeks", "14 days. This is where habits start to stick.", 14, STREAK),
    Milestone("streak-21", "Three Weeks", "21 days. This is who you are now.", 21, STREAK),
    Milestone("streak-30", "One Month", "30 consecutive green days. Most people never get here.", 30, STREAK),
    Milestone("streak-50", "Fifty Days", "50 days. You've built something most people only talk about.", 50, STREAK),
    Milestone("streak-75", "Seventy-Five", "75 days. Discipline is just who you are at this point.", 75, STREAK),
    Milestone("streak-100", "The Hundred", "100 consecutive days.", 100, STREAK),
    Milestone("streak-150", "150 Days", "Half a year of consistency. Remarkable.", 150, STREAK),
    Milestone("streak-200", "Two Hundred", "200 days. This isn't a streak anymore, it's a lifestyle.", 200, STREAK),
    Milestone("streak-365", "One Full Year", "365 green days in a row.", 365, STREAK),
)

GREEN_TOTAL_MILESTONES = (
    Milestone("green-1", "First Green Day", "Your journey started today.", 1, GREEN_TOTAL),
    Milestone("green-10", "Ten Green Days", "10 green days under your belt. You're building proof.", 10, GREEN_TOTAL),
    Milestone("green-25", "Twenty-Five", "25 green days. The compound effect is working.", 25, GREEN_TOTAL),
    Milestone("green-50", "Fifty Green", "50 days of showing up. That's character.", 50, GREEN_TOTAL),
    Milestone("green-100", "The Century", "100 green days total.", 100, GREEN_TOTAL),
    Milestone("green-200", "Two Hundred", "200 green days.", 200, GREEN_TOTAL),
    Milestone("green-365", "Full Year", "365 total green days. A year of showing up.", 365, GREEN_TOTAL),
)


@dataclass(frozen=True)
class MilestoneCheck:
    winner: Milestone | None
    newly_achieved: frozenset[str]


def check_milestones(snapshot: StreakSnapshot,
                     achieved: frozenset[str] = frozenset()) -> MilestoneCheck:
    """Mark every newly crossed milestone and pick the one worth showing.

    Priority: highest new streak milestone, then a personal best, then the
    highest new green-total milestone.
    """
    new: set[str] = set()

    highest_streak = None
    for m in STREAK_MILESTONES:
        if snapshot.current_streak >= m.threshold and m.id not in achieved:
            new.add(m.id)
            highest_streak = m

    highest_green = None
    for m in GREEN_TOTAL_MILESTONES:
        if snapshot.total_green_days >= m.threshold and m.id not in achieved:
            new.add(m.id)
            highest_green = m

    personal_best = None
    current, previous = snapshot.current_streak, snapshot.previous_best_streak
    if current > previous > 0:
        pb_id = f"pb-{current}"
        if pb_id not in achieved:
            new.add(pb_id)
            if not any(m.threshold == current for m in STREAK_MILESTONES):
                personal_best = Milestone(
                    id=pb_id,
                    title="New Personal Best!",
                    message=(f"{current}-day streak. You just beat your previous "
                             f"record of {previous}."),
                    threshold=current,
                    type=PERSONAL_BEST,
                )

    return MilestoneCheck(
        winner=highest_streak or personal_best or highest_green,
        newly_achieved=frozenset(new),
    )


def next_milestones(snapshot: StreakSnapshot) -> tuple[Milestone | None, Milestone | None]:
    """(next streak milestone, next green-total milestone)."""
    streak_next = next(
        (m for m in STREAK_MILESTONES if m.threshold > snapshot.current_streak), None
    )
    green_next = next(
        (m for m in GREEN_TOTAL_MILESTONES if m.threshold > snapshot.total_green_days), None
    )
    return streak_next, green_next
