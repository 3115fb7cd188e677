"""Question bank. ``XX`` in a template is replaced with the round subject's name."""
import random
from typing import Optional

PLACEHOLDER = "XX"

QUESTIONS = [
    "What's XX's favorite place to poop?",
    "Where does XX spend most of their time these days?",
    "What's XX's favorite thing to put on a burger?",
    "Name something XX used to do at recess",
    "What are you spending money on that you're so broke?",
    "Name something you're afraid of",
    "What is XX too scared to eat?",
    "Name something that goes good with alcohol",
    "Name a place that's great for a first date",
    "XX went on a themed cruise. What was the theme?",
    "Where would you go on a honeymoon if you had over $5000?",
    "What's the first thing XX thinks when they wake up in the morning?",
    "What's XX's go-to dinner?",
    "What's your least favorite law?",
    "What's XX's secret to looking good?",
    "Who was XX's first crush?",
    "One time XX woke up from a nap in ___ but wasn't sure how they got there",
    "XX once got caught ___ on the job",
    "XX was caught ___ on the annual family fishing trip. They were never invited back.",
    "XX once ran into a celebrity at ___",
    "XX has secretly been recording an R&B album in their room. The hit song is titled ___",
    "XX sees dead people. They see them in ___",
    "XX can breakdance but they can't ___",
    "XX likes to sing ___ but they honestly sound terrible",
    "XX would rather die than spend one more minute ___",
    "XX once ate two ___ in one day and still had a burrito later",
    "XX is secretly scared of ___",
    "XX can't stop doodling their name + ___ with hearts",
    "XX wishes they had more hair on their ___",
    "XX would rather sleep on the couch than admit they ___",
    "XX dunks ___ in their coffee",
    "XX cries every time the song ___ comes on the radio",
    "Can you believe what XX did ___ at summer camp?",
    "XX has a ___ with your name on it",
    "XX thought ___ was a bathroom",
    "XX always finds a way to work ___ into every conversation",
    "At their BBQ, XX told everyone the secret ingredient was ___",
    "XX believes leprechauns, unicorns and ___ are real",
    "XX thinks they once saw a UFO but it was just a ___",
    "XX never washes their hands after they ___",
    "If XX were an animal what animal would they be?",
    "If XX could choose a new career, what should they be?",
    "If XX suddenly won the lottery, what would they buy first?",
    "What was the reason XX recently went to the doctor?",
    "XX is a secret spy for ___",
    "If XX were an Avenger, their super power would be ___",
    "If XX were to rob a bank, what would they use as a mask?",
    "XX dips their fries in ___",
]


def get_random_question(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(QUESTIONS)


def replace_player_name(question: str, player_name: str) -> str:
    return question.replace(PLACEHOLDER, player_name)


def draw_question(player_name: str, rng: Optional[random.Random] = None) -> str:
    """Random prompt with the subject's name substituted in."""
    return replace_player_name(get_random_question(rng), player_name)
