"""
studyhabits: a personal study-habit tracker.

Three time-driven engines share one key-value store:
- SM2Scheduler / StudySession: spaced-repetition flashcards
- PomodoroEngine: deadline-anchored work/break timer
- ReaderEngine: paced word-by-word (RSVP) reading

Completed sessions from all three land in the StudyLog.
"""

__version__ = "0.1.0"
