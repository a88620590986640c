"""Static metadata describing ExamQt."""

APP_NAME = "ExamQt"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "ExamQt runs timed multiple-choice exams for a lesson. Import an exam file, "
    "let learners take it from the browser, and follow attempts and the leaderboard here."
)

HELP_TEXT = (
    "Exam files start with a header block followed by one block per question:\n\n"
    "EXAM: algebra-1\nLESSON: lesson-7\nTIMELIMIT: 15\n---\n"
    "ID: q1\nQ: What is $2 + 2$?\nA: 3\nB: 4\nCORRECT: B\n"
    "EXPLANATION: Two plus two is four.\n\n"
    "TIMELIMIT is in whole minutes. Questions need at least two options (A, B, ...)."
)
