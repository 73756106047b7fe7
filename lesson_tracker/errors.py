from typing import Optional

class TrackerError(Exception):
    """Base error for rejected learner actions. Carries a short notice for the UI."""
    title = "Action rejected"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason

class AccessDenied(TrackerError):
    title = "Access denied"

class CompletionRejected(TrackerError):
    title = "Cannot complete lesson"

class QuizIncomplete(TrackerError):
    title = "Incomplete"

    def __init__(self, unanswered):
        super().__init__("Please answer all questions", reason="incomplete")
        self.unanswered = list(unanswered)

class QuizEmpty(TrackerError):
    title = "No quiz"

    def __init__(self):
        super().__init__("This quiz has no questions yet", reason="empty")

class NotesUnavailable(TrackerError):
    title = "Could not save notes"

    def __init__(self, message: str = "Please try again"):
        super().__init__(message, reason="notes_unavailable")
