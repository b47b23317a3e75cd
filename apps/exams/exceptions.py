# exams/exceptions.py

"""
Marksheet pipeline errors.

None of these ever fail a score write: trigger handlers log them and move
on. Database errors are not wrapped and propagate to the caller.
"""


class MarksheetError(Exception):
    """Base class for conditions the marksheet pipeline absorbs"""


class MalformedReferenceError(MarksheetError):
    """A score points at an exam, class or subject that does not exist"""


class DegenerateTotalError(MarksheetError):
    """Nothing with a positive total is left to compute a percentage from"""


class RemarkServiceUnavailable(MarksheetError):
    """The text-generation service failed, timed out or answered nonsense"""
