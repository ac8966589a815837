# Import all models here so Alembic and create_all can discover them
from codejudge.db.base import Base

from codejudge.features.problems.models import CodingProblem, ProblemTestCase
from codejudge.features.submissions.models import Submission

__all__ = [
	"Base",
	"CodingProblem",
	"ProblemTestCase",
	"Submission",
]
