"""WriteMet - writing-quality evaluation and practice pipeline for chat logs."""

from .client import ModelClient
from .comparison import ComparisonEngine, compare_analyses, summarize_practice
from .config import PipelineConfig
from .errors import EmptyResultError, ModelCallError, WriteMetError
from .evaluation import QualityEvaluator
from .filtering import RelevanceConfirmer, filter_messages_heuristic
from .grading import SessionGrader, jaccard_similarity
from .patterns import PatternAnalyzer
from .practice import PracticeGenerator
from .sanitize import extract_json, parse_json_response
from .scheduler import RequestScheduler
from .service import WritingCoachService

__all__ = [
    "WritingCoachService",
    "ModelClient",
    "RequestScheduler",
    "PipelineConfig",
    "extract_json",
    "parse_json_response",
    "filter_messages_heuristic",
    "RelevanceConfirmer",
    "QualityEvaluator",
    "PatternAnalyzer",
    "PracticeGenerator",
    "SessionGrader",
    "jaccard_similarity",
    "ComparisonEngine",
    "compare_analyses",
    "summarize_practice",
    "WriteMetError",
    "ModelCallError",
    "EmptyResultError",
]

__version__ = "0.1.0"
