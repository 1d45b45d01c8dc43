"""somnio: Dream similarity scoring and SIMILAR_TO edge maintenance."""

__version__ = "0.1.0"

from .config import SimilarityConfig
from .dream import (
    EMOTION_GROUPS,
    Dream,
    DreamNetwork,
    DreamUpdate,
    Emotion,
    RecalculationSummary,
    SimilarDream,
    SimilarityEdge,
    SimilarityExplanation,
    SimilarityResult,
)
from .exceptions import (
    CollaboratorError,
    DreamNotFoundError,
    InvalidInputError,
    RecalculationInProgressError,
    SomnioError,
)
from .graph import DreamStore, InMemoryDreamStore, KuzuDreamStore, create_dream_store
from .keywords import STOP_WORDS, extract_keywords
from .similarity import (
    calculate_similarity,
    emotion_similarity,
    explain_similarity,
    find_similar_dreams,
    jaccard_similarity,
)
from .synchronizer import SimilaritySynchronizer

__all__ = [
    # Data model
    "Dream",
    "DreamUpdate",
    "Emotion",
    "EMOTION_GROUPS",
    "SimilarityResult",
    "SimilarityEdge",
    "SimilarDream",
    "RecalculationSummary",
    "SimilarityExplanation",
    "DreamNetwork",
    # Scoring
    "STOP_WORDS",
    "extract_keywords",
    "jaccard_similarity",
    "emotion_similarity",
    "calculate_similarity",
    "find_similar_dreams",
    "explain_similarity",
    # Persistence
    "DreamStore",
    "InMemoryDreamStore",
    "KuzuDreamStore",
    "create_dream_store",
    # Synchronization
    "SimilarityConfig",
    "SimilaritySynchronizer",
    # Exceptions
    "SomnioError",
    "InvalidInputError",
    "DreamNotFoundError",
    "CollaboratorError",
    "RecalculationInProgressError",
]
