"""
Assessment Session Engine

This package implements the assessment session engine: the question model,
answer key index, response store, navigation state machine, scoring engine
and review reconstructor, plus the persistence collaborators they talk to.
"""

from eiprep.assessments.models import (
    QuestionType,
    Presentation,
    PracticeTestKind,
    Branch,
    SessionStatus,
    Option,
    Question,
    SingleChoiceQuestion,
    MatrixRatingQuestion,
    RankedSequenceQuestion,
    NumericScaleQuestion,
    Section,
    PracticeTest,
    Session,
    build_question,
    assemble_sections,
)

from eiprep.assessments.answer_key import (
    AnswerKeyIndex,
    SingleChoiceKey,
    MatrixKey,
    SequenceKey,
    ScaleKey,
    UnkeyedKey,
    build_answer_key_index,
)

from eiprep.assessments.responses import (
    ResponseStore,
    coerce_answer,
    encode_response,
    hydrate_response_store,
)

from eiprep.assessments.navigation import NavigationStateMachine, Phase
from eiprep.assessments.scoring import ScoreResult, ScoringEngine, score
from eiprep.assessments.review import ReviewReconstructor, ReviewResult
from eiprep.assessments.legacy import LegacySessionAdapter

from eiprep.assessments.repository import AssessmentRepository
from eiprep.assessments.memory_repository import MemoryAssessmentRepository

from eiprep.assessments.engine import AssessmentEngine
from eiprep.assessments.history import HistoryService, ProgressSummary, SessionHistoryItem

__all__ = [
    # Models
    'QuestionType', 'Presentation', 'PracticeTestKind', 'Branch', 'SessionStatus',
    'Option', 'Question', 'SingleChoiceQuestion', 'MatrixRatingQuestion',
    'RankedSequenceQuestion', 'NumericScaleQuestion', 'Section', 'PracticeTest',
    'Session', 'build_question', 'assemble_sections',

    # Answer keys
    'AnswerKeyIndex', 'SingleChoiceKey', 'MatrixKey', 'SequenceKey', 'ScaleKey',
    'UnkeyedKey', 'build_answer_key_index',

    # Responses
    'ResponseStore', 'coerce_answer', 'encode_response', 'hydrate_response_store',

    # Session flow
    'NavigationStateMachine', 'Phase', 'ScoreResult', 'ScoringEngine', 'score',
    'ReviewReconstructor', 'ReviewResult', 'LegacySessionAdapter',

    # Repositories
    'AssessmentRepository', 'MemoryAssessmentRepository',

    # Facades
    'AssessmentEngine', 'HistoryService', 'ProgressSummary', 'SessionHistoryItem',
]
