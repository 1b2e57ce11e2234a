"""
Database package: ORM schema, async engine and migrations.
"""

from eiprep.database.base import Base, ModelBase, metadata
from eiprep.database.models import (
    PracticeTestModel, SectionModel, QuestionModel, QuestionOptionModel,
    AnswerKeyModel, UserTestSessionModel, UserResponseModel
)
from eiprep.database.session import (
    create_engine, create_session_factory, init_models, drop_models,
    run_migrations, sync_database_url
)

__all__ = [
    'Base', 'ModelBase', 'metadata',
    'PracticeTestModel', 'SectionModel', 'QuestionModel', 'QuestionOptionModel',
    'AnswerKeyModel', 'UserTestSessionModel', 'UserResponseModel',
    'create_engine', 'create_session_factory', 'init_models', 'drop_models',
    'run_migrations', 'sync_database_url',
]
