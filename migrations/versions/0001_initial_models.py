"""initial models

Baseline: every table of agency.models as of the first release.
Later revisions alter tables explicitly.

"""
from typing import Sequence, Union

from alembic import op
from sqlmodel import SQLModel

from agency import models  # noqa: F401


revision: str = "0001_initial_models"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # checkfirst: databases created by init_db() already have the tables
    SQLModel.metadata.create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    # No-op; tables are never dropped by a downgrade.
    pass
