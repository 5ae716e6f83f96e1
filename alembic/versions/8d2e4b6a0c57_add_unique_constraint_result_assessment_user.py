"""add unique constraint result assessment user

Revision ID: 8d2e4b6a0c57
Revises: 3f1c9a7b2d10
Create Date: 2026-10-12 11:02:47.903516

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '8d2e4b6a0c57'
down_revision: Union[str, Sequence[str], None] = '3f1c9a7b2d10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema.

    Keeps the earliest result per (assessment, user) before adding the
    constraint, so databases filled before it existed still migrate.
    """
    op.execute(
        """
        DELETE FROM results
        WHERE id NOT IN (
            SELECT MIN(id) FROM results GROUP BY assessment_id, user_id
        )
        """
    )
    with op.batch_alter_table("results", recreate="always") as batch_op:
        batch_op.create_unique_constraint(
            "uq_result_assessment_user",
            ["assessment_id", "user_id"],
        )


def downgrade() -> None:
    """Downgrade schema."""
    with op.batch_alter_table("results", recreate="always") as batch_op:
        batch_op.drop_constraint(
            "uq_result_assessment_user",
            type_="unique",
        )
