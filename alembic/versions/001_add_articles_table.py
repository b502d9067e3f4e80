"""Add articles table

Revision ID: 001_articles
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_articles'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'articles',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('source_url', sa.String(1000), nullable=False),
        sa.Column('domain', sa.String(255), nullable=False),
        sa.Column('extracted_text', sa.Text(), nullable=False),
        # Stores ArticleStatus member names
        sa.Column('status', sa.String(20), nullable=False, server_default='GENERATING'),
        sa.Column('generation_progress', sa.Integer(), server_default='0'),
        sa.Column('generation_error', sa.Text(), nullable=True),
        sa.Column('audio_file_path', sa.String(1000), nullable=True),
        sa.Column('audio_file_size_bytes', sa.BigInteger(), server_default='0'),
        sa.Column('duration_ms', sa.BigInteger(), server_default='0'),
        sa.Column('playback_position_ms', sa.BigInteger(), server_default='0'),
        sa.Column('last_played_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.current_timestamp()),
    )

    op.create_index('ix_articles_status', 'articles', ['status'])
    op.create_index('ix_articles_created_at', 'articles', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_articles_created_at', table_name='articles')
    op.drop_index('ix_articles_status', table_name='articles')
    op.drop_table('articles')
