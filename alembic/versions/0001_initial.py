"""create songs and events

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-18 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    # Helper: create if not exists
    def create_if_missing(table_name, create_fn):
        if not inspector.has_table(table_name):
            create_fn()

    create_if_missing('songs', lambda: op.create_table(
        'songs',
        sa.Column('id', sa.String(length=64), primary_key=True, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('title', sa.String(length=1024), nullable=False),
        sa.Column('artist', sa.String(length=512), nullable=True),
        sa.Column('region', sa.String(length=256), nullable=True),
        sa.Column('language', sa.String(length=256), nullable=True),
        sa.Column('theme', sa.String(length=256), nullable=True),
        sa.Column('type', sa.String(length=256), nullable=True),
        sa.Column('lyrics', sa.Text, nullable=True),
        sa.Column('image', sa.String(length=1024), nullable=True),
    ))
    create_if_missing('events', lambda: op.create_table(
        'events',
        sa.Column('id', sa.String(length=64), primary_key=True, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('title', sa.String(length=1024), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('start_date', sa.DateTime, nullable=False),
        sa.Column('end_date', sa.DateTime, nullable=False),
        sa.Column('address', sa.String(length=1024), nullable=True),
        sa.Column('postal_code', sa.String(length=32), nullable=True),
        sa.Column('city', sa.String(length=256), nullable=True),
        sa.Column('country', sa.String(length=256), nullable=True),
        sa.Column('latitude', sa.Float, nullable=True),
        sa.Column('longitude', sa.Float, nullable=True),
        sa.Column('image', sa.String(length=1024), nullable=True),
        sa.Column('type', sa.String(length=256), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('email', sa.String(length=512), nullable=True),
        sa.Column('social_links', sa.JSON, nullable=False),
    ))

    # sort and filter columns of the paginated tables
    for table, column in (('songs', 'title'), ('songs', 'artist'), ('events', 'title'),
                          ('events', 'start_date'), ('events', 'end_date'), ('events', 'city')):
        op.create_index(f'ix_{table}_{column}', table, [column], if_not_exists=True)


def downgrade() -> None:
    op.drop_table('events')
    op.drop_table('songs')
