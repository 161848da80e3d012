from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610180900_a1c3e5f7"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'files',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('filename', sa.String(), nullable=False),
        sa.Column('original_name', sa.String(), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('mimetype', sa.String(), nullable=True),
        sa.Column('upload_date', sa.DateTime(), nullable=True),
        sa.Column('remote_url', sa.String(), nullable=False),
        sa.Column('remote_name', sa.String(), nullable=False),
    )
    op.create_index('ix_files_filename', 'files', ['filename'], unique=True)
    op.create_index('ix_files_upload_date', 'files', ['upload_date'])


def downgrade() -> None:
    op.drop_index('ix_files_upload_date', table_name='files')
    op.drop_index('ix_files_filename', table_name='files')
    op.drop_table('files')
