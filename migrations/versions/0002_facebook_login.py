"""users.facebook_id for social login"""
from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("users") as batch:
        batch.add_column(sa.Column("facebook_id", sa.String(64), nullable=True))
        batch.create_index("ix_users_facebook_id", ["facebook_id"], unique=True)


def downgrade():
    with op.batch_alter_table("users") as batch:
        batch.drop_index("ix_users_facebook_id")
        batch.drop_column("facebook_id")
