"""create deploy tables

Revision ID: 3c1f9a7d2e41
Revises:
Create Date: 2026-10-19 09:00:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "3c1f9a7d2e41"
down_revision = None
branch_labels = None
depends_on = None

DEPLOY_STATUSES = ("Pending", "Running", "Succeeded", "Failed")
COMMAND_STATUSES = DEPLOY_STATUSES + ("Cancelled",)


def upgrade() -> None:
    op.create_table(
        "deploys",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("site_name", sa.String(length=200), nullable=False),
        sa.Column("application_name", sa.String(length=200), nullable=True),
        sa.Column("repo_url", sa.String(length=500), nullable=False),
        sa.Column("branch", sa.String(length=100), nullable=False),
        sa.Column(
            "build_output",
            sa.String(length=200),
            nullable=False,
            comment="Build output directory, relative to the repository checkout.",
        ),
        sa.Column(
            "target_path",
            sa.String(length=500),
            nullable=False,
            comment="Publish target, relative to the configured publications root.",
        ),
        sa.Column("platform", sa.String(length=100), nullable=True),
        sa.Column("requested_by", sa.Uuid(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*DEPLOY_STATUSES, name="deploy_status_enum", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_deploys_id"), "deploys", ["id"], unique=False)
    op.create_index(op.f("ix_deploys_site_name"), "deploys", ["site_name"], unique=False)
    op.create_index(op.f("ix_deploys_requested_by"), "deploys", ["requested_by"], unique=False)
    op.create_index(op.f("ix_deploys_status"), "deploys", ["status"], unique=False)

    op.create_table(
        "deploy_commands",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("deploy_id", sa.Uuid(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("command_text", sa.Text(), nullable=False),
        sa.Column("terminal_id", sa.String(length=50), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*COMMAND_STATUSES, name="command_status_enum", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("exit_code", sa.Integer(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["deploy_id"], ["deploys.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("deploy_id", "order", name="uq_deploy_commands_deploy_order"),
    )
    op.create_index(op.f("ix_deploy_commands_id"), "deploy_commands", ["id"], unique=False)
    op.create_index(
        op.f("ix_deploy_commands_deploy_id"), "deploy_commands", ["deploy_id"], unique=False
    )

    op.create_table(
        "deploy_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("deploy_id", sa.Uuid(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*DEPLOY_STATUSES, name="deploy_status_enum", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["deploy_id"], ["deploys.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_deploy_history_deploy_id"), "deploy_history", ["deploy_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_deploy_history_deploy_id"), table_name="deploy_history")
    op.drop_table("deploy_history")
    op.drop_index(op.f("ix_deploy_commands_deploy_id"), table_name="deploy_commands")
    op.drop_index(op.f("ix_deploy_commands_id"), table_name="deploy_commands")
    op.drop_table("deploy_commands")
    op.drop_index(op.f("ix_deploys_status"), table_name="deploys")
    op.drop_index(op.f("ix_deploys_requested_by"), table_name="deploys")
    op.drop_index(op.f("ix_deploys_site_name"), table_name="deploys")
    op.drop_index(op.f("ix_deploys_id"), table_name="deploys")
    op.drop_table("deploys")
