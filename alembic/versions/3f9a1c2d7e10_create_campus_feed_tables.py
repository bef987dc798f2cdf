"""create campus feed tables

Revision ID: 3f9a1c2d7e10
Revises:
Create Date: 2026-10-18 09:00:00.000000

Organizations, memberships, profiles, posts with likes and comments,
announcements, and polls with options and votes.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "3f9a1c2d7e10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(name, sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True)


def _org_fk() -> sa.Column:
    return sa.Column(
        "org_id", sa.Text(), sa.ForeignKey("organizations.org_id", ondelete="CASCADE"), nullable=False
    )


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("org_id", sa.Text(), primary_key=True),
        sa.Column("org_name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=True),
        sa.Column("org_pic", sa.Text(), nullable=True, comment="Logo URL."),
        _created_at(),
    )
    op.create_table(
        "organization_members",
        sa.Column(
            "org_id", sa.Text(), sa.ForeignKey("organizations.org_id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("user_id", sa.Text(), primary_key=True),
        sa.Column("base_role", sa.Text(), nullable=False, server_default="member"),
        _created_at("joined_at"),
    )
    op.create_index("idx_organization_members_user_id", "organization_members", ["user_id"])

    op.create_table(
        "profiles",
        sa.Column("user_id", sa.Text(), primary_key=True),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("profile_image", sa.Text(), nullable=True),
    )

    op.create_table(
        "organization_posts",
        sa.Column("post_id", sa.Text(), primary_key=True),
        _org_fk(),
        sa.Column("author_id", sa.Text(), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("media_url", sa.Text(), nullable=True),
        sa.Column("media_urls", postgresql.ARRAY(sa.Text()), nullable=True),
        sa.Column("visibility", sa.Text(), nullable=False, server_default="public"),
        _created_at(),
    )
    op.create_index("idx_organization_posts_created_at", "organization_posts", ["created_at"])
    op.create_index("idx_organization_posts_org_id", "organization_posts", ["org_id"])

    op.create_table(
        "post_likes",
        sa.Column("like_id", sa.Text(), primary_key=True),
        sa.Column(
            "post_id", sa.Text(), sa.ForeignKey("organization_posts.post_id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.Text(), nullable=False),
        _created_at(),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),
    )
    op.create_table(
        "post_comments",
        sa.Column("comment_id", sa.Text(), primary_key=True),
        sa.Column(
            "post_id", sa.Text(), sa.ForeignKey("organization_posts.post_id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        # No foreign key: replies outlive a deleted parent.
        sa.Column("parent_comment_id", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index("idx_post_comments_post_created", "post_comments", ["post_id", "created_at"])

    op.create_table(
        "announcements",
        sa.Column("announcement_id", sa.Text(), primary_key=True),
        _org_fk(),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("image", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index("idx_announcements_org_created", "announcements", ["org_id", "created_at"])

    op.create_table(
        "polls",
        sa.Column("poll_id", sa.Text(), primary_key=True),
        _org_fk(),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("allow_multiple", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("visibility", sa.Text(), nullable=False, server_default="members"),
        sa.Column("created_by", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index("idx_polls_created_at", "polls", ["created_at"])

    op.create_table(
        "poll_options",
        sa.Column("option_id", sa.Text(), primary_key=True),
        sa.Column("poll_id", sa.Text(), sa.ForeignKey("polls.poll_id", ondelete="CASCADE"), nullable=False),
        sa.Column("option_text", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("vote_count", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint("vote_count >= 0", name="ck_poll_options_vote_count_non_negative"),
    )
    op.create_index("idx_poll_options_poll_id", "poll_options", ["poll_id"])

    op.create_table(
        "poll_votes",
        sa.Column("vote_id", sa.Text(), primary_key=True),
        sa.Column("poll_id", sa.Text(), sa.ForeignKey("polls.poll_id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "option_id", sa.Text(), sa.ForeignKey("poll_options.option_id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.Text(), nullable=False),
        _created_at("voted_at"),
        sa.UniqueConstraint("poll_id", "user_id", "option_id", name="uq_poll_votes_poll_user_option"),
    )
    op.create_index("idx_poll_votes_poll_user", "poll_votes", ["poll_id", "user_id"])


def downgrade() -> None:
    op.drop_index("idx_poll_votes_poll_user", table_name="poll_votes")
    op.drop_table("poll_votes")
    op.drop_index("idx_poll_options_poll_id", table_name="poll_options")
    op.drop_table("poll_options")
    op.drop_index("idx_polls_created_at", table_name="polls")
    op.drop_table("polls")
    op.drop_index("idx_announcements_org_created", table_name="announcements")
    op.drop_table("announcements")
    op.drop_index("idx_post_comments_post_created", table_name="post_comments")
    op.drop_table("post_comments")
    op.drop_table("post_likes")
    op.drop_index("idx_organization_posts_org_id", table_name="organization_posts")
    op.drop_index("idx_organization_posts_created_at", table_name="organization_posts")
    op.drop_table("organization_posts")
    op.drop_table("profiles")
    op.drop_index("idx_organization_members_user_id", table_name="organization_members")
    op.drop_table("organization_members")
    op.drop_table("organizations")
