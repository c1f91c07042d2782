"""create initial schema

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:01.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True)


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("default_lang", sa.String(), nullable=True),
        sa.Column("primary_domain", sa.String(), nullable=True),
        sa.Column("currency", sa.String(), nullable=False, server_default="TRY"),
        sa.Column("pricing_multiplier", sa.Numeric(10, 4), nullable=False, server_default="1"),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_tenants_code"), "tenants", ["code"], unique=True)
    op.create_index(op.f("ix_tenants_primary_domain"), "tenants", ["primary_domain"], unique=False)

    op.create_table(
        "tenant_domains",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("host", sa.String(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_tenant_domains_tenant_id"), "tenant_domains", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_tenant_domains_host"), "tenant_domains", ["host"], unique=True)

    op.create_table(
        "profiles",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="user"),
        sa.Column("tenant_key", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_profiles_email"), "profiles", ["email"], unique=True)
    op.create_index(op.f("ix_profiles_role"), "profiles", ["role"], unique=False)
    op.create_index(op.f("ix_profiles_tenant_key"), "profiles", ["tenant_key"], unique=False)

    op.create_table(
        "organizations",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_organizations_tenant_id"), "organizations", ["tenant_id"], unique=False)

    op.create_table(
        "organization_members",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("org_role", sa.String(), nullable=False, server_default="member"),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        _created_at(),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"], ),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "user_id", name="uq_organization_members_org_user"),
    )
    op.create_index(op.f("ix_organization_members_org_id"), "organization_members", ["org_id"], unique=False)
    op.create_index(op.f("ix_organization_members_user_id"), "organization_members", ["user_id"], unique=False)

    op.create_table(
        "credit_ledger",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("scope_type", sa.String(), nullable=False),
        sa.Column("scope_id", sa.String(), nullable=False),
        sa.Column("change", sa.Numeric(14, 4), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("question_id", sa.String(), nullable=True),
        sa.Column("order_id", sa.String(), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_credit_ledger_scope", "credit_ledger", ["scope_type", "scope_id"], unique=False)
    op.create_index(op.f("ix_credit_ledger_question_id"), "credit_ledger", ["question_id"], unique=False)
    op.create_index(op.f("ix_credit_ledger_order_id"), "credit_ledger", ["order_id"], unique=False)
    op.create_index(op.f("ix_credit_ledger_created_at"), "credit_ledger", ["created_at"], unique=False)

    op.create_table(
        "credit_price_tiers",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("scope_type", sa.String(), nullable=False),
        sa.Column("credits_range", sa.String(), nullable=False),
        sa.Column("unit_price_lira", sa.Numeric(12, 4), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_credit_price_tiers_scope_type"), "credit_price_tiers", ["scope_type"], unique=False)

    op.create_table(
        "subscription_settings",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("credits_per_point", sa.Numeric(12, 4), nullable=True),
        sa.Column("credit_price_lira", sa.Numeric(12, 4), nullable=True),
        sa.Column("credit_discount_user", sa.Numeric(8, 4), nullable=True),
        sa.Column("credit_discount_org", sa.Numeric(8, 4), nullable=True),
        sa.Column("low_balance_threshold_user", sa.Integer(), nullable=True),
        sa.Column("low_balance_threshold_org", sa.Integer(), nullable=True),
        sa.Column("min_user_purchase_credits", sa.Integer(), nullable=True),
        sa.Column("min_org_purchase_credits", sa.Integer(), nullable=True),
        sa.Column("notify_emails", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "questions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="submitted"),
        sa.Column("answer_status", sa.String(), nullable=True),
        sa.Column("price_tl", sa.Numeric(12, 2), nullable=True),
        sa.Column("price_final_tl", sa.Numeric(12, 2), nullable=True),
        sa.Column("sla_due_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_to", sa.String(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ),
        sa.ForeignKeyConstraint(["assigned_to"], ["profiles.id"], ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_questions_user_id"), "questions", ["user_id"], unique=False)
    op.create_index(op.f("ix_questions_tenant_id"), "questions", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_questions_status"), "questions", ["status"], unique=False)
    op.create_index(op.f("ix_questions_sla_due_at"), "questions", ["sla_due_at"], unique=False)
    op.create_index(op.f("ix_questions_assigned_to"), "questions", ["assigned_to"], unique=False)
    op.create_index(op.f("ix_questions_created_at"), "questions", ["created_at"], unique=False)

    op.create_table(
        "question_revisions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("question_id", sa.String(), nullable=False),
        sa.Column("revision_no", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("source", sa.String(), nullable=False, server_default="manual"),
        sa.Column("created_by", sa.String(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["question_id"], ["questions.id"], ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("question_id", "revision_no", name="uq_question_revisions_no"),
    )
    op.create_index(op.f("ix_question_revisions_question_id"), "question_revisions", ["question_id"], unique=False)

    op.create_table(
        "assignment_requests",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("question_id", sa.String(), nullable=False),
        sa.Column("worker_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("decided_by", sa.String(), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["question_id"], ["questions.id"], ),
        sa.ForeignKeyConstraint(["worker_id"], ["profiles.id"], ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_assignment_requests_question_id"), "assignment_requests", ["question_id"], unique=False)
    op.create_index(op.f("ix_assignment_requests_worker_id"), "assignment_requests", ["worker_id"], unique=False)

    op.create_table(
        "orders",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("tenant_id", sa.String(), nullable=True),
        sa.Column("question_id", sa.String(), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(), nullable=False, server_default="TRY"),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("provider", sa.String(), nullable=True),
        sa.Column("provider_ref", sa.String(), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_orders_user_id"), "orders", ["user_id"], unique=False)
    op.create_index(op.f("ix_orders_tenant_id"), "orders", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_orders_question_id"), "orders", ["question_id"], unique=False)
    op.create_index(op.f("ix_orders_status"), "orders", ["status"], unique=False)
    op.create_index(op.f("ix_orders_provider_ref"), "orders", ["provider_ref"], unique=False)
    op.create_index(op.f("ix_orders_created_at"), "orders", ["created_at"], unique=False)

    op.create_table(
        "payments",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("question_id", sa.String(), nullable=True),
        sa.Column("tenant_id", sa.String(), nullable=True),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("provider_ref", sa.String(), nullable=True),
        sa.Column("amount_cents", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="paid"),
        sa.Column("raw_payload", sa.JSON(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_payments_order_id"), "payments", ["order_id"], unique=False)
    op.create_index(op.f("ix_payments_question_id"), "payments", ["question_id"], unique=False)
    op.create_index(op.f("ix_payments_provider_ref"), "payments", ["provider_ref"], unique=False)

    op.create_table(
        "gpt_answer_profiles",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("model", sa.String(), nullable=True),
        sa.Column("system_prompt", sa.Text(), nullable=False),
        sa.Column("temperature", sa.Float(), nullable=False, server_default="0.2"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_gpt_answer_profiles_is_active"), "gpt_answer_profiles", ["is_active"], unique=False)

    op.create_table(
        "rag_documents",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("source", sa.String(), nullable=False, server_default="manual"),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("url", sa.String(), nullable=True),
        sa.Column("jurisdiction", sa.String(), nullable=False, server_default="TR"),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("hash", sa.String(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_rag_documents_hash"), "rag_documents", ["hash"], unique=False)

    op.create_table(
        "rag_chunks",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("document_id", sa.String(), nullable=False),
        sa.Column("idx", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("token_count", sa.Integer(), nullable=True),
        sa.Column("embedding", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["document_id"], ["rag_documents.id"], ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_rag_chunks_document_id"), "rag_chunks", ["document_id"], unique=False)

    op.create_table(
        "sla_reminder_rules",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=True),
        sa.Column("minutes_before_sla", sa.Integer(), nullable=False),
        sa.Column("send_to_assignee", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("send_to_admins", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("allowed_question_statuses", sa.JSON(), nullable=False),
        sa.Column("allowed_answer_statuses", sa.JSON(), nullable=False),
        sa.Column("include_null_answer_status", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("subject_template", sa.String(), nullable=False),
        sa.Column("body_template", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_sla_reminder_rules_tenant_id"), "sla_reminder_rules", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_sla_reminder_rules_is_active"), "sla_reminder_rules", ["is_active"], unique=False)

    op.create_table(
        "worker_cv_profiles",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("worker_user_id", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("languages", sa.JSON(), nullable=True),
        sa.Column("hourly_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("photo_object_path", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(["worker_user_id"], ["profiles.id"], ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_worker_cv_profiles_worker_user_id"), "worker_cv_profiles", ["worker_user_id"], unique=True)

    op.create_table(
        "worker_cv_blocks",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("worker_user_id", sa.String(), nullable=False),
        sa.Column("block_type", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
        sa.ForeignKeyConstraint(["worker_user_id"], ["profiles.id"], ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_worker_cv_blocks_worker_user_id"), "worker_cv_blocks", ["worker_user_id"], unique=False)

    op.create_table(
        "cv_block_types",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("label_tr", sa.String(), nullable=False),
        sa.Column("label_en", sa.String(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("key"),
    )

    op.create_table(
        "blog_posts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=True),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="draft"),
        sa.Column("author_id", sa.String(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(["author_id"], ["profiles.id"], ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "slug", name="uq_blog_posts_tenant_slug"),
    )
    op.create_index(op.f("ix_blog_posts_tenant_id"), "blog_posts", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_blog_posts_slug"), "blog_posts", ["slug"], unique=False)
    op.create_index(op.f("ix_blog_posts_status"), "blog_posts", ["status"], unique=False)
    op.create_index(op.f("ix_blog_posts_author_id"), "blog_posts", ["author_id"], unique=False)
    op.create_index(op.f("ix_blog_posts_published_at"), "blog_posts", ["published_at"], unique=False)

    op.create_table(
        "news_items",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=True),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("lang", sa.String(), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "slug", name="uq_news_items_tenant_slug"),
    )
    op.create_index(op.f("ix_news_items_tenant_id"), "news_items", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_news_items_slug"), "news_items", ["slug"], unique=False)
    op.create_index(op.f("ix_news_items_published_at"), "news_items", ["published_at"], unique=False)

    op.create_table(
        "contact_tickets",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=True),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("subject", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("locale", sa.String(), nullable=True),
        sa.Column("reference", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="open"),
        sa.Column("spam_score", sa.Integer(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_contact_tickets_tenant_id"), "contact_tickets", ["tenant_id"], unique=False)
    op.create_index(op.f("ix_contact_tickets_user_id"), "contact_tickets", ["user_id"], unique=False)
    op.create_index(op.f("ix_contact_tickets_reference"), "contact_tickets", ["reference"], unique=False)
    op.create_index(op.f("ix_contact_tickets_status"), "contact_tickets", ["status"], unique=False)
    op.create_index(op.f("ix_contact_tickets_created_at"), "contact_tickets", ["created_at"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("event", sa.String(), nullable=True),
        sa.Column("resource_type", sa.String(), nullable=True),
        sa.Column("resource_id", sa.String(), nullable=True),
        sa.Column("actor_role", sa.String(), nullable=True),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("tenant_id", sa.String(), nullable=True),
        sa.Column("ip", sa.String(), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_audit_logs_action"), "audit_logs", ["action"], unique=False)
    op.create_index(op.f("ix_audit_logs_event"), "audit_logs", ["event"], unique=False)
    op.create_index(op.f("ix_audit_logs_resource_type"), "audit_logs", ["resource_type"], unique=False)
    op.create_index(op.f("ix_audit_logs_ip"), "audit_logs", ["ip"], unique=False)
    op.create_index(op.f("ix_audit_logs_created_at"), "audit_logs", ["created_at"], unique=False)

    op.create_table(
        "notification_logs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=True),
        sa.Column("event", sa.String(), nullable=False),
        sa.Column("to_email", sa.String(), nullable=True),
        sa.Column("subject", sa.String(), nullable=True),
        sa.Column("template", sa.String(), nullable=True),
        sa.Column("provider", sa.String(), nullable=True),
        sa.Column("provider_id", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="queued"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("entity_type", sa.String(), nullable=True),
        sa.Column("entity_id", sa.String(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_notification_logs_event"), "notification_logs", ["event"], unique=False)
    op.create_index(op.f("ix_notification_logs_entity_id"), "notification_logs", ["entity_id"], unique=False)
    op.create_index(op.f("ix_notification_logs_created_at"), "notification_logs", ["created_at"], unique=False)


def downgrade() -> None:
    for table in (
        "notification_logs",
        "audit_logs",
        "contact_tickets",
        "news_items",
        "blog_posts",
        "cv_block_types",
        "worker_cv_blocks",
        "worker_cv_profiles",
        "sla_reminder_rules",
        "rag_chunks",
        "rag_documents",
        "gpt_answer_profiles",
        "payments",
        "orders",
        "assignment_requests",
        "question_revisions",
        "questions",
        "subscription_settings",
        "credit_price_tiers",
        "credit_ledger",
        "organization_members",
        "organizations",
        "profiles",
        "tenant_domains",
        "tenants",
    ):
        op.drop_table(table)
