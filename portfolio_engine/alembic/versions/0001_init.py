"""init schema

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _money(name: str, nullable: bool = True, default: bool = False) -> sa.Column:
    if default:
        return sa.Column(name, sa.Numeric(12, 2), nullable=nullable, server_default="0")
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable)


def _status(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.String(length=30), nullable=nullable)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "landlords",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("display_name", sa.String(length=160), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=True),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("company_name", sa.String(length=160), nullable=True),
        sa.Column("company_number", sa.String(length=40), nullable=True),
        _status("landlord_type"),
        _status("status"),
        _status("portfolio_size", nullable=True),
        sa.Column("total_properties", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("occupied_properties", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("occupancy_rate", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("registration_date", sa.DateTime(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_landlords_user_id", "landlords", ["user_id"])

    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("landlords.id"), nullable=False),
        sa.Column("address_line1", sa.String(length=255), nullable=False),
        sa.Column("address_line2", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=False),
        sa.Column("postcode", sa.String(length=12), nullable=False),
        sa.Column("property_type", sa.String(length=60), nullable=False),
        sa.Column("bedrooms", sa.Integer(), nullable=False),
        sa.Column("bathrooms", sa.Integer(), nullable=False),
        _status("status"),
        sa.Column("current_tenant_id", sa.String(length=64), nullable=True),
        _money("purchase_price"),
        _money("current_value"),
        _money("monthly_rent"),
        _money("deposit"),
        sa.Column("has_mortgage", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _money("mortgage_balance"),
        _money("monthly_mortgage_payment"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("acquisition_date", sa.Date(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
    )
    op.create_index("ix_properties_landlord_id", "properties", ["landlord_id"])
    op.create_index("ix_properties_status", "properties", ["status"])

    op.create_table(
        "property_inspections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("landlords.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("inspection_reference", sa.String(length=40), nullable=False, unique=True),
        _status("inspection_type"),
        _status("status"),
        _status("outcome", nullable=True),
        sa.Column("scheduled_date", sa.DateTime(), nullable=False),
        sa.Column("actual_date", sa.DateTime(), nullable=True),
        sa.Column("reschedule_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("inspector_name", sa.String(length=160), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("general_comments", sa.Text(), nullable=True),
        sa.Column("issues_json", sa.Text(), nullable=True),
        sa.Column("requires_follow_up", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("follow_up_request_ids_json", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_property_inspections_landlord_id", "property_inspections", ["landlord_id"])
    op.create_index("ix_property_inspections_property_id", "property_inspections", ["property_id"])
    op.create_index("ix_property_inspections_status", "property_inspections", ["status"])

    op.create_table(
        "tenancy_agreements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("landlords.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("agreement_reference", sa.String(length=40), nullable=False, unique=True),
        _status("tenancy_type"),
        _status("status"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("actual_end_date", sa.Date(), nullable=True),
        sa.Column("termination_reason", sa.Text(), nullable=True),
        sa.Column("notice_period_months", sa.Integer(), nullable=False, server_default="2"),
        _money("rent_amount", nullable=False),
        _status("rent_frequency"),
        sa.Column("rent_due_day", sa.Integer(), nullable=False, server_default="1"),
        _money("deposit_amount"),
        _status("deposit_scheme", nullable=True),
        sa.Column("deposit_scheme_reference", sa.String(length=80), nullable=True),
        sa.Column("renewed_from_id", sa.Integer(), sa.ForeignKey("tenancy_agreements.id"), nullable=True),
        _money("arrears_balance", nullable=False, default=True),
        _money("credit_balance", nullable=False, default=True),
        sa.Column("open_period_start", sa.Date(), nullable=True),
        _money("open_period_outstanding", nullable=False, default=True),
        _money("total_rent_paid", nullable=False, default=True),
        sa.Column("late_payments", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ledger_sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_payment_date", sa.Date(), nullable=True),
        sa.Column("arrears_cleared_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
    )
    op.create_index("ix_tenancy_agreements_landlord_id", "tenancy_agreements", ["landlord_id"])
    op.create_index("ix_tenancy_agreements_property_id", "tenancy_agreements", ["property_id"])
    op.create_index("ix_tenancy_agreements_tenant_id", "tenancy_agreements", ["tenant_id"])
    op.create_index("ix_tenancy_agreements_property_status", "tenancy_agreements", ["property_id", "status"])

    op.create_table(
        "rent_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("landlords.id"), nullable=False),
        sa.Column("tenancy_id", sa.Integer(), sa.ForeignKey("tenancy_agreements.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("payment_reference", sa.String(length=40), nullable=False, unique=True),
        _status("payment_type"),
        _status("method"),
        _status("status"),
        _money("amount", nullable=False),
        _money("late_fee", nullable=False, default=True),
        _money("admin_fee", nullable=False, default=True),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("is_late", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("days_late", sa.Integer(), nullable=False, server_default="0"),
        _money("allocated_to_rent", nullable=False, default=True),
        _money("allocated_to_fees", nullable=False, default=True),
        _money("allocated_to_arrears", nullable=False, default=True),
        _money("credit_balance", nullable=False, default=True),
        sa.Column("is_partial_payment", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("parent_payment_id", sa.Integer(), sa.ForeignKey("rent_payments.id"), nullable=True),
        sa.Column("partial_payment_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sequence_number", sa.Integer(), nullable=True),
        sa.Column("transaction_reference", sa.String(length=120), nullable=True),
        sa.Column("processed_date", sa.DateTime(), nullable=True),
        sa.Column("settled_date", sa.Date(), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        _money("refund_amount"),
        sa.Column("refund_reason", sa.Text(), nullable=True),
        sa.Column("refunded_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("recorded_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("tenancy_id", "sequence_number", name="uq_rent_payments_tenancy_sequence"),
    )
    op.create_index("ix_rent_payments_landlord_id", "rent_payments", ["landlord_id"])
    op.create_index("ix_rent_payments_tenancy_id", "rent_payments", ["tenancy_id"])
    op.create_index("ix_rent_payments_property_id", "rent_payments", ["property_id"])
    op.create_index("ix_rent_payments_status", "rent_payments", ["status"])
    op.create_index("ix_rent_payments_landlord_date", "rent_payments", ["landlord_id", "payment_date"])

    op.create_table(
        "maintenance_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("landlords.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("request_number", sa.String(length=40), nullable=False, unique=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _status("category"),
        _status("priority"),
        _status("status"),
        _status("status_before_hold", nullable=True),
        sa.Column("location", sa.String(length=160), nullable=True),
        sa.Column("tenant_presence_required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _money("estimated_cost"),
        _money("actual_cost"),
        sa.Column("contractor_name", sa.String(length=160), nullable=True),
        sa.Column("contractor_phone", sa.String(length=40), nullable=True),
        sa.Column("contractor_email", sa.String(length=200), nullable=True),
        sa.Column("scheduled_date", sa.DateTime(), nullable=True),
        sa.Column("completed_date", sa.Date(), nullable=True),
        sa.Column("completion_notes", sa.Text(), nullable=True),
        sa.Column("landlord_notes", sa.Text(), nullable=True),
        sa.Column("source_inspection_id", sa.Integer(), sa.ForeignKey("property_inspections.id"), nullable=True),
        sa.Column("reported_by", sa.String(length=64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_maintenance_requests_landlord_id", "maintenance_requests", ["landlord_id"])
    op.create_index("ix_maintenance_requests_property_id", "maintenance_requests", ["property_id"])
    op.create_index("ix_maintenance_requests_priority", "maintenance_requests", ["priority"])
    op.create_index("ix_maintenance_requests_status", "maintenance_requests", ["status"])

    op.create_table(
        "financial_reports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("landlords.id"), nullable=False),
        sa.Column("report_reference", sa.String(length=40), nullable=False, unique=True),
        sa.Column("title", sa.String(length=200), nullable=True),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        _status("status"),
        sa.Column("generation_key", sa.String(length=80), nullable=True, unique=True),
        sa.Column("generation_started_at", sa.DateTime(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        _money("total_rental_income", nullable=False, default=True),
        _money("total_maintenance_costs", nullable=False, default=True),
        _money("total_gross_income", nullable=False, default=True),
        _money("total_expenses", nullable=False, default=True),
        _money("net_rental_income", nullable=False, default=True),
        sa.Column("payment_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("maintenance_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("generated_date", sa.DateTime(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("error_date", sa.DateTime(), nullable=True),
        sa.Column("requested_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_financial_reports_landlord_id", "financial_reports", ["landlord_id"])
    op.create_index("ix_financial_reports_status", "financial_reports", ["status"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("landlords.id"), nullable=False),
        sa.Column("actor_id", sa.String(length=64), nullable=True),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=80), nullable=False),
        sa.Column("entity_id", sa.String(length=80), nullable=False),
        sa.Column("before_json", sa.Text(), nullable=True),
        sa.Column("after_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_events_landlord_id", "audit_events", ["landlord_id"])

    op.create_table(
        "workflow_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("landlords.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=True),
        sa.Column("actor_id", sa.String(length=64), nullable=True),
        sa.Column("event_type", sa.String(length=80), nullable=False),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_workflow_events_landlord_id", "workflow_events", ["landlord_id"])
    op.create_index("ix_workflow_events_property_id", "workflow_events", ["property_id"])
    op.create_index("ix_workflow_events_event_type", "workflow_events", ["event_type"])


def downgrade():
    for table in (
        "workflow_events",
        "audit_events",
        "financial_reports",
        "maintenance_requests",
        "rent_payments",
        "tenancy_agreements",
        "property_inspections",
        "properties",
        "landlords",
    ):
        op.drop_table(table)
