"""Table catalog of the business-management application.

``companies`` is the tenant root.  Tables are declared parents first;
within that constraint, tables referenced through ``optional_refs`` are
declared before the tables referencing them so tenant imports can remap
those ids too.
"""

from tenant_backup.catalog.models import ForeignKey, TableCatalog, TableDescriptor

# User reference columns nulled on tenant import (users do not move between tenants)
USER_COLUMNS: tuple[str, ...] = (
    "created_by",
    "updated_by",
    "changed_by",
    "owner_id",
    "recorded_by",
    "assigned_owner_id",
    "responsible_user_id",
    "uploaded_by",
    "approved_by",
    "responsible",
    "assigned_to",
)


def _tenant(name: str, column: str = "company_id", **kwargs) -> TableDescriptor:
    return TableDescriptor(name=name, tenant_column=column, **kwargs)


def _child(
    name: str, parent: str, field: str, references: str = "id", **kwargs
) -> TableDescriptor:
    return TableDescriptor(
        name=name,
        parent=ForeignKey(table=parent, field=field, references=references),
        **kwargs,
    )


def _system(name: str) -> TableDescriptor:
    return TableDescriptor(name=name)


DEFAULT_CATALOG = TableCatalog(
    root="companies",
    tenant_key="company_id",
    user_columns=USER_COLUMNS,
    tables=[
        _tenant("companies", column="id", importable=False),
        # Users and access
        _tenant("user_company_relations", importable=False),
        _child("profiles", "user_company_relations", "user_id",
               references="user_id", importable=False),
        _child("user_login_logs", "user_company_relations", "user_id",
               references="user_id", importable=False),
        _tenant("password_policies"),
        _tenant("company_module_settings"),
        # Strategic foundations
        _tenant("golden_circle"),
        _child("golden_circle_history", "golden_circle", "golden_circle_id"),
        _tenant("swot_analysis"),
        _child("swot_history", "swot_analysis", "swot_id"),
        _tenant("vision_alignment"),
        _child("vision_alignment_history", "vision_alignment", "vision_alignment_id"),
        _child("vision_alignment_objectives", "vision_alignment", "vision_alignment_id"),
        # Plan -> pillar -> objective -> key result chain
        _tenant("strategic_plans"),
        _child("strategic_pillars", "strategic_plans", "plan_id"),
        _child("strategic_objectives", "strategic_pillars", "pillar_id"),
        _child("key_results", "strategic_objectives", "objective_id"),
        _child("key_result_values", "key_results", "key_result_id"),
        _child("key_results_history", "key_results", "key_result_id"),
        _child("kr_fca", "key_results", "key_result_id"),
        _child("kr_monthly_actions", "key_results", "key_result_id",
               optional_refs=(ForeignKey(table="kr_fca", field="fca_id"),)),
        _child("kr_status_reports", "key_results", "key_result_id"),
        _child("kr_actions_history", "kr_monthly_actions", "action_id"),
        _tenant("kr_initiatives",
                optional_refs=(ForeignKey(table="key_results", field="key_result_id"),)),
        # Governance
        _tenant("governance_meetings"),
        _child("governance_agenda_items", "governance_meetings", "meeting_id"),
        _child("governance_atas", "governance_meetings", "meeting_id"),
        _tenant("governance_rules"),
        _child("governance_rule_items", "governance_rules", "governance_rule_id"),
        _tenant("governance_rule_documents"),
        # Projects
        _tenant("strategic_projects"),
        _child("project_members", "strategic_projects", "project_id"),
        _child("project_tasks", "strategic_projects", "project_id"),
        _child("project_kr_relations", "strategic_projects", "project_id",
               optional_refs=(ForeignKey(table="key_results", field="key_result_id"),)),
        _child("project_objective_relations", "strategic_projects", "project_id",
               optional_refs=(ForeignKey(table="strategic_objectives", field="objective_id"),)),
        # Assessments and reviews
        _tenant("beep_assessments"),
        _child("beep_answers", "beep_assessments", "assessment_id"),
        _tenant("performance_reviews"),
        # AI
        _tenant("ai_company_settings"),
        _tenant("ai_chat_sessions"),
        _child("ai_chat_messages", "ai_chat_sessions", "session_id"),
        _tenant("ai_insights"),
        _child("ai_recommendations", "ai_insights", "insight_id"),
        # Mentoring (the startup side of the relation is the tenant)
        _tenant("mentor_startup_relations", column="startup_company_id", importable=False),
        _child("mentoring_sessions", "mentor_startup_relations", "relation_id",
               importable=False),
        _child("action_items", "mentoring_sessions", "session_id", importable=False),
        # System tables: whole-system backups only
        _system("user_roles"),
        _system("user_modules"),
        _system("user_module_profiles"),
        _system("user_module_roles"),
        _system("profile_access_logs"),
        _system("system_modules"),
        _system("system_settings"),
        _system("startup_hub_profiles"),
        _system("beep_categories"),
        _system("beep_subcategories"),
        _system("beep_maturity_levels"),
        _system("beep_questions"),
        _system("ai_analytics"),
        _system("ai_user_preferences"),
        _system("admin_impersonation_sessions"),
        _system("database_cleanup_logs"),
        _system("backup_jobs"),
        _system("backup_files"),
        _system("backup_schedules"),
        _system("backup_restore_logs"),
        _system("company_export_logs"),
        _system("company_import_logs"),
    ],
)
