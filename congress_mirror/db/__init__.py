"""Database access layer, organized by entity family.

Public functions are re-exported here so consumers can write
``from congress_mirror.db import Database, upsert_bill``.
"""

from .core import (
    Database,
    connect,
    execute,
    fetch_scalar,
    insert_returning_id,
    get_db_backend,
    get_schema_path,
    init_db,
    as_db_timestamp,
    DB_PATH,
    ROOT,
    SCHEMA_PATH,
    SCHEMA_POSTGRES_PATH,
)
from .bills import (
    PLACEHOLDER_TITLE,
    get_bill,
    get_bill_id,
    get_bill_watermarks,
    upsert_bill,
    ensure_bill_stub,
    upsert_action,
    link_action_committee,
    upsert_bill_committee,
    upsert_cosponsor,
    upsert_summary,
    upsert_subject,
    upsert_title,
    upsert_text_version,
    upsert_related_bill,
    upsert_cost_estimate,
    upsert_law,
)
from .members import (
    get_existing_member_ids,
    get_member_watermarks,
    insert_member_stub,
    upsert_member,
    upsert_member_address,
    upsert_party_history,
    upsert_term,
    upsert_leadership,
)
from .committees import (
    UNKNOWN_CHAMBER,
    get_committee,
    get_committee_watermarks,
    upsert_committee,
    set_committee_parent,
    update_committee_detail,
    upsert_committee_history,
)
from .reports import (
    count_committee_reports,
    link_report_bill,
    link_report_committee,
    update_report_detail,
    upsert_report,
)
from .runs import (
    get_latest_runs,
    get_table_counts,
    insert_sync_run,
)
