"""Member rows: full detail upserts and resolver stubs."""

from collections.abc import Iterable
from typing import Any

from .core import execute


def get_existing_member_ids(con, bioguide_ids: Iterable[str]) -> set[str]:
    ids = sorted(set(bioguide_ids))
    if not ids:
        return set()
    placeholders = ", ".join(f":id{i}" for i in range(len(ids)))
    cur = execute(
        con,
        f"SELECT bioguide_id FROM members WHERE bioguide_id IN ({placeholders})",
        {f"id{i}": bioguide_id for i, bioguide_id in enumerate(ids)},
    )
    return {row[0] for row in cur.fetchall()}


def insert_member_stub(con, stub: dict[str, Any]) -> None:
    """Minimal member row; never overwrites an existing one."""
    execute(
        con,
        """INSERT INTO members (
             bioguide_id, direct_order_name, first_name, last_name,
             is_current_member, updated_at
           ) VALUES (
             :bioguide_id, :direct_order_name, COALESCE(:first_name, 'Unknown'),
             COALESCE(:last_name, 'Unknown'), :is_current_member, :now
           )
           ON CONFLICT(bioguide_id) DO NOTHING""",
        stub,
    )


def upsert_member(con, member: dict[str, Any]) -> None:
    execute(
        con,
        """INSERT INTO members (
             bioguide_id, direct_order_name, inverted_order_name, first_name, middle_name,
             last_name, suffix_name, nickname, honorific_name, birth_year, death_year,
             official_url, image_url, image_attribution, is_current_member, update_date,
             updated_at, last_synced_at
           ) VALUES (
             :bioguide_id, :direct_order_name, :inverted_order_name,
             COALESCE(:first_name, 'Unknown'), :middle_name, COALESCE(:last_name, 'Unknown'),
             :suffix_name, :nickname, :honorific_name, :birth_year, :death_year,
             :official_url, :image_url, :image_attribution, :is_current_member,
             :update_date, :synced_at, :synced_at
           )
           ON CONFLICT(bioguide_id) DO UPDATE SET
             direct_order_name = COALESCE(excluded.direct_order_name, members.direct_order_name),
             inverted_order_name = COALESCE(excluded.inverted_order_name, members.inverted_order_name),
             first_name = COALESCE(:first_name, members.first_name),
             middle_name = COALESCE(excluded.middle_name, members.middle_name),
             last_name = COALESCE(:last_name, members.last_name),
             suffix_name = COALESCE(excluded.suffix_name, members.suffix_name),
             nickname = COALESCE(excluded.nickname, members.nickname),
             honorific_name = COALESCE(excluded.honorific_name, members.honorific_name),
             birth_year = COALESCE(excluded.birth_year, members.birth_year),
             death_year = COALESCE(excluded.death_year, members.death_year),
             official_url = COALESCE(excluded.official_url, members.official_url),
             image_url = COALESCE(excluded.image_url, members.image_url),
             image_attribution = COALESCE(excluded.image_attribution, members.image_attribution),
             is_current_member = COALESCE(excluded.is_current_member, members.is_current_member),
             update_date = COALESCE(excluded.update_date, members.update_date),
             updated_at = excluded.updated_at,
             last_synced_at = excluded.last_synced_at""",
        member,
    )


def upsert_member_address(con, bioguide_id: str, address: dict[str, Any]) -> None:
    execute(
        con,
        """INSERT INTO member_addresses (
             bioguide_id, office_address, city, district, zip_code, phone_number
           ) VALUES (
             :bioguide_id, :office_address, :city, :district, :zip_code, :phone_number
           )
           ON CONFLICT(bioguide_id) DO UPDATE SET
             office_address = COALESCE(excluded.office_address, member_addresses.office_address),
             city = COALESCE(excluded.city, member_addresses.city),
             district = COALESCE(excluded.district, member_addresses.district),
             zip_code = COALESCE(excluded.zip_code, member_addresses.zip_code),
             phone_number = COALESCE(excluded.phone_number, member_addresses.phone_number)""",
        {"bioguide_id": bioguide_id, **address},
    )


def upsert_party_history(con, bioguide_id: str, party: dict[str, Any]) -> None:
    execute(
        con,
        """INSERT INTO member_party_history (
             bioguide_id, party_name, party_abbreviation, start_year, end_year
           ) VALUES (
             :bioguide_id, :party_name, :party_abbreviation, :start_year, :end_year
           )
           ON CONFLICT(bioguide_id, party_name, start_year) DO UPDATE SET
             party_abbreviation = COALESCE(
               excluded.party_abbreviation, member_party_history.party_abbreviation
             ),
             end_year = COALESCE(excluded.end_year, member_party_history.end_year)""",
        {"bioguide_id": bioguide_id, **party},
    )


def upsert_term(con, bioguide_id: str, term: dict[str, Any]) -> None:
    execute(
        con,
        """INSERT INTO member_terms (
             bioguide_id, congress, chamber, member_type, state_code, state_name,
             district, start_year, end_year
           ) VALUES (
             :bioguide_id, :congress, :chamber, :member_type, :state_code, :state_name,
             :district, :start_year, :end_year
           )
           ON CONFLICT(bioguide_id, congress, chamber) DO UPDATE SET
             member_type = COALESCE(excluded.member_type, member_terms.member_type),
             state_code = COALESCE(excluded.state_code, member_terms.state_code),
             state_name = COALESCE(excluded.state_name, member_terms.state_name),
             district = COALESCE(excluded.district, member_terms.district),
             start_year = COALESCE(excluded.start_year, member_terms.start_year),
             end_year = COALESCE(excluded.end_year, member_terms.end_year)""",
        {"bioguide_id": bioguide_id, **term},
    )


def upsert_leadership(con, bioguide_id: str, congress: int, role: str, is_current: bool) -> None:
    execute(
        con,
        """INSERT INTO member_leadership (bioguide_id, congress, type, is_current)
           VALUES (:bioguide_id, :congress, :type, :is_current)
           ON CONFLICT(bioguide_id, congress, type) DO UPDATE SET
             is_current = excluded.is_current""",
        {"bioguide_id": bioguide_id, "congress": congress, "type": role, "is_current": is_current},
    )


def get_member_watermarks(con) -> dict[str, Any]:
    cur = execute(con, "SELECT bioguide_id, last_synced_at FROM members")
    return {row[0]: row[1] for row in cur.fetchall()}
