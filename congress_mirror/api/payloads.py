"""
Decode contracts for Congress.gov payloads.

Every endpoint the sync touches is declared here with the explicit path to
its item array (list endpoints) or object (detail endpoints) and the model
its items decode into. Nothing is discovered by inspecting the response.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ResourceRef(ApiModel):
    """`{"count": N, "url": "..."}` pointer to a sub-resource."""

    count: int | None = None
    url: str | None = None


class BillKeyMixin(ApiModel):
    congress: int
    type: str
    number: int

    @field_validator("type")
    @classmethod
    def _lower_type(cls, v: str) -> str:
        return v.lower()

    @property
    def key(self) -> tuple[int, str, int]:
        return (self.congress, self.type, self.number)

    @property
    def label(self) -> str:
        return f"{self.type}{self.number}-{self.congress}"


# ── bills ────────────────────────────────────────────────────────


class BillListItem(BillKeyMixin):
    url: str
    title: str | None = None
    update_date: str | None = Field(None, alias="updateDate")


class Sponsor(ApiModel):
    bioguide_id: str = Field(alias="bioguideId")
    first_name: str | None = Field(None, alias="firstName")
    last_name: str | None = Field(None, alias="lastName")
    full_name: str | None = Field(None, alias="fullName")
    is_by_request: str | None = Field(None, alias="isByRequest")


class NamedRef(ApiModel):
    name: str | None = None


class LatestAction(ApiModel):
    action_date: str | None = Field(None, alias="actionDate")
    text: str | None = None


class CostEstimate(ApiModel):
    url: str
    title: str | None = None
    description: str | None = None
    pub_date: str | None = Field(None, alias="pubDate")


class ReportCitation(ApiModel):
    citation: str
    url: str | None = None


class LawRef(ApiModel):
    number: str
    type: str | None = None


class BillDetail(BillKeyMixin):
    title: str | None = None
    introduced_date: str | None = Field(None, alias="introducedDate")
    origin_chamber: str | None = Field(None, alias="originChamber")
    origin_chamber_code: str | None = Field(None, alias="originChamberCode")
    policy_area: NamedRef | None = Field(None, alias="policyArea")
    update_date: str | None = Field(None, alias="updateDate")
    update_date_including_text: str | None = Field(None, alias="updateDateIncludingText")
    constitutional_authority_text: str | None = Field(
        None, alias="constitutionalAuthorityStatementText"
    )
    sponsors: list[Sponsor] = []
    latest_action: LatestAction | None = Field(None, alias="latestAction")

    actions: ResourceRef | None = None
    committees: ResourceRef | None = None
    cosponsors: ResourceRef | None = None
    related_bills: ResourceRef | None = Field(None, alias="relatedBills")
    summaries: ResourceRef | None = None
    subjects: ResourceRef | None = None
    titles: ResourceRef | None = None
    text_versions: ResourceRef | None = Field(None, alias="textVersions")

    cbo_cost_estimates: list[CostEstimate] = Field([], alias="cboCostEstimates")
    committee_reports: list[ReportCitation] = Field([], alias="committeeReports")
    laws: list[LawRef] = []

    @property
    def sponsor(self) -> Sponsor | None:
        return self.sponsors[0] if self.sponsors else None


class CommitteeRef(ApiModel):
    system_code: str = Field(alias="systemCode")
    name: str | None = None
    chamber: str | None = None


class Action(ApiModel):
    action_date: str = Field(alias="actionDate")
    text: str | None = None
    type: str | None = None
    action_code: str | None = Field(None, alias="actionCode")
    committees: list[CommitteeRef] = []


class Activity(ApiModel):
    name: str
    date: str | None = None


class BillCommittee(CommitteeRef):
    type: str | None = None
    activities: list[Activity] = []


class Cosponsor(ApiModel):
    bioguide_id: str = Field(alias="bioguideId")
    first_name: str | None = Field(None, alias="firstName")
    last_name: str | None = Field(None, alias="lastName")
    sponsorship_date: str | None = Field(None, alias="sponsorshipDate")
    is_original_cosponsor: bool = Field(False, alias="isOriginalCosponsor")
    sponsorship_withdrawn_date: str | None = Field(None, alias="sponsorshipWithdrawnDate")


class RelationshipDetail(ApiModel):
    type: str | None = None
    identified_by: str = Field("Unknown", alias="identifiedBy")


class RelatedBill(BillKeyMixin):
    title: str | None = None
    relationship_details: list[RelationshipDetail] = Field([], alias="relationshipDetails")


class Summary(ApiModel):
    version_code: str = Field(alias="versionCode")
    action_date: str | None = Field(None, alias="actionDate")
    action_desc: str | None = Field(None, alias="actionDesc")
    text: str | None = None
    update_date: str | None = Field(None, alias="updateDate")


class Subject(ApiModel):
    name: str


class Title(ApiModel):
    title: str
    title_type: str = Field(alias="titleType")
    title_type_code: int | None = Field(None, alias="titleTypeCode")


class TextFormat(ApiModel):
    type: str
    url: str


class TextVersion(ApiModel):
    type: str | None = None
    date: str | None = None
    formats: list[TextFormat] = []


# ── members ──────────────────────────────────────────────────────


class MemberListItem(ApiModel):
    bioguide_id: str = Field(alias="bioguideId")
    name: str | None = None
    url: str | None = None
    update_date: str | None = Field(None, alias="updateDate")


class Depiction(ApiModel):
    image_url: str | None = Field(None, alias="imageUrl")
    attribution: str | None = None


class Address(ApiModel):
    office_address: str | None = Field(None, alias="officeAddress")
    city: str | None = None
    district: str | None = None
    zip_code: int | str | None = Field(None, alias="zipCode")
    phone_number: str | None = Field(None, alias="phoneNumber")


class PartyHistory(ApiModel):
    party_name: str = Field(alias="partyName")
    party_abbreviation: str | None = Field(None, alias="partyAbbreviation")
    start_year: int = Field(alias="startYear")
    end_year: int | None = Field(None, alias="endYear")


class Term(ApiModel):
    congress: int
    chamber: str
    member_type: str | None = Field(None, alias="memberType")
    state_code: str | None = Field(None, alias="stateCode")
    state_name: str | None = Field(None, alias="stateName")
    district: int | None = None
    start_year: int | None = Field(None, alias="startYear")
    end_year: int | None = Field(None, alias="endYear")


class Leadership(ApiModel):
    congress: int
    type: str
    current: bool = False


class MemberDetail(ApiModel):
    bioguide_id: str = Field(alias="bioguideId")
    direct_order_name: str | None = Field(None, alias="directOrderName")
    inverted_order_name: str | None = Field(None, alias="invertedOrderName")
    first_name: str | None = Field(None, alias="firstName")
    middle_name: str | None = Field(None, alias="middleName")
    last_name: str | None = Field(None, alias="lastName")
    suffix_name: str | None = Field(None, alias="suffixName")
    nick_name: str | None = Field(None, alias="nickName")
    honorific_name: str | None = Field(None, alias="honorificName")
    birth_year: str | None = Field(None, alias="birthYear")
    death_year: str | None = Field(None, alias="deathYear")
    official_url: str | None = Field(None, alias="officialWebsiteUrl")
    depiction: Depiction | None = None
    current_member: bool | None = Field(None, alias="currentMember")
    update_date: str | None = Field(None, alias="updateDate")
    address: Address | None = Field(None, alias="addressInformation")
    party_history: list[PartyHistory] = Field([], alias="partyHistory")
    terms: list[Term] = []
    leadership: list[Leadership] = []

    @field_validator("birth_year", "death_year", mode="before")
    @classmethod
    def _year_as_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v


# ── committees and reports ───────────────────────────────────────


class CommitteeListItem(ApiModel):
    system_code: str = Field(alias="systemCode")
    name: str | None = None
    chamber: str | None = None
    committee_type_code: str | None = Field(None, alias="committeeTypeCode")
    parent: CommitteeRef | None = None
    url: str | None = None
    update_date: str | None = Field(None, alias="updateDate")


class CommitteeHistory(ApiModel):
    official_name: str = Field(alias="officialName")
    loc_name: str | None = Field(None, alias="libraryOfCongressName")
    start_date: str = Field(alias="startDate")
    end_date: str | None = Field(None, alias="endDate")


class CommitteeDetail(ApiModel):
    system_code: str = Field(alias="systemCode")
    type: str | None = None
    is_current: bool | None = Field(None, alias="isCurrent")
    update_date: str | None = Field(None, alias="updateDate")
    history: list[CommitteeHistory] = []
    reports: ResourceRef | None = None


class ReportListItem(ApiModel):
    citation: str
    congress: int | None = None
    chamber: str | None = None
    type: str | None = None
    number: int | None = None
    part: int | None = None
    url: str | None = None
    update_date: str | None = Field(None, alias="updateDate")


class AssociatedBill(BillKeyMixin):
    pass


class ReportDetail(ApiModel):
    citation: str
    title: str | None = None
    issue_date: str | None = Field(None, alias="issueDate")
    is_conference_report: bool | None = Field(None, alias="isConferenceReport")
    congress: int | None = None
    chamber: str | None = None
    type: str | None = None
    number: int | None = None
    part: int | None = None
    associated_bills: list[AssociatedBill] = Field([], alias="associatedBill")


# ── endpoint contracts ───────────────────────────────────────────


@dataclass(frozen=True)
class Collection:
    """A paginated endpoint: where its items live and what they decode to."""

    name: str
    items_path: tuple[str, ...]
    model: type[ApiModel]


@dataclass(frozen=True)
class Detail:
    """A detail endpoint: where its object lives and what it decodes to."""

    name: str
    object_path: tuple[str | int, ...]
    model: type[ApiModel]


BILL_LIST = Collection("bills", ("bills",), BillListItem)
ACTIONS = Collection("actions", ("actions",), Action)
BILL_COMMITTEES = Collection("bill committees", ("committees",), BillCommittee)
COSPONSORS = Collection("cosponsors", ("cosponsors",), Cosponsor)
RELATED_BILLS = Collection("related bills", ("relatedBills",), RelatedBill)
SUMMARIES = Collection("summaries", ("summaries",), Summary)
SUBJECTS = Collection("subjects", ("subjects", "legislativeSubjects"), Subject)
TITLES = Collection("titles", ("titles",), Title)
TEXT_VERSIONS = Collection("text versions", ("textVersions",), TextVersion)
MEMBER_LIST = Collection("members", ("members",), MemberListItem)
COMMITTEE_LIST = Collection("committees", ("committees",), CommitteeListItem)
COMMITTEE_REPORTS = Collection("committee reports", ("reports",), ReportListItem)

BILL = Detail("bill", ("bill",), BillDetail)
MEMBER = Detail("member", ("member",), MemberDetail)
COMMITTEE = Detail("committee", ("committee",), CommitteeDetail)
REPORT = Detail("committee report", ("committeeReports", 0), ReportDetail)


def extract_items(payload: dict, collection: Collection) -> list[dict]:
    """Raw item dicts at the collection's path; [] when the path is absent."""
    node: Any = payload
    for key in collection.items_path:
        if not isinstance(node, dict):
            return []
        node = node.get(key)
    return node if isinstance(node, list) else []


def decode_detail(payload: dict, detail: Detail) -> ApiModel | None:
    """Decode a detail payload, or None when the object is absent."""
    node: Any = payload
    for key in detail.object_path:
        if isinstance(key, int):
            if not isinstance(node, list) or len(node) <= key:
                return None
            node = node[key]
        else:
            if not isinstance(node, dict):
                return None
            node = node.get(key)
    if node is None:
        return None
    return detail.model.model_validate(node)
