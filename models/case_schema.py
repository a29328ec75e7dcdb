from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CaseStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    hearing = "hearing"


class OnBehalfOf(str, Enum):
    petitioner = "Petitioner"
    respondent = "Respondent"
    complainant = "Complainant"
    accused = "Accused"
    plaintiff = "Plantiff"
    dhr = "DHR"
    jdr = "JDR"
    appellant = "Appellant"


class CaseSection(str, Enum):
    drafts = "drafts"
    opponent_drafts = "opponent_drafts"
    court_orders = "court_orders"
    evidence = "evidence"
    relevant_sections = "relevant_sections"

    @classmethod
    def parse(cls, value: str) -> "CaseSection":
        """Accept either the stored name or its camelCase spelling (``courtOrders``)."""
        for section in cls:
            if value in (section.value, to_camel(section.value)):
                return section
        raise ValueError(f"Unknown section: {value}")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Attachment entries are a tagged union: exactly one reference, selected by ``kind``.
class FileAttachment(_CamelModel):
    kind: Literal["file"] = "file"
    file_id: str
    name: str
    added_at: datetime


class NoteAttachment(_CamelModel):
    kind: Literal["note"] = "note"
    note_id: str
    name: str
    added_at: datetime


Attachment = Annotated[Union[FileAttachment, NoteAttachment], Field(discriminator="kind")]


class CaseCreate(_CamelModel):
    title: str = Field(min_length=1, validation_alias=AliasChoices("title", "caseTitle"))
    case_no: str = Field(min_length=1, validation_alias=AliasChoices("caseNo", "case_no"))
    type: str = Field(min_length=1, validation_alias=AliasChoices("type", "caseType"))
    status: CaseStatus = CaseStatus.pending
    court: str = Field(min_length=1, validation_alias=AliasChoices("court", "courtName"))
    next_hearing: datetime = Field(validation_alias=AliasChoices("nextHearing", "next_hearing"))
    party_name: str = Field(min_length=1, validation_alias=AliasChoices("partyName", "party_name"))
    respondent: str = Field(min_length=1, validation_alias=AliasChoices("respondent", "respondentName"))
    lawyer: str = Field(min_length=1, validation_alias=AliasChoices("lawyer", "lawyerName"))
    contact_number: str = Field(min_length=1, validation_alias=AliasChoices("contactNumber", "contact_number"))
    advocate_contact_number: Optional[str] = None
    adverse_party_advocate_name: Optional[str] = None
    case_year: int = Field(validation_alias=AliasChoices("caseYear", "case_year"))
    on_behalf_of: OnBehalfOf = Field(validation_alias=AliasChoices("onBehalfOf", "on_behalf_of"))
    description: Optional[str] = None


class CaseUpdate(_CamelModel):
    title: Optional[str] = Field(default=None, validation_alias=AliasChoices("title", "caseTitle"))
    case_no: Optional[str] = Field(default=None, validation_alias=AliasChoices("caseNo", "case_no"))
    type: Optional[str] = Field(default=None, validation_alias=AliasChoices("type", "caseType"))
    status: Optional[CaseStatus] = None
    court: Optional[str] = Field(default=None, validation_alias=AliasChoices("court", "courtName"))
    next_hearing: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("nextHearing", "next_hearing"))
    party_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("partyName", "party_name"))
    respondent: Optional[str] = Field(default=None, validation_alias=AliasChoices("respondent", "respondentName"))
    lawyer: Optional[str] = Field(default=None, validation_alias=AliasChoices("lawyer", "lawyerName"))
    contact_number: Optional[str] = Field(default=None, validation_alias=AliasChoices("contactNumber", "contact_number"))
    advocate_contact_number: Optional[str] = None
    adverse_party_advocate_name: Optional[str] = None
    case_year: Optional[int] = Field(default=None, validation_alias=AliasChoices("caseYear", "case_year"))
    on_behalf_of: Optional[OnBehalfOf] = Field(default=None, validation_alias=AliasChoices("onBehalfOf", "on_behalf_of"))
    description: Optional[str] = None


class CaseStatusUpdate(BaseModel):
    status: CaseStatus


class CaseRecord(_CamelModel):
    id: str
    user_id: str
    title: str
    case_no: str
    type: str
    status: CaseStatus
    court: str
    next_hearing: datetime
    party_name: str
    respondent: str
    lawyer: str
    contact_number: str
    advocate_contact_number: Optional[str] = None
    adverse_party_advocate_name: Optional[str] = None
    case_year: int
    on_behalf_of: OnBehalfOf
    description: Optional[str] = None
    drafts: List[Attachment] = Field(default_factory=list)
    opponent_drafts: List[Attachment] = Field(default_factory=list)
    court_orders: List[Attachment] = Field(default_factory=list)
    evidence: List[Attachment] = Field(default_factory=list)
    relevant_sections: List[Attachment] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "CaseRecord":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        data["user_id"] = str(data["user_id"])
        for section in CaseSection:
            data[section.value] = [_attachment_out(entry) for entry in data.get(section.value, [])]
        return cls.model_validate(data)


def _attachment_out(entry: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(entry)
    for key in ("file_id", "note_id"):
        if out.get(key) is not None:
            out[key] = str(out[key])
    return out


class CaseNoteCreate(_CamelModel):
    section_type: str
    title: str = Field(min_length=1)
    content: str = ""


class AttachmentDeleteRequest(_CamelModel):
    section_type: str
    item_type: Literal["file", "note"]


class NoteUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None


class NoteRecord(_CamelModel):
    id: str
    title: str
    content: str = ""
    created_by: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "NoteRecord":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        data["created_by"] = str(data["created_by"])
        return cls.model_validate(data)


class FileRecord(_CamelModel):
    id: str
    name: str
    mimetype: str
    size: int
    uploaded_at: Optional[datetime] = None
    url: str

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "FileRecord":
        return cls(
            id=str(doc["_id"]),
            name=doc["original_name"],
            mimetype=doc["mimetype"],
            size=doc["size"],
            uploaded_at=doc.get("uploaded_at"),
            url=f"/uploads/{doc['relative_path']}",
        )


class StandaloneNoteCreate(BaseModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)


class StandaloneNoteRecord(_CamelModel):
    id: str
    title: str
    content: str
    created_by: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "StandaloneNoteRecord":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        data["created_by"] = str(data["created_by"])
        return cls.model_validate(data)
