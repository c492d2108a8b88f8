from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field

from ace_playbook.utils import now_iso

from .sections import SectionKey, classify_section

PLAYBOOK_VERSION = 1

# Curator output may use any label; it is folded onto a canonical key on parse
NormalizedSection = Annotated[SectionKey, BeforeValidator(classify_section)]

FeedbackTag = Literal["helpful", "harmful", "neutral"]


class Bullet(BaseModel):
    # Older stores used the short counter names (hits/helpful/harmful)
    model_config = ConfigDict(populate_by_name=True)

    id: str
    content: str
    hit_count: int = Field(default=0, validation_alias=AliasChoices("hit_count", "hits"))
    helpful_count: int = Field(
        default=0, validation_alias=AliasChoices("helpful_count", "helpful")
    )
    harmful_count: int = Field(
        default=0, validation_alias=AliasChoices("harmful_count", "harmful")
    )
    embedding: list[float] | None = None
    created_at: str = Field(
        default_factory=now_iso, validation_alias=AliasChoices("created_at", "createdAt")
    )
    updated_at: str = Field(
        default_factory=now_iso, validation_alias=AliasChoices("updated_at", "updatedAt")
    )

    def touch(self, timestamp: str | None = None) -> None:
        self.updated_at = timestamp or now_iso()


class Section(BaseModel):
    title: str
    bullets: list[Bullet] = Field(default_factory=list)


class Playbook(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: int = PLAYBOOK_VERSION
    work_id: str = Field(validation_alias=AliasChoices("work_id", "workId"))
    created_at: str = Field(
        default_factory=now_iso, validation_alias=AliasChoices("created_at", "createdAt")
    )
    updated_at: str = Field(
        default_factory=now_iso, validation_alias=AliasChoices("updated_at", "updatedAt")
    )
    next_bullet_seq: int = Field(
        default=1, validation_alias=AliasChoices("next_bullet_seq", "nextId")
    )
    sections: dict[str, Section] = Field(default_factory=dict)

    def find_bullet(self, bullet_id: str) -> Bullet | None:
        for section in self.sections.values():
            for bullet in section.bullets:
                if bullet.id == bullet_id:
                    return bullet
        return None

    def all_bullets(self) -> list[Bullet]:
        return [bullet for section in self.sections.values() for bullet in section.bullets]

    def touch(self, timestamp: str | None = None) -> None:
        self.updated_at = timestamp or now_iso()


class AddOperation(BaseModel):
    """The one operation kind the curator may emit."""

    type: Literal["ADD"] = "ADD"
    section: NormalizedSection = "misc"
    content: str


class BulletFeedback(BaseModel):
    id: str
    tag: FeedbackTag


class ReflectorOutput(BaseModel):
    notes: str = ""
    bullet_tags: list[BulletFeedback] = Field(default_factory=list)
    memory_candidates: list[AddOperation] = Field(default_factory=list)


class CuratorOutput(BaseModel):
    notes: str = ""
    operations: list[AddOperation] = Field(default_factory=list)


class SelectedBullet(BaseModel):
    """A bullet picked for a prompt, with the section it lives in."""

    section_key: str
    section_title: str
    bullet: Bullet
    score: float | None = None


class ApplyResult(BaseModel):
    playbook: Playbook
    added: int = 0
    merged: int = 0


class PromptAddon(BaseModel):
    text: str = ""
    bullets: list[SelectedBullet] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "bullets": [
                {
                    "id": sel.bullet.id,
                    "section": sel.section_key,
                    "content": sel.bullet.content,
                }
                for sel in self.bullets
            ],
        }
