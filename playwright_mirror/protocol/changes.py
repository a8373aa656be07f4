"""Models for recorded leader actions (changes).

A change is one recorded UI action together with the frame it happened in
and a commit flag. Actions form a tagged union on ``name``; each variant
knows when another action is the same user interaction, which is what the
leader uses to suppress in-progress duplicates.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag


class MirrorModel(BaseModel):
    """Base model: camelCase wire aliases, unknown keys preserved."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Signal(MirrorModel):
    """Auxiliary metadata attached to an action (navigation, popup, dialog...)."""

    name: str
    url: Optional[str] = None


class FrameDescription(MirrorModel):
    """Where an action happened: the page alias and the iframe selector chain."""

    page_alias: str = Field("page", alias="pageAlias")
    frame_path: list[str] = Field(default_factory=list, alias="framePath")


class BaseAction(MirrorModel):
    """Fields shared by every action variant."""

    name: str
    signals: list[Signal] = Field(default_factory=list)

    def same_interaction(self, other: "BaseAction") -> bool:
        """Whether ``other`` is logically the same interaction as this action.

        Variants without a rule are never considered equal.
        """
        return False

    def find_signal(self, name: str) -> Optional[Signal]:
        for signal in self.signals:
            if signal.name == name:
                return signal
        return None


class FillAction(BaseAction):
    name: Literal["fill"] = "fill"
    selector: str
    text: str = ""

    def same_interaction(self, other: BaseAction) -> bool:
        return (
            isinstance(other, FillAction)
            and other.selector == self.selector
            and other.text == self.text
        )


class ClickAction(BaseAction):
    name: Literal["click"] = "click"
    selector: str
    button: str = "left"
    modifiers: int = 0
    click_count: int = Field(1, alias="clickCount")

    def same_interaction(self, other: BaseAction) -> bool:
        return isinstance(other, ClickAction) and other.selector == self.selector


class NavigateAction(BaseAction):
    name: Literal["navigate"] = "navigate"
    url: str

    def same_interaction(self, other: BaseAction) -> bool:
        return isinstance(other, NavigateAction) and other.url == self.url


class PressAction(BaseAction):
    name: Literal["press"] = "press"
    selector: str
    key: str
    modifiers: int = 0


class CheckAction(BaseAction):
    name: Literal["check"] = "check"
    selector: str


class UncheckAction(BaseAction):
    name: Literal["uncheck"] = "uncheck"
    selector: str


class SelectAction(BaseAction):
    name: Literal["select"] = "select"
    selector: str
    options: list[str] = Field(default_factory=list)


class SetInputFilesAction(BaseAction):
    name: Literal["setInputFiles"] = "setInputFiles"
    selector: str
    files: list[str] = Field(default_factory=list)


class OpenPageAction(BaseAction):
    name: Literal["openPage"] = "openPage"
    url: Optional[str] = None


class ClosePageAction(BaseAction):
    name: Literal["closePage"] = "closePage"


class GenericAction(BaseAction):
    """Any action name without a dedicated variant; fields are kept as extras."""


_ACTION_VARIANTS = {
    "fill": FillAction,
    "click": ClickAction,
    "navigate": NavigateAction,
    "press": PressAction,
    "check": CheckAction,
    "uncheck": UncheckAction,
    "select": SelectAction,
    "setInputFiles": SetInputFilesAction,
    "openPage": OpenPageAction,
    "closePage": ClosePageAction,
}
_GENERIC_TAG = "generic"


def _action_tag(value: Any) -> str:
    if isinstance(value, dict):
        name = value.get("name")
    else:
        name = getattr(value, "name", None)
    return name if name in _ACTION_VARIANTS else _GENERIC_TAG


Action = Annotated[
    Union[
        Annotated[FillAction, Tag("fill")],
        Annotated[ClickAction, Tag("click")],
        Annotated[NavigateAction, Tag("navigate")],
        Annotated[PressAction, Tag("press")],
        Annotated[CheckAction, Tag("check")],
        Annotated[UncheckAction, Tag("uncheck")],
        Annotated[SelectAction, Tag("select")],
        Annotated[SetInputFilesAction, Tag("setInputFiles")],
        Annotated[OpenPageAction, Tag("openPage")],
        Annotated[ClosePageAction, Tag("closePage")],
        Annotated[GenericAction, Tag(_GENERIC_TAG)],
    ],
    Discriminator(_action_tag),
]


class Change(MirrorModel):
    """One recorded leader action in its frame, plus the commit flag."""

    frame: FrameDescription = Field(default_factory=FrameDescription)
    action: Action
    committed: bool = False

    @property
    def name(self) -> str:
        return self.action.name

    def to_wire(self) -> dict:
        """Serialize with wire (camelCase) keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_wire(cls, data: dict) -> "Change":
        return cls.model_validate(data)


def navigate_change(frame: FrameDescription, url: str) -> Change:
    """A standalone navigation in ``frame`` with no signals."""
    return Change(
        frame=frame.model_copy(deep=True),
        action=NavigateAction(url=url, signals=[]),
    )
