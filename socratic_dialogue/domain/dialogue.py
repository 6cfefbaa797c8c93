"""DialogueState — the single record describing where a conversation stands.

A DialogueState is immutable.  Every transition produces a new instance;
the input state of a turn is never modified, so a failed or cancelled
turn leaves the caller holding exactly what it passed in.

Invariants (enforced on construction):
    - current_stance / current_principle equal the last element of their
      history, or are None when the history is empty.
    - Versions are numbered 1..n in history order.
    - sub_state is legal for stage.
    - stage == ENDED iff summary is not None.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from socratic_dialogue.domain.enums import (
    LEGAL_SUB_STATES,
    DialogueStage,
    PrincipleClassification,
    Role,
    SubState,
)


# ── Turns and versions ───────────────────────────────────────────────────────

class Turn(BaseModel):
    """One raw conversation turn used to rebuild LLM context."""

    role: Role
    text: str

    model_config = {"frozen": True}


class StanceVersion(BaseModel):
    """Snapshot of the position the student claims at some point."""

    version: int = Field(..., ge=1)
    position: str
    reason: str = ""
    loop: int = Field(default=0, ge=0, description="loop_count when established")

    model_config = {"frozen": True}


class PrincipleVersion(BaseModel):
    """Snapshot of the general principle the student derives."""

    version: int = Field(..., ge=1)
    statement: str
    classification: PrincipleClassification = PrincipleClassification.UNCLEAR
    loop: int = Field(default=0, ge=0, description="loop_count when established")

    model_config = {"frozen": True}


# ── State ────────────────────────────────────────────────────────────────────

class DialogueState(BaseModel):
    """Complete state of one Socratic conversation."""

    topic: str
    stage: DialogueStage = DialogueStage.AWAITING_START
    sub_state: SubState = SubState.MAIN
    loop_count: int = Field(default=0, ge=0)
    stance_history: tuple[StanceVersion, ...] = ()
    current_stance: Optional[StanceVersion] = None
    principle_history: tuple[PrincipleVersion, ...] = ()
    current_principle: Optional[PrincipleVersion] = None
    conversation_history: tuple[Turn, ...] = ()
    discussion_satisfied: bool = False
    current_case: Optional[str] = Field(
        default=None,
        description="Last challenge case presented to the student",
    )
    draft_principle: Optional[str] = Field(
        default=None,
        description="Revised principle wording offered to the student, awaiting confirmation",
    )
    draft_summary: Optional[str] = Field(
        default=None,
        description="Summary under review during closure",
    )
    summary: Optional[str] = None

    model_config = {"frozen": True}

    # ── Validators ───────────────────────────────────────────────────────

    @model_validator(mode="after")
    def check_invariants(self) -> "DialogueState":
        expected_stance = self.stance_history[-1] if self.stance_history else None
        if self.current_stance != expected_stance:
            raise ValueError("current_stance must equal the last stance_history entry")

        expected_principle = self.principle_history[-1] if self.principle_history else None
        if self.current_principle != expected_principle:
            raise ValueError("current_principle must equal the last principle_history entry")

        for history, name in ((self.stance_history, "stance"), (self.principle_history, "principle")):
            for index, entry in enumerate(history, start=1):
                if entry.version != index:
                    raise ValueError(
                        f"{name} versions must be numbered 1..n (found v{entry.version} at #{index})"
                    )

        if self.sub_state not in LEGAL_SUB_STATES[self.stage]:
            raise ValueError(
                f"sub_state '{self.sub_state.value}' is not legal in stage '{self.stage.value}'"
            )

        if (self.stage == DialogueStage.ENDED) != (self.summary is not None):
            raise ValueError("summary must be set exactly when the stage is ENDED")

        return self

    # ── Derived updates ──────────────────────────────────────────────────

    def _replace(self, **changes) -> DialogueState:
        """Return a validated copy with *changes* applied."""
        data = dict(self)
        data.update(changes)
        return DialogueState(**data)

    def with_turn(self, role: Role, text: str) -> DialogueState:
        return self._replace(
            conversation_history=self.conversation_history + (Turn(role=role, text=text),),
        )

    def with_stance(self, position: str, reason: str) -> DialogueState:
        """Append a new stance version and make it current."""
        stance = StanceVersion(
            version=len(self.stance_history) + 1,
            position=position,
            reason=reason,
            loop=self.loop_count,
        )
        return self._replace(
            stance_history=self.stance_history + (stance,),
            current_stance=stance,
        )

    def with_principle(
        self,
        statement: str,
        classification: PrincipleClassification,
    ) -> DialogueState:
        """Append a new principle version and make it current."""
        principle = PrincipleVersion(
            version=len(self.principle_history) + 1,
            statement=statement,
            classification=classification,
            loop=self.loop_count,
        )
        return self._replace(
            principle_history=self.principle_history + (principle,),
            current_principle=principle,
        )

    def moved_to(
        self,
        stage: DialogueStage,
        sub_state: SubState = SubState.MAIN,
        **changes,
    ) -> DialogueState:
        """Return a copy in (*stage*, *sub_state*), applying extra *changes*."""
        return self._replace(stage=stage, sub_state=sub_state, **changes)

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def is_ended(self) -> bool:
        return self.stage == DialogueStage.ENDED

    def last_model_text(self) -> str:
        """Text of the most recent model turn, or an empty string."""
        for turn in reversed(self.conversation_history):
            if turn.role == Role.MODEL:
                return turn.text
        return ""


def create_initial_state(topic: str) -> DialogueState:
    """Fresh state for a conversation that has not started yet."""
    return DialogueState(topic=topic)


# ── Formatting for prompts ───────────────────────────────────────────────────

def format_stance_history(history: tuple[StanceVersion, ...] | list[StanceVersion]) -> str:
    if not history:
        return "No previous stance recorded."
    return "\n".join(
        f"V{s.version}: {s.position}" + (f" (reason: {s.reason})" if s.reason else "")
        for s in history
    )


def format_principle_history(history: tuple[PrincipleVersion, ...] | list[PrincipleVersion]) -> str:
    if not history:
        return "No previous principle recorded."
    return "\n".join(
        f"V{p.version}: {p.statement} ({p.classification.value})" for p in history
    )
