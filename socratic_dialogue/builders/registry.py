"""Builder Registry — looks up stage prompt builders.

Builders are registered under (stage, purpose).  The orchestrator asks for
a builder by the stage it is acting in and what the output is for; the
registry returns exactly one builder or fails fast.

No fallbacks.  A missing builder is a wiring bug, not a runtime condition.
"""

from __future__ import annotations

import logging
from typing import Optional

from socratic_dialogue.builders.base import (
    BuilderKind,
    BuilderPurpose,
    ClassificationBuilder,
    StageBuilder,
)
from socratic_dialogue.builders.stage1_asking_stance import (
    OpeningBuilder,
    StanceClarifyBuilder,
    StanceClassifierBuilder,
)
from socratic_dialogue.builders.stage2_case_challenge import (
    CaseClarifyBuilder,
    CaseClassifierBuilder,
    CaseScaffoldBuilder,
    ChallengeBuilder,
)
from socratic_dialogue.builders.stage3_principle_reasoning import (
    PrincipleClarifyBuilder,
    PrincipleClassifierBuilder,
    PrincipleQuestionBuilder,
    PrincipleRefinementBuilder,
)
from socratic_dialogue.builders.stage4_closure import (
    ClosureClassifierBuilder,
    FarewellBuilder,
    SummaryBuilder,
    SummaryRevisionBuilder,
)
from socratic_dialogue.domain.enums import DialogueStage

logger = logging.getLogger(__name__)


class BuilderNotFoundError(LookupError):
    """Raised when no builder is registered for a (stage, purpose) pair."""


class BuilderKindMismatchError(TypeError):
    """Raised when the registered builder has a different kind than requested."""


class BuilderRegistry:
    """Registry of stage builders keyed by (stage, purpose).

    Usage:
        registry = BuilderRegistry()
        registry.register(OpeningBuilder())
        builder = registry.get(DialogueStage.ASKING_STANCE, BuilderPurpose.OPENING)
    """

    def __init__(self) -> None:
        self._builders: dict[tuple[DialogueStage, BuilderPurpose], StageBuilder] = {}

    def register(self, builder: StageBuilder) -> None:
        """Add a builder.

        Raises:
            ValueError: If a builder is already registered for the same key.
        """
        key = (builder.stage, builder.purpose)
        if key in self._builders:
            raise ValueError(
                f"Builder already registered for {builder.stage.value}/{builder.purpose.value}: "
                f"{self._builders[key]!r}"
            )
        self._builders[key] = builder
        logger.debug("Registered builder: %r", builder)

    def get(
        self,
        stage: DialogueStage,
        purpose: BuilderPurpose,
        kind: Optional[BuilderKind] = None,
    ) -> StageBuilder:
        """Return the builder for (*stage*, *purpose*).

        Raises:
            BuilderNotFoundError: Nothing registered for the key.
            BuilderKindMismatchError: *kind* given and the builder differs.
        """
        builder = self._builders.get((stage, purpose))
        if builder is None:
            raise BuilderNotFoundError(
                f"No builder registered for {stage.value}/{purpose.value}"
            )
        if kind is not None and builder.kind != kind:
            raise BuilderKindMismatchError(
                f"{builder!r} is {builder.kind.value}, expected {kind.value}"
            )
        return builder

    def classifier(self, stage: DialogueStage) -> ClassificationBuilder:
        """Return the decision builder for *stage*.

        Raises:
            BuilderKindMismatchError: The registered builder cannot classify.
        """
        builder = self.get(stage, BuilderPurpose.DECISION, BuilderKind.CLASSIFICATION)
        if not isinstance(builder, ClassificationBuilder):
            raise BuilderKindMismatchError(
                f"{builder!r} is registered as a classifier but is not a ClassificationBuilder"
            )
        return builder

    def __len__(self) -> int:
        return len(self._builders)


def default_registry() -> BuilderRegistry:
    """Registry holding every builder the four dialogue stages use."""
    registry = BuilderRegistry()
    for builder in (
        OpeningBuilder(),
        StanceClassifierBuilder(),
        StanceClarifyBuilder(),
        ChallengeBuilder(),
        CaseClassifierBuilder(),
        CaseClarifyBuilder(),
        CaseScaffoldBuilder(),
        PrincipleQuestionBuilder(),
        PrincipleClassifierBuilder(),
        PrincipleClarifyBuilder(),
        PrincipleRefinementBuilder(),
        SummaryBuilder(),
        ClosureClassifierBuilder(),
        SummaryRevisionBuilder(),
        FarewellBuilder(),
    ):
        registry.register(builder)
    return registry
