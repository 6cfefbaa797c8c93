from socratic_dialogue.models.result import ConversationSummary, StageResult
from socratic_dialogue.models.usage import TokenUsage

__all__ = ["ConversationSummary", "StageResult", "TokenUsage"]
