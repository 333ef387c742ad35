"""
rin.core.memory.compressor - History Compressor

Keeps the conversation context bounded: the most recent turns stay verbatim,
and once enough older turns pile up they are folded into one summary
message produced by a dedicated model call.
"""

import logging

from rin.core.cancellation import CancellationToken
from rin.errors import RunCancelledError
from rin.llm.models import Message

logger = logging.getLogger(__name__)

RECENT_TURNS = 10
COMPRESS_THRESHOLD = 15

SUMMARY_PREFIX = "[Memory summary of earlier conversation]\n"
SUMMARY_FALLBACK = "(Earlier conversation could not be summarised.)"

SUMMARY_PROMPT = (
    "Summarise the following conversation between a user and their assistant Rin in one "
    "concise paragraph, written in the third person. Keep names, dates, decisions, open "
    "requests and facts the user shared. Do not add anything that was not said."
)


class HistoryCompressor:
    """
    Fold older conversation turns into a single summary message.

    Example:
        >>> compressor = HistoryCompressor(model_client)
        >>> messages = await compressor.compress(turns, recent_keep=10, compress_threshold=15)
        >>> messages[0].content.startswith(SUMMARY_PREFIX)
        True
    """

    def __init__(self, model) -> None:
        """
        Initialize HistoryCompressor.

        Args:
            model: Anything with ``async chat(messages, *, cancel_token)``
                returning text (normally ``rin.llm.ModelClient``)
        """
        self.model = model

    async def compress(
        self,
        turns: list[Message],
        recent_keep: int = RECENT_TURNS,
        compress_threshold: int = COMPRESS_THRESHOLD,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> list[Message]:
        """
        Compress ``turns`` (oldest first).

        Args:
            turns: Stored conversation turns
            recent_keep: Turns always kept verbatim at the end
            compress_threshold: Minimum number of older turns worth summarising

        Returns:
            The turns verbatim, or ``[summary, *recent]`` where ``summary`` is
            an assistant message prefixed with ``SUMMARY_PREFIX``. Never
            raises for summarisation failures.

        Raises:
            RunCancelledError: The token was cancelled during summarisation
        """
        if len(turns) <= recent_keep:
            return list(turns)

        split = len(turns) - recent_keep
        older, recent = turns[:split], turns[split:]
        if len(older) < compress_threshold:
            return list(turns)

        summary = await self._summarise(older, cancel_token)
        logger.info(
            "Compressed conversation history",
            extra={"older_turns": len(older), "recent_turns": len(recent)},
        )
        return [Message(role="assistant", content=SUMMARY_PREFIX + summary), *recent]

    async def _summarise(self, older: list[Message], cancel_token: CancellationToken | None) -> str:
        transcript = "\n".join(
            f"{'User' if m.role == 'user' else 'Rin'}: {m.content}" for m in older
        )
        prompt = [
            Message(role="system", content=SUMMARY_PROMPT),
            Message(role="user", content=transcript),
        ]
        try:
            summary = await self.model.chat(prompt, cancel_token=cancel_token)
        except RunCancelledError:
            raise
        except Exception as e:
            logger.warning(f"History summarisation failed: {type(e).__name__}", exc_info=True)
            return SUMMARY_FALLBACK
        return summary.strip() or SUMMARY_FALLBACK
