"""Reassembly of tool calls streamed as fragments."""

from relay.models import ToolCall, ToolCallFragment


class ToolCallAccumulator:
    """Buffers tool-call fragments by their position index.

    The gateway emits a tool call's argument JSON a few tokens at a time and
    may interleave several calls, distinguishing them only by ``index``.
    ``id`` and ``name`` are kept from the first fragment that carries them;
    ``arguments`` pieces are concatenated in arrival order.
    """

    def __init__(self) -> None:
        self._pending: dict[int, ToolCall] = {}
        self._drained = False

    def __bool__(self) -> bool:
        return bool(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def merge(self, fragment: ToolCallFragment) -> None:
        """Fold one fragment into the call at its index."""
        if self._drained:
            raise RuntimeError("Tool calls were already drained for this turn")

        call = self._pending.get(fragment.index)
        if call is None:
            call = ToolCall(index=fragment.index, id="", name="")
            self._pending[fragment.index] = call

        if fragment.id and not call.id:
            call.id = fragment.id
        if fragment.name and not call.name:
            call.name = fragment.name
        if fragment.arguments:
            call.arguments += fragment.arguments

    def drain(self) -> list[ToolCall]:
        """Return the assembled calls ordered by index, exactly once.

        Must only be called after the upstream stream has ended: before
        that, argument JSON may still be incomplete.

        Raises:
            RuntimeError: If called a second time.
        """
        if self._drained:
            raise RuntimeError("Tool calls were already drained for this turn")
        self._drained = True
        calls = [self._pending[index] for index in sorted(self._pending)]
        self._pending.clear()
        return calls
