"""
CLI Entry Adapter.

Responsibility:
- Hold the terminal user's conversation session id
- Normalize raw terminal input to the EntryRequest contract

Prohibitions:
- No routing, no capability logic
"""

import uuid

from shared.models import EntryRequest, utc_now

RESET_COMMANDS = ("/new", "/reset")


def new_session_id() -> str:
    return f"cli-{uuid.uuid4().hex[:8]}"


class CLIAdapter:
    """Command-line entry adapter."""

    def __init__(self, session_id: str | None = None):
        self.session_id = session_id or new_session_id()

    def is_reset(self, raw_input: str) -> bool:
        return raw_input.strip().lower() in RESET_COMMANDS

    def reset(self) -> str:
        """Start a fresh conversation; live sessions under the old id are left to expire."""
        self.session_id = new_session_id()
        return self.session_id

    def read_input(self, raw_input: str) -> EntryRequest:
        """Normalize raw CLI input to EntryRequest."""
        return EntryRequest(
            session_id=self.session_id,
            input_text=raw_input.strip(),
            metadata={"source": "cli", "received_at": utc_now().isoformat()},
        )
