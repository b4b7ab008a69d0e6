import uuid
from contextvars import ContextVar, Token
from typing import Optional

# Context variable holding the id of the batch being executed
# Each asyncio task inherits a copy, so per-query units see their batch id
batch_id_var: ContextVar[Optional[str]] = ContextVar('batch_id', default=None)


def generate_batch_id() -> str:
    """Generate a new batch ID."""
    return uuid.uuid4().hex


def set_batch_id(batch_id: str) -> Token:
    """Set the batch ID for the current context. Returns a token for reset_batch_id()."""
    return batch_id_var.set(batch_id)


def reset_batch_id(token: Token) -> None:
    """Restore the batch ID that was current before set_batch_id()."""
    batch_id_var.reset(token)


def current_batch_id() -> Optional[str]:
    """Get the current batch ID."""
    return batch_id_var.get()


def get_batch_id() -> str:
    """Get existing batch ID or start a new one."""
    batch_id = current_batch_id()
    if batch_id is None:
        batch_id = generate_batch_id()
        set_batch_id(batch_id)
    return batch_id
