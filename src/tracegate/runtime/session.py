import datetime
import uuid

from tracegate.config import config


def _generate_session_id():
    ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    rand = uuid.uuid4().hex[:6]
    return f"session_{ts}_{rand}"


def get_session_id():
    """
    Return the configured session id, generating (and pinning) one on
    first use so every writer in the process lands in the same directory.
    """
    if not config.session_id:
        config.session_id = _generate_session_id()
    return config.session_id
