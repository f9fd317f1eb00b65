from __future__ import annotations

import uuid


class UuidIdGenerator:
    def new_run_id(self) -> str:
        return f"run-{uuid.uuid4().hex[:12]}"

    def new_session_id(self) -> str:
        return f"session-{uuid.uuid4().hex[:12]}"

    def new_challenge_id(self) -> str:
        return f"captcha-{uuid.uuid4().hex[:12]}"
