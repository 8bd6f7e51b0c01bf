"""
AgentBridge — the API a bundle's window calls into.

The presentation shell (``index.html``) reaches the agent only through
three methods:

    minimize_window()
    close_window()
    start_install(project, department[, backup_roots])
        → {"success": bool, "error": str | None}

and listens for two DOM events the bridge dispatches on ``window``:

    agent:log         detail = one log line (string)
    agent:progress    detail = 0..100, or -1 while indeterminate

Runs execute on the bridge's single worker thread; the window thread
only waits for the verdict.  A second ``start_install`` while one is
in flight is refused rather than queued.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from drivegenie.agent.runtime import DeploymentAgent
from drivegenie.core.models.run_state import RunResult
from drivegenie.core.services.escaping import json_string

logger = logging.getLogger(__name__)

EVENT_PREFIX = "agent:"

BUSY_MESSAGE = "安装正在进行中"


def event_script(channel: str, value: Any) -> str:
    """JavaScript that dispatches one channel message as a DOM event."""
    name = json_string(EVENT_PREFIX + channel)
    detail = json.dumps(value, ensure_ascii=False)
    return f"window.dispatchEvent(new CustomEvent({name}, {{detail: {detail}}}))"


class AgentBridge:
    """Window-facing facade over one DeploymentAgent."""

    def __init__(self, agent: DeploymentAgent):
        self._agent = agent
        self._window = None
        self._busy = threading.Lock()
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="agent")
        agent.channels.subscribe(self._forward)

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    def attach(self, window) -> None:
        """Bind the window that receives channel events."""
        self._window = window

    # ── Window API ──────────────────────────────────────────────

    def minimize_window(self) -> None:
        if self._window is not None:
            self._window.minimize()

    def close_window(self) -> None:
        if self.busy:
            self._agent.cancel.cancel("窗口已关闭")
        if self._window is not None:
            self._window.destroy()
        self._worker.shutdown(wait=False)

    def start_install(
        self,
        project: str = "",
        department: str = "",
        backup_roots: list[str] | None = None,
    ) -> dict:
        if not self._busy.acquire(blocking=False):
            return RunResult(success=False, error=BUSY_MESSAGE).to_dict()
        try:
            future = self._worker.submit(self._agent.run, project, department, backup_roots)
            result = future.result()
        finally:
            self._busy.release()
        return result.to_dict()

    # ── Channel forwarding ──────────────────────────────────────

    def _forward(self, channel: str, value: Any) -> None:
        window = self._window
        if window is None:
            return
        try:
            window.evaluate_js(event_script(channel, value))
        except Exception as e:
            # Stay subscribed
            logger.warning("Window event dispatch failed on %s: %s", channel, e)
