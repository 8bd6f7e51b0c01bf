"""
Deployment agent — the runtime a generated bundle embeds.

    plan       what to do (serialized into the bundle)
    host       how to touch the machine
    runtime    the phase state machine
    bridge     the window-facing API
"""

from drivegenie.agent.bridge import AgentBridge
from drivegenie.agent.channels import RunChannels
from drivegenie.agent.host import Host, WindowsHost
from drivegenie.agent.plan import DeploymentPlan
from drivegenie.agent.runtime import DeploymentAgent

__all__ = [
    "AgentBridge",
    "DeploymentAgent",
    "DeploymentPlan",
    "Host",
    "RunChannels",
    "WindowsHost",
]
