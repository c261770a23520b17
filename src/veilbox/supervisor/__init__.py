"""Engine process supervision: cache resolution, launch, output relay, shutdown."""

from veilbox.supervisor.models import EngineRun, SupervisorState
from veilbox.supervisor.runner import EngineSupervisor

__all__ = ["EngineRun", "EngineSupervisor", "SupervisorState"]
