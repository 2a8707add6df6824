from .environments import discover_environments, find_environment
from .model import Action, Environment, PipelinePlan, PipelineRun, RunState, StepResult, StepState
from .provisioner import ProvisionResult, Provisioner, TerraformProvisioner
from .runner import ConfigurationError, resolve_plan, run_pipeline
from .status import GitHubStatusReporter, StatusReporter

__all__ = [
    "discover_environments",
    "find_environment",
    "Action",
    "Environment",
    "PipelinePlan",
    "PipelineRun",
    "RunState",
    "StepResult",
    "StepState",
    "ProvisionResult",
    "Provisioner",
    "TerraformProvisioner",
    "ConfigurationError",
    "resolve_plan",
    "run_pipeline",
    "GitHubStatusReporter",
    "StatusReporter",
]
