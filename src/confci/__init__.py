from .dag import TaskGraph, task
from .fanout import provision_all
from .jobs import JobRunner
from .model import Configuration, Job, JobResult, JobState, PipelineRun, RequiredModule, Task
from .pipeline import Collaborators, Pipeline
from .poller import Observation, poll_until
from .reporter import ResultReporter

__all__ = [
    "TaskGraph", "task", "provision_all", "JobRunner", "Configuration", "Job", "JobResult",
    "JobState", "PipelineRun", "RequiredModule", "Task", "Collaborators", "Pipeline",
    "Observation", "poll_until", "ResultReporter",
]
