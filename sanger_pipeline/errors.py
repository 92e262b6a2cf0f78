"""Exception types raised by the pipeline steps."""


class PipelineError(Exception):
    """Base class for every fatal pipeline condition."""


class ConfigurationError(PipelineError):
    """Invalid mode, missing config key or missing input file."""


class PermissionDenied(PipelineError):
    """The current user cannot run the analysis engine (docker)."""


class DirectoryCreationFailed(PipelineError):
    def __init__(self, path, reason=""):
        self.path = path
        self.reason = reason
        msg = f"Could not create directory {path}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ExternalToolFailed(PipelineError):
    def __init__(self, stage, detail=""):
        self.stage = stage
        self.detail = detail
        msg = f"External tool failed at stage '{stage}'"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class InvalidSampleName(ValueError):
    """A result file name from which no sample identity can be derived."""

    def __init__(self, name):
        self.name = name
        super().__init__(f"Cannot derive a sample name from '{name}'")


class RoutingFailed(PipelineError):
    def __init__(self, report):
        self.report = report
        super().__init__(f"{len(report.errors)} result file(s) could not be routed")


class ReportingFailed(PipelineError):
    def __init__(self, reason, report=None):
        self.report = report
        super().__init__(reason)
