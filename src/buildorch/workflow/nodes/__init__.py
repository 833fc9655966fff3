"""Pipeline phases, one graph node each."""

from buildorch.workflow.nodes.build import Build
from buildorch.workflow.nodes.configure import Configure
from buildorch.workflow.nodes.coverage import Coverage
from buildorch.workflow.nodes.fetch_flaky import FetchFlaky
from buildorch.workflow.nodes.finalize import Finalize
from buildorch.workflow.nodes.prepare import Prepare
from buildorch.workflow.nodes.recover_reports import RecoverReports
from buildorch.workflow.nodes.run_tests import RunTests
from buildorch.workflow.nodes.secondary_tests import SecondaryTests
from buildorch.workflow.nodes.validate import Validate

__all__ = [
    "Prepare",
    "Configure",
    "FetchFlaky",
    "Build",
    "RunTests",
    "RecoverReports",
    "Validate",
    "Coverage",
    "SecondaryTests",
    "Finalize",
]
