"""Build-and-test pipeline graph."""

from pydantic_graph import Graph

from buildorch.core.config import State
from buildorch.core.log import logger


def create_workflow():
    """Create the build-and-test graph.

    Prepare → Configure → FetchFlaky → Build → RunTests →
        RecoverReports → Validate → Coverage → SecondaryTests →
        Finalize

    Prepare, Configure and Build may end the run early (or raise a
    fatal BuildOrchError). From RunTests on, every node runs and
    records into the shared RunOutcome.
    """
    logger.debug("Building pipeline graph")

    # Node return annotations are resolved against this namespace
    from buildorch.workflow.nodes import (
        Build,
        Configure,
        Coverage,
        FetchFlaky,
        Finalize,
        Prepare,
        RecoverReports,
        RunTests,
        SecondaryTests,
        Validate,
    )

    return Graph(
        nodes=(
            Prepare,
            Configure,
            FetchFlaky,
            Build,
            RunTests,
            RecoverReports,
            Validate,
            Coverage,
            SecondaryTests,
            Finalize,
        ),
        state_type=State,
    )
