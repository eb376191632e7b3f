from vendor_assistant.workflows.base import WorkflowContext, WorkflowHandler
from vendor_assistant.workflows.cart_workflow import CartWorkflow
from vendor_assistant.workflows.exploration_workflow import ExplorationWorkflow
from vendor_assistant.workflows.router import RouterConfigurationError, WorkflowRouter

__all__ = [
    "WorkflowRouter",
    "RouterConfigurationError",
    "WorkflowHandler",
    "WorkflowContext",
    "CartWorkflow",
    "ExplorationWorkflow",
]
