"""
Models describing the outcome of applying a devpod.
"""
from typing import List
from enum import Enum
from pydantic import BaseModel


class ApplyAction(str, Enum):
    """
    What happened to an object on the cluster.
    """
    CREATED = "created"
    UPDATED = "updated"
    RECREATED = "recreated"


class ApplyResult(BaseModel):
    """
    Summary of a successful run, used for the final report.
    """
    namespace: str
    kind: str
    name: str
    action: ApplyAction
    config_map_name: str
    config_map_action: ApplyAction
    scripts: List[str] = []
    inspection_errors: List[str] = []

    @property
    def exec_command(self) -> str:
        """Command an operator can paste to get a shell in the devpod."""
        return f"kubectl exec -it -n {self.namespace} {self.kind}/{self.name} -- sh"
