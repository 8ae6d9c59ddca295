"""
Deploy construction, submission and lifecycle tracking.
"""

from .build import (DeployParams, contract_call, install_deploy, make_deploy,
                    make_header, named_args, payment, versioned_contract_call)
from .lifecycle import (DeployLifecycle, DeployState, ResultPostProcessor,
                        resolve_all)
from .send import submit_and_wait, submit_deploy, wait_for_outcome

__all__ = [
    "DeployParams",
    "contract_call",
    "install_deploy",
    "make_deploy",
    "make_header",
    "named_args",
    "payment",
    "versioned_contract_call",
    "DeployLifecycle",
    "DeployState",
    "ResultPostProcessor",
    "resolve_all",
    "submit_and_wait",
    "submit_deploy",
    "wait_for_outcome",
]
