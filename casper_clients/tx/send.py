"""
casper_clients.tx.send
======================

Submit signed deploys to a node and await their execution results.

Primary entry points
--------------------
- submit_deploy(node, deploy) -> str
    Sends the deploy JSON once via `account_put_deploy`. Returns the deploy
    hash (lowercase hex). Transport errors propagate unchanged: deploys are
    not idempotent once fees are charged, so retrying is a caller decision.

- wait_for_outcome(node, deploy_hash, *, timeout_s=120, poll_interval_s=2.0) -> ExecutionOutcome
    Polls the node until the deploy has an execution result, or raises
    `ResolutionTimeout`. Only the local wait is abandoned on timeout; the
    deploy may still execute later.

- submit_and_wait(node, deploy, ...) -> ExecutionOutcome
    Convenience wrapper for the two above.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Union

from ..config import DEFAULT_RESOLUTION_TIMEOUT
from ..errors import DeployStateError, ResolutionTimeout
from ..rpc.http import NodeClient
from ..types.deploy import Deploy
from ..types.results import ExecutionOutcome

log = logging.getLogger(__name__)

__all__ = ["submit_deploy", "wait_for_outcome", "submit_and_wait"]


async def submit_deploy(node: NodeClient, deploy: Union[Deploy, Mapping[str, Any]]) -> str:
    """
    Submit a signed deploy (a `Deploy` or its JSON form) and return its hash.
    """
    payload = deploy.to_json() if isinstance(deploy, Deploy) else dict(deploy)
    if not payload.get("approvals"):
        raise DeployStateError("deploy has no approvals; sign it before submitting")
    deploy_hash = await node.put_deploy(payload)
    log.debug("submitted deploy %s", deploy_hash)
    return deploy_hash.lower()


async def wait_for_outcome(
    node: NodeClient,
    deploy_hash: str,
    *,
    timeout_s: float = DEFAULT_RESOLUTION_TIMEOUT,
    poll_interval_s: float = 2.0,
    max_interval_s: float = 10.0,
    backoff: float = 1.5,
) -> ExecutionOutcome:
    """
    Poll until the deploy's outcome is available.

    Raises:
        ResolutionTimeout when `timeout_s` elapses first
        RpcError on non-recoverable node errors
    """

    async def _poll() -> ExecutionOutcome:
        interval = float(poll_interval_s)
        polls = 0
        while True:
            polls += 1
            outcome = await node.fetch_deploy_outcome(deploy_hash)
            if outcome is not None:
                log.debug("deploy %s resolved after %d polls (success=%s)", deploy_hash, polls, outcome.success)
                return outcome
            await asyncio.sleep(interval)
            interval = min(interval * float(backoff), float(max_interval_s))

    try:
        return await asyncio.wait_for(_poll(), timeout=float(timeout_s))
    except asyncio.TimeoutError:
        raise ResolutionTimeout(deploy_hash, float(timeout_s)) from None


async def submit_and_wait(
    node: NodeClient,
    deploy: Union[Deploy, Mapping[str, Any]],
    *,
    timeout_s: float = DEFAULT_RESOLUTION_TIMEOUT,
    poll_interval_s: float = 2.0,
) -> ExecutionOutcome:
    deploy_hash = await submit_deploy(node, deploy)
    return await wait_for_outcome(node, deploy_hash, timeout_s=timeout_s, poll_interval_s=poll_interval_s)
