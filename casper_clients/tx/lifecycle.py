"""
casper_clients.tx.lifecycle
===========================

`DeployLifecycle` owns one deploy from construction to its execution result:

    BUILT --sign--> SIGNED --submit--> SUBMITTED --await_resolution--> RESOLVED

- `sign()` may be called repeatedly for multi-signature deploys, but only
  before submission. Submission sends a JSON snapshot, so nothing done to the
  lifecycle afterwards can change what the node received.
- `submit()` is never retried; a transport error leaves the lifecycle SIGNED
  and propagates unchanged.
- `await_resolution()` polls until the outcome is known or the timeout
  elapses (`ResolutionTimeout`, the deploy's fate is then unknown). The
  optional `ResultPostProcessor` runs exactly once, right after resolution,
  and typically turns a failed outcome into a contract-specific error.
- Result accessors are only valid once RESOLVED.

Independent lifecycles may be awaited concurrently; see `resolve_all`.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..config import DEFAULT_RESOLUTION_TIMEOUT
from ..errors import DeployStateError
from ..keys import AccountKey, KeyKind
from ..rpc.http import NodeClient
from ..types.deploy import Deploy, Signer
from ..types.results import ExecutionOutcome, TransformKind
from .send import submit_deploy, wait_for_outcome

log = logging.getLogger(__name__)

__all__ = [
    "DeployState",
    "ResultPostProcessor",
    "DeployLifecycle",
    "resolve_all",
]

# Called once with (outcome, deploy_hash); raises to report a failure.
ResultPostProcessor = Callable[[ExecutionOutcome, str], None]


class DeployState(Enum):
    BUILT = "built"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    RESOLVED = "resolved"


class DeployLifecycle:
    def __init__(
        self,
        node: NodeClient,
        deploy: Deploy,
        *,
        post_processor: Optional[ResultPostProcessor] = None,
        poll_interval: float = 2.0,
        resolution_timeout: float = DEFAULT_RESOLUTION_TIMEOUT,
    ) -> None:
        self._node = node
        self._deploy = deploy
        self._post_processor = post_processor
        self._poll_interval = poll_interval
        self.resolution_timeout = resolution_timeout
        self._state = DeployState.SIGNED if deploy.approvals else DeployState.BUILT
        self._submitted: Optional[Dict[str, Any]] = None
        self._outcome: Optional[ExecutionOutcome] = None
        # error raised by the post-processor, re-raised on later awaits
        self._error: Optional[Exception] = None

    def __repr__(self) -> str:
        return f"DeployLifecycle({self.deploy_hash}, {self._state.value})"

    # --- state -----------------------------------------------------------

    @property
    def state(self) -> DeployState:
        return self._state

    @property
    def deploy(self) -> Deploy:
        return self._deploy

    @property
    def deploy_hash(self) -> str:
        return self._deploy.hash_hex

    @property
    def submitted_payload(self) -> Optional[Dict[str, Any]]:
        """The exact JSON sent to the node, once submitted."""
        return self._submitted

    def _require(self, *states: DeployState, action: str) -> None:
        if self._state not in states:
            allowed = "/".join(s.name for s in states)
            raise DeployStateError(f"cannot {action} deploy {self.deploy_hash} in state {self._state.name} (needs {allowed})")

    # --- transitions -----------------------------------------------------

    def sign(self, key_pair: Signer) -> "DeployLifecycle":
        """Append an approval from `key_pair`."""
        self._require(DeployState.BUILT, DeployState.SIGNED, action="sign")
        self._deploy.approve(key_pair)
        self._state = DeployState.SIGNED
        return self

    async def submit(self) -> str:
        self._require(DeployState.SIGNED, action="submit")
        snapshot = self._deploy.to_json()
        deploy_hash = await submit_deploy(self._node, snapshot)
        if deploy_hash != self.deploy_hash:
            log.warning("node acknowledged deploy %s as %s", self.deploy_hash, deploy_hash)
        self._submitted = snapshot
        self._state = DeployState.SUBMITTED
        return deploy_hash

    async def await_resolution(self, timeout: Optional[float] = None) -> ExecutionOutcome:
        """
        Wait for the execution result. On success, returns the outcome; a
        registered post-processor may raise a typed error for failures, and
        later calls raise the same error again. `timeout` defaults to
        `resolution_timeout`.
        """
        if self._state is DeployState.RESOLVED:
            assert self._outcome is not None
            if self._error is not None:
                raise self._error
            return self._outcome
        self._require(DeployState.SUBMITTED, action="await resolution of")
        outcome = await wait_for_outcome(
            self._node,
            self.deploy_hash,
            timeout_s=self.resolution_timeout if timeout is None else timeout,
            poll_interval_s=self._poll_interval,
        )
        self._outcome = outcome
        self._state = DeployState.RESOLVED
        if self._post_processor is not None:
            try:
                self._post_processor(outcome, self.deploy_hash)
            except Exception as e:
                self._error = e
                raise
        return outcome

    async def submit_and_wait(
        self,
        key_pair: Optional[Signer] = None,
        *,
        timeout: Optional[float] = None,
    ) -> ExecutionOutcome:
        if key_pair is not None:
            self.sign(key_pair)
        await self.submit()
        return await self.await_resolution(timeout)

    # --- results ---------------------------------------------------------

    @property
    def execution_outcome(self) -> ExecutionOutcome:
        self._require(DeployState.RESOLVED, action="read the outcome of")
        assert self._outcome is not None
        return self._outcome

    @property
    def is_success(self) -> bool:
        return self.execution_outcome.success

    @property
    def installed_contract_hash(self) -> Optional[AccountKey]:
        """Contract hash written by an installation deploy, if any."""
        key = self.execution_outcome.first_key_with(TransformKind.WRITE_CONTRACT)
        return None if key is None else AccountKey.from_string(key).as_contract()

    @property
    def installed_package_hash(self) -> Optional[AccountKey]:
        key = self.execution_outcome.first_key_with(TransformKind.WRITE_CONTRACT_PACKAGE)
        return None if key is None else AccountKey.from_string(key, hash_kind=KeyKind.CONTRACT_PACKAGE_HASH).as_package()


async def resolve_all(
    lifecycles: Iterable[DeployLifecycle],
    *,
    timeout: Optional[float] = None,
    return_exceptions: bool = False,
) -> List[Any]:
    """
    Await several submitted deploys concurrently; results keep input order.
    Without `timeout` each lifecycle waits for its own `resolution_timeout`.
    """
    return list(
        await asyncio.gather(
            *(lc.await_resolution(timeout) for lc in lifecycles),
            return_exceptions=return_exceptions,
        )
    )
