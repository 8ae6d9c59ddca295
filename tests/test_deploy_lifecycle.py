import pytest
from conftest import failure, success

from casper_clients.config import ClientConfig
from casper_clients.contracts.erc20 import ERC20Client
from casper_clients.contracts.errors import ERC20Error, make_result_processor
from casper_clients.errors import (ContractError, DeployStateError,
                                   ResolutionTimeout, RpcError)
from casper_clients.keys import AccountKey
from casper_clients.tx.build import DeployParams, contract_call
from casper_clients.tx.lifecycle import (DeployLifecycle, DeployState,
                                         resolve_all)
from casper_clients.tx.send import submit_deploy
from casper_clients.types.clvalue import CLValue
from casper_clients.types.results import Effect

pytestmark = pytest.mark.anyio

CONTRACT = AccountKey.contract(b"\x0a" * 32)


def _deploy(kp, amount=1):
    params = DeployParams(account=kp.public_key, chain_name="casper-test")
    return contract_call(CONTRACT, "transfer", [("amount", CLValue.u256(amount))], params=params, payment_motes=100)


def _lifecycle(node, kp, **kw):
    return DeployLifecycle(node, _deploy(kp, **kw), poll_interval=0.01)


async def test_happy_path_walks_every_state(node, owner):
    node.executor = lambda d: success()
    node.pending_polls = 2
    lc = _lifecycle(node, owner)
    assert lc.state is DeployState.BUILT

    lc.sign(owner)
    assert lc.state is DeployState.SIGNED

    deploy_hash = await lc.submit()
    assert deploy_hash == lc.deploy_hash
    assert lc.state is DeployState.SUBMITTED
    assert lc.submitted_payload == lc.deploy.to_json()

    outcome = await lc.await_resolution(timeout=5)
    assert outcome.success
    assert lc.state is DeployState.RESOLVED
    assert lc.is_success
    assert node.calls.count("fetch_deploy_outcome") == 3

    # already resolved: no further polling
    assert await lc.await_resolution() is outcome
    assert node.calls.count("fetch_deploy_outcome") == 3


async def test_out_of_order_calls_are_refused(node, owner):
    node.executor = lambda d: success()
    lc = _lifecycle(node, owner)
    with pytest.raises(DeployStateError):
        await lc.submit()
    with pytest.raises(DeployStateError):
        await lc.await_resolution(timeout=1)
    with pytest.raises(DeployStateError):
        lc.execution_outcome

    lc.sign(owner)
    await lc.submit()
    with pytest.raises(DeployStateError):
        lc.sign(owner)
    with pytest.raises(DeployStateError):
        await lc.submit()
    assert len(node.submitted) == 1


async def test_multiple_signers(node, owner, user2):
    node.executor = lambda d: success()
    lc = _lifecycle(node, owner).sign(owner).sign(user2)
    await lc.submit()
    assert [a.signer for a in node.submitted[0].approvals] == [owner.public_key, user2.public_key]


async def test_submit_failure_leaves_deploy_signed(node, owner):
    node.put_error = RpcError(-32098, "Network error", method="account_put_deploy")
    lc = _lifecycle(node, owner).sign(owner)
    with pytest.raises(RpcError):
        await lc.submit()
    assert lc.state is DeployState.SIGNED
    assert lc.submitted_payload is None
    assert node.calls.count("put_deploy") == 1


async def test_timeout_abandons_only_the_wait(node, owner):
    lc = _lifecycle(node, owner).sign(owner)
    await lc.submit()
    with pytest.raises(ResolutionTimeout) as ei:
        await lc.await_resolution(timeout=0.05)
    assert ei.value.deploy_hash == lc.deploy_hash
    assert lc.state is DeployState.SUBMITTED

    # the deploy executes later; a new wait picks it up
    node.outcomes[lc.deploy_hash] = success()
    assert (await lc.await_resolution(timeout=5)).success


async def test_post_processor_runs_once(node, owner):
    seen = []
    node.executor = lambda d: failure("User error: 1")
    lc = DeployLifecycle(node, _deploy(owner), post_processor=lambda o, h: seen.append((o.success, h)), poll_interval=0.01)
    await lc.submit_and_wait(owner, timeout=5)
    await lc.await_resolution()
    assert seen == [(False, lc.deploy_hash)]
    assert not lc.is_success


async def test_installed_hashes_from_effects(node, owner):
    node.executor = lambda d: success(
        Effect("hash-" + "0b" * 32, "WriteContractPackage", None),
        Effect("hash-" + "0a" * 32, "WriteContract", None),
    )
    lc = _lifecycle(node, owner)
    await lc.submit_and_wait(owner, timeout=5)
    assert lc.installed_contract_hash == AccountKey.contract(b"\x0a" * 32)
    assert lc.installed_package_hash == AccountKey.package(b"\x0b" * 32)


async def test_resolve_all_keeps_input_order(node, owner):
    node.executor = lambda d: success(cost=int(d.session.args[0].value.value))
    lifecycles = [_lifecycle(node, owner, amount=n) for n in (3, 1, 2)]
    for lc in lifecycles:
        lc.sign(owner)
        await lc.submit()
    outcomes = await resolve_all(lifecycles, timeout=5)
    assert [o.cost for o in outcomes] == [3, 1, 2]


async def test_unsigned_deploy_is_not_sent(node, owner):
    with pytest.raises(DeployStateError):
        await submit_deploy(node, _deploy(owner))
    assert node.calls == []


async def test_default_wait_uses_the_configured_timeout(node, owner):
    lc = DeployLifecycle(node, _deploy(owner), poll_interval=0.01, resolution_timeout=0.05)
    with pytest.raises(ResolutionTimeout):
        await lc.submit_and_wait(owner)
    assert lc.state is DeployState.SUBMITTED


async def test_contract_handles_pass_the_configured_timeout(node, owner):
    config = ClientConfig(chain_name="casper-test", poll_interval=0.01, resolution_timeout=0.05)
    erc20 = ERC20Client(node, config=config)
    lc = erc20.install_contract(b"\x00asm", "Acme Token", "ACME", 5, 1_000, sender=owner.public_key, payment_motes=100)
    assert lc.resolution_timeout == 0.05
    with pytest.raises(ResolutionTimeout):
        await lc.submit_and_wait(owner)


async def test_failed_outcome_raises_on_every_wait(node, owner):
    node.executor = lambda d: failure("User error: 65534")
    lc = DeployLifecycle(node, _deploy(owner), post_processor=make_result_processor(ERC20Error), poll_interval=0.01)
    with pytest.raises(ContractError) as first:
        await lc.submit_and_wait(owner, timeout=5)
    with pytest.raises(ContractError) as second:
        await lc.await_resolution()
    assert second.value is first.value
    assert second.value.name == "INSUFFICIENT_BALANCE"
    assert node.calls.count("fetch_deploy_outcome") == 1
