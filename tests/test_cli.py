import json

import pytest
from conftest import CONTRACT, FakeNode, success
from typer.testing import CliRunner

from casper_clients.cli import main as cli_main
from casper_clients.cli.main import app
from casper_clients.dictionary import base64_item_key, hex_item_key
from casper_clients.keys import PublicKey
from casper_clients.types.clvalue import CLValue
from casper_clients.version import __version__

runner = CliRunner()

OWNER_HEX = "01" + "aa" * 32
DEPLOY_HASH = "de" * 32


@pytest.fixture
def cli_node(monkeypatch):
    node = FakeNode()
    monkeypatch.setattr("casper_clients.cli.main.open_node", lambda config: node)
    return node


def _owner_key():
    return PublicKey.from_hex(OWNER_HEX).account_hash()


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.strip() == f"casper-clients {__version__}"


def test_state_root(cli_node):
    result = runner.invoke(app, ["--node", "http://127.0.0.1:7777/rpc", "state-root"])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == cli_node.state_root_hash


def test_named_keys_of_an_account(cli_node):
    cli_node.add_account(PublicKey.from_hex(OWNER_HEX), {"erc20_token_contract": CONTRACT})
    result = runner.invoke(app, ["named-keys", OWNER_HEX])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"erc20_token_contract": CONTRACT}


def test_named_keys_of_a_contract(cli_node):
    cli_node.add_contract(named_keys={"balances": "uref-" + "01" * 32 + "-007"})
    result = runner.invoke(app, ["named-keys", CONTRACT])
    assert result.exit_code == 0, result.output
    assert "balances" in json.loads(result.output)


def test_erc20_balance(cli_node):
    cli_node.set_item("balances", base64_item_key(_owner_key()), CLValue.u256(10_000))
    result = runner.invoke(app, ["balance", CONTRACT, OWNER_HEX])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "10000"


def test_cep47_balance_defaults_to_zero(cli_node):
    result = runner.invoke(app, ["balance", "--family", "cep47", CONTRACT, OWNER_HEX])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "0"

    cli_node.set_item("balances", hex_item_key(_owner_key()), CLValue.option(CLValue.u256(3)))
    result = runner.invoke(app, ["balance", "-f", "cep47", CONTRACT, OWNER_HEX])
    assert result.output.strip() == "3"


def test_missing_allowance_fails(cli_node):
    result = runner.invoke(app, ["allowance", CONTRACT, OWNER_HEX, "02" + "03" * 33])
    assert result.exit_code == 1
    assert "error:" in result.output


def test_deploy_status(cli_node):
    result = runner.invoke(app, ["deploy-status", DEPLOY_HASH])
    assert result.exit_code == 0
    assert result.output.strip() == "pending"

    cli_node.outcomes[DEPLOY_HASH] = success(cost=2_500)
    result = runner.invoke(app, ["deploy-status", DEPLOY_HASH])
    assert result.exit_code == 0, result.output
    status = json.loads(result.output)
    assert status["success"] is True
    assert status["cost"] == "2500"
    assert status["deploy_hash"] == DEPLOY_HASH


def test_bad_node_url_is_a_usage_error():
    result = runner.invoke(app, ["--node", "ftp://node", "state-root"])
    assert result.exit_code != 0


def test_main_returns_exit_codes():
    assert cli_main(["version"]) == 0
    assert cli_main(["no-such-command"]) != 0
