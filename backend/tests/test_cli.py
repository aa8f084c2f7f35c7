from possync.models import Account
from tests.conftest import USER_ID, item_payload, push


def test_set_and_show_company(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["accounts", "set-company", USER_ID, "Acme Traders"])

    assert result.exit_code == 0
    assert "voucher code ACM" in result.output
    assert db_session.get(Account, USER_ID).company_name == "Acme Traders"

    result = runner.invoke(args=["accounts", "show", USER_ID])
    assert "Voucher code: ACM" in result.output


def test_show_unknown_account(app, db_session):
    result = app.test_cli_runner().invoke(args=["accounts", "show", "nobody"])

    assert result.exit_code == 0
    assert "vouchers use code GUR" in result.output


def test_sync_status(app, db_session):
    runner = app.test_cli_runner()

    assert "No pushes recorded." in runner.invoke(args=["sync", "status", USER_ID]).output

    push(items=[item_payload("i1")])
    output = runner.invoke(args=["sync", "status", USER_ID]).output
    assert "items" in output
