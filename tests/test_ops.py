from realty.core.security import decode_access_token

from ops.issue_token import main


def test_issue_token_prints_decodable_token(capsys):
    assert main(["usr_cli", "--ttl", "60"]) == 0

    token = capsys.readouterr().out.strip()
    payload = decode_access_token(token)
    assert payload["sub"] == "usr_cli"
    assert payload["exp"] - payload["iat"] == 60


def test_issue_token_rejects_blank_user(capsys):
    assert main(["  "]) == 2
    assert "must not be blank" in capsys.readouterr().err
