import socket

from typer.testing import CliRunner

from worldrelay.relay_cli import app

runner = CliRunner()


def test_run_exits_nonzero_when_port_is_taken():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen()
        port = sock.getsockname()[1]
        result = runner.invoke(app, ["run", "--host", "127.0.0.1", "--port", str(port)])
    assert result.exit_code == 1
    assert "Could not bind" in result.output


def test_connections_reports_unreachable_relay():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    result = runner.invoke(app, ["connections", "--url", f"ws://127.0.0.1:{port}"])
    assert result.exit_code == 1
    assert "Could not query relay" in result.output
